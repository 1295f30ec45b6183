"""Plan repository - read-only access to the plan catalog.

Loads from config/plans.yaml and provides lookup methods.
"""

from typing import Dict, List, Optional

from shop_billing.config import Config
from shop_billing.exceptions import PlanNotFound
from shop_billing.models import PlanDefinition


class PlanRepository:
    """Repository for subscription plan definitions.

    Loads plan definitions from configuration and provides fast lookup.
    Plans are never modified through the repository.
    """

    def __init__(self, config: Config):
        """Initialize plan repository.

        Args:
            config: Configuration instance holding the plan catalog
        """
        self._config = config
        self._plans_by_id: Dict[str, PlanDefinition] = {}
        self._load_plans()

    def _load_plans(self) -> None:
        """Index plan definitions by ID."""
        self._plans_by_id = {plan.id: plan for plan in self._config.plans}

    def get_by_id(self, plan_id: str) -> PlanDefinition:
        """Get plan definition by ID.

        Raises:
            PlanNotFound: If plan ID not found
        """
        plan = self._plans_by_id.get(plan_id)
        if plan is None:
            raise PlanNotFound(
                f"Plan not found: {plan_id}. "
                f"Available plans: {list(self._plans_by_id.keys())}"
            )
        return plan

    def find_by_id(self, plan_id: str) -> Optional[PlanDefinition]:
        """Find plan definition by ID (returns None if not found)."""
        return self._plans_by_id.get(plan_id)

    def find_by_name(self, name: str) -> Optional[PlanDefinition]:
        """Find plan definition by display name, as copied onto snapshots."""
        for plan in self._plans_by_id.values():
            if plan.name == name:
                return plan
        return None

    def get_all(self) -> List[PlanDefinition]:
        """Get all plans in display order."""
        return sorted(self._plans_by_id.values(), key=lambda plan: plan.order)

    def reload(self) -> None:
        """Reload plan definitions from configuration."""
        self._config.reload()
        self._load_plans()

    def __len__(self) -> int:
        return len(self._plans_by_id)

    def __contains__(self, plan_id: str) -> bool:
        return plan_id in self._plans_by_id

    def __repr__(self) -> str:
        return f"PlanRepository(plans={len(self._plans_by_id)})"
