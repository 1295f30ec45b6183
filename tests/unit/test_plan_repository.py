"""Unit tests for PlanRepository."""

from unittest.mock import MagicMock

import pytest

from shop_billing.exceptions import PlanNotFound
from shop_billing.models import PlanDefinition
from shop_billing.repositories.plan_repository import PlanRepository


@pytest.fixture
def mock_config():
    """Mock configuration with a small plan catalog."""
    config = MagicMock()
    config.plans = [
        PlanDefinition(id="yearly", name="Yearly", price=7499, duration_months=12, order=3),
        PlanDefinition(id="monthly", name="Monthly", price=799, duration_months=1, order=1),
        PlanDefinition(id="quarterly", name="Quarterly", price=2099, billing_period="P3M", order=2),
    ]
    return config


@pytest.fixture
def plan_repo(mock_config):
    return PlanRepository(mock_config)


class TestPlanLookup:
    """Test plan lookup methods."""

    def test_get_by_id(self, plan_repo):
        plan = plan_repo.get_by_id("monthly")
        assert plan.price == 799

    def test_get_by_id_missing_raises(self, plan_repo):
        with pytest.raises(PlanNotFound, match="Available plans"):
            plan_repo.get_by_id("weekly")

    def test_find_by_id_missing_returns_none(self, plan_repo):
        assert plan_repo.find_by_id("weekly") is None

    def test_find_by_name(self, plan_repo):
        assert plan_repo.find_by_name("Quarterly").id == "quarterly"
        assert plan_repo.find_by_name("quarterly") is None

    def test_get_all_sorted_by_order(self, plan_repo):
        assert [plan.id for plan in plan_repo.get_all()] == ["monthly", "quarterly", "yearly"]

    def test_len_and_contains(self, plan_repo):
        assert len(plan_repo) == 3
        assert "yearly" in plan_repo
        assert "weekly" not in plan_repo


class TestReload:
    """Test catalog reload."""

    def test_reload_reindexes(self, plan_repo, mock_config):
        mock_config.plans = [
            PlanDefinition(id="weekly", name="Weekly", price=199, billing_period="P1W"),
        ]
        plan_repo.reload()

        mock_config.reload.assert_called_once()
        assert "weekly" in plan_repo
        assert "monthly" not in plan_repo
