"""Plan catalog and service settings models.

Models from plans.yaml configuration.
"""

from typing import Literal, Optional

from dateutil.relativedelta import relativedelta
from pydantic import BaseModel, ConfigDict, Field, model_validator

from shop_billing.utils.billing_period import months_duration, parse_billing_period, total_months


class PlanDefinition(BaseModel):
    """Subscription plan definition from configuration."""

    id: str = Field(..., description="Plan ID")
    name: str = Field(..., description="Display name copied onto subscriptions")
    price: int = Field(..., description="Price in rupees")
    duration_months: Optional[int] = Field(None, description="Term length in calendar months")
    billing_period: Optional[str] = Field(
        None, description="ISO 8601 duration (e.g., P1M, P1Y); used when duration_months is absent"
    )
    gateway_plan_id: Optional[str] = Field(None, description="Plan id on the payment gateway")
    description: str = Field(default="", description="Plan description")
    features: list[str] = Field(default_factory=list, description="List of features")
    order: int = Field(default=0, description="Sort order on the pricing page")

    @model_validator(mode="after")
    def _require_duration(self) -> "PlanDefinition":
        if self.duration_months is None and self.billing_period is None:
            raise ValueError(f"Plan '{self.id}' needs duration_months or billing_period")
        return self

    @property
    def duration(self) -> relativedelta:
        """Term length as a calendar duration.

        Raises:
            ValueError: If the configured duration is not positive or unparseable
        """
        if self.duration_months is not None:
            return months_duration(self.duration_months)
        return parse_billing_period(self.billing_period)

    @property
    def months(self) -> Optional[int]:
        """Term length in whole months, if it can be expressed that way."""
        if self.duration_months is not None:
            return self.duration_months
        return total_months(parse_billing_period(self.billing_period))

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "monthly",
                "name": "Monthly",
                "price": 799,
                "duration_months": 1,
                "gateway_plan_id": "plan_00000000000001",
                "description": "Perfect for getting started and trying out all features.",
                "features": ["Full POS Access", "Inventory Management"],
                "order": 1,
            }
        }
    )


class BillingSettings(BaseModel):
    """Service behavior configuration."""

    account_store: Literal["memory", "firestore"] = Field(
        default="memory", description="Where account snapshots live"
    )
    accounts_collection: str = Field(default="users", description="Firestore collection of accounts")
    gateway_api_base: str = Field(
        default="https://api.razorpay.com/v1", description="Payment gateway REST base URL"
    )
    gateway_timeout_seconds: float = Field(default=10.0, description="Gateway request timeout")
    gateway_total_count: int = Field(
        default=12, description="Billing cycles requested when creating a gateway subscription"
    )
    max_update_attempts: int = Field(
        default=3, ge=1, description="Read-compute-write attempts before giving up on a conflict"
    )
    default_duration_months: int = Field(
        default=12, ge=1, description="Term length used when a snapshot carries no plan duration"
    )


class PlansConfig(BaseModel):
    """Complete plans.yaml configuration."""

    plans: list[PlanDefinition] = Field(default_factory=list, description="Plan catalog")
    settings: BillingSettings = Field(default_factory=BillingSettings)
