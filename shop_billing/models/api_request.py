"""API request models.

Field names follow the JSON the web client already sends (camelCase and the
gateway's ``razorpay_*`` keys); Python attributes are snake_case.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PlanReference(BaseModel):
    """Plan selected on the pricing page.

    Only the id is trusted; price and duration always come from the catalog.
    """

    id: str = Field(..., description="Catalog plan ID")
    name: Optional[str] = Field(None, description="Display name (informational)")

    model_config = ConfigDict(extra="ignore")


class CreateSubscriptionRequest(BaseModel):
    """Request to open a gateway subscription before checkout."""

    plan_id: Optional[str] = Field(None, alias="planId", description="Catalog plan ID")

    model_config = ConfigDict(
        populate_by_name=True, json_schema_extra={"example": {"planId": "monthly"}}
    )


class VerifyPaymentRequest(BaseModel):
    """Checkout confirmation posted by the client after a successful payment."""

    payment_id: str = Field(..., alias="razorpay_payment_id", description="Gateway payment id")
    subscription_id: str = Field(
        ..., alias="razorpay_subscription_id", description="Gateway subscription id"
    )
    signature: str = Field(..., alias="razorpay_signature", description="Checkout signature")
    account_id: str = Field(..., alias="userId", description="Account paying for the plan")
    plan: PlanReference = Field(..., description="Plan purchased")
    is_renewal: bool = Field(default=False, alias="isRenewal", description="Extend the current term")

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "razorpay_payment_id": "pay_29QQoUBi66xm2f",
                "razorpay_subscription_id": "sub_00000000000001",
                "razorpay_signature": "9ef4dffbfd84f1318f6739a3ce19f9d85851857ae648f114332d8401e0949a3d",
                "userId": "shop-owner-123",
                "plan": {"id": "monthly", "name": "Monthly"},
                "isRenewal": False,
            }
        },
    )


class ManualPaymentRequest(BaseModel):
    """Offline bank transfer submitted for administrator review."""

    plan_id: str = Field(..., alias="planId", description="Catalog plan ID")
    utr: str = Field(
        ..., min_length=12, max_length=22, description="Bank transaction reference (UTR)"
    )

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={"example": {"planId": "yearly", "utr": "123456789012"}},
    )


class RejectPaymentRequest(BaseModel):
    """Administrator rejection of a manual payment."""

    reason: str = Field(..., min_length=1, description="Reason shown to the shop owner")


class AdjustPlanRequest(BaseModel):
    """Administrator correction of an account's end date."""

    days: int = Field(..., description="Days to add (positive) or remove (negative)")
    reason: str = Field(..., min_length=1, description="Why the adjustment is made")

    model_config = ConfigDict(
        json_schema_extra={"example": {"days": 7, "reason": "Compensation for outage"}}
    )
