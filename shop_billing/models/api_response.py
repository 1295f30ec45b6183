"""API response models."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from shop_billing.models.account import SubscriptionSnapshot


class SubscriptionView(BaseModel):
    """Subscription snapshot as returned to clients, with the read-time status."""

    account_id: str = Field(..., description="Account identifier")
    status: str = Field(..., description="Stored status")
    effective_status: str = Field(..., description="Stored status, or 'expired' once the term ended")
    is_expired: bool = Field(..., description="Active status with an end date in the past")
    plan_name: Optional[str] = None
    plan_price: Optional[int] = None
    plan_duration_months: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    external_payment_id: Optional[str] = None
    external_subscription_id: Optional[str] = None
    request_kind: str = ""
    rejection_reason: Optional[str] = None

    @classmethod
    def from_snapshot(
        cls, account_id: str, snapshot: SubscriptionSnapshot, now: datetime
    ) -> "SubscriptionView":
        return cls(
            account_id=account_id,
            status=snapshot.status.value,
            effective_status=snapshot.effective_status(now),
            is_expired=snapshot.is_expired(now),
            plan_name=snapshot.plan_name,
            plan_price=snapshot.plan_price,
            plan_duration_months=snapshot.plan_duration_months,
            start_date=snapshot.start_date,
            end_date=snapshot.end_date,
            external_payment_id=snapshot.external_payment_id,
            external_subscription_id=snapshot.external_subscription_id,
            request_kind=snapshot.request_kind.value,
            rejection_reason=snapshot.rejection_reason,
        )


class CreateSubscriptionResponse(BaseModel):
    """Gateway subscription opened for checkout."""

    subscriptionId: str = Field(..., description="Gateway subscription id")


class VerifyPaymentResponse(BaseModel):
    """Result of a checkout confirmation."""

    success: bool = Field(..., description="Whether the subscription was activated")
    message: str = Field(..., description="Human-readable result")
    subscription: SubscriptionView


class WebhookAck(BaseModel):
    """Acknowledgement returned to the payment gateway."""

    received: bool = Field(default=True, description="Delivery accepted")
    outcome: str = Field(..., description="What the service did with the event")


class PendingApproval(BaseModel):
    """Manual payment awaiting review."""

    account_id: str
    plan_name: Optional[str] = None
    plan_price: Optional[int] = None
    utr: Optional[str] = None
    request_kind: str = ""
    request_date: Optional[datetime] = None


class AdminActionResponse(BaseModel):
    """Result of an administrator action."""

    success: bool = True
    message: str
    subscription: SubscriptionView
