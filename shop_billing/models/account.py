"""Account subscription snapshot.

The snapshot is stored flat on the account document, using the document keys
the web application already reads (``subscriptionStatus``,
``subscriptionEndDate``, ``razorpay_subscription_id``...).
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from shop_billing.utils.billing_period import ensure_utc


class SubscriptionStatus(str, Enum):
    """Stored subscription status of an account."""

    INACTIVE = "inactive"  # Never subscribed, or cancelled
    PENDING_VERIFICATION = "pending_verification"  # Manual payment awaiting review
    ACTIVE = "active"  # Paid term recorded (may be past its end date)
    REJECTED = "rejected"  # Manual payment rejected by an administrator


class RequestKind(str, Enum):
    """Kind of the most recent payment request."""

    NEW = "New"
    RENEW = "Renew"
    NONE = ""


# Read-time status for an active snapshot whose end date has passed
EXPIRED = "expired"


class PlanAdjustment(BaseModel):
    """Administrator correction applied to an account's end date."""

    days: int = Field(..., description="Days added (positive) or removed (negative)")
    reason: str = Field(..., description="Why the adjustment was made")
    date: datetime = Field(..., description="When the adjustment was made")


class SubscriptionSnapshot(BaseModel):
    """Current subscription state of one account."""

    status: SubscriptionStatus = Field(
        default=SubscriptionStatus.INACTIVE, alias="subscriptionStatus"
    )

    # Plan fields copied at activation time
    plan_name: Optional[str] = Field(None, alias="planName")
    plan_price: Optional[int] = Field(None, alias="planPrice")
    plan_duration_months: Optional[int] = Field(None, alias="planDurationMonths")
    # ISO 8601 period, for plans not sold in whole months (P1W, P10D)
    plan_billing_period: Optional[str] = Field(None, alias="planBillingPeriod")

    # Validity window
    start_date: Optional[datetime] = Field(None, alias="subscriptionStartDate")
    end_date: Optional[datetime] = Field(None, alias="subscriptionEndDate")

    # Gateway linkage
    external_payment_id: Optional[str] = Field(None, alias="razorpay_payment_id")
    external_subscription_id: Optional[str] = Field(None, alias="razorpay_subscription_id")

    # Manual payment review
    request_kind: RequestKind = Field(default=RequestKind.NONE, alias="subscriptionType")
    request_date: Optional[datetime] = Field(None, alias="subscriptionRequestDate")
    payment_reference: Optional[str] = Field(None, alias="paymentUtr")
    rejection_reason: Optional[str] = Field(None, alias="rejectionReason")

    last_adjustment: Optional[PlanAdjustment] = Field(None, alias="lastAdjustment")

    @field_validator("start_date", "end_date", "request_date")
    @classmethod
    def _normalize_timezone(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None

    @field_validator("request_kind", mode="before")
    @classmethod
    def _missing_request_kind(cls, value: Any) -> Any:
        return RequestKind.NONE if value is None else value

    @classmethod
    def from_document(cls, data: Optional[dict[str, Any]]) -> "SubscriptionSnapshot":
        """Build a snapshot from an account document, ignoring unrelated fields."""
        return cls.model_validate(data or {})

    def to_document(self) -> dict[str, Any]:
        """Serialize to the flat document layout (ISO-8601 dates, enum values)."""
        return self.model_dump(by_alias=True, mode="json")

    def is_expired(self, now: datetime) -> bool:
        """True when the stored status is active but the term has already ended."""
        return (
            self.status == SubscriptionStatus.ACTIVE
            and self.end_date is not None
            and self.end_date <= now
        )

    def has_running_term(self, now: datetime) -> bool:
        """True when the account is active and its term has not ended."""
        return (
            self.status == SubscriptionStatus.ACTIVE
            and self.end_date is not None
            and self.end_date > now
        )

    def effective_status(self, now: datetime) -> str:
        """Status as readers should see it; active-but-ended reads as "expired"."""
        if self.is_expired(now):
            return EXPIRED
        return self.status.value

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "subscriptionStatus": "active",
                "planName": "Monthly",
                "planPrice": 799,
                "planDurationMonths": 1,
                "subscriptionStartDate": "2025-01-10T09:30:00Z",
                "subscriptionEndDate": "2025-02-10T09:30:00Z",
                "razorpay_payment_id": "pay_29QQoUBi66xm2f",
                "razorpay_subscription_id": "sub_00000000000001",
                "subscriptionType": "",
            }
        },
    )
