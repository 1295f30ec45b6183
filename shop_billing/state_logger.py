"""State change logging for account subscription snapshots.

Tracks transitions with before/after values for debugging and auditing.
"""

from datetime import datetime
from typing import Any, Optional

from shop_billing.logging_config import get_logger
from shop_billing.models.account import SubscriptionSnapshot

logger = get_logger(__name__)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def log_subscription_state_change(
    account_id: str,
    old_status: Any,
    new_status: Any,
    reason: Optional[str] = None,
    **extra_context: Any,
) -> None:
    """Log subscription status change.

    Args:
        account_id: Account identifier
        old_status: Previous status value
        new_status: New status value
        reason: Reason for status change
        **extra_context: Additional context (payment_id, plan_name, etc.)
    """
    logger.info(
        "subscription_state_changed",
        account_id=account_id,
        old_status=str(old_status),
        new_status=str(new_status),
        reason=reason,
        **extra_context,
    )


def log_dates_change(
    account_id: str,
    old_start: Optional[datetime],
    old_end: Optional[datetime],
    new_start: Optional[datetime],
    new_end: Optional[datetime],
    reason: str,
    **extra_context: Any,
) -> None:
    """Log a change of the subscription validity window.

    Args:
        account_id: Account identifier
        old_start: Previous start date
        old_end: Previous end date
        new_start: New start date
        new_end: New end date
        reason: Reason for change (activation, renewal, adjustment)
        **extra_context: Additional context
    """
    extension_days = None
    if old_end is not None and new_end is not None:
        extension_days = round((new_end - old_end).total_seconds() / 86400, 2)

    logger.info(
        "subscription_dates_changed",
        account_id=account_id,
        old_start=_iso(old_start),
        old_end=_iso(old_end),
        new_start=_iso(new_start),
        new_end=_iso(new_end),
        extension_days=extension_days,
        reason=reason,
        **extra_context,
    )


def log_snapshot_transition(
    account_id: str,
    before: SubscriptionSnapshot,
    after: SubscriptionSnapshot,
    reason: str,
    **extra_context: Any,
) -> None:
    """Log whichever of status and validity window changed between two snapshots."""
    if before.status != after.status:
        log_subscription_state_change(
            account_id,
            before.status.value,
            after.status.value,
            reason=reason,
            **extra_context,
        )
    if before.start_date != after.start_date or before.end_date != after.end_date:
        log_dates_change(
            account_id,
            before.start_date,
            before.end_date,
            after.start_date,
            after.end_date,
            reason=reason,
            **extra_context,
        )


def log_signature_failure(source: str, **extra_context: Any) -> None:
    """Log a rejected signature as a security event.

    Args:
        source: Where the signature came from ("client_confirmation" or "webhook")
        **extra_context: Identifiers from the rejected request
    """
    logger.warning(
        "signature_verification_failed",
        source=source,
        security=True,
        **extra_context,
    )
