"""Administrator API.

Implements:
- GET  /admin/approvals - Manual payments awaiting review
- POST /admin/approvals/{account_id}/approve - Approve a manual payment
- POST /admin/approvals/{account_id}/reject - Reject a manual payment
- POST /admin/shops/{account_id}/adjust - Add or remove days from a term

Every route requires the admin bearer token.
"""

from typing import List

from fastapi import APIRouter, Depends, Path

from shop_billing.api.dependencies import (
    bad_request,
    billing_http_error,
    get_clock,
    get_engine,
    require_admin,
)
from shop_billing.exceptions import BillingError
from shop_billing.logging_config import get_logger
from shop_billing.models import (
    AdjustPlanRequest,
    AdminActionResponse,
    PendingApproval,
    RejectPaymentRequest,
    SubscriptionView,
)
from shop_billing.services.activation_engine import ActivationEngine
from shop_billing.services.time_controller import TimeController

logger = get_logger(__name__)
router = APIRouter(tags=["Admin"], prefix="/admin", dependencies=[Depends(require_admin)])


@router.get("/approvals", response_model=List[PendingApproval], summary="List pending payments")
def list_approvals(engine: ActivationEngine = Depends(get_engine)) -> List[PendingApproval]:
    """List manual payments awaiting verification, oldest request first."""
    return [
        PendingApproval(
            account_id=account_id,
            plan_name=snapshot.plan_name,
            plan_price=snapshot.plan_price,
            utr=snapshot.payment_reference,
            request_kind=snapshot.request_kind.value,
            request_date=snapshot.request_date,
        )
        for account_id, snapshot in engine.list_pending()
    ]


@router.post(
    "/approvals/{account_id}/approve",
    response_model=AdminActionResponse,
    summary="Approve manual payment",
)
def approve_payment(
    account_id: str = Path(..., description="Account identifier"),
    engine: ActivationEngine = Depends(get_engine),
    clock: TimeController = Depends(get_clock),
) -> AdminActionResponse:
    """Approve a pending manual payment.

    Raises:
        404: Account not found
        409: No payment awaiting verification
    """
    try:
        snapshot = engine.approve_manual_payment(account_id)
    except BillingError as e:
        raise billing_http_error(e)

    logger.info("manual_payment_approved", account_id=account_id)
    return AdminActionResponse(
        message="Payment approved",
        subscription=SubscriptionView.from_snapshot(account_id, snapshot, clock.now()),
    )


@router.post(
    "/approvals/{account_id}/reject",
    response_model=AdminActionResponse,
    summary="Reject manual payment",
)
def reject_payment(
    body: RejectPaymentRequest,
    account_id: str = Path(..., description="Account identifier"),
    engine: ActivationEngine = Depends(get_engine),
    clock: TimeController = Depends(get_clock),
) -> AdminActionResponse:
    """Reject a pending manual payment with a reason shown to the shop owner."""
    try:
        snapshot = engine.reject_manual_payment(account_id, body.reason)
    except BillingError as e:
        raise billing_http_error(e)
    except ValueError as e:
        raise bad_request(str(e))

    logger.info("manual_payment_rejected", account_id=account_id)
    return AdminActionResponse(
        message="Payment rejected",
        subscription=SubscriptionView.from_snapshot(account_id, snapshot, clock.now()),
    )


@router.post(
    "/shops/{account_id}/adjust",
    response_model=AdminActionResponse,
    summary="Adjust plan duration",
)
def adjust_plan(
    body: AdjustPlanRequest,
    account_id: str = Path(..., description="Account identifier"),
    engine: ActivationEngine = Depends(get_engine),
    clock: TimeController = Depends(get_clock),
) -> AdminActionResponse:
    """Add (positive) or remove (negative) days from an account's term."""
    try:
        snapshot = engine.adjust_plan_duration(account_id, body.days, body.reason)
    except BillingError as e:
        raise billing_http_error(e)
    except ValueError as e:
        raise bad_request(str(e))

    action = "added" if body.days > 0 else "removed"
    return AdminActionResponse(
        message=f"{abs(body.days)} days {action}",
        subscription=SubscriptionView.from_snapshot(account_id, snapshot, clock.now()),
    )
