"""Payment API used by the web client and the payment gateway.

Implements:
- POST /api/razorpay/create-subscription - Open a gateway subscription for a plan
- POST /api/razorpay/verify-payment - Apply a checkout confirmation
- POST /api/razorpay/webhook - Receive gateway webhooks
- GET  /api/accounts/{account_id}/subscription - Read an account's subscription
- POST /api/accounts/{account_id}/manual-payment - Submit a bank transfer for review

The account store and gateway client block, so routes are plain functions that
FastAPI runs in its threadpool. The webhook reads the raw body asynchronously
and hands dispatching to the same threadpool.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Path, Request
from fastapi.concurrency import run_in_threadpool

from shop_billing.api.dependencies import (
    bad_request,
    billing_http_error,
    get_clock,
    get_dispatcher,
    get_engine,
    get_gateway,
    get_plan_repository,
    get_settings,
)
from shop_billing.exceptions import BillingError, ConcurrentModification, PlanNotFound
from shop_billing.logging_config import get_logger
from shop_billing.models import (
    BillingSettings,
    ClientConfirmation,
    CreateSubscriptionRequest,
    CreateSubscriptionResponse,
    ManualPaymentRequest,
    SubscriptionView,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
    WebhookAck,
)
from shop_billing.repositories.plan_repository import PlanRepository
from shop_billing.services.activation_engine import ActivationEngine
from shop_billing.services.payment_gateway import PaymentGateway
from shop_billing.services.time_controller import TimeController
from shop_billing.services.webhook_dispatcher import WebhookDispatcher

logger = get_logger(__name__)
router = APIRouter(tags=["Payments"], prefix="/api")


@router.post(
    "/razorpay/create-subscription",
    response_model=CreateSubscriptionResponse,
    summary="Create gateway subscription",
)
def create_subscription(
    body: CreateSubscriptionRequest,
    plan_repo: PlanRepository = Depends(get_plan_repository),
    gateway: PaymentGateway = Depends(get_gateway),
    settings: BillingSettings = Depends(get_settings),
) -> CreateSubscriptionResponse:
    """Open a gateway subscription for a catalog plan.

    The returned id is handed to the checkout widget; nothing is written to
    the account until the payment is confirmed.

    Raises:
        400: Plan id missing
        404: Plan not found or not sold through the gateway
        502: Gateway error
    """
    if not body.plan_id:
        raise bad_request("Plan ID is required")

    try:
        plan = plan_repo.get_by_id(body.plan_id)
        if not plan.gateway_plan_id:
            raise PlanNotFound(f"Plan '{plan.id}' has no gateway plan configured")
        subscription_id = gateway.create_subscription(
            plan.gateway_plan_id, total_count=settings.gateway_total_count
        )
    except BillingError as e:
        logger.warning("create_subscription_failed", plan_id=body.plan_id, error=e.code)
        raise billing_http_error(e)

    return CreateSubscriptionResponse(subscriptionId=subscription_id)


@router.post(
    "/razorpay/verify-payment",
    response_model=VerifyPaymentResponse,
    summary="Verify checkout payment",
)
def verify_payment(
    body: VerifyPaymentRequest,
    engine: ActivationEngine = Depends(get_engine),
    plan_repo: PlanRepository = Depends(get_plan_repository),
    clock: TimeController = Depends(get_clock),
) -> VerifyPaymentResponse:
    """Verify a checkout confirmation and activate or renew the subscription.

    Price and duration come from the catalog; the client only names the plan.

    Raises:
        400: Invalid signature or misconfigured plan
        404: Account or plan not found
        409: Subscription linked to another account, or the account kept
            changing during the update
    """
    logger.info(
        "verify_payment_request",
        account_id=body.account_id,
        plan_id=body.plan.id,
        payment_id=body.payment_id,
        is_renewal=body.is_renewal,
    )

    confirmation = ClientConfirmation(
        payment_id=body.payment_id,
        subscription_id=body.subscription_id,
        signature=body.signature,
        account_id=body.account_id,
        plan_id=body.plan.id,
        is_renewal=body.is_renewal,
    )

    try:
        plan = plan_repo.get_by_id(body.plan.id)
        snapshot = engine.activate_or_renew(body.account_id, confirmation, plan)
    except BillingError as e:
        logger.warning("verify_payment_failed", account_id=body.account_id, error=e.code)
        raise billing_http_error(e)

    return VerifyPaymentResponse(
        success=True,
        message="Subscription renewed" if body.is_renewal else "Subscription activated",
        subscription=SubscriptionView.from_snapshot(body.account_id, snapshot, clock.now()),
    )


@router.post(
    "/razorpay/webhook",
    response_model=WebhookAck,
    summary="Payment gateway webhook",
)
async def webhook(
    request: Request,
    dispatcher: WebhookDispatcher = Depends(get_dispatcher),
    x_razorpay_signature: Optional[str] = Header(None),
) -> WebhookAck:
    """Receive a webhook delivery from the payment gateway.

    The signature is checked over the raw body before it is parsed. Every
    verified delivery is acknowledged, including ones that change nothing, so
    the gateway does not redeliver them.

    Raises:
        400: Signature mismatch
        503: Account kept changing during the update (safe to redeliver)
    """
    raw_body = await request.body()

    try:
        outcome = await run_in_threadpool(dispatcher.handle, raw_body, x_razorpay_signature or "")
    except ConcurrentModification as e:
        raise HTTPException(
            status_code=503,
            detail={"error": e.code, "message": e.message},
        )
    except BillingError as e:
        raise billing_http_error(e)

    logger.info("webhook_processed", outcome=outcome.value)
    return WebhookAck(outcome=outcome.value)


@router.get(
    "/accounts/{account_id}/subscription",
    response_model=SubscriptionView,
    summary="Get account subscription",
)
def get_subscription(
    account_id: str = Path(..., description="Account identifier"),
    engine: ActivationEngine = Depends(get_engine),
    clock: TimeController = Depends(get_clock),
) -> SubscriptionView:
    """Return the stored subscription with its read-time status.

    Raises:
        404: Account not found
    """
    try:
        snapshot = engine.get_subscription(account_id)
    except BillingError as e:
        raise billing_http_error(e)
    return SubscriptionView.from_snapshot(account_id, snapshot, clock.now())


@router.post(
    "/accounts/{account_id}/manual-payment",
    response_model=SubscriptionView,
    summary="Submit manual payment",
)
def submit_manual_payment(
    body: ManualPaymentRequest,
    account_id: str = Path(..., description="Account identifier"),
    engine: ActivationEngine = Depends(get_engine),
    plan_repo: PlanRepository = Depends(get_plan_repository),
    clock: TimeController = Depends(get_clock),
) -> SubscriptionView:
    """Record a bank transfer reference for administrator review.

    Raises:
        400: Invalid UTR
        404: Account or plan not found
        409: A payment is already awaiting verification
    """
    try:
        plan = plan_repo.get_by_id(body.plan_id)
        snapshot = engine.submit_manual_payment(account_id, plan, body.utr)
    except BillingError as e:
        raise billing_http_error(e)
    except ValueError as e:
        raise bad_request(str(e))

    logger.info("manual_payment_submitted", account_id=account_id, plan_id=plan.id)
    return SubscriptionView.from_snapshot(account_id, snapshot, clock.now())
