"""Request dependencies shared by the routers.

Collaborators are built once by ``create_app`` and stored on ``app.state``;
routes receive them through ``Depends``.
"""

import hmac
from typing import Optional

from fastapi import Header, HTTPException, Request

from shop_billing.exceptions import BillingError
from shop_billing.logging_config import get_logger
from shop_billing.models import BillingSettings
from shop_billing.repositories.plan_repository import PlanRepository
from shop_billing.services.activation_engine import ActivationEngine
from shop_billing.services.payment_gateway import PaymentGateway
from shop_billing.services.time_controller import TimeController
from shop_billing.services.webhook_dispatcher import WebhookDispatcher

logger = get_logger(__name__)


def get_engine(request: Request) -> ActivationEngine:
    return request.app.state.engine


def get_dispatcher(request: Request) -> WebhookDispatcher:
    return request.app.state.dispatcher


def get_plan_repository(request: Request) -> PlanRepository:
    return request.app.state.plan_repository


def get_clock(request: Request) -> TimeController:
    return request.app.state.clock


def get_settings(request: Request) -> BillingSettings:
    return request.app.state.settings


def get_gateway(request: Request) -> PaymentGateway:
    """Payment gateway client; 503 when no gateway key id is configured."""
    gateway: Optional[PaymentGateway] = request.app.state.gateway
    if gateway is None:
        raise HTTPException(
            status_code=503,
            detail={
                "error": "gateway_not_configured",
                "message": "Payment gateway credentials are not configured",
            },
        )
    return gateway


def require_admin(request: Request, authorization: Optional[str] = Header(None)) -> None:
    """Check the static admin bearer token.

    Raises:
        503: No admin token configured
        401: Missing or wrong token
    """
    expected: Optional[str] = request.app.state.admin_api_token
    if not expected:
        raise HTTPException(
            status_code=503,
            detail={"error": "admin_disabled", "message": "Admin API token is not configured"},
        )

    scheme, _, token = (authorization or "").partition(" ")
    token_ok = hmac.compare_digest(token.strip().encode("utf-8"), expected.encode("utf-8"))
    if scheme.lower() != "bearer" or not token_ok:
        logger.warning("admin_auth_failed", path=request.url.path, security=True)
        raise HTTPException(
            status_code=401,
            detail={"error": "unauthorized", "message": "Invalid or missing admin token"},
            headers={"WWW-Authenticate": "Bearer"},
        )


def billing_http_error(exc: BillingError) -> HTTPException:
    """Translate a billing error into the API error payload."""
    return HTTPException(
        status_code=exc.status_code,
        detail={"error": exc.code, "message": exc.message},
    )


def bad_request(message: str) -> HTTPException:
    return HTTPException(
        status_code=400,
        detail={"error": "invalid_request", "message": message},
    )
