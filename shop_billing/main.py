"""FastAPI application factory and lifecycle management."""

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shop_billing.config import Config
from shop_billing.logging_config import configure_logging, get_logger
from shop_billing.middleware import ContextMiddleware, RequestLoggingMiddleware
from shop_billing.repositories.account_store import AccountStore, InMemoryAccountStore
from shop_billing.repositories.plan_repository import PlanRepository
from shop_billing.services.activation_engine import ActivationEngine
from shop_billing.services.payment_gateway import PaymentGateway
from shop_billing.services.time_controller import TimeController
from shop_billing.services.webhook_dispatcher import WebhookDispatcher

VERSION = "0.1.0"

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: log startup and release the gateway client on shutdown."""
    logger.info("service_starting", version=VERSION)
    try:
        logger.info("service_started", status="ready")
        yield
    finally:
        logger.info("service_shutting_down")
        gateway: Optional[PaymentGateway] = app.state.gateway
        if gateway is not None:
            gateway.close()
        logger.info("service_stopped")


def _build_account_store(config: Config) -> AccountStore:
    settings = config.settings
    if settings.account_store == "firestore":
        from shop_billing.repositories.firestore_account_store import (
            FirestoreAccountStore,
            create_firestore_client,
        )

        client = create_firestore_client(config.firebase_service_account)
        return FirestoreAccountStore(client, collection=settings.accounts_collection)
    return InMemoryAccountStore()


def create_app(
    config: Optional[Config] = None,
    account_store: Optional[AccountStore] = None,
    clock: Optional[TimeController] = None,
    gateway: Optional[PaymentGateway] = None,
) -> FastAPI:
    """Create and wire the FastAPI application.

    Every collaborator is constructed here (or passed in by tests) and kept on
    ``app.state``.

    Args:
        config: Configuration (loaded from CONFIG_PATH and the environment if omitted)
        account_store: Account store (built from settings if omitted)
        clock: Clock (real time if omitted)
        gateway: Payment gateway client (built when RAZORPAY_KEY_ID is set if omitted)

    Returns:
        Configured FastAPI application instance

    Raises:
        ConfigurationError: If configuration or required secrets are missing
    """
    log_level = os.getenv("LOG_LEVEL", "INFO")
    json_format = os.getenv("LOG_FORMAT", "json").lower() == "json"
    configure_logging(log_level=log_level, json_format=json_format)

    config = config or Config()
    config.require_secrets()
    settings = config.settings

    clock = clock or TimeController()
    if account_store is None:
        account_store = _build_account_store(config)
    plan_repository = PlanRepository(config)

    engine = ActivationEngine(
        account_store,
        plan_repository,
        clock,
        key_secret=config.key_secret,
        max_attempts=settings.max_update_attempts,
        default_duration_months=settings.default_duration_months,
    )
    dispatcher = WebhookDispatcher(engine, webhook_secret=config.webhook_secret)

    if gateway is None and config.key_id:
        gateway = PaymentGateway(
            config.key_id,
            config.key_secret,
            api_base=settings.gateway_api_base,
            timeout_seconds=settings.gateway_timeout_seconds,
        )

    app = FastAPI(
        title="Shop Billing",
        description="Subscription activation and renewal for shop owner accounts",
        version=VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.settings = settings
    app.state.clock = clock
    app.state.account_store = account_store
    app.state.plan_repository = plan_repository
    app.state.engine = engine
    app.state.dispatcher = dispatcher
    app.state.gateway = gateway
    app.state.admin_api_token = config.admin_api_token

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    include_request_details = os.getenv("LOG_REQUEST_DETAILS", "true").lower() == "true"
    app.add_middleware(RequestLoggingMiddleware, include_request_details=include_request_details)
    app.add_middleware(ContextMiddleware)

    from shop_billing.api.admin import router as admin_router
    from shop_billing.api.payments import router as payments_router

    app.include_router(payments_router)
    app.include_router(admin_router)

    @app.get("/")
    async def root() -> dict[str, str]:
        """Service info."""
        return {
            "service": "shop-billing",
            "status": "running",
            "version": VERSION,
        }

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Detailed health check."""
        return {
            "status": "healthy",
            "account_store": settings.account_store,
            "gateway": "configured" if gateway is not None else "disabled",
            "config": f"loaded ({len(plan_repository)} plans)",
        }

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle uncaught exceptions."""
        logger.error(
            "unhandled_exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred",
            },
        )

    logger.info(
        "app_created",
        endpoints=len(app.routes),
        account_store=settings.account_store,
        plans=len(plan_repository),
    )
    return app
