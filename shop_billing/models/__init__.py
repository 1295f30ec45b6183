"""Pydantic models for API requests, responses, and domain objects."""

# Account snapshot models
from .account import (
    EXPIRED,
    PlanAdjustment,
    RequestKind,
    SubscriptionSnapshot,
    SubscriptionStatus,
)

# Plan catalog models
from .plan import (
    BillingSettings,
    PlanDefinition,
    PlansConfig,
)

# Payment events
from .events import (
    ClientConfirmation,
    InvoicePaidEvent,
    PaymentFailedEvent,
    SubscriptionActivatedEvent,
    SubscriptionCancelledEvent,
    SubscriptionChargedEvent,
    UnrecognizedEvent,
    WebhookEvent,
    WebhookEventType,
    parse_webhook_event,
)

# API request models
from .api_request import (
    AdjustPlanRequest,
    CreateSubscriptionRequest,
    ManualPaymentRequest,
    PlanReference,
    RejectPaymentRequest,
    VerifyPaymentRequest,
)

# API response models
from .api_response import (
    AdminActionResponse,
    CreateSubscriptionResponse,
    PendingApproval,
    SubscriptionView,
    VerifyPaymentResponse,
    WebhookAck,
)

__all__ = [
    # Account
    "EXPIRED",
    "PlanAdjustment",
    "RequestKind",
    "SubscriptionSnapshot",
    "SubscriptionStatus",
    # Plans
    "BillingSettings",
    "PlanDefinition",
    "PlansConfig",
    # Events
    "ClientConfirmation",
    "InvoicePaidEvent",
    "PaymentFailedEvent",
    "SubscriptionActivatedEvent",
    "SubscriptionCancelledEvent",
    "SubscriptionChargedEvent",
    "UnrecognizedEvent",
    "WebhookEvent",
    "WebhookEventType",
    "parse_webhook_event",
    # API requests
    "AdjustPlanRequest",
    "CreateSubscriptionRequest",
    "ManualPaymentRequest",
    "PlanReference",
    "RejectPaymentRequest",
    "VerifyPaymentRequest",
    # API responses
    "AdminActionResponse",
    "CreateSubscriptionResponse",
    "PendingApproval",
    "SubscriptionView",
    "VerifyPaymentResponse",
    "WebhookAck",
]
