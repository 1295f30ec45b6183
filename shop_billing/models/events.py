"""Payment confirmation events.

Two sources confirm payments:
- the checkout widget, relayed by the shop owner's browser (``ClientConfirmation``)
- the payment gateway, posting webhook deliveries

Webhook bodies are parsed at the boundary into a closed set of event models
keyed by the ``event`` field. Event types the service does not act on become
``UnrecognizedEvent``; known types with a missing entity id are rejected.
"""

import json
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, model_validator

from shop_billing.exceptions import InvalidWebhookPayload


class WebhookEventType(str, Enum):
    """Webhook event types handled by the service."""

    SUBSCRIPTION_CHARGED = "subscription.charged"
    SUBSCRIPTION_ACTIVATED = "subscription.activated"
    SUBSCRIPTION_CANCELLED = "subscription.cancelled"
    INVOICE_PAID = "invoice.paid"
    PAYMENT_FAILED = "payment.failed"


class ClientConfirmation(BaseModel):
    """Checkout confirmation relayed by the client after the payment widget succeeds."""

    payment_id: str = Field(..., description="Gateway payment id")
    subscription_id: str = Field(..., description="Gateway subscription id")
    signature: str = Field(..., description="HMAC-SHA256 of '<payment_id>|<subscription_id>'")
    account_id: str = Field(..., description="Account the payment is for")
    plan_id: str = Field(..., description="Catalog plan purchased")
    is_renewal: bool = Field(default=False, description="Whether the payment extends a current term")


class _Entity(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str


class _EntityWrapper(BaseModel):
    entity: _Entity


class _SubscriptionPayload(BaseModel):
    subscription: _EntityWrapper


class _ChargePayload(BaseModel):
    subscription: _EntityWrapper
    payment: _EntityWrapper


class _PaymentPayload(BaseModel):
    payment: _EntityWrapper


class _InvoiceEntity(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    subscription_id: Optional[str] = None


class _InvoiceWrapper(BaseModel):
    entity: _InvoiceEntity


class _InvoicePayload(BaseModel):
    payment: _EntityWrapper
    invoice: Optional[_InvoiceWrapper] = None
    subscription: Optional[_EntityWrapper] = None

    @model_validator(mode="after")
    def _require_subscription(self) -> "_InvoicePayload":
        invoice_subscription = self.invoice.entity.subscription_id if self.invoice else None
        if self.subscription is None and not invoice_subscription:
            raise ValueError("invoice.paid payload names no subscription")
        return self


class SubscriptionChargedEvent(BaseModel):
    """A subscription billing cycle was paid."""

    event: Literal["subscription.charged"]
    payload: _ChargePayload

    @property
    def subscription_id(self) -> str:
        return self.payload.subscription.entity.id

    @property
    def payment_id(self) -> str:
        return self.payload.payment.entity.id


class SubscriptionActivatedEvent(BaseModel):
    """The first payment of a subscription was authorized."""

    event: Literal["subscription.activated"]
    payload: _ChargePayload

    @property
    def subscription_id(self) -> str:
        return self.payload.subscription.entity.id

    @property
    def payment_id(self) -> str:
        return self.payload.payment.entity.id


class InvoicePaidEvent(BaseModel):
    """A subscription invoice was paid; recurring renewals arrive this way."""

    event: Literal["invoice.paid"]
    payload: _InvoicePayload

    @property
    def subscription_id(self) -> str:
        if self.payload.subscription is not None:
            return self.payload.subscription.entity.id
        return self.payload.invoice.entity.subscription_id

    @property
    def payment_id(self) -> str:
        return self.payload.payment.entity.id


class SubscriptionCancelledEvent(BaseModel):
    """The subscription was cancelled on the gateway."""

    event: Literal["subscription.cancelled"]
    payload: _SubscriptionPayload

    @property
    def subscription_id(self) -> str:
        return self.payload.subscription.entity.id


class PaymentFailedEvent(BaseModel):
    """A payment attempt failed."""

    event: Literal["payment.failed"]
    payload: _PaymentPayload

    @property
    def payment_id(self) -> str:
        return self.payload.payment.entity.id

    @property
    def error_description(self) -> Optional[str]:
        return getattr(self.payload.payment.entity, "error_description", None)


class UnrecognizedEvent(BaseModel):
    """Any event type the service acknowledges without acting on."""

    event: str


WebhookEvent = Union[
    SubscriptionChargedEvent,
    SubscriptionActivatedEvent,
    InvoicePaidEvent,
    SubscriptionCancelledEvent,
    PaymentFailedEvent,
    UnrecognizedEvent,
]

_known_event_adapter: TypeAdapter = TypeAdapter(
    Annotated[
        Union[
            SubscriptionChargedEvent,
            SubscriptionActivatedEvent,
            InvoicePaidEvent,
            SubscriptionCancelledEvent,
            PaymentFailedEvent,
        ],
        Field(discriminator="event"),
    ]
)

_KNOWN_EVENT_TYPES = frozenset(event_type.value for event_type in WebhookEventType)


def parse_webhook_event(raw_body: bytes) -> WebhookEvent:
    """Parse a verified webhook body into an event model.

    Args:
        raw_body: Exact bytes of the webhook request body

    Returns:
        One of the webhook event models

    Raises:
        InvalidWebhookPayload: If the body is not a JSON object with a string
            ``event`` field, or a known event lacks the ids it needs
    """
    try:
        data: Any = json.loads(raw_body)
    except (ValueError, UnicodeDecodeError) as e:
        raise InvalidWebhookPayload(f"Webhook body is not valid JSON: {e}")

    if not isinstance(data, dict) or not isinstance(data.get("event"), str):
        raise InvalidWebhookPayload("Webhook body has no 'event' field")

    if data["event"] not in _KNOWN_EVENT_TYPES:
        return UnrecognizedEvent(event=data["event"])

    try:
        return _known_event_adapter.validate_python(data)
    except ValidationError as e:
        raise InvalidWebhookPayload(f"Malformed '{data['event']}' payload: {e}")
