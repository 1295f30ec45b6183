"""Gateway webhook handling.

Responsibilities:
- Verify the raw-body signature before anything is parsed
- Parse the body into a webhook event model
- Route each event type to the activation engine
- Report an outcome the route can acknowledge
"""

from enum import Enum

from shop_billing.exceptions import InvalidSignature, InvalidWebhookPayload
from shop_billing.logging_config import get_logger
from shop_billing.models.events import (
    InvoicePaidEvent,
    PaymentFailedEvent,
    SubscriptionActivatedEvent,
    SubscriptionCancelledEvent,
    SubscriptionChargedEvent,
    UnrecognizedEvent,
    WebhookEvent,
    parse_webhook_event,
)
from shop_billing.services.activation_engine import ActivationEngine
from shop_billing.state_logger import log_signature_failure
from shop_billing.utils.signature import verify_webhook_signature

logger = get_logger(__name__)


class WebhookOutcome(str, Enum):
    """What happened to a verified webhook delivery."""

    APPLIED = "applied"  # Charge recorded on an account
    CANCELLED = "cancelled"  # Account marked inactive
    UNRESOLVED = "unresolved"  # No single account linked to the subscription id
    LOGGED = "logged"  # Payment failure, recorded in logs only
    IGNORED = "ignored"  # Event type not acted on
    MALFORMED = "malformed"  # Signed body that could not be parsed


class WebhookDispatcher:
    """Verifies and dispatches payment gateway webhooks."""

    def __init__(self, engine: ActivationEngine, webhook_secret: str):
        """Initialize dispatcher.

        Args:
            engine: Activation engine applying state changes
            webhook_secret: Secret the gateway signs webhook bodies with
        """
        self.engine = engine
        self._webhook_secret = webhook_secret

    def handle(self, raw_body: bytes, signature: str) -> WebhookOutcome:
        """Verify, parse and dispatch one webhook delivery.

        Args:
            raw_body: Exact request body bytes
            signature: Value of the signature header (may be empty)

        Returns:
            Outcome of the delivery

        Raises:
            InvalidSignature: If the body signature does not verify
            ConcurrentModification: If the account kept changing during the update
        """
        if not verify_webhook_signature(self._webhook_secret, raw_body, signature):
            log_signature_failure(
                source="webhook", signature=signature, body_size=len(raw_body)
            )
            raise InvalidSignature("Invalid webhook signature")

        try:
            event = parse_webhook_event(raw_body)
        except InvalidWebhookPayload as e:
            logger.error("webhook_payload_malformed", error=e.message)
            return WebhookOutcome.MALFORMED

        return self.dispatch(event)

    def dispatch(self, event: WebhookEvent) -> WebhookOutcome:
        """Route a parsed event to the engine."""
        logger.info("webhook_received", webhook_event=event.event)

        if isinstance(
            event, (SubscriptionChargedEvent, SubscriptionActivatedEvent, InvoicePaidEvent)
        ):
            snapshot = self.engine.apply_charge(event.subscription_id, event.payment_id)
            if snapshot is None:
                return WebhookOutcome.UNRESOLVED
            return WebhookOutcome.APPLIED

        if isinstance(event, SubscriptionCancelledEvent):
            snapshot = self.engine.cancel_by_subscription_id(event.subscription_id)
            if snapshot is None:
                return WebhookOutcome.UNRESOLVED
            return WebhookOutcome.CANCELLED

        if isinstance(event, PaymentFailedEvent):
            logger.warning(
                "payment_failed",
                payment_id=event.payment_id,
                error_description=event.error_description,
            )
            return WebhookOutcome.LOGGED

        if isinstance(event, UnrecognizedEvent):
            logger.info("webhook_event_ignored", webhook_event=event.event)
        return WebhookOutcome.IGNORED
