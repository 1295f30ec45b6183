"""Error taxonomy for subscription billing.

Every error carries a stable ``code`` (used in API error payloads) and the
HTTP status the API layer answers with.
"""


class BillingError(Exception):
    """Base exception for billing errors."""

    code = "billing_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidSignature(BillingError):
    """Raised when a payment confirmation or webhook signature does not match."""

    code = "invalid_signature"
    status_code = 400


class AccountNotFound(BillingError):
    """Raised when an account id or gateway subscription id cannot be resolved."""

    code = "account_not_found"
    status_code = 404


class PlanNotFound(BillingError):
    """Raised when a plan is missing from the catalog."""

    code = "plan_not_found"
    status_code = 404


class InvalidPlanPrice(BillingError):
    """Raised when a catalog plan has a non-positive price."""

    code = "invalid_plan_price"
    status_code = 400


class InvalidPlanDuration(BillingError):
    """Raised when a plan or stored snapshot has a non-positive duration."""

    code = "invalid_plan_duration"
    status_code = 400


class InvalidTransition(BillingError):
    """Raised when an operation is not allowed from the current subscription status."""

    code = "invalid_transition"
    status_code = 409


class SubscriptionAlreadyLinked(BillingError):
    """Raised when a gateway subscription id is already linked to another account."""

    code = "subscription_already_linked"
    status_code = 409


class ConcurrentModification(BillingError):
    """Raised when the account document changed between read and conditional write."""

    code = "concurrent_modification"
    status_code = 409


class InvalidWebhookPayload(BillingError):
    """Raised when a verified webhook body cannot be parsed into a known event shape."""

    code = "invalid_webhook_payload"
    status_code = 400


class PaymentGatewayError(BillingError):
    """Raised when the payment gateway rejects a request or cannot be reached."""

    code = "payment_gateway_error"
    status_code = 502
