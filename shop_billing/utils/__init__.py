"""Utility functions and helpers for billing."""

from shop_billing.utils.billing_period import (
    add_billing_period,
    ensure_utc,
    months_duration,
    parse_billing_period,
    total_months,
)
from shop_billing.utils.signature import (
    compute_client_signature,
    compute_webhook_signature,
    signatures_match,
    verify_client_signature,
    verify_webhook_signature,
)

__all__ = [
    # Billing period parsing
    "parse_billing_period",
    "months_duration",
    "total_months",
    "add_billing_period",
    "ensure_utc",
    # Signatures
    "compute_client_signature",
    "compute_webhook_signature",
    "signatures_match",
    "verify_client_signature",
    "verify_webhook_signature",
]
