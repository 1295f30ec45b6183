"""HMAC-SHA256 signatures used by the payment gateway.

Two signatures are in play:
- client confirmation: HMAC(key_secret, "<payment_id>|<subscription_id>")
- webhook delivery:    HMAC(webhook_secret, <raw request body>)

Both are lowercase hex digests and are compared in constant time.
"""

import hashlib
import hmac
from typing import Optional


def _hex_hmac(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def compute_client_signature(secret: str, payment_id: str, subscription_id: str) -> str:
    """Compute the signature the gateway attaches to a checkout confirmation.

    Args:
        secret: Gateway key secret
        payment_id: Gateway payment id (e.g., "pay_29QQoUBi66xm2f")
        subscription_id: Gateway subscription id (e.g., "sub_00000000000001")

    Returns:
        Hex-encoded HMAC-SHA256 digest
    """
    return _hex_hmac(secret, f"{payment_id}|{subscription_id}".encode("utf-8"))


def compute_webhook_signature(secret: str, raw_body: bytes) -> str:
    """Compute the signature of a webhook delivery over its raw body."""
    return _hex_hmac(secret, raw_body)


def signatures_match(expected: str, supplied: Optional[str]) -> bool:
    """Constant-time comparison of an expected and a supplied signature."""
    if not supplied:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), supplied.encode("utf-8"))


def verify_client_signature(
    secret: str, payment_id: str, subscription_id: str, supplied: Optional[str]
) -> bool:
    """Check a checkout confirmation signature."""
    return signatures_match(compute_client_signature(secret, payment_id, subscription_id), supplied)


def verify_webhook_signature(secret: str, raw_body: bytes, supplied: Optional[str]) -> bool:
    """Check a webhook signature computed over the exact bytes received."""
    return signatures_match(compute_webhook_signature(secret, raw_body), supplied)
