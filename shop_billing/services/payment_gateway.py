"""Payment gateway REST client.

Only subscription creation goes through the gateway API; payment results come
back through the checkout confirmation and webhooks.
"""

from typing import Any, Dict, Optional

import httpx

from shop_billing.exceptions import PaymentGatewayError
from shop_billing.logging_config import get_logger

logger = get_logger(__name__)


class PaymentGateway:
    """Client for the gateway's subscriptions API (HTTP basic auth with the key pair)."""

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        api_base: str = "https://api.razorpay.com/v1",
        timeout_seconds: float = 10.0,
        http_client: Optional[httpx.Client] = None,
    ):
        """Initialize gateway client.

        Args:
            key_id: Gateway API key id
            key_secret: Gateway API key secret
            api_base: REST API base URL
            timeout_seconds: Per-request timeout
            http_client: Preconfigured client (tests pass one with a mock transport)
        """
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(
            base_url=api_base,
            auth=(key_id, key_secret),
            timeout=timeout_seconds,
        )

    def _request(self, method: str, path: str, json_payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            response = self._client.request(method, path, json=json_payload)
        except httpx.HTTPError as e:
            logger.error("gateway_request_failed", method=method, path=path, error=str(e))
            raise PaymentGatewayError(f"Failed to contact payment gateway: {e}")

        if response.status_code >= 400:
            logger.error(
                "gateway_request_rejected",
                method=method,
                path=path,
                status_code=response.status_code,
                body=response.text[:500],
            )
            raise PaymentGatewayError(
                f"Payment gateway rejected request ({response.status_code})"
            )

        try:
            payload = response.json()
        except ValueError:
            raise PaymentGatewayError("Invalid response received from payment gateway")
        if not isinstance(payload, dict):
            raise PaymentGatewayError("Invalid response received from payment gateway")
        return payload

    def create_subscription(self, plan_id: str, total_count: int = 12, quantity: int = 1) -> str:
        """Create a gateway subscription for a gateway plan.

        Args:
            plan_id: Gateway-side plan id
            total_count: Number of billing cycles
            quantity: Units per cycle

        Returns:
            Gateway subscription id

        Raises:
            PaymentGatewayError: On transport failure, non-2xx status or a
                response without an id
        """
        data = self._request(
            "POST",
            "/subscriptions",
            {"plan_id": plan_id, "total_count": total_count, "quantity": quantity},
        )
        subscription_id = str(data.get("id") or "").strip()
        if not subscription_id:
            raise PaymentGatewayError("Payment gateway response has no subscription id")

        logger.info(
            "gateway_subscription_created",
            plan_id=plan_id,
            subscription_id=subscription_id,
            total_count=total_count,
        )
        return subscription_id

    def close(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            self._client.close()
