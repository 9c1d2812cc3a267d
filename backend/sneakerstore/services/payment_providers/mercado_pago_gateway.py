"""
Mercado Pago REST API gateway.

Documentation: https://www.mercadopago.com.br/developers/en/reference
"""

import hmac
import hashlib
import logging
import uuid
from typing import Dict, Any

import requests

from sneakerstore.config.payment_config import PAYMENT_CONFIG, get_gateway_url
from sneakerstore.core.exceptions import PaymentError

logger = logging.getLogger(__name__)


class MercadoPagoGateway:
    """Thin client over the Mercado Pago payments and preferences endpoints."""

    def __init__(self):
        self.config = PAYMENT_CONFIG["mercado_pago"]
        self.base_url = get_gateway_url()
        self.access_token = self.config.get("access_token")
        self.timeout = self.config.get("request_timeout_seconds", 30)

    def _headers(self, idempotent: bool = False) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json"
        }
        if idempotent:
            headers["X-Idempotency-Key"] = str(uuid.uuid4())
        return headers

    def _request(self, method: str, path: str, payment_method: str, body: Dict[str, Any] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = requests.request(
                method,
                url,
                headers=self._headers(idempotent=method == "POST"),
                json=body,
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Mercado Pago {method} {path} failed: {str(e)}")
            raise PaymentError(payment_method, f"Payment gateway unreachable: {str(e)}")

        if response.status_code >= 500:
            logger.error(f"Mercado Pago {method} {path} returned {response.status_code}")
            raise PaymentError(payment_method, f"Payment gateway error ({response.status_code})")

        if response.status_code >= 400:
            data = response.json() if response.content else {}
            message = data.get("message", f"Request rejected ({response.status_code})")
            logger.warning(f"Mercado Pago rejected {method} {path}: {message}")
            raise PaymentError(payment_method, message, retryable=False, status_detail=data.get("error"))

        return response.json()

    async def create_payment(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create a payment.

        Args:
            body: Mercado Pago payment payload

        Returns:
            Gateway payment resource
        """
        payment_method = body.get("payment_method_id", "unknown")
        logger.info(f"Creating Mercado Pago payment ({payment_method}) for {body.get('external_reference')}")
        return self._request("POST", "/v1/payments", payment_method, body)

    async def get_payment(self, payment_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/v1/payments/{payment_id}", "unknown")

    async def create_preference(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """Create a hosted checkout preference."""
        return self._request("POST", "/checkout/preferences", "preference", body)

    def verify_webhook_signature(self, signature: str, payload: Dict[str, Any]) -> bool:
        """
        Verify the webhook's x-signature header ("ts=...,v1=...").

        The signed manifest is "id:{data.id};ts:{ts};".
        """
        if not signature:
            return False

        parts = dict(
            part.strip().split("=", 1) for part in signature.split(",") if "=" in part
        )
        ts = parts.get("ts")
        received = parts.get("v1")
        if not ts or not received:
            return False

        data_id = str((payload.get("data") or {}).get("id", ""))
        manifest = f"id:{data_id};ts:{ts};"
        expected = hmac.new(
            PAYMENT_CONFIG["webhook_secret"].encode(),
            manifest.encode(),
            hashlib.sha256
        ).hexdigest()
        return hmac.compare_digest(expected, received)
