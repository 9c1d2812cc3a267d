"""
REST client for the storefront API.

Network failures raise TransientIOError; any non-2xx answer raises ApiError
with the status code and the API's `detail`.
"""
import logging
from typing import Any, Dict, Optional

import requests

from sneakerstore.core.config import settings
from sneakerstore.core.exceptions import ApiError, TransientIOError

logger = logging.getLogger(__name__)


class StorefrontApiClient:
    """Storefront API client used by the cart store and sync engine."""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        token: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: int = 10
    ):
        self.base_url = f"{base_url.rstrip('/')}{settings.API_V1_PREFIX}"
        self.token = token
        self.session = session or requests.Session()
        self.timeout = timeout

    def set_token(self, token: Optional[str]) -> None:
        self.token = token

    @property
    def authenticated(self) -> bool:
        return bool(self.token)

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method,
                url,
                headers=self._headers(),
                json=json,
                params=params,
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            logger.warning(f"{method} {path} failed: {str(e)}")
            raise TransientIOError(f"Could not reach the storefront API: {str(e)}")

        try:
            data = response.json() if response.content else {}
        except ValueError:
            data = {}

        if not response.ok:
            detail = data.get("detail") if isinstance(data, dict) else None
            message = detail.get("message") if isinstance(detail, dict) else detail
            raise ApiError(
                response.status_code,
                message or f"Request failed with status {response.status_code}",
                payload=data if isinstance(data, dict) else {}
            )

        return data

    # Cart
    async def get_cart(self) -> Dict[str, Any]:
        return await self._request("GET", "/carts")

    async def add_item(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/carts", json=payload)

    async def update_item(self, cart_item_id: str, quantity: int) -> Dict[str, Any]:
        return await self._request("PATCH", f"/carts/{cart_item_id}", json={"quantity": quantity})

    async def remove_item(self, cart_item_id: str) -> Dict[str, Any]:
        return await self._request("DELETE", f"/carts/{cart_item_id}")

    async def clear_cart(self) -> Dict[str, Any]:
        return await self._request("DELETE", "/carts")

    async def check_availability(self) -> Dict[str, Any]:
        return await self._request("GET", "/carts/availability")

    async def apply_coupon(self, code: str) -> Dict[str, Any]:
        return await self._request("POST", "/carts/coupon", json={"code": code})

    # Orders
    async def create_order(self, order: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/orders", json=order)

    async def get_user_orders(self, page: int = 1, page_size: int = 10) -> Dict[str, Any]:
        return await self._request("GET", "/orders/user", params={"page": page, "page_size": page_size})

    async def get_order(self, order_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/orders/{order_id}")

    async def cancel_order(self, order_id: str, reason: Optional[str] = None) -> Dict[str, Any]:
        return await self._request("POST", f"/orders/{order_id}/cancel", json={"reason": reason})

    # Payments
    async def create_payment(self, payment: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/payments/payment", json=payment)

    async def get_payment_status(self, payment_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/payments/{payment_id}/status")

    # Coupons
    async def validate_coupon(self, code: str, amount: float) -> Dict[str, Any]:
        return await self._request("POST", f"/coupons/code/{code}/validate", json={"amount": amount})
