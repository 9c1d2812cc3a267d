"""
Payment service - Core business logic for order payments.

This service picks the adapter for the order's payment method, records the
gateway's answers on the order and drives the order state machine when a
payment settles (status check, webhook or synchronous card capture).
"""

import logging
from typing import Dict, Any, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from sneakerstore.core.exceptions import InvalidStatusTransitionError, PaymentError
from sneakerstore.models.order import OrderStatus, PaymentMethod, PaymentResult
from sneakerstore.models.payment import PaymentRequest, PaymentStatus, map_gateway_status
from sneakerstore.schemas.payment import PaymentCreateRequest
from sneakerstore.services.order_service import OrderService

# Import payment adapters
from sneakerstore.services.payment_providers.base import PaymentAdapter, get_gateway
from sneakerstore.services.payment_providers.boleto_service import BoletoPaymentService
from sneakerstore.services.payment_providers.credit_card_service import CreditCardPaymentService
from sneakerstore.services.payment_providers.pix_service import PixPaymentService

logger = logging.getLogger(__name__)

FAILED_STATUSES = [PaymentStatus.REJECTED, PaymentStatus.CANCELLED, PaymentStatus.EXPIRED]


class PaymentService:
    """Core payment service handling all payment operations."""

    def __init__(self, gateway=None):
        self.gateway = gateway or get_gateway()
        self.adapters: Dict[str, PaymentAdapter] = {
            PaymentMethod.PIX.value: PixPaymentService(self.gateway),
            PaymentMethod.BOLETO.value: BoletoPaymentService(self.gateway),
            PaymentMethod.CREDIT_CARD.value: CreditCardPaymentService(self.gateway)
        }

    def get_adapter(self, method: str) -> PaymentAdapter:
        return self.adapters[method]

    async def _load_payable_order(self, order_id: str, user_id: str, db: AsyncIOMotorDatabase):
        """Returns (order, error_result)."""
        if not ObjectId.is_valid(order_id):
            return None, {"success": False, "message": "Invalid order ID", "error_code": "INVALID_REQUEST"}

        order = await db.orders.find_one({"_id": ObjectId(order_id)})
        if not order:
            return None, {"success": False, "message": "Order not found", "error_code": "NOT_FOUND"}

        if str(order["user_id"]) != user_id:
            return None, {"success": False, "message": "You can only pay for your own orders", "error_code": "FORBIDDEN"}

        if order["status"] != OrderStatus.PENDING.value or order.get("is_paid"):
            return None, {
                "success": False,
                "message": f"Cannot pay for order with status: {order['status']}",
                "error_code": "INVALID_STATE"
            }

        return order, None

    async def create_payment(
        self,
        user_id: str,
        payment_data: PaymentCreateRequest,
        db: AsyncIOMotorDatabase
    ) -> Dict[str, Any]:
        """
        Generate the payment artifact for an order.

        PIX and Boleto orders stay pending until the payment settles. An
        approved card capture moves the order to processing right away.

        Returns:
            Result dict with the artifact on success
        """
        order, error = await self._load_payable_order(payment_data.order_id, user_id, db)
        if error:
            return error

        order_id = str(order["_id"])
        method = order["payment_method"]

        if order["total_price"] <= 0:
            # Fully covered by a coupon: nothing to charge at the gateway
            logger.info(f"Order {order['order_number']} has nothing to charge, settling without gateway")
            await OrderService.mark_paid(
                order_id,
                PaymentResult(id=f"no-charge-{order['order_number']}", status="approved",
                              email_address=payment_data.payer.email),
                db
            )
            return {
                "success": True,
                "order_id": order_id,
                "order_number": order["order_number"],
                "status": OrderStatus.PROCESSING.value,
                "payment": None
            }

        logger.info(f"Creating {method} payment for order {order['order_number']}, amount {order['total_price']:.2f}")

        request = PaymentRequest(
            order_id=order_id,
            order_number=order["order_number"],
            amount=order["total_price"],
            payer=payment_data.payer,
            card_token=payment_data.card_token,
            card_brand=payment_data.card_brand,
            installments=payment_data.installments,
            issuer_id=payment_data.issuer_id
        )

        try:
            artifact = await self.get_adapter(method).generate(request)
        except PaymentError as e:
            logger.warning(f"{method} payment for order {order['order_number']} failed: {e.message}")
            if e.status_detail:
                await OrderService.record_payment_attempt(
                    order_id,
                    PaymentResult(id="declined", status=e.status_detail, email_address=payment_data.payer.email),
                    db
                )
            return {
                "success": False,
                "message": e.message,
                "error_code": "PAYMENT_FAILED",
                "method": e.method,
                "retryable": e.retryable,
                "status_detail": e.status_detail
            }

        payment_result = PaymentResult(
            id=artifact.payment_id,
            status=artifact.status.value,
            email_address=payment_data.payer.email
        )
        expires_at = getattr(artifact, "expires_at", None) or getattr(artifact, "due_date", None)

        if artifact.status == PaymentStatus.APPROVED:
            await OrderService.mark_paid(order_id, payment_result, db)
            order_status = OrderStatus.PROCESSING.value
        else:
            await OrderService.record_payment_attempt(order_id, payment_result, db, expires_at=expires_at)
            order_status = order["status"]

        return {
            "success": True,
            "order_id": order_id,
            "order_number": order["order_number"],
            "status": order_status,
            "payment": artifact
        }

    async def create_preference(self, order_id: str, user_id: str, db: AsyncIOMotorDatabase) -> Dict[str, Any]:
        """Create a hosted checkout preference for an order."""
        order, error = await self._load_payable_order(order_id, user_id, db)
        if error:
            return error

        items = [
            {
                "id": item["variant_id"],
                "title": f"{item.get('name', '')} ({item.get('size', '')}/{item.get('color', '')})".strip(),
                "quantity": item["quantity"],
                "unit_price": item["price"],
                "currency_id": "BRL"
            }
            for item in order["order_items"]
        ]
        body = {
            "items": items,
            "external_reference": str(order["_id"]),
            "shipments": {"cost": order.get("shipping_price", 0.0), "mode": "not_specified"}
        }
        if order.get("discount_amount"):
            body["coupon_amount"] = order["discount_amount"]

        try:
            preference = await self.gateway.create_preference(body)
        except PaymentError as e:
            return {"success": False, "message": e.message, "error_code": "PAYMENT_FAILED", "retryable": e.retryable}

        return {
            "success": True,
            "preference_id": preference["id"],
            "init_point": preference["init_point"],
            "sandbox_init_point": preference.get("sandbox_init_point")
        }

    async def _apply_gateway_payment(self, order: dict, payment: Dict[str, Any], db: AsyncIOMotorDatabase) -> Dict[str, Any]:
        """Drive the order from a gateway payment resource."""
        order_id = str(order["_id"])
        status = map_gateway_status(payment.get("status"))
        payment_result = PaymentResult(
            id=str(payment["id"]),
            status=payment.get("status", "pending"),
            update_time=payment.get("date_last_updated"),
            email_address=(payment.get("payer") or {}).get("email")
        )

        try:
            if status == PaymentStatus.APPROVED:
                order = await OrderService.mark_paid(order_id, payment_result, db)
            elif status in FAILED_STATUSES and order["payment_method"] != PaymentMethod.CREDIT_CARD.value:
                order = await OrderService.mark_payment_failed(
                    order_id, payment_result, db, reason=f"Payment {payment_result.status}"
                )
            else:
                # Still pending, or a declined card the shopper may retry
                await OrderService.record_payment_attempt(order_id, payment_result, db)
        except InvalidStatusTransitionError as e:
            logger.error(f"Payment {payment_result.id} ({status.value}) could not be applied to order {order_id}: {e.message}")
            return {
                "success": False,
                "message": e.message,
                "error_code": "INVALID_STATE",
                "payment_id": payment_result.id,
                "status": status.value
            }

        return {
            "success": True,
            "payment_id": payment_result.id,
            "order_id": order_id,
            "status": status.value,
            "order_status": order["status"],
            "is_paid": order.get("is_paid", False),
            "paid_at": order.get("paid_at")
        }

    async def check_payment_status(self, payment_id: str, user_id: str, db: AsyncIOMotorDatabase) -> Dict[str, Any]:
        """
        Manual status check (the PIX confirmation path).

        Args:
            payment_id: Gateway payment identifier
            user_id: User ID (for authorization)
            db: Database connection

        Returns:
            Payment and order status information
        """
        order = await db.orders.find_one({"payment_result.id": payment_id})
        if not order:
            return {"success": False, "message": "Payment not found", "error_code": "NOT_FOUND"}

        if str(order["user_id"]) != user_id:
            return {"success": False, "message": "Unauthorized access to payment", "error_code": "FORBIDDEN"}

        if order.get("is_paid") or order["status"] == OrderStatus.CANCELLED.value:
            return {
                "success": True,
                "payment_id": payment_id,
                "order_id": str(order["_id"]),
                "status": order["payment_result"]["status"],
                "order_status": order["status"],
                "is_paid": order.get("is_paid", False),
                "paid_at": order.get("paid_at")
            }

        adapter = self.get_adapter(order["payment_method"])
        try:
            status = await adapter.verify(payment_id)
            if status == PaymentStatus.PENDING:
                return {
                    "success": True,
                    "payment_id": payment_id,
                    "order_id": str(order["_id"]),
                    "status": status.value,
                    "order_status": order["status"],
                    "is_paid": False,
                    "paid_at": None
                }
            # Settled: load the full resource to record it on the order
            payment = await adapter.fetch(payment_id)
        except PaymentError as e:
            return {"success": False, "message": e.message, "error_code": "PAYMENT_FAILED", "retryable": e.retryable}

        return await self._apply_gateway_payment(order, payment, db)

    def _verify_webhook_signature(self, signature: Optional[str], payload: Dict[str, Any]) -> bool:
        return self.gateway.verify_webhook_signature(signature, payload)

    async def process_webhook(
        self,
        payload: Dict[str, Any],
        signature: Optional[str],
        db: AsyncIOMotorDatabase
    ) -> Dict[str, Any]:
        """
        Process a gateway payment notification.

        The notification only carries the payment id; the payment itself is
        fetched from the gateway before the order is touched.
        """
        logger.info(f"Processing webhook {payload.get('type') or payload.get('topic')}")

        if not self._verify_webhook_signature(signature, payload):
            logger.warning("Invalid webhook signature")
            return {"success": False, "message": "Invalid signature", "error_code": "INVALID_SIGNATURE"}

        notification_type = payload.get("type") or payload.get("topic")
        if notification_type != "payment":
            return {"success": True, "message": f"Ignored notification type: {notification_type}"}

        payment_id = str((payload.get("data") or {}).get("id") or payload.get("id") or "")
        if not payment_id:
            return {"success": False, "message": "Missing payment id", "error_code": "INVALID_REQUEST"}

        try:
            payment = await self.gateway.get_payment(payment_id)
        except PaymentError as e:
            return {"success": False, "message": e.message, "error_code": "PAYMENT_FAILED"}

        order_id = payment.get("external_reference")
        order = await db.orders.find_one({"_id": ObjectId(order_id)}) if order_id and ObjectId.is_valid(order_id) else None
        if not order:
            logger.warning(f"Order not found for payment {payment_id}")
            return {"success": False, "message": "Order not found", "error_code": "NOT_FOUND"}

        result = await self._apply_gateway_payment(order, payment, db)
        if result["success"]:
            result["message"] = "Webhook processed successfully"
        return result
