"""
Order service for managing order business logic and status transitions.
"""
import logging
from typing import List, Optional, Dict, Tuple
from datetime import datetime
from fastapi import HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from bson import ObjectId

from sneakerstore.core.exceptions import InvalidStatusTransitionError
from sneakerstore.models.order import OrderStatus, PaymentMethod, PaymentResult
from sneakerstore.services.cart_service import CartService
from sneakerstore.services.coupon_service import CouponService

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"


class OrderService:
    """Service class for order management business logic."""

    # Valid status transitions
    STATUS_TRANSITIONS = {
        "pending": ["processing", "cancelled"],
        "processing": ["shipped", "cancelled"],
        "shipped": ["delivered"],
        "delivered": [],  # Final state
        "cancelled": []   # Final state
    }

    # Methods whose payment is confirmed after the order is created
    DELAYED_PAYMENT_METHODS = [PaymentMethod.PIX.value, PaymentMethod.BOLETO.value]

    @staticmethod
    def validate_status_transition(current_status: str, new_status: str) -> Tuple[bool, Optional[str]]:
        """
        Validate if status transition is allowed.
        Returns (is_valid, error_message)
        """
        if current_status not in OrderService.STATUS_TRANSITIONS:
            return False, f"Invalid current status: {current_status}"

        valid_next_statuses = OrderService.STATUS_TRANSITIONS[current_status]

        if new_status not in valid_next_statuses:
            if not valid_next_statuses:
                return False, f"Order is in final state '{current_status}' and cannot be modified"
            return False, f"Cannot transition from '{current_status}' to '{new_status}'. Valid transitions: {', '.join(valid_next_statuses)}"

        return True, None

    @staticmethod
    async def get_order(order_id: str, db: AsyncIOMotorDatabase) -> dict:
        if not ObjectId.is_valid(order_id):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid order ID"
            )

        order = await db.orders.find_one({"_id": ObjectId(order_id)})
        if not order:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Order not found"
            )
        return order

    @staticmethod
    def verify_order_access(order: dict, user_id: str, user_role: str) -> bool:
        """
        Verify user has permission to access this order.
        - Customers can only access their own orders
        - Admins can access all orders
        """
        if user_role == "admin":
            return True
        return str(order["user_id"]) == user_id

    @staticmethod
    def can_user_change_status(
        order: dict,
        new_status: str,
        user_id: str,
        user_role: str
    ) -> Tuple[bool, Optional[str]]:
        """
        Check if user has permission to change order to new status.
        Returns (can_change, error_message)
        """
        is_valid, error_msg = OrderService.validate_status_transition(order["status"], new_status)
        if not is_valid:
            return False, error_msg

        if new_status in ["processing", "shipped", "delivered"]:
            # Payment confirmation and fulfillment belong to the store
            if user_role != "admin":
                return False, "Only store staff can process, ship or deliver orders"

        elif new_status == "cancelled" and user_role != "admin":
            if order["status"] != "pending":
                return False, "Customers can only cancel pending orders"
            if str(order["user_id"]) != user_id:
                return False, "You can only cancel your own orders"

        return True, None

    @staticmethod
    async def transition_order(
        order: dict,
        new_status: str,
        changed_by: str,
        db: AsyncIOMotorDatabase,
        note: Optional[str] = None,
        extra_fields: Optional[Dict] = None
    ) -> dict:
        """
        Move an order to a new status and append a status history entry.

        The update is conditional on the status the order was read with, so a
        concurrent transition makes this one fail instead of overwriting it.
        Raises InvalidStatusTransitionError.
        """
        current_status = order["status"]
        is_valid, error_msg = OrderService.validate_status_transition(current_status, new_status)
        if not is_valid:
            raise InvalidStatusTransitionError(current_status, new_status, error_msg)

        now = datetime.utcnow()
        update_data = {"status": new_status, "updated_at": now}

        # Update timestamps based on status
        if new_status == "shipped":
            update_data["shipped_at"] = now
        elif new_status == "delivered":
            update_data["delivered_at"] = now
        elif new_status == "cancelled":
            update_data["cancelled_at"] = now

        if extra_fields:
            update_data.update(extra_fields)

        history_entry = {
            "status": new_status,
            "changed_at": now,
            "changed_by": changed_by,
            "note": note
        }

        result = await db.orders.update_one(
            {"_id": order["_id"], "status": current_status},
            {
                "$set": update_data,
                "$push": {"status_history": history_entry}
            }
        )
        if result.modified_count == 0:
            raise InvalidStatusTransitionError(
                current_status, new_status,
                f"Order {order['_id']} changed status concurrently"
            )

        logger.info(f"Order {order.get('order_number', order['_id'])}: {current_status} -> {new_status} by {changed_by}")
        order.update(update_data)
        order.setdefault("status_history", []).append(history_entry)
        return order

    @staticmethod
    async def update_order_status(
        order_id: str,
        new_status: str,
        user_id: str,
        user_role: str,
        db: AsyncIOMotorDatabase,
        note: Optional[str] = None,
        tracking_number: Optional[str] = None,
        cancellation_reason: Optional[str] = None
    ) -> dict:
        """
        Update order status with validation and side effects.
        """
        order = await OrderService.get_order(order_id, db)
        current_status = order["status"]

        can_change, error_msg = OrderService.can_user_change_status(order, new_status, user_id, user_role)
        if not can_change:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=error_msg
            )

        # Validate tracking number for shipped status
        if new_status == "shipped" and not tracking_number:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Tracking number is required when shipping an order"
            )

        extra_fields = {}
        if new_status == "shipped":
            extra_fields["tracking_number"] = tracking_number
        elif new_status == "cancelled":
            extra_fields["cancellation_reason"] = cancellation_reason or "Cancelled by customer"

        try:
            order = await OrderService.transition_order(
                order, new_status, user_id, db, note=note, extra_fields=extra_fields
            )
        except InvalidStatusTransitionError as e:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=e.message
            )

        return {
            "message": f"Order status updated to {new_status}",
            "order_id": order_id,
            "old_status": current_status,
            "new_status": new_status,
            "updated_at": order["updated_at"]
        }

    @staticmethod
    async def cancel_order(
        order_id: str,
        user_id: str,
        user_role: str,
        db: AsyncIOMotorDatabase,
        reason: Optional[str] = None
    ) -> dict:
        """User-initiated cancellation."""
        can_cancel, error_msg = await OrderService.can_cancel_order(order_id, user_id, user_role, db)
        if not can_cancel:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=error_msg
            )

        return await OrderService.update_order_status(
            order_id, "cancelled", user_id, user_role, db,
            note="Cancelled on request",
            cancellation_reason=reason
        )

    @staticmethod
    async def can_cancel_order(order_id: str, user_id: str, user_role: str, db: AsyncIOMotorDatabase) -> Tuple[bool, Optional[str]]:
        """Check if user can cancel this order."""
        if not ObjectId.is_valid(order_id):
            return False, "Invalid order ID"

        order = await db.orders.find_one({"_id": ObjectId(order_id)})
        if not order:
            return False, "Order not found"

        current_status = order["status"]

        # Cannot cancel if already delivered or cancelled
        if current_status in ["delivered", "cancelled"]:
            return False, f"Cannot cancel order in '{current_status}' status"

        # Cannot cancel if shipped
        if current_status == "shipped":
            return False, "Cannot cancel order that has already been shipped"

        if user_role != "admin":
            if current_status != "pending":
                return False, "Customers can only cancel pending orders"
            if str(order["user_id"]) != user_id:
                return False, "You can only cancel your own orders"

        return True, None

    @staticmethod
    def get_valid_next_statuses(current_status: str, user_role: str) -> List[str]:
        """Get list of valid next statuses based on current status and role."""
        if current_status not in OrderService.STATUS_TRANSITIONS:
            return []

        valid_statuses = OrderService.STATUS_TRANSITIONS[current_status]

        if user_role == "admin":
            return valid_statuses

        # Customers can only cancel pending orders
        if current_status == "pending" and "cancelled" in valid_statuses:
            return ["cancelled"]
        return []

    # ===============================================
    # PAYMENT HOOKS
    # ===============================================

    @staticmethod
    async def record_payment_attempt(
        order_id: str,
        payment_result: PaymentResult,
        db: AsyncIOMotorDatabase,
        expires_at: Optional[datetime] = None
    ) -> None:
        """Store the gateway's latest answer without changing the order status."""
        update_data = {
            "payment_result": payment_result.model_dump(),
            "updated_at": datetime.utcnow()
        }
        if expires_at:
            update_data["payment_expires_at"] = expires_at

        await db.orders.update_one({"_id": ObjectId(order_id)}, {"$set": update_data})

    @staticmethod
    async def mark_paid(
        order_id: str,
        payment_result: PaymentResult,
        db: AsyncIOMotorDatabase
    ) -> dict:
        """
        Payment success: pending -> processing.

        Also closes the cart the order was created from and redeems the
        coupon. Repeated notifications for an already paid order are ignored.
        """
        order = await OrderService.get_order(order_id, db)

        if order.get("is_paid"):
            logger.info(f"Order {order_id} already paid, ignoring duplicate confirmation")
            return order

        now = datetime.utcnow()
        order = await OrderService.transition_order(
            order, OrderStatus.PROCESSING.value, SYSTEM_ACTOR, db,
            note=f"Payment {payment_result.id} approved",
            extra_fields={
                "is_paid": True,
                "paid_at": now,
                "payment_result": payment_result.model_dump()
            }
        )

        if order.get("cart_id"):
            await CartService.convert_cart(str(order["cart_id"]), order_id, db)

        if order.get("coupon_applied"):
            await CouponService.redeem(order["coupon_applied"], str(order["user_id"]), order_id, db)

        return order

    @staticmethod
    async def mark_payment_failed(
        order_id: str,
        payment_result: PaymentResult,
        db: AsyncIOMotorDatabase,
        reason: str
    ) -> dict:
        """Payment rejected or cancelled by the gateway: pending -> cancelled."""
        order = await OrderService.get_order(order_id, db)

        if order["status"] == OrderStatus.CANCELLED.value:
            return order

        return await OrderService.transition_order(
            order, OrderStatus.CANCELLED.value, SYSTEM_ACTOR, db,
            note=f"Payment {payment_result.id} {payment_result.status}",
            extra_fields={
                "payment_result": payment_result.model_dump(),
                "cancellation_reason": reason
            }
        )

    @staticmethod
    async def cancel_expired_payments(db: AsyncIOMotorDatabase, now: Optional[datetime] = None) -> int:
        """
        Cancel pending PIX and Boleto orders whose payment window has passed.
        Returns the number of cancelled orders.
        """
        now = now or datetime.utcnow()
        cursor = db.orders.find({
            "status": OrderStatus.PENDING.value,
            "is_paid": False,
            "payment_method": {"$in": OrderService.DELAYED_PAYMENT_METHODS},
            "payment_expires_at": {"$lt": now}
        })

        cancelled = 0
        async for order in cursor:
            try:
                await OrderService.transition_order(
                    order, OrderStatus.CANCELLED.value, SYSTEM_ACTOR, db,
                    note="Payment window expired",
                    extra_fields={"cancellation_reason": "Payment not received before expiration"}
                )
                cancelled += 1
            except InvalidStatusTransitionError as e:
                # Paid or cancelled between the query and the update
                logger.info(f"Skipping expiry of order {order['_id']}: {e.message}")

        if cancelled:
            logger.info(f"Cancelled {cancelled} orders with expired payments")
        return cancelled

    @staticmethod
    async def get_user_orders(
        user_id: str,
        db: AsyncIOMotorDatabase,
        page: int = 1,
        page_size: int = 10
    ) -> Dict:
        """Orders of a user, newest first, one page at a time."""
        query = {"user_id": user_id}
        total = await db.orders.count_documents(query)

        cursor = db.orders.find(query).sort("created_at", -1).skip((page - 1) * page_size).limit(page_size)
        orders = await cursor.to_list(length=page_size)

        return {
            "orders": orders,
            "page": page,
            "page_size": page_size,
            "total": total,
            "has_more": page * page_size < total
        }
