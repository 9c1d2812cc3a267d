"""
Checkout orchestration.

`CheckoutFlow` tracks the shopper's progress through the checkout steps and
refuses to skip ahead. `CheckoutService.submit_order` turns the validated
active cart into a pending order snapshot.
"""
import logging
import random
from datetime import datetime, timedelta
from enum import IntEnum
from typing import Optional

from bson import ObjectId
from fastapi import HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from sneakerstore.config.payment_config import get_method_config
from sneakerstore.core.exceptions import (
    AvailabilityError,
    CheckoutBlockedError,
    to_http_exception,
)
from sneakerstore.models.cart import AvailabilityReport, Cart
from sneakerstore.models.order import Order, OrderItem, OrderStatus, PaymentMethod, StatusHistory
from sneakerstore.schemas.order import OrderCreate
from sneakerstore.services import cart_validator
from sneakerstore.services.cart_service import CartService
from sneakerstore.services.coupon_service import CouponService
from sneakerstore.services.pricing import calculate_shipping_cost, compute_order_totals
from sneakerstore.utils.helpers import add_business_days, epoch_millis

logger = logging.getLogger(__name__)


class CheckoutStep(IntEnum):
    CART_REVIEW = 1
    IDENTIFICATION = 2
    PAYMENT = 3
    CONFIRMATION = 4


class CheckoutFlow:
    """
    Step machine for a single checkout session.

    The flow only moves one step forward at a time. Reaching PAYMENT needs a
    non-empty cart, a passing availability report and a shipping method;
    reaching CONFIRMATION needs a created order.
    """

    def __init__(self, cart: Cart):
        self.cart = cart
        self.step = CheckoutStep.CART_REVIEW
        self.availability: Optional[AvailabilityReport] = None
        self.shipping_method: Optional[str] = None
        self.order_id: Optional[str] = None

    def record_availability(self, report: AvailabilityReport) -> None:
        self.availability = report

    def select_shipping(self, method: str) -> None:
        if calculate_shipping_cost(method, self.cart.total_price) is None:
            raise CheckoutBlockedError(f"Unknown shipping method: {method}", reasons=["shipping_method"])
        self.shipping_method = method

    def attach_order(self, order_id: str) -> None:
        self.order_id = order_id

    def blocking_reasons(self, target: CheckoutStep):
        reasons = []
        if self.cart.is_empty:
            reasons.append("cart_empty")
        if target >= CheckoutStep.PAYMENT:
            if self.availability is None:
                reasons.append("availability_not_checked")
            elif not self.availability.is_available:
                reasons.append("items_unavailable")
            if not self.shipping_method:
                reasons.append("shipping_method_missing")
        if target >= CheckoutStep.CONFIRMATION and not self.order_id:
            reasons.append("order_not_created")
        return reasons

    def advance(self) -> CheckoutStep:
        """Move to the next step. Raises CheckoutBlockedError when its requirements are not met."""
        if self.step == CheckoutStep.CONFIRMATION:
            raise CheckoutBlockedError("Checkout is already complete", reasons=["checkout_complete"])

        target = CheckoutStep(self.step + 1)
        reasons = self.blocking_reasons(target)
        if reasons:
            report = self.availability if "items_unavailable" in reasons else None
            raise CheckoutBlockedError(
                f"Cannot proceed to {target.name.lower()}: {', '.join(reasons)}",
                reasons=reasons,
                report=report
            )

        self.step = target
        return self.step

    def go_back(self) -> CheckoutStep:
        if CheckoutStep.CART_REVIEW < self.step < CheckoutStep.CONFIRMATION:
            self.step = CheckoutStep(self.step - 1)
        return self.step


def generate_order_number(now: Optional[datetime] = None) -> str:
    """'P' + last 6 digits of the epoch millis + 3 random digits."""
    millis = str(epoch_millis(now))
    return f"P{millis[-6:]}{random.randint(0, 999):03d}"


def payment_deadline(payment_method: str, start: datetime) -> Optional[datetime]:
    """When an unpaid order of this method should be cancelled. Cards settle synchronously."""
    if payment_method == PaymentMethod.PIX.value:
        return start + timedelta(minutes=get_method_config("pix").get("expiration_minutes", 30))
    if payment_method == PaymentMethod.BOLETO.value:
        return add_business_days(start, get_method_config("boleto").get("due_days", 3))
    return None


class CheckoutService:
    """Service for turning carts into orders."""

    @staticmethod
    async def validate_shipping_address(user_id: str, address_id: str, db: AsyncIOMotorDatabase) -> dict:
        if not ObjectId.is_valid(address_id):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid shipping address ID"
            )

        address = await db.addresses.find_one({"_id": ObjectId(address_id), "user_id": user_id})
        if not address:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Shipping address not found"
            )
        return address

    @staticmethod
    async def submit_order(user_id: str, order_data: OrderCreate, db: AsyncIOMotorDatabase) -> Order:
        """
        Submit the user's active cart as a pending order.

        Availability is re-checked here regardless of what the client saw
        earlier. The cart stays untouched until the payment is confirmed.
        """
        cart = await CartService.get_active_cart(user_id, db)
        if not cart or cart.is_empty:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cart is empty"
            )

        report = await cart_validator.check_availability(cart, db)
        if not report.is_available:
            raise to_http_exception(AvailabilityError(report))

        subtotal = cart.total_price
        shipping_price = calculate_shipping_cost(order_data.shipping_method, subtotal)
        if shipping_price is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unknown shipping method: {order_data.shipping_method}"
            )

        await CheckoutService.validate_shipping_address(user_id, order_data.shipping_address_id, db)

        coupon = None
        coupon_code = order_data.coupon_code or cart.applied_coupon_code
        if coupon_code:
            coupon, _ = await CouponService.validate_coupon(
                coupon_code, subtotal + shipping_price, db, user_id=user_id
            )

        payment_method = order_data.payment_method.value
        totals = compute_order_totals(subtotal, shipping_price, payment_method, coupon)

        now = datetime.utcnow()
        order = Order(
            order_number=generate_order_number(now),
            user_id=user_id,
            cart_id=cart.id,
            order_items=[
                OrderItem(
                    sneaker_id=item.sneaker_id,
                    variant_id=item.variant_id,
                    name=item.name,
                    size=item.size,
                    color=item.color,
                    image=item.image,
                    quantity=item.quantity,
                    price=item.price
                )
                for item in cart.items
            ],
            shipping_address_id=order_data.shipping_address_id,
            shipping_method=order_data.shipping_method,
            payment_method=payment_method,
            payment_expires_at=payment_deadline(payment_method, now),
            coupon_applied=coupon.code if coupon else None,
            status=OrderStatus.PENDING,
            status_history=[StatusHistory(status=OrderStatus.PENDING.value, changed_at=now, changed_by=user_id, note="Order created")],
            created_at=now,
            updated_at=now,
            **totals.as_order_fields()
        )

        result = await db.orders.insert_one(order.model_dump(by_alias=True, exclude={"id"}))
        order.id = str(result.inserted_id)

        logger.info(
            f"Order {order.order_number} created for user {user_id}: "
            f"{len(order.order_items)} items, total {order.total_price:.2f} via {payment_method}"
        )
        return order
