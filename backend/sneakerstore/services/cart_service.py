import logging
from datetime import datetime
from typing import Optional, Union

from bson import ObjectId
from fastapi import HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from sneakerstore.core.exceptions import StorefrontError, to_http_exception
from sneakerstore.models.cart import AvailabilityReport, Cart, CartStatus
from sneakerstore.schemas.cart import (
    AddToCartRequest,
    CartItemResponse,
    CartResponse,
    LocalCartItem,
)
from sneakerstore.services import cart_validator
from sneakerstore.services.coupon_service import CouponService

logger = logging.getLogger(__name__)


class CartService:
    """
    Service for server-side cart operations.

    Every write replaces the whole `items` array with `$set` and carries no
    version, so two concurrent mutations of the same cart are last-writer-wins.
    """

    @staticmethod
    async def get_active_cart(user_id: str, db: AsyncIOMotorDatabase) -> Optional[Cart]:
        doc = await db.carts.find_one({"user_id": user_id, "status": CartStatus.ACTIVE.value})
        return Cart(**doc) if doc else None

    @staticmethod
    async def get_or_create_cart(user_id: str, db: AsyncIOMotorDatabase) -> Cart:
        """Get the user's active cart, creating an empty one on first use."""
        cart = await CartService.get_active_cart(user_id, db)
        if cart:
            return cart

        cart = Cart(user_id=user_id)
        result = await db.carts.insert_one(cart.model_dump(by_alias=True, exclude={"id"}))
        cart.id = str(result.inserted_id)
        logger.info(f"Created cart {cart.id} for user {user_id}")
        return cart

    @staticmethod
    async def save_cart(cart: Cart, db: AsyncIOMotorDatabase) -> Cart:
        """Persist the cart's mutable fields (full items array, no version check)."""
        document = cart.model_dump(by_alias=True, exclude={"id"})
        await db.carts.update_one(
            {"_id": ObjectId(cart.id)},
            {"$set": {
                "items": document["items"],
                "total_price": document["total_price"],
                "final_price": document["final_price"],
                "discount": cart.discount,
                "applied_coupon_code": cart.applied_coupon_code,
                "status": cart.status,
                "converted_order_id": cart.converted_order_id,
                "last_activity": cart.last_activity,
                "updated_at": cart.updated_at
            }}
        )
        return cart

    @staticmethod
    async def _refresh_coupon(cart: Cart, db: AsyncIOMotorDatabase) -> None:
        # Items changed: recompute the coupon discount or drop a coupon that no longer applies
        if not cart.applied_coupon_code:
            return

        coupon = await CouponService.get_by_code(cart.applied_coupon_code, db)
        is_valid, error = (False, "Coupon not found") if not coupon else coupon.check_validity(
            cart.total_price, user_id=cart.user_id
        )
        if not is_valid:
            logger.info(f"Dropping coupon {cart.applied_coupon_code} from cart {cart.id}: {error}")
            cart.applied_coupon_code = None
            cart.discount = 0.0
            return

        cart.discount = coupon.calculate_discount(cart.total_price)

    @staticmethod
    async def add_item(
        user_id: Optional[str],
        payload: AddToCartRequest,
        db: AsyncIOMotorDatabase
    ) -> Union[Cart, LocalCartItem]:
        """
        Add an item to the cart.

        Authenticated users get the updated server cart back. Anonymous
        shoppers get the validated, normalized item for their local cache and
        nothing is persisted.
        """
        try:
            item, variant = await cart_validator.build_cart_item(payload, db)

            if not user_id:
                cart_validator.ensure_in_stock(item, variant, item.quantity)
                return LocalCartItem(
                    sneaker_id=item.sneaker_id,
                    variant_id=item.variant_id,
                    size=item.size,
                    color=item.color,
                    quantity=item.quantity,
                    price=item.price,
                    original_price=item.price_at_time_of_addition,
                    name=item.name,
                    image=item.image,
                    brand=item.brand,
                    slug=item.slug,
                    cart_item_id=item.cart_item_id
                )

            cart = await CartService.get_or_create_cart(user_id, db)
            existing = cart.find_item(item.key)
            in_cart = existing.quantity if existing else 0
            cart_validator.ensure_in_stock(item, variant, in_cart + item.quantity)
            cart.add_item(item)
        except StorefrontError as e:
            raise to_http_exception(e)

        await CartService._refresh_coupon(cart, db)
        await CartService.save_cart(cart, db)
        logger.info(f"Added {item.quantity}x {item.variant_id} to cart {cart.id}")
        return cart

    @staticmethod
    async def get_cart(user_id: str, db: AsyncIOMotorDatabase) -> Cart:
        return await CartService.get_or_create_cart(user_id, db)

    @staticmethod
    async def update_item_quantity(
        user_id: str,
        cart_item_id: str,
        quantity: int,
        db: AsyncIOMotorDatabase
    ) -> Cart:
        """Set the quantity of a cart line, checked against live stock."""
        cart = await CartService.get_or_create_cart(user_id, db)

        try:
            cart_validator.validate_quantity(quantity)
            item = cart.get_item(cart_item_id)
            if item is None:
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail="Item not found in cart"
                )

            variant = await cart_validator.find_variant(
                cart_validator.resolve_variant_ref(item.variant_id, item.sneaker_id, item.size, item.color),
                db
            )
            if variant is None:
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail="Variant not found"
                )

            cart_validator.ensure_in_stock(item, variant, quantity)
            cart.update_quantity(cart_item_id, quantity)
        except StorefrontError as e:
            raise to_http_exception(e)

        await CartService._refresh_coupon(cart, db)
        return await CartService.save_cart(cart, db)

    @staticmethod
    async def remove_item(user_id: str, cart_item_id: str, db: AsyncIOMotorDatabase) -> Cart:
        """Remove a line from the cart. Removing an unknown line is a no-op."""
        cart = await CartService.get_or_create_cart(user_id, db)

        if not cart.remove_item(cart_item_id):
            logger.info(f"Remove of unknown item {cart_item_id} from cart {cart.id} ignored")
            return cart

        await CartService._refresh_coupon(cart, db)
        return await CartService.save_cart(cart, db)

    @staticmethod
    async def clear_cart(user_id: str, db: AsyncIOMotorDatabase) -> Cart:
        """Clear all items and any applied coupon."""
        cart = await CartService.get_or_create_cart(user_id, db)
        cart.clear()
        return await CartService.save_cart(cart, db)

    @staticmethod
    async def apply_coupon(user_id: str, code: str, db: AsyncIOMotorDatabase) -> Cart:
        cart = await CartService.get_or_create_cart(user_id, db)

        if cart.is_empty:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cart is empty"
            )

        coupon, discount = await CouponService.validate_coupon(code, cart.total_price, db, user_id=user_id)
        cart.apply_discount(coupon.code, discount)
        logger.info(f"Coupon {coupon.code} applied to cart {cart.id}: -{discount:.2f}")
        return await CartService.save_cart(cart, db)

    @staticmethod
    async def check_availability(user_id: str, db: AsyncIOMotorDatabase) -> AvailabilityReport:
        """Check every line against live stock and persist the refreshed `is_available` flags."""
        cart = await CartService.get_or_create_cart(user_id, db)
        report = await cart_validator.check_availability(cart, db)
        await CartService.save_cart(cart, db)
        return report

    @staticmethod
    async def convert_cart(cart_id: str, order_id: str, db: AsyncIOMotorDatabase) -> bool:
        """Close a cart after its order was paid. The user's next cart starts empty."""
        result = await db.carts.update_one(
            {"_id": ObjectId(cart_id), "status": CartStatus.ACTIVE.value},
            {"$set": {
                "status": CartStatus.CONVERTED.value,
                "converted_order_id": order_id,
                "updated_at": datetime.utcnow()
            }}
        )
        if result.modified_count:
            logger.info(f"Cart {cart_id} converted by order {order_id}")
        return bool(result.modified_count)

    @staticmethod
    def to_response(cart: Cart) -> CartResponse:
        return CartResponse(
            items=[CartItemResponse.model_validate(item) for item in cart.items],
            total_price=cart.total_price,
            discount=cart.discount,
            final_price=cart.final_price,
            applied_coupon_code=cart.applied_coupon_code,
            total_items=cart.item_count,
            status=cart.status,
            last_activity=cart.last_activity
        )
