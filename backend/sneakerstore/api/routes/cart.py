from typing import Optional, Union
from fastapi import APIRouter, Depends, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from sneakerstore.api.deps import get_db, get_current_user, get_optional_user
from sneakerstore.schemas.cart import (
    AddToCartRequest,
    ApplyCouponRequest,
    AvailabilityResponse,
    CartResponse,
    LocalCartItemResponse,
    UpdateCartItemRequest,
)
from sneakerstore.services.cart_service import CartService

router = APIRouter()


@router.post(
    "",
    response_model=Union[CartResponse, LocalCartItemResponse],
    status_code=status.HTTP_201_CREATED
)
async def add_to_cart(
    request: AddToCartRequest,
    current_user: Optional[dict] = Depends(get_optional_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Add a sneaker to the cart.

    Validates:
    - Sneaker and variant exist (canonical variant id, or sneaker/size/color)
    - Price resolves to a positive value
    - Sufficient stock available

    If the variant is already in the cart, increases quantity. Anonymous
    shoppers get the normalized item back for their device cache and nothing
    is stored.
    """
    user_id = str(current_user["_id"]) if current_user else None

    result = await CartService.add_item(user_id, request, db)
    if user_id is None:
        return LocalCartItemResponse(message="Item validated for local cart", cart_item=result)

    return CartService.to_response(result)


@router.get("", response_model=CartResponse)
async def get_cart(
    current_user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """Get the current user's active cart."""
    cart = await CartService.get_cart(str(current_user["_id"]), db)
    return CartService.to_response(cart)


@router.get("/availability", response_model=AvailabilityResponse)
async def check_availability(
    current_user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Check every cart line against live stock.

    Returns the per-item report; checkout is allowed only when every line is available.
    """
    report = await CartService.check_availability(str(current_user["_id"]), db)
    return AvailabilityResponse(report=report, can_checkout=report.is_available and bool(report.items))


@router.post("/coupon", response_model=CartResponse)
async def apply_coupon(
    request: ApplyCouponRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    cart = await CartService.apply_coupon(str(current_user["_id"]), request.code, db)
    return CartService.to_response(cart)


@router.patch("/{cart_item_id}", response_model=CartResponse)
async def update_cart_item(
    cart_item_id: str,
    request: UpdateCartItemRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Update the quantity of an item in the cart.

    Quantities below 1 are rejected; use DELETE to remove a line.
    """
    cart = await CartService.update_item_quantity(
        user_id=str(current_user["_id"]),
        cart_item_id=cart_item_id,
        quantity=request.quantity,
        db=db
    )
    return CartService.to_response(cart)


@router.delete("/{cart_item_id}", response_model=CartResponse)
async def remove_from_cart(
    cart_item_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """Remove an item from the cart."""
    cart = await CartService.remove_item(str(current_user["_id"]), cart_item_id, db)
    return CartService.to_response(cart)


@router.delete("", response_model=CartResponse)
async def clear_cart(
    current_user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """Clear all items from the cart."""
    cart = await CartService.clear_cart(str(current_user["_id"]), db)
    return CartService.to_response(cart)
