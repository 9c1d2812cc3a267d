from fastapi import APIRouter, Depends, HTTPException, status, Query
from motor.motor_asyncio import AsyncIOMotorDatabase

from sneakerstore.api.deps import get_db, get_current_admin, get_current_user
from sneakerstore.schemas.order import (
    OrderCancel,
    OrderCreate,
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdate,
    OrderStatusUpdateResponse,
)
from sneakerstore.services.checkout_service import CheckoutService
from sneakerstore.services.order_service import OrderService

router = APIRouter()


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    order: OrderCreate,
    current_user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Submit the active cart as an order.

    This will:
    1. Re-check stock for every cart line (409 with a per-item report on failure)
    2. Quote shipping and apply the coupon and PIX discounts
    3. Create the order as pending, awaiting payment

    The cart is kept until the payment is confirmed.
    """
    created = await CheckoutService.submit_order(str(current_user["_id"]), order, db)
    return OrderResponse.model_validate(created.model_dump())


@router.get("/user", response_model=OrderListResponse)
async def get_my_orders(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=50),
    current_user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """Get the current user's orders, newest first."""
    result = await OrderService.get_user_orders(str(current_user["_id"]), db, page=page, page_size=page_size)
    result["orders"] = [OrderResponse.from_document(order) for order in result["orders"]]
    return OrderListResponse(**result)


@router.post("/expire-payments")
async def expire_unpaid_orders(
    current_admin: dict = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """Cancel pending PIX and Boleto orders whose payment window has passed."""
    cancelled = await OrderService.cancel_expired_payments(db)
    return {"cancelled": cancelled}


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """Get order by ID, with the statuses the caller may move it to."""
    order = await OrderService.get_order(order_id, db)

    if not OrderService.verify_order_access(order, str(current_user["_id"]), current_user.get("role", "customer")):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to view this order"
        )

    response = OrderResponse.from_document(order)
    response.next_statuses = OrderService.get_valid_next_statuses(order["status"], current_user.get("role", "customer"))
    return response


@router.patch("/{order_id}", response_model=OrderStatusUpdateResponse)
async def update_order_status(
    order_id: str,
    update: OrderStatusUpdate,
    current_user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Update order status (fulfillment).

    Transitions: pending -> processing|cancelled, processing -> shipped|cancelled,
    shipped -> delivered. Shipping requires a tracking number.
    """
    return await OrderService.update_order_status(
        order_id=order_id,
        new_status=update.status.value,
        user_id=str(current_user["_id"]),
        user_role=current_user.get("role", "customer"),
        db=db,
        note=update.note,
        tracking_number=update.tracking_number,
        cancellation_reason=update.cancellation_reason
    )


@router.post("/{order_id}/cancel", response_model=OrderStatusUpdateResponse)
async def cancel_order(
    order_id: str,
    request: OrderCancel,
    current_user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """Cancel an order. Customers can cancel their own pending orders."""
    return await OrderService.cancel_order(
        order_id=order_id,
        user_id=str(current_user["_id"]),
        user_role=current_user.get("role", "customer"),
        db=db,
        reason=request.reason
    )
