from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, Field

from sneakerstore.models.order import Order, OrderStatus, PaymentMethod, PaymentResult, StatusHistory


class OrderCreate(BaseModel):
    """Schema for submitting the active cart as an order."""
    shipping_address_id: str
    shipping_method: str = "normal"
    payment_method: PaymentMethod
    coupon_code: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "shipping_address_id": "65f1c0ffee0000000000cc01",
                "shipping_method": "normal",
                "payment_method": "pix",
                "coupon_code": "WELCOME10"
            }
        }


class OrderStatusUpdate(BaseModel):
    """Schema for a fulfillment status change."""
    status: OrderStatus
    note: Optional[str] = None
    tracking_number: Optional[str] = None
    cancellation_reason: Optional[str] = None


class OrderCancel(BaseModel):
    reason: Optional[str] = None


class OrderItemResponse(BaseModel):
    sneaker_id: str
    variant_id: str
    name: str
    size: str
    color: str
    image: Optional[str] = None
    quantity: int
    price: float


class OrderResponse(BaseModel):
    """Schema for order response."""
    id: str
    order_number: str
    user_id: str
    order_items: List[OrderItemResponse]
    shipping_address_id: str
    shipping_method: str
    payment_method: str
    payment_result: Optional[PaymentResult] = None
    payment_expires_at: Optional[datetime] = None
    subtotal_price: float
    shipping_price: float
    coupon_discount: float
    pix_discount: float
    discount_amount: float
    total_price: float
    coupon_applied: Optional[str] = None
    is_paid: bool
    paid_at: Optional[datetime] = None
    status: str
    status_history: List[StatusHistory] = Field(default_factory=list)
    tracking_number: Optional[str] = None
    cancellation_reason: Optional[str] = None
    next_statuses: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

    @classmethod
    def from_document(cls, document: dict) -> "OrderResponse":
        order = Order(**document)
        return cls.model_validate(order.model_dump())


class OrderListResponse(BaseModel):
    orders: List[OrderResponse]
    page: int
    page_size: int
    total: int
    has_more: bool


class OrderStatusUpdateResponse(BaseModel):
    message: str
    order_id: str
    old_status: str
    new_status: str
    updated_at: datetime
