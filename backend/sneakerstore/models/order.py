from datetime import datetime
from typing import List, Optional
from enum import Enum
from pydantic import BaseModel, Field, field_validator

from sneakerstore.utils.helpers import object_id_to_str


class OrderStatus(str, Enum):
    """Order status enumeration."""
    PENDING = "pending"  # Created, awaiting payment
    PROCESSING = "processing"  # Payment accepted
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    """Payment method chosen at checkout."""
    PIX = "pix"
    BOLETO = "boleto"
    CREDIT_CARD = "credit_card"


class StatusHistory(BaseModel):
    """Status history entry for tracking order status changes."""
    status: str
    changed_at: datetime
    changed_by: str  # user_id or "system"
    note: Optional[str] = None


class OrderItem(BaseModel):
    """Snapshot of a cart line at submission time. Never re-derived from the catalog."""
    sneaker_id: str
    variant_id: str
    name: str = ""
    size: str = ""
    color: str = ""
    image: Optional[str] = None
    quantity: int = Field(gt=0)
    price: float = Field(gt=0)


class PaymentResult(BaseModel):
    """Latest gateway answer for the order's payment."""
    id: str
    status: str
    update_time: Optional[str] = None
    email_address: Optional[str] = None


class Order(BaseModel):
    """Order model for MongoDB."""
    id: Optional[str] = Field(None, alias="_id")
    order_number: str
    user_id: str
    cart_id: Optional[str] = None
    order_items: List[OrderItem]
    shipping_address_id: str
    shipping_method: str
    payment_method: PaymentMethod
    payment_result: Optional[PaymentResult] = None
    payment_expires_at: Optional[datetime] = None

    subtotal_price: float = Field(ge=0)
    shipping_price: float = Field(default=0.0, ge=0)
    coupon_discount: float = Field(default=0.0, ge=0)
    pix_discount: float = Field(default=0.0, ge=0)
    discount_amount: float = Field(default=0.0, ge=0)  # coupon_discount + pix_discount
    total_price: float = Field(ge=0)
    coupon_applied: Optional[str] = None

    is_paid: bool = False
    paid_at: Optional[datetime] = None
    status: OrderStatus = Field(default=OrderStatus.PENDING, validate_default=True)
    status_history: List[StatusHistory] = Field(default_factory=list)

    tracking_number: Optional[str] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        populate_by_name = True
        use_enum_values = True
        json_schema_extra = {
            "example": {
                "order_number": "P482913027",
                "user_id": "user123",
                "order_items": [
                    {
                        "sneaker_id": "65f1c0ffee0000000000aa01",
                        "variant_id": "65f1c0ffee0000000000bb01",
                        "name": "Air Runner",
                        "size": "42",
                        "color": "black",
                        "quantity": 1,
                        "price": 300.0
                    }
                ],
                "shipping_address_id": "addr123",
                "shipping_method": "normal",
                "payment_method": "pix",
                "subtotal_price": 300.0,
                "shipping_price": 20.0,
                "coupon_discount": 32.0,
                "pix_discount": 14.4,
                "discount_amount": 46.4,
                "total_price": 273.6,
                "status": "pending"
            }
        }

    @field_validator("id", "user_id", "cart_id", mode="before")
    @classmethod
    def _stringify_ids(cls, value):
        return object_id_to_str(value)
