from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, Field, field_validator

from sneakerstore.models.cart import AvailabilityReport


class AddToCartRequest(BaseModel):
    """
    Schema for adding a sneaker to the cart.

    Identity and price are deliberately loose here; the cart validator decides
    whether the payload is acceptable so that malformed requests get a single,
    explicit integrity error.
    """
    sneaker_id: Optional[str] = None
    variant_id: Optional[str] = None
    quantity: int = 1
    size: Optional[str] = None
    color: Optional[str] = None
    price: Optional[float] = None
    original_price: Optional[float] = None
    name: Optional[str] = None
    brand: Optional[str] = None
    image: Optional[str] = None
    slug: Optional[str] = None
    cart_item_id: Optional[str] = None

    @field_validator("size", mode="before")
    @classmethod
    def _size_to_str(cls, value):
        return None if value is None else str(value)

    class Config:
        json_schema_extra = {
            "example": {
                "sneaker_id": "65f1c0ffee0000000000aa01",
                "variant_id": "65f1c0ffee0000000000bb01",
                "quantity": 1,
                "size": "42",
                "color": "black",
                "price": 599.9
            }
        }


class UpdateCartItemRequest(BaseModel):
    """Schema for updating cart item quantity."""
    quantity: int

    class Config:
        json_schema_extra = {
            "example": {
                "quantity": 3
            }
        }


class ApplyCouponRequest(BaseModel):
    code: str


class LocalCartItem(BaseModel):
    """Cart line as persisted in the device-local cache of an anonymous shopper."""
    sneaker_id: Optional[str] = None
    variant_id: Optional[str] = None
    size: Optional[str] = None
    color: Optional[str] = None
    quantity: int = Field(default=1, ge=1)
    price: Optional[float] = None
    original_price: Optional[float] = None
    name: Optional[str] = None
    image: Optional[str] = None
    brand: Optional[str] = None
    slug: Optional[str] = None
    cart_item_id: str

    @field_validator("size", mode="before")
    @classmethod
    def _size_to_str(cls, value):
        return None if value is None else str(value)

    @property
    def key(self):
        return (self.sneaker_id, self.variant_id, self.size, self.color)


class CartItemResponse(BaseModel):
    """Schema for cart item response."""
    cart_item_id: str
    sneaker_id: str
    variant_id: str
    name: str
    size: str
    color: str
    brand: str
    image: Optional[str] = None
    slug: str
    quantity: int
    price: float
    price_at_time_of_addition: float
    discount: float
    final_price: float
    is_available: bool
    out_of_stock_notified: bool = False

    class Config:
        from_attributes = True


class CartResponse(BaseModel):
    """Schema for cart response."""
    items: List[CartItemResponse]
    total_price: float
    discount: float = 0.0
    final_price: float
    applied_coupon_code: Optional[str] = None
    total_items: int
    status: str = "active"
    last_activity: Optional[datetime] = None

    class Config:
        from_attributes = True


class LocalCartItemResponse(BaseModel):
    """Validated item handed back to anonymous shoppers for their local cache."""
    message: str
    cart_item: LocalCartItem


class AvailabilityResponse(BaseModel):
    report: AvailabilityReport
    can_checkout: bool
