from typing import Optional
from pydantic import BaseModel, Field


class CouponValidateRequest(BaseModel):
    """Amount the coupon would apply to (subtotal plus shipping)."""
    amount: float = Field(ge=0)


class CouponValidateResponse(BaseModel):
    code: str
    description: str = ""
    discount_type: str
    discount_value: float
    discount: float
    amount_after_discount: float
    minimum_purchase: float = 0.0
    max_discount_value: Optional[float] = None
