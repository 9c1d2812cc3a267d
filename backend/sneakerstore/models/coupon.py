from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple
from pydantic import BaseModel, Field, field_validator

from sneakerstore.utils.helpers import object_id_to_str


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"


class CouponUsage(BaseModel):
    user_id: str
    used_at: datetime = Field(default_factory=datetime.utcnow)
    order_id: Optional[str] = None


class Coupon(BaseModel):
    """Coupon model for MongoDB."""
    id: Optional[str] = Field(None, alias="_id")
    code: str
    description: str = ""
    discount_type: DiscountType = Field(default=DiscountType.PERCENTAGE, validate_default=True)
    discount_value: float = Field(ge=0)
    max_discount_value: Optional[float] = None  # Cap for percentage coupons, None = no cap
    minimum_purchase: float = 0.0
    max_uses: Optional[int] = None  # None = unlimited
    uses_count: int = 0
    max_uses_per_user: int = 1
    used_by_users: List[CouponUsage] = Field(default_factory=list)
    is_active: bool = True
    start_date: datetime = Field(default_factory=datetime.utcnow)
    end_date: Optional[datetime] = None

    class Config:
        populate_by_name = True
        use_enum_values = True

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value):
        return object_id_to_str(value)

    @field_validator("code")
    @classmethod
    def _normalize_code(cls, value: str) -> str:
        return value.strip().upper()

    def check_validity(
        self,
        amount: float,
        user_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> Tuple[bool, Optional[str]]:
        """
        Check if the coupon can be applied to an amount.
        Returns (is_valid, error_message)
        """
        now = now or datetime.utcnow()

        if not self.is_active:
            return False, "Coupon is inactive"

        if now < self.start_date or (self.end_date and now > self.end_date):
            return False, "Coupon is outside its validity period"

        if self.max_uses is not None and self.uses_count >= self.max_uses:
            return False, "Coupon usage limit reached"

        if amount < self.minimum_purchase:
            return False, f"Minimum purchase for this coupon: R$ {self.minimum_purchase:.2f}"

        if user_id and self.max_uses_per_user > 0:
            user_usage = len([usage for usage in self.used_by_users if usage.user_id == user_id])
            if user_usage >= self.max_uses_per_user:
                return False, "You have already reached the usage limit for this coupon"

        return True, None

    def calculate_discount(self, amount: float) -> float:
        """Discount this coupon grants on an amount, never more than the amount itself."""
        if self.discount_type == DiscountType.PERCENTAGE:
            discount = amount * (self.discount_value / 100)
            if self.max_discount_value and discount > self.max_discount_value:
                discount = self.max_discount_value
        else:
            discount = self.discount_value

        return round(min(max(discount, 0.0), amount), 2)
