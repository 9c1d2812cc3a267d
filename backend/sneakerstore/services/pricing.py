"""
Order pricing: shipping quotes and the discount chain.

Discounts apply in a fixed order. The coupon is computed on subtotal plus
shipping; the PIX discount is then taken from what remains. Every step is
rounded to cents.
"""
from typing import Dict, List, Optional

from pydantic import BaseModel

from sneakerstore.config.payment_config import get_method_config
from sneakerstore.core.config import settings
from sneakerstore.models.coupon import Coupon
from sneakerstore.models.order import PaymentMethod


class ShippingOption(BaseModel):
    method: str
    label: str
    price: float
    estimated_days: str


def shipping_options(subtotal: float) -> List[ShippingOption]:
    """Available shipping methods for a subtotal."""
    normal_price = 0.0 if subtotal >= settings.FREE_SHIPPING_THRESHOLD else settings.NORMAL_SHIPPING_PRICE
    return [
        ShippingOption(method="normal", label="Normal", price=normal_price, estimated_days="5-8"),
        ShippingOption(method="express", label="Express", price=settings.EXPRESS_SHIPPING_PRICE, estimated_days="1-3"),
    ]


def calculate_shipping_cost(method: str, subtotal: float) -> Optional[float]:
    """Shipping price for a method, or None when the method is unknown."""
    for option in shipping_options(subtotal):
        if option.method == method:
            return option.price
    return None


class OrderTotals(BaseModel):
    subtotal_price: float
    shipping_price: float
    coupon_discount: float = 0.0
    pix_discount: float = 0.0
    discount_amount: float = 0.0
    total_price: float

    def as_order_fields(self) -> Dict[str, float]:
        return self.model_dump()


def compute_order_totals(
    subtotal: float,
    shipping: float,
    payment_method: str,
    coupon: Optional[Coupon] = None
) -> OrderTotals:
    """
    Compute an order's totals.

    Example: subtotal 300.00, shipping 20.00, a 10% coupon and PIX gives
    320.00 - 32.00 = 288.00, then 288.00 - 14.40 = 273.60.
    """
    subtotal = round(subtotal, 2)
    shipping = round(shipping, 2)
    gross = round(subtotal + shipping, 2)

    coupon_discount = coupon.calculate_discount(gross) if coupon else 0.0
    after_coupon = round(gross - coupon_discount, 2)

    pix_discount = 0.0
    if payment_method == PaymentMethod.PIX.value:
        percent = get_method_config("pix").get("discount_percent", 0)
        pix_discount = round(after_coupon * percent / 100, 2)

    total = round(after_coupon - pix_discount, 2)
    return OrderTotals(
        subtotal_price=subtotal,
        shipping_price=shipping,
        coupon_discount=coupon_discount,
        pix_discount=pix_discount,
        discount_amount=round(coupon_discount + pix_discount, 2),
        total_price=max(total, 0.0)
    )
