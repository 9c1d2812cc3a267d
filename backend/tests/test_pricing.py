"""
Tests for shipping quotes and the order discount chain.
"""
from sneakerstore.models.coupon import Coupon
from sneakerstore.services.pricing import (
    calculate_shipping_cost,
    compute_order_totals,
    shipping_options,
)


def percentage_coupon(value):
    return Coupon(code="off", discount_type="percentage", discount_value=value)


class TestShipping:
    """Test shipping quotes."""

    def test_normal_shipping_below_threshold(self):
        assert calculate_shipping_cost("normal", 299.99) == 19.9

    def test_free_normal_shipping_at_threshold(self):
        assert calculate_shipping_cost("normal", 300.0) == 0.0

    def test_express_never_free(self):
        assert calculate_shipping_cost("express", 1000.0) == 29.9

    def test_unknown_method(self):
        assert calculate_shipping_cost("drone", 100.0) is None

    def test_options_listed(self):
        methods = [option.method for option in shipping_options(100.0)]
        assert methods == ["normal", "express"]


class TestOrderTotals:
    """Discounts apply coupon first, then PIX, rounding each step."""

    def test_pix_discount_alone(self):
        totals = compute_order_totals(300.0, 0.0, "pix")

        assert totals.pix_discount == 15.0
        assert totals.total_price == 285.0

    def test_coupon_then_pix(self):
        totals = compute_order_totals(300.0, 20.0, "pix", percentage_coupon(10))

        assert totals.coupon_discount == 32.0
        assert totals.pix_discount == 14.4
        assert totals.discount_amount == 46.4
        assert totals.total_price == 273.6

    def test_card_gets_no_pix_discount(self):
        totals = compute_order_totals(300.0, 20.0, "credit_card", percentage_coupon(10))

        assert totals.pix_discount == 0.0
        assert totals.total_price == 288.0

    def test_boleto_without_coupon(self):
        totals = compute_order_totals(199.9, 19.9, "boleto")

        assert totals.discount_amount == 0.0
        assert totals.total_price == 219.8

    def test_fixed_coupon_larger_than_total(self):
        coupon = Coupon(code="huge", discount_type="fixed_amount", discount_value=500)
        totals = compute_order_totals(100.0, 19.9, "pix", coupon)

        assert totals.coupon_discount == 119.9
        assert totals.total_price == 0.0

    def test_order_fields(self):
        fields = compute_order_totals(300.0, 0.0, "pix").as_order_fields()
        assert set(fields) == {
            "subtotal_price", "shipping_price", "coupon_discount",
            "pix_discount", "discount_amount", "total_price"
        }
