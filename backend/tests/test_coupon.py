"""
Tests for coupon validation and redemption.
"""
from datetime import datetime, timedelta

import pytest
from fastapi import HTTPException

from sneakerstore.models.coupon import Coupon
from sneakerstore.services.coupon_service import CouponService

from conftest import USER_ID


class TestCouponValidity:
    """Test Coupon.check_validity."""

    def test_valid(self):
        coupon = Coupon(code="welcome10", discount_value=10, start_date=datetime.utcnow() - timedelta(days=1))

        assert coupon.code == "WELCOME10"
        assert coupon.check_validity(100.0) == (True, None)

    def test_inactive(self):
        coupon = Coupon(code="OLD", discount_value=10, is_active=False)
        is_valid, error = coupon.check_validity(100.0)
        assert is_valid is False
        assert "inactive" in error

    def test_expired(self):
        coupon = Coupon(
            code="GONE", discount_value=10,
            start_date=datetime(2024, 1, 1), end_date=datetime(2024, 1, 31)
        )
        is_valid, error = coupon.check_validity(100.0, now=datetime(2024, 2, 1))
        assert is_valid is False
        assert "validity period" in error

    def test_global_limit(self):
        coupon = Coupon(code="FIRST100", discount_value=10, max_uses=100, uses_count=100, start_date=datetime(2024, 1, 1))
        is_valid, error = coupon.check_validity(100.0)
        assert is_valid is False
        assert "usage limit" in error

    def test_minimum_purchase(self):
        coupon = Coupon(code="BIG", discount_value=50, minimum_purchase=500, start_date=datetime(2024, 1, 1))
        is_valid, error = coupon.check_validity(499.99)
        assert is_valid is False
        assert "500.00" in error

    def test_per_user_limit(self):
        coupon = Coupon(
            code="ONCE", discount_value=10, start_date=datetime(2024, 1, 1),
            used_by_users=[{"user_id": USER_ID, "order_id": "o1"}]
        )
        assert coupon.check_validity(100.0, user_id=USER_ID)[0] is False
        assert coupon.check_validity(100.0, user_id="user-2")[0] is True


class TestCouponDiscount:
    """Test Coupon.calculate_discount."""

    def test_percentage(self):
        coupon = Coupon(code="P10", discount_type="percentage", discount_value=10)
        assert coupon.calculate_discount(320.0) == 32.0

    def test_percentage_capped(self):
        coupon = Coupon(code="P50", discount_type="percentage", discount_value=50, max_discount_value=100)
        assert coupon.calculate_discount(500.0) == 100.0

    def test_fixed_never_exceeds_amount(self):
        coupon = Coupon(code="F80", discount_type="fixed_amount", discount_value=80)
        assert coupon.calculate_discount(50.0) == 50.0


class TestCouponService:
    """Test lookup, validation and redemption against the database."""

    @pytest.mark.asyncio
    async def test_validate_returns_discount(self, db):
        db.coupons.documents.append({"code": "WELCOME10", "discount_value": 10, "start_date": datetime(2024, 1, 1)})

        coupon, discount = await CouponService.validate_coupon(" welcome10 ", 320.0, db, user_id=USER_ID)

        assert coupon.code == "WELCOME10"
        assert discount == 32.0

    @pytest.mark.asyncio
    async def test_validate_unknown(self, db):
        with pytest.raises(HTTPException) as exc_info:
            await CouponService.validate_coupon("NOPE", 100.0, db)
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_validate_below_minimum(self, db):
        db.coupons.documents.append({
            "code": "BIG", "discount_value": 50, "minimum_purchase": 500, "start_date": datetime(2024, 1, 1)
        })

        with pytest.raises(HTTPException) as exc_info:
            await CouponService.validate_coupon("BIG", 100.0, db)
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_redeem_records_usage(self, db):
        db.coupons.documents.append({"code": "WELCOME10", "discount_value": 10, "uses_count": 3})

        assert await CouponService.redeem("welcome10", USER_ID, "order-1", db) is True

        stored = db.coupons.documents[0]
        assert stored["uses_count"] == 4
        assert stored["used_by_users"][0]["user_id"] == USER_ID

    @pytest.mark.asyncio
    async def test_redeem_unknown_coupon(self, db):
        assert await CouponService.redeem("NOPE", USER_ID, "order-1", db) is False
