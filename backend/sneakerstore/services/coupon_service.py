import logging
from datetime import datetime
from typing import Optional, Tuple

from fastapi import HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from sneakerstore.models.coupon import Coupon

logger = logging.getLogger(__name__)


class CouponService:
    """Service for coupon lookup, validation and redemption."""

    @staticmethod
    async def get_by_code(code: str, db: AsyncIOMotorDatabase) -> Optional[Coupon]:
        doc = await db.coupons.find_one({"code": code.strip().upper()})
        return Coupon(**doc) if doc else None

    @staticmethod
    async def validate_coupon(
        code: str,
        amount: float,
        db: AsyncIOMotorDatabase,
        user_id: Optional[str] = None
    ) -> Tuple[Coupon, float]:
        """
        Validate a coupon against a purchase amount.

        Returns the coupon and the discount it grants on `amount`.
        """
        coupon = await CouponService.get_by_code(code, db)
        if not coupon:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Coupon not found"
            )

        is_valid, error = coupon.check_validity(amount, user_id=user_id)
        if not is_valid:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=error
            )

        return coupon, coupon.calculate_discount(amount)

    @staticmethod
    async def redeem(
        code: str,
        user_id: str,
        order_id: str,
        db: AsyncIOMotorDatabase
    ) -> bool:
        """Record one use of a coupon by a user for a paid order."""
        result = await db.coupons.update_one(
            {"code": code.strip().upper()},
            {
                "$inc": {"uses_count": 1},
                "$push": {"used_by_users": {
                    "user_id": user_id,
                    "order_id": order_id,
                    "used_at": datetime.utcnow()
                }}
            }
        )

        if result.modified_count == 0:
            logger.warning(f"Coupon {code} could not be redeemed for order {order_id}")
            return False

        logger.info(f"Coupon {code} redeemed by user {user_id} for order {order_id}")
        return True
