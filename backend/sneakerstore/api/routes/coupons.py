from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from sneakerstore.api.deps import get_db, get_current_user
from sneakerstore.schemas.coupon import CouponValidateRequest, CouponValidateResponse
from sneakerstore.services.coupon_service import CouponService

router = APIRouter()


@router.post("/code/{code}/validate", response_model=CouponValidateResponse)
async def validate_coupon(
    code: str,
    request: CouponValidateRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Check whether a coupon applies to an amount and how much it takes off.

    Validates activity, validity period, global and per-user usage limits and
    the minimum purchase.
    """
    coupon, discount = await CouponService.validate_coupon(
        code, request.amount, db, user_id=str(current_user["_id"])
    )
    return CouponValidateResponse(
        code=coupon.code,
        description=coupon.description,
        discount_type=coupon.discount_type,
        discount_value=coupon.discount_value,
        discount=discount,
        amount_after_discount=round(request.amount - discount, 2),
        minimum_purchase=coupon.minimum_purchase,
        max_discount_value=coupon.max_discount_value
    )
