"""
Payment API routes for PIX, Boleto and credit card payments.

Handles payment creation, hosted checkout preferences, status checks and
gateway webhooks.
"""

from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, HTTPException, status, Header
from motor.motor_asyncio import AsyncIOMotorDatabase

from sneakerstore.api.deps import get_db, get_current_user
from sneakerstore.schemas.payment import (
    PaymentCreateRequest,
    PaymentCreateResponse,
    PaymentStatusResponse,
    PreferenceRequest,
    PreferenceResponse,
    WebhookResponse,
)
from sneakerstore.services.payment_service import PaymentService

router = APIRouter()
payment_service = PaymentService()

# Result error codes -> HTTP status
ERROR_STATUS = {
    "INVALID_REQUEST": status.HTTP_400_BAD_REQUEST,
    "INVALID_STATE": status.HTTP_409_CONFLICT,
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "FORBIDDEN": status.HTTP_403_FORBIDDEN,
    "PAYMENT_FAILED": status.HTTP_402_PAYMENT_REQUIRED,
    "INVALID_SIGNATURE": status.HTTP_401_UNAUTHORIZED
}


def _raise_for_result(result: Dict[str, Any], default_message: str) -> None:
    if result.get("success"):
        return

    error_code = result.get("error_code", "INVALID_REQUEST")
    detail: Any = result.get("message", default_message)
    if error_code == "PAYMENT_FAILED":
        detail = {
            "message": detail,
            "method": result.get("method"),
            "retryable": result.get("retryable", True),
            "status_detail": result.get("status_detail")
        }

    raise HTTPException(
        status_code=ERROR_STATUS.get(error_code, status.HTTP_400_BAD_REQUEST),
        detail=detail
    )


@router.post("/payment", response_model=PaymentCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_payment(
    request: PaymentCreateRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Pay an order with the method chosen at checkout.

    **Returns:**
    - PIX: copy-and-paste payload, QR image, expiry
    - Boleto: barcode, document URL, due date
    - Credit card: capture result (a decline answers 402, retry with another card)
    - Orders fully covered by a coupon are settled with no payment artifact
    """
    result = await payment_service.create_payment(str(current_user["_id"]), request, db)
    _raise_for_result(result, "Payment creation failed")

    return PaymentCreateResponse(
        order_id=result["order_id"],
        order_number=result["order_number"],
        status=result["status"],
        payment=result["payment"]
    )


@router.post("/preference", response_model=PreferenceResponse, status_code=status.HTTP_201_CREATED)
async def create_preference(
    request: PreferenceRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """Create a hosted checkout preference for an order."""
    result = await payment_service.create_preference(request.order_id, str(current_user["_id"]), db)
    _raise_for_result(result, "Preference creation failed")

    return PreferenceResponse(
        preference_id=result["preference_id"],
        init_point=result["init_point"],
        sandbox_init_point=result.get("sandbox_init_point")
    )


@router.get("/{payment_id}/status", response_model=PaymentStatusResponse)
async def get_payment_status(
    payment_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Check a payment with the gateway and settle the order if it was paid.

    This is how PIX payments are confirmed.
    """
    result = await payment_service.check_payment_status(payment_id, str(current_user["_id"]), db)
    _raise_for_result(result, "Status check failed")

    return PaymentStatusResponse(**{key: result.get(key) for key in PaymentStatusResponse.model_fields})


@router.post("/webhook", response_model=WebhookResponse)
async def payment_webhook(
    payload: dict,
    x_signature: Optional[str] = Header(None),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Webhook endpoint for gateway payment notifications.

    **Security:**
    - Signature verification is required (x-signature header)

    **Actions:**
    - approved: order moves to processing, cart converted, coupon redeemed
    - rejected/cancelled: PIX and Boleto orders are cancelled
    """
    result = await payment_service.process_webhook(payload=payload, signature=x_signature, db=db)
    _raise_for_result(result, "Webhook processing failed")

    return WebhookResponse(
        success=True,
        message=result.get("message", "Webhook processed successfully"),
        payment_id=result.get("payment_id"),
        status=result.get("status")
    )
