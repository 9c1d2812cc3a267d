"""Payment schemas for API request/response validation."""

from datetime import datetime
from typing import Optional, Union
from pydantic import BaseModel, Field

from sneakerstore.models.payment import BoletoArtifact, CardArtifact, Payer, PixArtifact


class PaymentCreateRequest(BaseModel):
    """Schema for paying an order with the method chosen at checkout."""
    order_id: str
    payer: Payer
    card_token: Optional[str] = None  # Credit card only
    card_brand: Optional[str] = None
    installments: int = Field(default=1, ge=1)
    issuer_id: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "order_id": "65f1c0ffee0000000000dd01",
                "payer": {
                    "email": "cliente@example.com",
                    "first_name": "Ana",
                    "last_name": "Souza",
                    "identification_type": "CPF",
                    "identification_number": "12345678909"
                }
            }
        }


class PaymentCreateResponse(BaseModel):
    order_id: str
    order_number: str
    status: str
    payment: Optional[Union[PixArtifact, BoletoArtifact, CardArtifact]] = None


class PreferenceRequest(BaseModel):
    order_id: str


class PreferenceResponse(BaseModel):
    """Hosted checkout preference."""
    preference_id: str
    init_point: str
    sandbox_init_point: Optional[str] = None


class PaymentStatusResponse(BaseModel):
    """Schema for payment status response."""
    payment_id: str
    order_id: str
    status: str
    order_status: str
    is_paid: bool
    paid_at: Optional[datetime] = None


class WebhookResponse(BaseModel):
    success: bool
    message: str
    payment_id: Optional[str] = None
    status: Optional[str] = None
