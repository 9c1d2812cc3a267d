"""Payment artifacts and statuses.

Artifacts are ephemeral: only the gateway's answer is persisted on the order
as `payment_result`.
"""

from datetime import datetime
from typing import Optional, Union
from enum import Enum
from pydantic import BaseModel, Field

from sneakerstore.models.order import PaymentMethod


class PaymentStatus(str, Enum):
    """Payment status enumeration."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


# Gateway status -> our status
GATEWAY_STATUS_MAP = {
    "approved": PaymentStatus.APPROVED,
    "authorized": PaymentStatus.PENDING,
    "pending": PaymentStatus.PENDING,
    "in_process": PaymentStatus.PENDING,
    "in_mediation": PaymentStatus.PENDING,
    "rejected": PaymentStatus.REJECTED,
    "cancelled": PaymentStatus.CANCELLED,
    "refunded": PaymentStatus.CANCELLED,
    "charged_back": PaymentStatus.CANCELLED,
    "expired": PaymentStatus.EXPIRED
}


def map_gateway_status(status: Optional[str]) -> PaymentStatus:
    """Map a raw gateway status to a PaymentStatus (unknown values stay pending)."""
    return GATEWAY_STATUS_MAP.get((status or "").lower(), PaymentStatus.PENDING)


class Payer(BaseModel):
    email: str
    first_name: str = "Cliente"
    last_name: str = "Cliente"
    identification_type: str = "CPF"
    identification_number: Optional[str] = None


class PaymentRequest(BaseModel):
    """Everything an adapter needs to create a payment for an order."""
    order_id: str
    order_number: str
    amount: float = Field(gt=0)
    payer: Payer
    description: Optional[str] = None
    card_token: Optional[str] = None  # Produced by the gateway's tokenization widget
    card_brand: Optional[str] = None
    installments: int = Field(default=1, ge=1)
    issuer_id: Optional[str] = None


class PixArtifact(BaseModel):
    method: PaymentMethod = PaymentMethod.PIX
    payment_id: str
    status: PaymentStatus
    amount: float
    qr_code: str  # Copy-and-paste payload
    qr_code_base64: str  # PNG data URI
    expires_at: datetime


class BoletoArtifact(BaseModel):
    method: PaymentMethod = PaymentMethod.BOLETO
    payment_id: str
    status: PaymentStatus
    amount: float
    barcode: str
    document_url: str
    due_date: datetime


class CardArtifact(BaseModel):
    method: PaymentMethod = PaymentMethod.CREDIT_CARD
    payment_id: str
    status: PaymentStatus
    amount: float
    status_detail: Optional[str] = None
    last_four_digits: Optional[str] = None
    installments: int = 1


PaymentArtifact = Union[PixArtifact, BoletoArtifact, CardArtifact]
