"""
Common contract for payment method adapters.

Each adapter turns a PaymentRequest into a method-specific artifact and can
later ask the gateway whether the payment settled. Adapters never retry on
their own; a PaymentError tells the caller whether retrying makes sense.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Any, Optional

from sneakerstore.config import payment_config
from sneakerstore.models.order import PaymentMethod
from sneakerstore.models.payment import PaymentArtifact, PaymentRequest, PaymentStatus, map_gateway_status
from sneakerstore.services.payment_providers.mercado_pago_gateway import MercadoPagoGateway
from sneakerstore.services.payment_providers.simulation_service import SimulationGateway

logger = logging.getLogger(__name__)


def get_gateway():
    """Gateway for the current PAYMENT_MODE."""
    if payment_config.PAYMENT_MODE == "SIMULATION":
        return SimulationGateway()
    return MercadoPagoGateway()


class PaymentAdapter(ABC):
    """Base class for PIX, Boleto and credit card adapters."""

    method: PaymentMethod

    def __init__(self, gateway=None):
        self.gateway = gateway or get_gateway()
        self.config = payment_config.get_method_config(self.method.value)

    def _base_body(self, request: PaymentRequest) -> Dict[str, Any]:
        return {
            "transaction_amount": request.amount,
            "description": request.description or f"Pedido {request.order_number}",
            "external_reference": request.order_id,
            "notification_url": payment_config.PAYMENT_CONFIG["mercado_pago"]["notification_url"],
            "statement_descriptor": payment_config.PAYMENT_CONFIG["statement_descriptor"],
            "payer": {
                "email": request.payer.email,
                "first_name": request.payer.first_name,
                "last_name": request.payer.last_name,
                "identification": {
                    "type": request.payer.identification_type,
                    "number": request.payer.identification_number
                }
            }
        }

    @abstractmethod
    async def generate(self, request: PaymentRequest) -> PaymentArtifact:
        """Create the payment at the gateway and return its artifact."""

    async def verify(self, payment_id: str) -> PaymentStatus:
        """Ask the gateway for the payment's current status."""
        payment = await self.fetch(payment_id)
        status = map_gateway_status(payment.get("status"))
        logger.info(f"{self.method.value} payment {payment_id}: gateway={payment.get('status')} -> {status.value}")
        return status

    async def fetch(self, payment_id: str) -> Dict[str, Any]:
        return await self.gateway.get_payment(payment_id)

    @staticmethod
    def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
        if not value:
            return None
        # Gateway timestamps carry an offset, e.g. 2024-03-10T12:00:00.000-03:00
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        if parsed.tzinfo:
            parsed = parsed.replace(tzinfo=None) - parsed.utcoffset()
        return parsed
