"""
Boleto bank slip adapter.

Boletos settle days later; the gateway reports the outcome through the
payment webhook.
"""

import logging
from datetime import datetime

from sneakerstore.core.exceptions import PaymentError
from sneakerstore.models.order import PaymentMethod
from sneakerstore.models.payment import BoletoArtifact, PaymentRequest, map_gateway_status
from sneakerstore.services.payment_providers.base import PaymentAdapter
from sneakerstore.utils.helpers import add_business_days

logger = logging.getLogger(__name__)


class BoletoPaymentService(PaymentAdapter):
    """Boleto payment adapter."""

    method = PaymentMethod.BOLETO

    async def generate(self, request: PaymentRequest) -> BoletoArtifact:
        if not request.payer.identification_number:
            raise PaymentError(self.method.value, "A CPF is required to issue a boleto", retryable=False)

        due_date = add_business_days(datetime.utcnow(), self.config.get("due_days", 3))

        body = self._base_body(request)
        body["payment_method_id"] = self.config.get("payment_method_id", "bolbradesco")
        body["date_of_expiration"] = due_date.strftime("%Y-%m-%dT23:59:59.000-00:00")

        payment = await self.gateway.create_payment(body)

        barcode = (payment.get("barcode") or {}).get("content")
        document_url = (payment.get("transaction_details") or {}).get("external_resource_url")
        if not barcode or not document_url:
            logger.error(f"Boleto payment {payment.get('id')} for order {request.order_id} is missing its barcode or document")
            raise PaymentError(self.method.value, "Could not issue the boleto, please try again")

        logger.info(f"Boleto {payment['id']} issued for order {request.order_number}, due {due_date.date()}")

        return BoletoArtifact(
            payment_id=str(payment["id"]),
            status=map_gateway_status(payment.get("status")),
            amount=request.amount,
            barcode=barcode,
            document_url=document_url,
            due_date=self._parse_datetime(payment.get("date_of_expiration")) or due_date
        )
