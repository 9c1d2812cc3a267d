"""
Credit card adapter.

Cards are captured synchronously with a token produced by the gateway's
tokenization widget; the answer is final (approved or rejected) right away.
"""

import logging

from sneakerstore.core.exceptions import PaymentError
from sneakerstore.models.order import PaymentMethod
from sneakerstore.models.payment import CardArtifact, PaymentRequest, PaymentStatus, map_gateway_status
from sneakerstore.services.payment_providers.base import PaymentAdapter

logger = logging.getLogger(__name__)

# Gateway status_detail -> message for the shopper
DECLINE_MESSAGES = {
    "cc_rejected_insufficient_amount": "Insufficient funds",
    "cc_rejected_bad_filled_security_code": "Invalid security code",
    "cc_rejected_bad_filled_date": "Invalid expiration date",
    "cc_rejected_bad_filled_other": "Check the card details",
    "cc_rejected_call_for_authorize": "Authorize the payment with your card issuer",
    "cc_rejected_card_disabled": "Card disabled, contact your card issuer",
    "cc_rejected_duplicated_payment": "Duplicated payment",
    "cc_rejected_high_risk": "Payment declined",
    "cc_rejected_other_reason": "Payment declined by the card issuer"
}


class CreditCardPaymentService(PaymentAdapter):
    """Credit card payment adapter."""

    method = PaymentMethod.CREDIT_CARD

    async def generate(self, request: PaymentRequest) -> CardArtifact:
        """
        Capture a card payment.

        Raises PaymentError when the card is declined, carrying the gateway's
        status_detail; the shopper may retry with another card.
        """
        if not request.card_token:
            raise PaymentError(self.method.value, "Card token is required", retryable=False)

        max_installments = self.config.get("max_installments", 12)
        if request.installments > max_installments:
            raise PaymentError(
                self.method.value,
                f"At most {max_installments} installments are allowed",
                retryable=False
            )

        body = self._base_body(request)
        body["token"] = request.card_token
        body["installments"] = request.installments
        body["payment_method_id"] = request.card_brand or "visa"
        if request.issuer_id:
            body["issuer_id"] = request.issuer_id

        payment = await self.gateway.create_payment(body)
        status = map_gateway_status(payment.get("status"))
        status_detail = payment.get("status_detail")

        if status == PaymentStatus.REJECTED:
            logger.info(f"Card payment {payment.get('id')} for order {request.order_number} declined: {status_detail}")
            raise PaymentError(
                self.method.value,
                DECLINE_MESSAGES.get(status_detail, "Payment declined"),
                retryable=True,
                status_detail=status_detail
            )

        logger.info(f"Card payment {payment['id']} for order {request.order_number}: {status.value}")

        return CardArtifact(
            payment_id=str(payment["id"]),
            status=status,
            amount=request.amount,
            status_detail=status_detail,
            last_four_digits=(payment.get("card") or {}).get("last_four_digits"),
            installments=payment.get("installments", request.installments)
        )
