"""
PIX instant payment adapter.

PIX has no webhook-driven confirmation in the storefront: the shopper pays
from their bank app and then asks for a status check.
"""

import base64
import io
import logging
from datetime import datetime, timedelta

import qrcode

from sneakerstore.core.exceptions import PaymentError
from sneakerstore.models.order import PaymentMethod
from sneakerstore.models.payment import PaymentRequest, PixArtifact, map_gateway_status
from sneakerstore.services.payment_providers.base import PaymentAdapter

logger = logging.getLogger(__name__)

PNG_DATA_URI_PREFIX = "data:image/png;base64,"


class PixPaymentService(PaymentAdapter):
    """PIX payment adapter."""

    method = PaymentMethod.PIX

    @staticmethod
    def generate_qr_image(payload: str) -> str:
        """Render a PIX copy-and-paste payload as a base64 encoded PNG."""
        qr = qrcode.QRCode(
            version=1,
            error_correction=qrcode.constants.ERROR_CORRECT_M,
            box_size=10,
            border=4,
        )
        qr.add_data(payload)
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")

        # Convert to base64
        buffer = io.BytesIO()
        img.save(buffer, format='PNG')
        buffer.seek(0)
        img_base64 = base64.b64encode(buffer.getvalue()).decode()

        return f"{PNG_DATA_URI_PREFIX}{img_base64}"

    async def generate(self, request: PaymentRequest) -> PixArtifact:
        """
        Create a PIX charge.

        Returns:
            Copy-and-paste payload, QR image and expiry
        """
        expires_at = datetime.utcnow() + timedelta(minutes=self.config.get("expiration_minutes", 30))

        body = self._base_body(request)
        body["payment_method_id"] = "pix"
        body["date_of_expiration"] = expires_at.strftime("%Y-%m-%dT%H:%M:%S.000-00:00")

        payment = await self.gateway.create_payment(body)

        transaction_data = (payment.get("point_of_interaction") or {}).get("transaction_data") or {}
        qr_payload = transaction_data.get("qr_code")
        if not qr_payload:
            logger.error(f"PIX payment {payment.get('id')} for order {request.order_id} came back without a QR payload")
            raise PaymentError(self.method.value, "Could not generate the PIX QR code, please try again")

        qr_image = transaction_data.get("qr_code_base64")
        if qr_image and not qr_image.startswith(PNG_DATA_URI_PREFIX):
            qr_image = f"{PNG_DATA_URI_PREFIX}{qr_image}"
        if not qr_image:
            qr_image = self.generate_qr_image(qr_payload)

        logger.info(f"PIX payment {payment['id']} generated for order {request.order_number}, expires {expires_at.isoformat()}")

        return PixArtifact(
            payment_id=str(payment["id"]),
            status=map_gateway_status(payment.get("status")),
            amount=request.amount,
            qr_code=qr_payload,
            qr_code_base64=qr_image,
            expires_at=self._parse_datetime(payment.get("date_of_expiration")) or expires_at
        )
