"""
Simulation gateway for testing payments without real API calls.

This gateway is used in SIMULATION mode for local development and testing.
It answers with Mercado Pago shaped resources and keeps them in memory.
Card outcomes depend on the card token:
- contains "declined": rejected
- contains "timeout": gateway error
- anything else: approved
PIX and Boleto payments stay pending until `simulate_status` settles them.
"""

import logging
import secrets
from datetime import datetime
from typing import Dict, Any

from sneakerstore.config.payment_config import PAYMENT_CONFIG
from sneakerstore.core.exceptions import PaymentError

logger = logging.getLogger(__name__)


class SimulationGateway:
    """In-memory stand-in for the Mercado Pago API."""

    # Shared across instances so a payment created in one request can be verified in the next
    _payments: Dict[str, Dict[str, Any]] = {}

    @staticmethod
    def _new_id() -> str:
        return str(secrets.randbelow(10 ** 10) + 10 ** 10)

    async def create_payment(self, body: Dict[str, Any]) -> Dict[str, Any]:
        payment_method = body.get("payment_method_id", "unknown")
        logger.info(f"[SIMULATION] Creating {payment_method} payment for {body.get('external_reference')}")

        payment_id = self._new_id()
        payment = {
            "id": payment_id,
            "status": "pending",
            "status_detail": "pending_waiting_transfer",
            "payment_method_id": payment_method,
            "transaction_amount": body.get("transaction_amount"),
            "external_reference": body.get("external_reference"),
            "date_of_expiration": body.get("date_of_expiration"),
            "date_last_updated": datetime.utcnow().isoformat(),
            "payer": body.get("payer", {}),
            "installments": body.get("installments", 1)
        }

        if payment_method == "pix":
            # No image here: the PIX adapter renders one from the payload
            payment["point_of_interaction"] = {
                "transaction_data": {
                    "qr_code": f"00020126580014br.gov.bcb.pix0136{secrets.token_hex(16)}5204000053039865802BR6304SIMU",
                    "ticket_url": f"https://sandbox.sneakerstore.local/pix/{payment_id}"
                }
            }
        elif payment_method == PAYMENT_CONFIG["boleto"]["payment_method_id"]:
            payment["barcode"] = {"content": "".join(str(secrets.randbelow(10)) for _ in range(44))}
            payment["transaction_details"] = {
                "external_resource_url": f"https://sandbox.sneakerstore.local/boleto/{payment_id}.pdf"
            }
        else:
            token = body.get("token") or ""
            simulation_config = PAYMENT_CONFIG["simulation"]
            if simulation_config["gateway_error_pattern"] in token:
                logger.info(f"[SIMULATION] Gateway error pattern detected for token {token}")
                raise PaymentError("credit_card", "Payment gateway timeout (simulated)")

            if simulation_config["card_decline_pattern"] in token:
                payment["status"] = "rejected"
                payment["status_detail"] = "cc_rejected_other_reason"
            else:
                payment["status"] = "approved"
                payment["status_detail"] = "accredited"
            payment["card"] = {"last_four_digits": token[-4:] if token[-4:].isdigit() else "0000"}

        SimulationGateway._payments[payment_id] = payment
        logger.info(f"[SIMULATION] Payment {payment_id} created with status {payment['status']}")
        return dict(payment)

    async def get_payment(self, payment_id: str) -> Dict[str, Any]:
        logger.info(f"[SIMULATION] Checking payment status for {payment_id}")
        payment = SimulationGateway._payments.get(str(payment_id))
        if not payment:
            raise PaymentError("unknown", f"Payment not found: {payment_id}", retryable=False)
        return dict(payment)

    async def create_preference(self, body: Dict[str, Any]) -> Dict[str, Any]:
        preference_id = f"SIM-PREF-{secrets.token_hex(6).upper()}"
        logger.info(f"[SIMULATION] Creating preference {preference_id} for {body.get('external_reference')}")
        return {
            "id": preference_id,
            "init_point": f"https://sandbox.sneakerstore.local/checkout/{preference_id}",
            "sandbox_init_point": f"https://sandbox.sneakerstore.local/checkout/{preference_id}"
        }

    @staticmethod
    def simulate_status(payment_id: str, status: str) -> Dict[str, Any]:
        """Settle a simulated payment (approved, rejected, cancelled...)."""
        payment = SimulationGateway._payments.get(str(payment_id))
        if not payment:
            raise PaymentError("unknown", f"Payment not found: {payment_id}", retryable=False)

        logger.info(f"[SIMULATION] Payment {payment_id}: {payment['status']} -> {status}")
        payment["status"] = status
        payment["status_detail"] = "accredited" if status == "approved" else status
        payment["date_last_updated"] = datetime.utcnow().isoformat()
        return dict(payment)

    def verify_webhook_signature(self, signature: str, payload: Dict[str, Any]) -> bool:
        """Verify webhook signature (always returns True in simulation)."""
        logger.info("[SIMULATION] Webhook signature verification (auto-accept)")
        return True
