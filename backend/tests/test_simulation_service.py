"""
Tests for the simulation gateway.
"""

import pytest

from sneakerstore.core.exceptions import PaymentError
from sneakerstore.services.payment_providers.simulation_service import SimulationGateway


def card_body(token):
    return {
        "payment_method_id": "visa",
        "transaction_amount": 300.0,
        "external_reference": "order-1",
        "token": token
    }


class TestSimulationGatewayCards:
    """Card outcomes depend on the card token."""

    @pytest.mark.asyncio
    async def test_card_approved(self):
        payment = await SimulationGateway().create_payment(card_body("tok_4242"))

        assert payment["status"] == "approved"
        assert payment["status_detail"] == "accredited"
        assert payment["card"]["last_four_digits"] == "4242"

    @pytest.mark.asyncio
    async def test_card_declined(self):
        payment = await SimulationGateway().create_payment(card_body("tok_declined"))

        assert payment["status"] == "rejected"
        assert payment["status_detail"] == "cc_rejected_other_reason"
        assert payment["card"]["last_four_digits"] == "0000"

    @pytest.mark.asyncio
    async def test_gateway_timeout(self):
        with pytest.raises(PaymentError) as exc_info:
            await SimulationGateway().create_payment(card_body("tok_timeout"))

        assert exc_info.value.retryable is True
        assert SimulationGateway._payments == {}


class TestSimulationGatewayDelayedMethods:
    """PIX and Boleto stay pending until settled."""

    @pytest.mark.asyncio
    async def test_pix_payload_without_image(self):
        payment = await SimulationGateway().create_payment({"payment_method_id": "pix", "external_reference": "order-1"})

        transaction_data = payment["point_of_interaction"]["transaction_data"]
        assert payment["status"] == "pending"
        assert transaction_data["qr_code"].startswith("000201")
        assert "qr_code_base64" not in transaction_data

    @pytest.mark.asyncio
    async def test_boleto_barcode(self):
        payment = await SimulationGateway().create_payment({"payment_method_id": "bolbradesco"})

        assert len(payment["barcode"]["content"]) == 44
        assert payment["transaction_details"]["external_resource_url"].endswith(".pdf")

    @pytest.mark.asyncio
    async def test_simulate_status_is_visible_to_other_instances(self):
        payment = await SimulationGateway().create_payment({"payment_method_id": "pix"})

        SimulationGateway.simulate_status(payment["id"], "approved")

        fetched = await SimulationGateway().get_payment(payment["id"])
        assert fetched["status"] == "approved"

    @pytest.mark.asyncio
    async def test_unknown_payment(self):
        with pytest.raises(PaymentError) as exc_info:
            await SimulationGateway().get_payment("123")
        assert exc_info.value.retryable is False

    def test_webhook_signature_always_accepted(self):
        assert SimulationGateway().verify_webhook_signature(None, {}) is True


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
