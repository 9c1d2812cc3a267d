"""
Tests for payment orchestration: artifacts, status checks and webhooks.
"""
from datetime import datetime, timedelta
from unittest.mock import patch

import pytest
from bson import ObjectId

from sneakerstore.models.payment import Payer, PaymentStatus
from sneakerstore.schemas.payment import PaymentCreateRequest
from sneakerstore.services.payment_providers.pix_service import PixPaymentService
from sneakerstore.services.payment_providers.simulation_service import SimulationGateway
from sneakerstore.services.payment_service import PaymentService

from conftest import USER_ID


@pytest.fixture
def payment_service():
    return PaymentService(gateway=SimulationGateway())


@pytest.fixture
def pending_order(db):
    """A pending PIX order created from the user's active cart, with a coupon."""
    def _create(payment_method="pix", **fields):
        cart_id = ObjectId()
        db.carts.documents.append({"_id": cart_id, "user_id": USER_ID, "status": "active", "items": []})
        order = {
            "_id": ObjectId(),
            "order_number": "P123456789",
            "user_id": USER_ID,
            "cart_id": str(cart_id),
            "order_items": [{"sneaker_id": "s1", "variant_id": "v1", "name": "Air Runner",
                             "size": "42", "color": "black", "quantity": 1, "price": 300.0}],
            "status": "pending",
            "is_paid": False,
            "payment_method": payment_method,
            "shipping_price": 0.0,
            "discount_amount": 15.0,
            "total_price": 285.0,
            "coupon_applied": None,
            "status_history": [],
            "created_at": datetime.utcnow()
        }
        order.update(fields)
        db.orders.documents.append(order)
        return order
    return _create


def pay_request(order, **kwargs):
    return PaymentCreateRequest(
        order_id=str(order["_id"]),
        payer=Payer(email="ana@example.com", identification_number="12345678909"),
        **kwargs
    )


class TestCreatePayment:
    """Test artifact generation per payment method."""

    @pytest.mark.asyncio
    async def test_pix_keeps_order_pending(self, db, payment_service, pending_order):
        order = pending_order()

        result = await payment_service.create_payment(USER_ID, pay_request(order), db)

        assert result["success"] is True
        assert result["status"] == "pending"
        assert result["payment"].qr_code_base64.startswith("data:image/png;base64,")
        stored = db.orders.documents[0]
        assert stored["status"] == "pending"
        assert stored["payment_result"]["id"] == result["payment"].payment_id
        assert stored["payment_expires_at"] is not None
        assert db.carts.documents[0]["status"] == "active"

    @pytest.mark.asyncio
    async def test_approved_card_marks_order_paid(self, db, payment_service, pending_order):
        order = pending_order(payment_method="credit_card", total_price=300.0)

        result = await payment_service.create_payment(USER_ID, pay_request(order, card_token="tok_4242"), db)

        assert result["success"] is True
        assert result["status"] == "processing"
        stored = db.orders.documents[0]
        assert stored["is_paid"] is True
        assert stored["status"] == "processing"
        assert db.carts.documents[0]["status"] == "converted"

    @pytest.mark.asyncio
    async def test_declined_card_leaves_order_pending(self, db, payment_service, pending_order):
        order = pending_order(payment_method="credit_card", total_price=300.0)

        result = await payment_service.create_payment(USER_ID, pay_request(order, card_token="tok_declined"), db)

        assert result["success"] is False
        assert result["error_code"] == "PAYMENT_FAILED"
        assert result["retryable"] is True
        assert result["status_detail"] == "cc_rejected_other_reason"
        stored = db.orders.documents[0]
        assert stored["status"] == "pending"
        assert stored["payment_result"]["status"] == "cc_rejected_other_reason"

    @pytest.mark.asyncio
    async def test_card_retry_after_decline(self, db, payment_service, pending_order):
        order = pending_order(payment_method="credit_card", total_price=300.0)
        await payment_service.create_payment(USER_ID, pay_request(order, card_token="tok_declined"), db)

        result = await payment_service.create_payment(USER_ID, pay_request(order, card_token="tok_4242"), db)

        assert result["success"] is True
        assert db.orders.documents[0]["is_paid"] is True

    @pytest.mark.asyncio
    async def test_other_users_order(self, db, payment_service, pending_order):
        order = pending_order(user_id="user-2")

        result = await payment_service.create_payment(USER_ID, pay_request(order), db)

        assert result["error_code"] == "FORBIDDEN"

    @pytest.mark.asyncio
    async def test_paid_order_cannot_be_paid_again(self, db, payment_service, pending_order):
        order = pending_order(status="processing", is_paid=True)

        result = await payment_service.create_payment(USER_ID, pay_request(order), db)

        assert result["error_code"] == "INVALID_STATE"

    @pytest.mark.asyncio
    async def test_order_covered_by_coupon_settles_without_charge(self, db, payment_service, pending_order):
        db.coupons.documents.append({"code": "FREE", "discount_type": "fixed_amount", "discount_value": 1000})
        order = pending_order(discount_amount=300.0, total_price=0.0, coupon_applied="FREE")

        result = await payment_service.create_payment(USER_ID, pay_request(order), db)

        assert result["success"] is True
        assert result["status"] == "processing"
        assert result["payment"] is None
        stored = db.orders.documents[0]
        assert stored["is_paid"] is True
        assert stored["payment_result"]["id"] == "no-charge-P123456789"
        assert db.carts.documents[0]["status"] == "converted"
        assert db.coupons.documents[0]["uses_count"] == 1

    @pytest.mark.asyncio
    async def test_invalid_order_id(self, db, payment_service):
        request = PaymentCreateRequest(order_id="bad", payer=Payer(email="ana@example.com"))

        result = await payment_service.create_payment(USER_ID, request, db)

        assert result["error_code"] == "INVALID_REQUEST"


class TestCheckPaymentStatus:
    """The PIX confirmation path: the shopper asks whether the transfer arrived."""

    @pytest.mark.asyncio
    async def test_pending_then_approved(self, db, payment_service, pending_order):
        db.coupons.documents.append({"code": "WELCOME10", "discount_value": 10, "uses_count": 0})
        order = pending_order(coupon_applied="WELCOME10")
        created = await payment_service.create_payment(USER_ID, pay_request(order), db)
        payment_id = created["payment"].payment_id

        first = await payment_service.check_payment_status(payment_id, USER_ID, db)
        assert first["status"] == "pending"
        assert first["is_paid"] is False

        SimulationGateway.simulate_status(payment_id, "approved")
        second = await payment_service.check_payment_status(payment_id, USER_ID, db)

        assert second["status"] == "approved"
        assert second["order_status"] == "processing"
        assert second["is_paid"] is True
        assert db.carts.documents[0]["status"] == "converted"
        assert db.coupons.documents[0]["uses_count"] == 1

    @pytest.mark.asyncio
    async def test_pending_check_goes_through_adapter_verify(self, db, payment_service, pending_order):
        order = pending_order()
        created = await payment_service.create_payment(USER_ID, pay_request(order), db)
        payment_id = created["payment"].payment_id

        with patch.object(PixPaymentService, "verify", return_value=PaymentStatus.PENDING) as mock_verify, \
                patch.object(PixPaymentService, "fetch") as mock_fetch:
            result = await payment_service.check_payment_status(payment_id, USER_ID, db)

        mock_verify.assert_awaited_once_with(payment_id)
        mock_fetch.assert_not_called()
        assert result["status"] == "pending"
        assert db.orders.documents[0]["status"] == "pending"

    @pytest.mark.asyncio
    async def test_paid_order_answers_from_database(self, db, payment_service, pending_order):
        order = pending_order()
        created = await payment_service.create_payment(USER_ID, pay_request(order), db)
        payment_id = created["payment"].payment_id
        SimulationGateway.simulate_status(payment_id, "approved")
        await payment_service.check_payment_status(payment_id, USER_ID, db)

        with patch.object(SimulationGateway, "get_payment") as mock_get:
            result = await payment_service.check_payment_status(payment_id, USER_ID, db)

        mock_get.assert_not_called()
        assert result["is_paid"] is True

    @pytest.mark.asyncio
    async def test_expired_pix_cancels_order(self, db, payment_service, pending_order):
        order = pending_order()
        created = await payment_service.create_payment(USER_ID, pay_request(order), db)
        payment_id = created["payment"].payment_id

        SimulationGateway.simulate_status(payment_id, "expired")
        result = await payment_service.check_payment_status(payment_id, USER_ID, db)

        assert result["order_status"] == "cancelled"
        assert db.carts.documents[0]["status"] == "active"

    @pytest.mark.asyncio
    async def test_unknown_payment(self, db, payment_service):
        result = await payment_service.check_payment_status("999", USER_ID, db)
        assert result["error_code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_other_users_payment(self, db, payment_service, pending_order):
        order = pending_order()
        created = await payment_service.create_payment(USER_ID, pay_request(order), db)

        result = await payment_service.check_payment_status(created["payment"].payment_id, "user-2", db)

        assert result["error_code"] == "FORBIDDEN"


class TestWebhook:
    """Test gateway notifications."""

    async def _boleto_payment(self, db, payment_service, pending_order):
        order = pending_order(payment_method="boleto", payment_expires_at=datetime.utcnow() + timedelta(days=3))
        created = await payment_service.create_payment(USER_ID, pay_request(order), db)
        return created["payment"].payment_id

    @pytest.mark.asyncio
    async def test_approved_boleto(self, db, payment_service, pending_order):
        payment_id = await self._boleto_payment(db, payment_service, pending_order)
        SimulationGateway.simulate_status(payment_id, "approved")

        result = await payment_service.process_webhook(
            {"type": "payment", "data": {"id": payment_id}}, None, db
        )

        assert result["success"] is True
        assert result["message"] == "Webhook processed successfully"
        assert db.orders.documents[0]["status"] == "processing"

    @pytest.mark.asyncio
    async def test_duplicate_notification_is_harmless(self, db, payment_service, pending_order):
        payment_id = await self._boleto_payment(db, payment_service, pending_order)
        SimulationGateway.simulate_status(payment_id, "approved")
        payload = {"type": "payment", "data": {"id": payment_id}}

        await payment_service.process_webhook(payload, None, db)
        result = await payment_service.process_webhook(payload, None, db)

        assert result["success"] is True
        assert len(db.orders.documents[0]["status_history"]) == 1

    @pytest.mark.asyncio
    async def test_rejected_card_notification_keeps_order_pending(self, db, payment_service, pending_order):
        order = pending_order(payment_method="credit_card")
        payment = await SimulationGateway().create_payment({
            "payment_method_id": "visa", "token": "tok_4242", "external_reference": str(order["_id"])
        })
        SimulationGateway.simulate_status(payment["id"], "rejected")

        result = await payment_service.process_webhook({"type": "payment", "data": {"id": payment["id"]}}, None, db)

        assert result["success"] is True
        stored = db.orders.documents[0]
        assert stored["status"] == "pending"
        assert stored["payment_result"]["status"] == "rejected"

    @pytest.mark.asyncio
    async def test_other_notification_types_ignored(self, db, payment_service):
        result = await payment_service.process_webhook({"type": "merchant_order", "data": {"id": "1"}}, None, db)

        assert result["success"] is True
        assert "Ignored" in result["message"]

    @pytest.mark.asyncio
    async def test_invalid_signature(self, db, payment_service):
        with patch.object(SimulationGateway, "verify_webhook_signature", return_value=False):
            result = await payment_service.process_webhook({"type": "payment", "data": {"id": "1"}}, "bad", db)

        assert result["error_code"] == "INVALID_SIGNATURE"

    @pytest.mark.asyncio
    async def test_payment_without_order(self, db, payment_service):
        payment = await SimulationGateway().create_payment({"payment_method_id": "pix", "external_reference": str(ObjectId())})

        result = await payment_service.process_webhook({"type": "payment", "data": {"id": payment["id"]}}, None, db)

        assert result["error_code"] == "NOT_FOUND"
