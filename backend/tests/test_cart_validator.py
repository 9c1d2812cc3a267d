"""
Tests for price and stock integrity checks.
"""
import logging

import pytest
from bson import ObjectId

from sneakerstore.core.exceptions import (
    AvailabilityError,
    CartIntegrityError,
    InvalidQuantityError,
    SneakerNotFoundError,
    VariantNotFoundError,
)
from sneakerstore.models.cart import Cart, CartItem
from sneakerstore.models.sneaker import SneakerVariant
from sneakerstore.schemas.cart import AddToCartRequest
from sneakerstore.services import cart_validator
from sneakerstore.services.cart_validator import CanonicalVariantRef, CompositeVariantKey


class TestResolvePrice:
    """Test the price fallback chain."""

    def test_explicit_price_wins(self):
        assert cart_validator.resolve_price(250.0, 300.0, 299.9) == 250.0

    def test_zero_and_missing_are_skipped(self):
        assert cart_validator.resolve_price(0, None, 299.9, 349.9) == 299.9

    def test_non_numeric_skipped(self):
        assert cart_validator.resolve_price("abc", -10, "120.5") == 120.5

    def test_floor_when_nothing_usable(self):
        price = cart_validator.resolve_price(None, 0, None)
        assert price == 1.0
        assert price > 0


class TestResolveVariantRef:
    """Variant identity resolves to exactly one reference type."""

    def test_canonical(self):
        variant_id = str(ObjectId())
        ref = cart_validator.resolve_variant_ref(variant_id, "s1", "42", "black")
        assert isinstance(ref, CanonicalVariantRef)
        assert ref.variant_id == variant_id

    def test_composite_when_variant_id_is_legacy(self, caplog):
        with caplog.at_level(logging.WARNING):
            ref = cart_validator.resolve_variant_ref("s1-42-black", "s1", 42, "black")

        assert isinstance(ref, CompositeVariantKey)
        assert ref.size == "42"
        assert ref.legacy_id == "s1-42-black"
        assert "composite key" in caplog.text

    def test_no_identity(self):
        with pytest.raises(CartIntegrityError):
            cart_validator.resolve_variant_ref(None, "s1", None, "black")


class TestValidateItemPayload:
    """Malformed payloads are rejected before anything is stored."""

    def test_missing_sneaker_id(self):
        with pytest.raises(CartIntegrityError) as exc_info:
            cart_validator.validate_item_payload(AddToCartRequest(variant_id=str(ObjectId())))
        assert exc_info.value.field == "sneaker_id"

    def test_quantity_below_one(self):
        payload = AddToCartRequest(sneaker_id=str(ObjectId()), variant_id=str(ObjectId()), quantity=0)
        with pytest.raises(InvalidQuantityError):
            cart_validator.validate_item_payload(payload)


class TestBuildCartItem:
    """Test turning payloads into cart items against the catalog."""

    @pytest.mark.asyncio
    async def test_canonical_variant_uses_variant_price(self, db, catalog):
        payload = AddToCartRequest(sneaker_id=catalog.sneaker_id, variant_id=catalog.black_42, quantity=2)

        item, variant = await cart_validator.build_cart_item(payload, db)

        assert item.variant_id == catalog.black_42
        assert item.price == 300.0
        assert item.size == "42"
        assert item.color == "black"
        assert item.name == "Air Runner"
        assert item.image == "https://cdn.example.com/air-runner.png"
        assert variant.stock == 5

    @pytest.mark.asyncio
    async def test_composite_key_resolves_canonical_id(self, db, catalog):
        payload = AddToCartRequest(sneaker_id=catalog.sneaker_id, size=43, color="white")

        item, _ = await cart_validator.build_cart_item(payload, db)

        assert item.variant_id == catalog.white_43
        # Variant has no price: sneaker promotional price applies
        assert item.price == 299.9

    @pytest.mark.asyncio
    async def test_unknown_sneaker(self, db, catalog):
        payload = AddToCartRequest(sneaker_id=str(ObjectId()), variant_id=catalog.black_42)
        with pytest.raises(SneakerNotFoundError):
            await cart_validator.build_cart_item(payload, db)

    @pytest.mark.asyncio
    async def test_unknown_variant(self, db, catalog):
        payload = AddToCartRequest(sneaker_id=catalog.sneaker_id, variant_id=str(ObjectId()))
        with pytest.raises(VariantNotFoundError):
            await cart_validator.build_cart_item(payload, db)

    @pytest.mark.asyncio
    async def test_variant_of_another_sneaker(self, db, catalog):
        other_id = ObjectId()
        db.sneakers.documents.append({"_id": other_id, "name": "Court Classic", "price": 199.9})

        payload = AddToCartRequest(sneaker_id=str(other_id), variant_id=catalog.black_42)
        with pytest.raises(CartIntegrityError):
            await cart_validator.build_cart_item(payload, db)


class TestStock:
    """Test live stock checks."""

    def test_ensure_in_stock_raises_with_report(self):
        item = CartItem(sneaker_id="s1", variant_id="v1", size="42", color="black", quantity=1, price=100.0)
        variant = SneakerVariant(_id="v1", sneaker_id="s1", size="42", color="black", stock=2)

        with pytest.raises(AvailabilityError) as exc_info:
            cart_validator.ensure_in_stock(item, variant, 3)

        line = exc_info.value.report.unavailable_items[0]
        assert line.requested == 3
        assert line.available == 2

    @pytest.mark.asyncio
    async def test_check_availability_reads_live_stock(self, db, catalog):
        cart = Cart(user_id="user-1")
        cart.add_item(CartItem(
            sneaker_id=catalog.sneaker_id, variant_id=catalog.black_42,
            size="42", color="black", quantity=2, price=300.0
        ))
        cart.add_item(CartItem(
            sneaker_id=catalog.sneaker_id, variant_id=catalog.white_43,
            size="43", color="white", quantity=2, price=299.9
        ))

        report = await cart_validator.check_availability(cart, db)

        assert report.is_available is False
        assert [line.variant_id for line in report.unavailable_items] == [catalog.white_43]
        # Stock is never touched by a check
        assert db.sneaker_variants.documents[1]["stock"] == 1
