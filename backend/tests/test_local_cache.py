"""
Tests for the device-local cart cache.
"""
import pytest

from sneakerstore.client.local_cache import LocalCartCache
from sneakerstore.core.exceptions import CartItemNotFoundError, InvalidQuantityError
from sneakerstore.schemas.cart import LocalCartItem


def local_item(cart_item_id="s1-42-black-1", variant_id="v1", quantity=1, **kwargs):
    return LocalCartItem(
        sneaker_id="s1",
        variant_id=variant_id,
        size="42",
        color="black",
        quantity=quantity,
        price=300.0,
        cart_item_id=cart_item_id,
        **kwargs
    )


@pytest.fixture
def cache(tmp_path):
    return LocalCartCache(str(tmp_path / "cart.json"))


class TestLocalCartCache:
    """Test the JSON file cart."""

    def test_missing_file_is_empty_cart(self, cache):
        assert cache.load() == []
        assert cache.is_empty()

    def test_corrupt_file_is_empty_cart(self, cache):
        cache.path.write_text("{not json", encoding="utf-8")
        assert cache.load() == []

    def test_malformed_item_dropped(self, cache):
        cache.path.write_text('{"items": [{"sneaker_id": "s1"}, {"cart_item_id": "ok", "quantity": 2}]}', encoding="utf-8")

        items = cache.load()

        assert [item.cart_item_id for item in items] == ["ok"]

    def test_add_persists(self, cache):
        cache.add(local_item())

        reloaded = LocalCartCache(str(cache.path)).load()
        assert reloaded[0].price == 300.0

    def test_same_key_increments_quantity(self, cache):
        cache.add(local_item(quantity=1))
        items = cache.add(local_item(cart_item_id="s1-42-black-2", quantity=2))

        assert len(items) == 1
        assert items[0].quantity == 3

    def test_update_quantity(self, cache):
        cache.add(local_item())
        items = cache.update_quantity("s1-42-black-1", 4)
        assert items[0].quantity == 4

    def test_update_quantity_zero_rejected(self, cache):
        cache.add(local_item())

        with pytest.raises(InvalidQuantityError):
            cache.update_quantity("s1-42-black-1", 0)
        assert cache.load()[0].quantity == 1

    def test_update_unknown_item(self, cache):
        with pytest.raises(CartItemNotFoundError):
            cache.update_quantity("missing", 2)

    def test_remove_and_clear(self, cache):
        cache.add(local_item())
        cache.add(local_item(cart_item_id="s1-43-white-1", variant_id="v2"))

        assert len(cache.remove("s1-42-black-1")) == 1

        cache.clear()
        assert not cache.path.exists()
        assert cache.is_empty()
