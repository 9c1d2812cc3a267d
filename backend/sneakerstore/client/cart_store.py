"""
Client-side cart store.

One explicit store object holds the shopper's cart state. Anonymous shoppers
mutate the device cache; authenticated shoppers mutate the server cart and the
store mirrors exactly what the server returns.
"""
import logging
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from sneakerstore.client.api_client import StorefrontApiClient
from sneakerstore.client.local_cache import LocalCartCache
from sneakerstore.client.notifications import CartEvent, CartEventType
from sneakerstore.core.exceptions import (
    ApiError,
    InvalidQuantityError,
    StorefrontError,
    TransientIOError,
)
from sneakerstore.models.cart import build_cart_item_id
from sneakerstore.schemas.cart import LocalCartItem
from sneakerstore.services.cart_validator import resolve_price, resolve_variant_ref, validate_quantity

logger = logging.getLogger(__name__)

Listener = Callable[[CartEvent], None]


class CartState(BaseModel):
    items: List[LocalCartItem] = Field(default_factory=list)
    total_price: float = 0.0
    discount: float = 0.0
    final_price: float = 0.0
    applied_coupon_code: Optional[str] = None
    loading: bool = False
    error: Optional[str] = None
    authenticated: bool = False

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)


def local_item_from_payload(payload: Dict[str, Any]) -> LocalCartItem:
    """Normalize an add-to-cart payload into the device cache shape."""
    validate_quantity(payload.get("quantity", 1))
    resolve_variant_ref(payload.get("variant_id"), payload.get("sneaker_id"), payload.get("size"), payload.get("color"))

    data = dict(payload)
    data["price"] = resolve_price(payload.get("price"), payload.get("original_price"))
    if not data.get("cart_item_id"):
        data["cart_item_id"] = build_cart_item_id(payload.get("sneaker_id"), payload.get("size"), payload.get("color"))
    return LocalCartItem(**data)


class CartStore:
    """Cart state container with subscribable notifications."""

    def __init__(self, cache: LocalCartCache, api: StorefrontApiClient, authenticated: bool = False):
        self.cache = cache
        self.api = api
        self.state = CartState(authenticated=authenticated)
        self._listeners: List[Listener] = []

    # ===============================================
    # SUBSCRIPTIONS
    # ===============================================

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener. Returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event_type: CartEventType, message: str = "", level: str = "info", **payload) -> CartEvent:
        event = CartEvent(type=event_type, message=message, level=level, payload=payload)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                # A broken listener must not break the cart
                logger.error(f"Cart listener failed on {event_type.value}: {e}")
        return event

    # ===============================================
    # STATE
    # ===============================================

    def _set_local_items(self, items: List[LocalCartItem]) -> None:
        total = round(sum(resolve_price(item.price) * item.quantity for item in items), 2)
        self.state.items = items
        self.state.total_price = total
        self.state.discount = 0.0
        self.state.final_price = total
        self.state.applied_coupon_code = None

    def apply_server_cart(self, cart: Dict[str, Any]) -> None:
        """Replace the state with the cart the server returned."""
        self.state.items = [LocalCartItem(**item) for item in cart.get("items", [])]
        self.state.total_price = cart.get("total_price", 0.0)
        self.state.discount = cart.get("discount", 0.0)
        self.state.final_price = cart.get("final_price", 0.0)
        self.state.applied_coupon_code = cart.get("applied_coupon_code")

    def set_authenticated(self, authenticated: bool) -> None:
        self.state.authenticated = authenticated

    def reset(self) -> None:
        """Empty the in-memory state without touching the server or the device cache."""
        self.state = CartState(authenticated=False)
        self.emit(CartEventType.RESET)

    def _fail(self, action: str, error: StorefrontError) -> None:
        # Recoverable: items already in memory are kept
        logger.warning(f"Cart {action} failed: {error.message}")
        self.state.error = error.message
        self.emit(CartEventType.ERROR, message=error.message, level="error", action=action)

    async def _remote(self, action: str, call) -> bool:
        self.state.loading = True
        self.state.error = None
        try:
            cart = await call()
        except (ApiError, TransientIOError) as e:
            self._fail(action, e)
            return False
        finally:
            self.state.loading = False

        self.apply_server_cart(cart)
        return True

    # ===============================================
    # OPERATIONS
    # ===============================================

    async def load(self) -> None:
        if not self.state.authenticated:
            self._set_local_items(self.cache.load())
            self.emit(CartEventType.LOADED)
            return

        if await self._remote("load", self.api.get_cart):
            self.emit(CartEventType.LOADED)

    async def add_item(self, payload: Dict[str, Any]) -> bool:
        """
        Add an item to the cart.

        Anonymous shoppers ask the API to validate and normalize the item but
        fall back to the payload as-is when the API cannot be reached. An
        explicit rejection (stock, integrity) blocks the add.
        """
        if self.state.authenticated:
            added = await self._remote("add_item", lambda: self.api.add_item(payload))
            if added:
                self.emit(CartEventType.ITEM_ADDED, message="Item added to cart", level="success")
            return added

        item = local_item_from_payload(payload)
        self.state.loading = True
        self.state.error = None
        try:
            response = await self.api.add_item(payload)
            item = LocalCartItem(**response["cart_item"])
        except ApiError as e:
            self._fail("add_item", e)
            return False
        except (TransientIOError, KeyError, TypeError) as e:
            logger.info(f"Local add without server validation: {e}")
        finally:
            self.state.loading = False

        self._set_local_items(self.cache.add(item))
        self.emit(CartEventType.ITEM_ADDED, message="Item added to cart", level="success")
        return True

    async def update_quantity(self, cart_item_id: str, quantity: int) -> bool:
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise InvalidQuantityError(quantity)

        if self.state.authenticated:
            updated = await self._remote("update_quantity", lambda: self.api.update_item(cart_item_id, quantity))
        else:
            try:
                self._set_local_items(self.cache.update_quantity(cart_item_id, quantity))
                updated = True
            except StorefrontError as e:
                self._fail("update_quantity", e)
                updated = False

        if updated:
            self.emit(CartEventType.QUANTITY_UPDATED, cart_item_id=cart_item_id, quantity=quantity)
        return updated

    async def remove_item(self, cart_item_id: str) -> bool:
        if self.state.authenticated:
            removed = await self._remote("remove_item", lambda: self.api.remove_item(cart_item_id))
        else:
            self._set_local_items(self.cache.remove(cart_item_id))
            removed = True

        if removed:
            self.emit(CartEventType.ITEM_REMOVED, message="Item removed from cart", cart_item_id=cart_item_id)
        return removed

    async def clear(self) -> bool:
        if self.state.authenticated:
            cleared = await self._remote("clear", self.api.clear_cart)
        else:
            self.cache.clear()
            self._set_local_items([])
            cleared = True

        if cleared:
            self.emit(CartEventType.CLEARED)
        return cleared
