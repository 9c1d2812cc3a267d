"""
Identity transitions for the storefront client.

Anonymous -> Authenticated merges the device cart into the server cart once
per authenticated session. Authenticated -> Anonymous resets the in-memory
cart without any server call.
"""
import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from sneakerstore.client.api_client import StorefrontApiClient
from sneakerstore.client.cart_store import CartStore
from sneakerstore.client.local_cache import LocalCartCache
from sneakerstore.client.notifications import CartEventType
from sneakerstore.core.exceptions import ApiError, CartIntegrityError, CartSyncError, TransientIOError
from sneakerstore.schemas.cart import LocalCartItem
from sneakerstore.services.cart_validator import CanonicalVariantRef, resolve_price, resolve_variant_ref

logger = logging.getLogger(__name__)


class IdentityState(str, Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"


class FailedMerge(BaseModel):
    cart_item_id: str
    reason: str


class MergeResult(BaseModel):
    attempted: int = 0
    merged: List[str] = Field(default_factory=list)
    failed: List[FailedMerge] = Field(default_factory=list)

    @property
    def is_partial(self) -> bool:
        return bool(self.merged) and bool(self.failed)


def clean_payload(item: LocalCartItem) -> Dict[str, Any]:
    """
    Re-derive an add-to-cart payload from a cached item.

    Identity goes through the single variant resolution; the price through the
    fallback chain. Raises CartIntegrityError when no identity can be built.
    """
    ref = resolve_variant_ref(item.variant_id, item.sneaker_id, item.size, item.color)

    payload = {
        "sneaker_id": item.sneaker_id,
        "size": item.size,
        "color": item.color,
        "quantity": item.quantity,
        "price": resolve_price(item.price, item.original_price),
        "name": item.name,
        "brand": item.brand,
        "image": item.image,
        "slug": item.slug
    }
    if isinstance(ref, CanonicalVariantRef):
        payload["variant_id"] = ref.variant_id
    return payload


class CartSyncEngine:
    """Anonymous/Authenticated state machine driving the cart merge."""

    def __init__(self, store: CartStore, cache: LocalCartCache, api: StorefrontApiClient):
        self.store = store
        self.cache = cache
        self.api = api
        self.state = IdentityState.ANONYMOUS
        self.user_id: Optional[str] = None
        self._has_synced = False

    @property
    def has_synced(self) -> bool:
        return self._has_synced

    async def on_login(self, user_id: str, token: Optional[str] = None) -> Optional[MergeResult]:
        """
        Enter the authenticated state.

        The merge runs only on the first login of a session; later calls just
        reload the server cart. Raises CartSyncError when local items existed
        and none could be transferred (the device cart is then kept).
        """
        if token is not None:
            self.api.set_token(token)
        self.state = IdentityState.AUTHENTICATED
        self.user_id = user_id
        self.store.set_authenticated(True)

        result = None
        if not self._has_synced:
            self._has_synced = True
            try:
                result = await self.merge_local_cart()
            finally:
                await self.store.load()
        else:
            await self.store.load()

        return result

    async def merge_local_cart(self) -> MergeResult:
        """
        Transfer every cached item to the server cart, one add at a time.

        At least one success makes the server cart authoritative: the device
        cart is cleared and items that failed are dropped and reported.
        """
        items = self.cache.load()
        result = MergeResult(attempted=len(items))
        if not items:
            return result

        for item in items:
            try:
                payload = clean_payload(item)
                await self.api.add_item(payload)
            except (CartIntegrityError, ApiError, TransientIOError) as e:
                logger.warning(f"Could not merge local item {item.cart_item_id}: {e.message}")
                result.failed.append(FailedMerge(cart_item_id=item.cart_item_id, reason=e.message))
                continue
            result.merged.append(item.cart_item_id)

        if not result.merged:
            self.store.emit(
                CartEventType.SYNC_FAILED,
                message="We could not sync your cart. Your items are saved on this device.",
                level="error",
                failed=[failure.model_dump() for failure in result.failed]
            )
            raise CartSyncError(
                f"None of the {result.attempted} local cart items could be merged",
                failed_items=result.failed
            )

        self.cache.clear()
        logger.info(f"Merged {len(result.merged)}/{result.attempted} local cart items for user {self.user_id}")

        if result.failed:
            self.store.emit(
                CartEventType.MERGE_PARTIAL,
                message=f"{len(result.failed)} item(s) could not be added to your cart",
                level="warning",
                merged=result.merged,
                failed=[failure.model_dump() for failure in result.failed]
            )
        else:
            self.store.emit(CartEventType.MERGED, message="Cart synced", level="success", merged=result.merged)

        return result

    async def on_logout(self) -> None:
        """Leave the authenticated state. The next login merges again."""
        self.state = IdentityState.ANONYMOUS
        self.user_id = None
        self._has_synced = False
        self.api.set_token(None)
        self.store.reset()
