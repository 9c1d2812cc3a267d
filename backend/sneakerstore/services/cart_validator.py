"""
Price and stock integrity checks for cart lines.

Every item entering a cart goes through here: its variant identity is
resolved to a single reference type, its price through a fallback chain that
never yields zero, and its quantity against live variant stock.
"""
import logging
from typing import Annotated, List, Literal, Optional, Tuple, Union

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, Field

from sneakerstore.core.config import settings
from sneakerstore.core.exceptions import (
    AvailabilityError,
    CartIntegrityError,
    InvalidQuantityError,
    SneakerNotFoundError,
    VariantNotFoundError,
)
from sneakerstore.models.cart import AvailabilityReport, Cart, CartItem, ItemAvailability
from sneakerstore.models.sneaker import Sneaker, SneakerVariant
from sneakerstore.schemas.cart import AddToCartRequest

logger = logging.getLogger(__name__)


class CanonicalVariantRef(BaseModel):
    """Reference to a variant by its catalog id."""
    kind: Literal["canonical"] = "canonical"
    variant_id: str


class CompositeVariantKey(BaseModel):
    """
    Compatibility shim for callers that only know (sneaker, size, color).
    Callers should migrate to canonical variant ids.
    """
    kind: Literal["composite"] = "composite"
    sneaker_id: str
    size: str
    color: str

    @property
    def legacy_id(self) -> str:
        return f"{self.sneaker_id}-{self.size}-{self.color}"


VariantRef = Annotated[Union[CanonicalVariantRef, CompositeVariantKey], Field(discriminator="kind")]


def resolve_variant_ref(
    variant_id: Optional[str],
    sneaker_id: Optional[str] = None,
    size: Optional[str] = None,
    color: Optional[str] = None
) -> Union[CanonicalVariantRef, CompositeVariantKey]:
    """
    Resolve the identity of a cart line.

    A valid catalog id always wins. Otherwise (sneaker, size, color) is
    accepted as a composite key. Anything else is an integrity error.
    """
    if variant_id and ObjectId.is_valid(str(variant_id)):
        return CanonicalVariantRef(variant_id=str(variant_id))

    if sneaker_id and size not in (None, "") and color:
        logger.warning(
            f"Resolving variant by composite key {sneaker_id}-{size}-{color} "
            f"(variant_id={variant_id!r}); callers should send canonical variant ids"
        )
        return CompositeVariantKey(sneaker_id=str(sneaker_id), size=str(size), color=str(color))

    raise CartIntegrityError(
        "A cart item needs a variant id or a sneaker id with size and color",
        field="variant_id"
    )


def resolve_price(*candidates) -> float:
    """
    Walk the price fallback chain and return the first positive price.

    Falls back to the MIN_ITEM_PRICE floor so a line is never priced at zero,
    whatever a malformed request sends.
    """
    for candidate in candidates:
        try:
            value = float(candidate)
        except (TypeError, ValueError):
            continue
        if value > 0:
            return round(value, 2)

    logger.warning(f"No usable price among {candidates!r}, using floor {settings.MIN_ITEM_PRICE}")
    return settings.MIN_ITEM_PRICE


def validate_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise InvalidQuantityError(quantity)
    return quantity


def validate_item_payload(payload: AddToCartRequest) -> Union[CanonicalVariantRef, CompositeVariantKey]:
    """Reject payloads without a usable identity before anything is persisted."""
    if not payload.sneaker_id:
        raise CartIntegrityError("sneaker_id is required", field="sneaker_id")
    if not ObjectId.is_valid(payload.sneaker_id):
        raise CartIntegrityError(f"Invalid sneaker id: {payload.sneaker_id}", field="sneaker_id")

    validate_quantity(payload.quantity)
    return resolve_variant_ref(payload.variant_id, payload.sneaker_id, payload.size, payload.color)


def _sneaker_id_candidates(sneaker_id: str) -> List:
    # Variant documents may reference the sneaker by ObjectId or by its string form
    candidates: List = [sneaker_id]
    if ObjectId.is_valid(sneaker_id):
        candidates.append(ObjectId(sneaker_id))
    return candidates


async def find_sneaker(sneaker_id: str, db: AsyncIOMotorDatabase) -> Optional[Sneaker]:
    if not ObjectId.is_valid(sneaker_id):
        return None
    doc = await db.sneakers.find_one({"_id": ObjectId(sneaker_id)})
    return Sneaker(**doc) if doc else None


async def find_variant(
    ref: Union[CanonicalVariantRef, CompositeVariantKey],
    db: AsyncIOMotorDatabase
) -> Optional[SneakerVariant]:
    """Load the variant a reference points to."""
    if isinstance(ref, CanonicalVariantRef):
        doc = await db.sneaker_variants.find_one({"_id": ObjectId(ref.variant_id)})
    else:
        doc = await db.sneaker_variants.find_one({
            "sneaker_id": {"$in": _sneaker_id_candidates(ref.sneaker_id)},
            "size": ref.size,
            "color": ref.color
        })
    return SneakerVariant(**doc) if doc else None


def ensure_in_stock(item: CartItem, variant: SneakerVariant, quantity: int) -> None:
    """Raise AvailabilityError when `quantity` units of the variant are not in stock."""
    if variant.stock >= quantity:
        return

    report = AvailabilityReport(items=[
        ItemAvailability(
            cart_item_id=item.cart_item_id,
            sneaker_id=item.sneaker_id,
            variant_id=item.variant_id,
            name=item.name,
            size=item.size,
            color=item.color,
            requested=quantity,
            available=variant.stock,
            is_available=False
        )
    ])
    raise AvailabilityError(report)


async def build_cart_item(
    payload: AddToCartRequest,
    db: AsyncIOMotorDatabase
) -> Tuple[CartItem, SneakerVariant]:
    """
    Turn an add-to-cart payload into a clean CartItem.

    The returned item always carries the canonical variant id, even when the
    caller identified it by composite key.
    """
    ref = validate_item_payload(payload)

    sneaker = await find_sneaker(payload.sneaker_id, db)
    if not sneaker:
        raise SneakerNotFoundError(payload.sneaker_id)

    variant = await find_variant(ref, db)
    if not variant:
        raise VariantNotFoundError(ref.variant_id if isinstance(ref, CanonicalVariantRef) else ref.legacy_id)

    if variant.sneaker_id != sneaker.id:
        raise CartIntegrityError(
            f"Variant {variant.id} does not belong to sneaker {sneaker.id}",
            field="variant_id"
        )

    price = resolve_price(payload.price, variant.price, sneaker.final_price, sneaker.price)

    item = CartItem(
        sneaker_id=sneaker.id,
        variant_id=variant.id,
        size=payload.size or variant.size,
        color=payload.color or variant.color,
        quantity=payload.quantity,
        price=price,
        name=payload.name or sneaker.name,
        brand=payload.brand or sneaker.brand,
        image=payload.image or sneaker.primary_image,
        slug=payload.slug or sneaker.slug,
        cart_item_id=payload.cart_item_id or ""
    )
    return item, variant


async def check_availability(cart: Cart, db: AsyncIOMotorDatabase) -> AvailabilityReport:
    """
    Validate every cart line against live variant stock.

    This is the only check checkout trusts before letting an order through.
    """
    variant_ids = [ObjectId(item.variant_id) for item in cart.items if ObjectId.is_valid(item.variant_id)]

    stock_by_variant = {}
    if variant_ids:
        cursor = db.sneaker_variants.find({"_id": {"$in": variant_ids}})
        async for doc in cursor:
            stock_by_variant[str(doc["_id"])] = doc.get("stock", 0)

    report = cart.check_availability(stock_by_variant)
    if not report.is_available:
        logger.info(
            f"Availability check failed for cart {cart.id}: "
            f"{[line.cart_item_id for line in report.unavailable_items]}"
        )
    return report
