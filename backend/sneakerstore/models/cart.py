from datetime import datetime
from enum import Enum
from typing import List, Mapping, Optional, Tuple

from pydantic import BaseModel, Field, computed_field, field_validator, model_validator

from sneakerstore.core.exceptions import CartItemNotFoundError, InvalidQuantityError
from sneakerstore.utils.helpers import epoch_millis, object_id_to_str


class CartStatus(str, Enum):
    """Cart status enumeration."""
    ACTIVE = "active"
    ABANDONED = "abandoned"
    CONVERTED = "converted"  # Order paid, cart closed


CartItemKey = Tuple[str, str, str, str]


def build_cart_item_id(sneaker_id: str, size: str, color: str) -> str:
    """Stable external identifier for a cart line."""
    return f"{sneaker_id}-{size}-{color}-{epoch_millis()}"


class CartItem(BaseModel):
    """Line item in a shopping cart, keyed by (sneaker, variant, size, color)."""
    sneaker_id: str
    variant_id: str
    size: str
    color: str
    quantity: int = Field(ge=1)
    price: float = Field(gt=0)
    price_at_time_of_addition: Optional[float] = None  # Snapshot, set once when the line is created
    discount: float = Field(default=0.0, ge=0)
    is_available: bool = True
    out_of_stock_notified: bool = False
    name: str = ""
    brand: str = ""
    image: Optional[str] = None
    slug: str = ""
    cart_item_id: str = ""
    added_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator("sneaker_id", "variant_id", "size", "color", mode="before")
    @classmethod
    def _stringify(cls, value):
        # Sizes arrive as numbers from some callers, ids as ObjectId from MongoDB
        if value is None:
            return value
        return str(object_id_to_str(value))

    @model_validator(mode="after")
    def _fill_defaults(self):
        if self.price_at_time_of_addition is None:
            self.price_at_time_of_addition = self.price
        if not self.cart_item_id:
            self.cart_item_id = build_cart_item_id(self.sneaker_id, self.size, self.color)
        return self

    @computed_field
    @property
    def final_price(self) -> float:
        return round(max(0.0, self.price - self.discount), 2)

    @property
    def key(self) -> CartItemKey:
        return (self.sneaker_id, self.variant_id, self.size, self.color)

    @property
    def line_total(self) -> float:
        return round(self.price * self.quantity, 2)


class ItemAvailability(BaseModel):
    """Availability of a single cart line against live variant stock."""
    cart_item_id: str
    sneaker_id: str
    variant_id: str
    name: str = ""
    size: str
    color: str
    requested: int
    available: int
    is_available: bool


class AvailabilityReport(BaseModel):
    """Per-item availability report produced by a stock check."""
    items: List[ItemAvailability] = Field(default_factory=list)
    checked_at: datetime = Field(default_factory=datetime.utcnow)

    @computed_field
    @property
    def is_available(self) -> bool:
        return all(line.is_available for line in self.items)

    @property
    def unavailable_items(self) -> List[ItemAvailability]:
        return [line for line in self.items if not line.is_available]


class Cart(BaseModel):
    """
    Shopping cart model for MongoDB.

    A cart belongs to exactly one identity: an authenticated `user_id` or a
    device-local `anonymous_id`. `total_price` and `final_price` are derived
    from the current items on every read and cannot be assigned.
    """
    id: Optional[str] = Field(None, alias="_id")
    user_id: Optional[str] = None
    anonymous_id: Optional[str] = None
    items: List[CartItem] = Field(default_factory=list)
    discount: float = Field(default=0.0, ge=0)
    applied_coupon_code: Optional[str] = None
    status: CartStatus = Field(default=CartStatus.ACTIVE, validate_default=True)
    converted_order_id: Optional[str] = None
    last_activity: datetime = Field(default_factory=datetime.utcnow)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        populate_by_name = True
        use_enum_values = True
        json_schema_extra = {
            "example": {
                "user_id": "user123",
                "items": [
                    {
                        "sneaker_id": "65f1c0ffee0000000000aa01",
                        "variant_id": "65f1c0ffee0000000000bb01",
                        "size": "42",
                        "color": "black",
                        "quantity": 1,
                        "price": 599.9,
                        "price_at_time_of_addition": 599.9,
                        "name": "Air Runner",
                        "brand": "Nike",
                        "slug": "air-runner",
                        "cart_item_id": "65f1c0ffee0000000000aa01-42-black-1710000000000"
                    }
                ],
                "discount": 0,
                "status": "active"
            }
        }

    @field_validator("id", "user_id", mode="before")
    @classmethod
    def _stringify_ids(cls, value):
        return object_id_to_str(value)

    @model_validator(mode="after")
    def _single_owner(self):
        if bool(self.user_id) == bool(self.anonymous_id):
            raise ValueError("A cart must be owned by exactly one of user_id or anonymous_id")
        return self

    @computed_field
    @property
    def total_price(self) -> float:
        return round(sum(item.price * item.quantity for item in self.items), 2)

    @computed_field
    @property
    def final_price(self) -> float:
        return round(max(0.0, self.total_price - self.discount), 2)

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def touch(self) -> None:
        now = datetime.utcnow()
        self.last_activity = now
        self.updated_at = now

    def find_item(self, key: CartItemKey) -> Optional[CartItem]:
        for item in self.items:
            if item.key == key:
                return item
        return None

    def get_item(self, cart_item_id: str) -> Optional[CartItem]:
        for item in self.items:
            if item.cart_item_id == cart_item_id:
                return item
        return None

    def add_item(self, item: CartItem) -> CartItem:
        """Add a line, or increase the quantity of the line with the same composite key."""
        existing = self.find_item(item.key)
        if existing:
            existing.quantity += item.quantity
            self.touch()
            return existing

        item.price_at_time_of_addition = item.price
        self.items.append(item)
        self.touch()
        return item

    def remove_item(self, cart_item_id: str) -> bool:
        """Remove a line. Returns False when no line has that id."""
        remaining = [item for item in self.items if item.cart_item_id != cart_item_id]
        if len(remaining) == len(self.items):
            return False
        self.items = remaining
        self.touch()
        return True

    def update_quantity(self, cart_item_id: str, quantity: int) -> CartItem:
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise InvalidQuantityError(quantity)

        item = self.get_item(cart_item_id)
        if item is None:
            raise CartItemNotFoundError(cart_item_id)

        item.quantity = quantity
        self.touch()
        return item

    def clear(self) -> None:
        """Empty the cart and drop any applied coupon."""
        self.items = []
        self.discount = 0.0
        self.applied_coupon_code = None
        self.touch()

    def apply_discount(self, coupon_code: str, amount: float) -> None:
        self.applied_coupon_code = coupon_code
        self.discount = round(max(0.0, amount), 2)
        self.touch()

    def check_availability(self, stock_by_variant: Mapping[str, int]) -> AvailabilityReport:
        """
        Compare each line against live stock (variant_id -> units in stock).

        Refreshes each line's `is_available` flag; stock itself is never touched.
        Variants missing from the mapping count as zero stock.
        """
        lines = []
        for item in self.items:
            available = int(stock_by_variant.get(item.variant_id, 0))
            ok = available >= item.quantity
            item.is_available = ok
            lines.append(ItemAvailability(
                cart_item_id=item.cart_item_id,
                sneaker_id=item.sneaker_id,
                variant_id=item.variant_id,
                name=item.name,
                size=item.size,
                color=item.color,
                requested=item.quantity,
                available=available,
                is_available=ok
            ))
        return AvailabilityReport(items=lines)
