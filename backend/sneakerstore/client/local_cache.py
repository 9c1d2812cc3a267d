"""
Device-local cart cache for anonymous shoppers.

The cart lives in a JSON file shaped as {"items": [...]}. A missing or
unreadable file is an empty cart.
"""
import json
import logging
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from sneakerstore.core.config import settings
from sneakerstore.core.exceptions import CartItemNotFoundError, InvalidQuantityError
from sneakerstore.schemas.cart import LocalCartItem

logger = logging.getLogger(__name__)


class LocalCartCache:
    """JSON file backed cart for a single device."""

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path or settings.LOCAL_CART_PATH)

    def load(self) -> List[LocalCartItem]:
        if not self.path.exists():
            return []

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable local cart {self.path}: {e}")
            return []

        items = []
        for raw in data.get("items", []) if isinstance(data, dict) else []:
            try:
                items.append(LocalCartItem(**raw))
            except (TypeError, ValidationError) as e:
                logger.warning(f"Dropping malformed local cart item {raw!r}: {e}")
        return items

    def save(self, items: List[LocalCartItem]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        document = {"items": [item.model_dump(mode="json") for item in items]}
        self.path.write_text(json.dumps(document, indent=2), encoding="utf-8")

    def add(self, item: LocalCartItem) -> List[LocalCartItem]:
        """Add an item; an item with the same key increments the existing quantity."""
        items = self.load()
        for existing in items:
            if existing.key == item.key:
                existing.quantity += item.quantity
                break
        else:
            items.append(item)
        self.save(items)
        return items

    def update_quantity(self, cart_item_id: str, quantity: int) -> List[LocalCartItem]:
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise InvalidQuantityError(quantity)

        items = self.load()
        for item in items:
            if item.cart_item_id == cart_item_id:
                item.quantity = quantity
                self.save(items)
                return items
        raise CartItemNotFoundError(cart_item_id)

    def remove(self, cart_item_id: str) -> List[LocalCartItem]:
        items = [item for item in self.load() if item.cart_item_id != cart_item_id]
        self.save(items)
        return items

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()

    def is_empty(self) -> bool:
        return not self.load()
