"""
Cart notifications.

State transitions never talk to the shopper directly; they emit CartEvents and
whatever UI subscribes decides how to show them.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, Field


class CartEventType(str, Enum):
    ITEM_ADDED = "cart.item_added"
    ITEM_REMOVED = "cart.item_removed"
    QUANTITY_UPDATED = "cart.quantity_updated"
    CLEARED = "cart.cleared"
    LOADED = "cart.loaded"
    ERROR = "cart.error"
    MERGED = "cart.merged"
    MERGE_PARTIAL = "cart.merge_partial"
    SYNC_FAILED = "cart.sync_failed"
    RESET = "cart.reset"


class CartEvent(BaseModel):
    type: CartEventType
    message: str = ""
    level: str = "info"  # info | success | warning | error
    payload: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.utcnow)
