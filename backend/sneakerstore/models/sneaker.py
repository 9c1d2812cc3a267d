from typing import List, Optional
from pydantic import BaseModel, Field, field_validator

from sneakerstore.utils.helpers import object_id_to_str


class SneakerImage(BaseModel):
    url: str
    is_primary: bool = False


class Sneaker(BaseModel):
    """Catalog sneaker (read-only from the cart's perspective)."""
    id: Optional[str] = Field(None, alias="_id")
    name: str
    brand: str = ""
    slug: str = ""
    price: Optional[float] = None
    final_price: Optional[float] = None  # Price after catalog promotions
    images: List[SneakerImage] = Field(default_factory=list)

    class Config:
        populate_by_name = True

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value):
        return object_id_to_str(value)

    @property
    def primary_image(self) -> Optional[str]:
        for image in self.images:
            if image.is_primary:
                return image.url
        return self.images[0].url if self.images else None


class SneakerVariant(BaseModel):
    """
    A sellable (sneaker, size, color) combination.

    `stock` is the unit of availability truth; it is mutated by fulfillment
    and only read here.
    """
    id: Optional[str] = Field(None, alias="_id")
    sneaker_id: str
    size: str
    color: str
    stock: int = Field(default=0, ge=0)
    price: Optional[float] = None

    class Config:
        populate_by_name = True

    @field_validator("id", "sneaker_id", "size", mode="before")
    @classmethod
    def _stringify(cls, value):
        if value is None:
            return value
        return str(object_id_to_str(value))
