from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Record(BaseModel):
    """Wire records use camelCase keys (updatedAt, imageUrl, ...)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def wire(self) -> dict:
        return self.model_dump(by_alias=True)


class Rate(Record):
    id: int
    type: str
    current: int
    high: int
    low: int
    icon: str = "cube"
    category: str
    updated_at: str


class Collection(Record):
    id: int
    name: str
    description: str | None = None
    image_url: str
    featured: int = 0
    created_at: str


class Product(Record):
    id: int
    name: str
    description: str | None = None
    price: float = 0
    category: str
    image_url: str
    collection_id: int
    in_stock: bool = True
    created_at: str


class ProductRef(Record):
    id: int


# -----------------------------
# Request bodies
# -----------------------------
class RequestBody(Record):
    model_config = ConfigDict(str_strip_whitespace=True)


class RateUpdateIn(RequestBody):
    type: str = Field(min_length=1)
    current: int
    category: Literal["gold", "silver"]
    high: int | None = None
    low: int | None = None


class ProductIn(RequestBody):
    name: str = Field(min_length=3)
    description: str | None = None
    price: float = Field(default=0, ge=0)
    category: str = Field(min_length=1)
    image_url: str
    collection_id: int
    in_stock: bool = True


class ProductUpdateIn(RequestBody):
    name: str | None = Field(default=None, min_length=3)
    description: str | None = None
    price: float | None = Field(default=None, ge=0)
    category: str | None = None
    image_url: str | None = None
    collection_id: int | None = None
    in_stock: bool | None = None
