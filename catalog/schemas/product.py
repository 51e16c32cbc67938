# catalog/schemas/product.py
import time
import uuid
from datetime import datetime
from typing import Any

from pydantic import ConfigDict, ValidationInfo, field_validator
from sqlmodel import SQLModel, Field

# Values used when a create request leaves a field out.
TEXT_DEFAULTS: dict[str, str] = {
    "name": "Untitled Product",
    "category": "Uncategorized",
    "brand": "Unknown",
    "product_class": "Standard",
    "sizes": "N/A",
    "colors": "N/A",
    "description": "No description",
}


def default_sku() -> str:
    return f"SKU-{int(time.time() * 1000)}"


def _blank(v: Any) -> bool:
    return v is None or (isinstance(v, str) and not v.strip())


def _parse_price(v: Any) -> float | None:
    """Parse a price; None when it cannot be read as a number."""
    try:
        value = float(v)
    except (TypeError, ValueError):
        return None
    if value != value or value in (float("inf"), float("-inf")):
        return None
    return round(value, 2)


def _parse_stock(v: Any) -> int | None:
    """
    Parse a stock count ("5", "5.0", 5); None when unreadable.

    Raises ValueError for fractional counts such as "5.9".
    """
    if isinstance(v, bool):
        return None
    if isinstance(v, int):
        return v
    try:
        value = float(v)
    except (TypeError, ValueError):
        return None
    if value != value or value in (float("inf"), float("-inf")):
        return None
    if not value.is_integer():
        raise ValueError("stock must be a whole number")
    return int(value)


class ProductCreate(SQLModel):
    """
    Normalized fields for a new product.

    Input usually comes straight from a multipart form, so every field
    arrives as an optional string:
      - missing text fields get the defaults in TEXT_DEFAULTS
      - missing or unreadable price/stock become 0
      - negative price/stock are rejected
      - missing sku becomes SKU-<epoch millis>
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(default=TEXT_DEFAULTS["name"], max_length=255)
    category: str = Field(default=TEXT_DEFAULTS["category"], max_length=100)
    brand: str = Field(default=TEXT_DEFAULTS["brand"], max_length=100)
    price: float = 0
    stock: int = 0
    sku: str = Field(default_factory=default_sku, max_length=100)
    product_class: str = Field(default=TEXT_DEFAULTS["product_class"], max_length=100)
    sizes: str = TEXT_DEFAULTS["sizes"]
    colors: str = TEXT_DEFAULTS["colors"]
    description: str = TEXT_DEFAULTS["description"]

    @field_validator(*TEXT_DEFAULTS, mode="before")
    @classmethod
    def default_text(cls, v: Any, info: ValidationInfo) -> str:
        if _blank(v):
            return TEXT_DEFAULTS[info.field_name]
        return str(v).strip()

    @field_validator("sku", mode="before")
    @classmethod
    def fill_sku(cls, v: Any) -> str:
        if _blank(v):
            return default_sku()
        return str(v).strip()

    @field_validator("price", mode="before")
    @classmethod
    def coerce_price(cls, v: Any) -> float:
        value = _parse_price(v)
        if value is None:
            return 0
        if value < 0:
            raise ValueError("price cannot be negative")
        return value

    @field_validator("stock", mode="before")
    @classmethod
    def coerce_stock(cls, v: Any) -> int:
        value = _parse_stock(v)
        if value is None:
            return 0
        if value < 0:
            raise ValueError("stock cannot be negative")
        return value


class ProductUpdate(SQLModel):
    """
    Partial update payload for products.

    Omitted or blank fields mean "leave unchanged". Price and stock, when
    given, must be readable non-negative numbers.
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, max_length=255)
    category: str | None = Field(default=None, max_length=100)
    brand: str | None = Field(default=None, max_length=100)
    price: float | None = None
    stock: int | None = None
    sku: str | None = Field(default=None, max_length=100)
    product_class: str | None = Field(default=None, max_length=100)
    sizes: str | None = None
    colors: str | None = None
    description: str | None = None

    @field_validator(
        "name",
        "category",
        "brand",
        "sku",
        "product_class",
        "sizes",
        "colors",
        "description",
        mode="before",
    )
    @classmethod
    def strip_text(cls, v: Any) -> str | None:
        if _blank(v):
            return None
        return str(v).strip()

    @field_validator("price", mode="before")
    @classmethod
    def check_price(cls, v: Any) -> float | None:
        if _blank(v):
            return None
        value = _parse_price(v)
        if value is None:
            raise ValueError("price must be a number")
        if value < 0:
            raise ValueError("price cannot be negative")
        return value

    @field_validator("stock", mode="before")
    @classmethod
    def check_stock(cls, v: Any) -> int | None:
        if _blank(v):
            return None
        value = _parse_stock(v)
        if value is None:
            raise ValueError("stock must be a whole number")
        if value < 0:
            raise ValueError("stock cannot be negative")
        return value


class ProductRead(SQLModel):
    """
    Product representation for clients.
    """

    id: int
    name: str
    category: str
    brand: str | None = None
    price: float
    stock: int
    sku: str
    product_class: str | None = None
    sizes: str | None = None
    colors: str | None = None
    description: str | None = None
    image_url: str
    images: list[str] = []
    owner_id: uuid.UUID | None = None
    created_at: datetime
    updated_at: datetime


class ProductEnvelope(SQLModel):
    success: bool = True
    product: ProductRead
    message: str | None = None
    warnings: list[str] = []


class ProductListEnvelope(SQLModel):
    success: bool = True
    products: list[ProductRead]


class MessageEnvelope(SQLModel):
    success: bool = True
    message: str
