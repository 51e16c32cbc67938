# catalog/models/product.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Product(SQLModel, table=True):
    """
    Product catalog entry.

    `image_url` always holds something displayable: the first gallery image,
    or the configured placeholder when the product has no images.
    """

    __tablename__ = "products"

    id: int | None = Field(default=None, primary_key=True)

    name: str = Field(
        max_length=255,
        index=True,
        description="Display name of the product",
    )

    category: str = Field(max_length=100, index=True)

    brand: str | None = Field(default=None, max_length=100)

    price: float = Field(
        default=0,
        ge=0,
        description="Unit price",
    )

    stock: int = Field(
        default=0,
        ge=0,
        description="How many units currently in stock",
    )

    sku: str = Field(
        max_length=100,
        unique=True,
        index=True,
        description="Stock keeping unit (unique)",
    )

    product_class: str | None = Field(default=None, max_length=100)

    sizes: str | None = Field(default=None, description="Free-text size tags")

    colors: str | None = Field(default=None, description="Free-text color tags")

    description: str | None = None

    image_url: str = Field(description="Primary image URL or placeholder")

    owner_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="users.id",
        index=True,
        description="User who created the product",
    )

    created_at: datetime = Field(
        default_factory=_utcnow,
        index=True,
        description="Creation timestamp (UTC)",
    )

    updated_at: datetime = Field(
        default_factory=_utcnow,
        description="Last modification timestamp (UTC)",
    )


class ProductImage(SQLModel, table=True):
    """
    Ordered images of a product.

    `storage_id` is the object store handle used to delete the file; it is
    empty for URLs kept verbatim that were never uploaded by this service.
    """

    __tablename__ = "product_images"

    id: int | None = Field(default=None, primary_key=True)

    product_id: int = Field(
        foreign_key="products.id",
        index=True,
        description="FK to products.id",
    )

    image_url: str = Field(description="Public URL of the stored image")

    storage_id: str | None = Field(default=None)

    sort_order: int = Field(
        default=0,
        ge=0,
        description="Ordering index within the gallery",
    )
