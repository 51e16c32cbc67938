# catalog/routers/products.py
from typing import Any

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlmodel import Session

from catalog.core.auth import get_caller
from catalog.core.storage import ImagePayload
from catalog.database import get_session
from catalog.deps import get_product_service
from catalog.models.user import User
from catalog.schemas.product import (
    MessageEnvelope,
    ProductEnvelope,
    ProductListEnvelope,
)
from catalog.services.product_service import ImageUpdate, ProductService

router = APIRouter(prefix="/products", tags=["Products"])

# Single-call upload route kept for the original browser form; it always
# takes exactly one image.
legacy_router = APIRouter(tags=["Products"])


def product_form(
    name: str | None = Form(None),
    category: str | None = Form(None),
    brand: str | None = Form(None),
    price: str | None = Form(None),
    stock: str | None = Form(None),
    sku: str | None = Form(None),
    product_class: str | None = Form(None),
    sizes: str | None = Form(None),
    colors: str | None = Form(None),
    description: str | None = Form(None),
) -> dict[str, Any]:
    """
    Product fields from a multipart form.

    Values stay raw strings; the service normalizes them. Omitted fields
    are dropped so updates leave them unchanged.
    """
    fields = {
        "name": name,
        "category": category,
        "brand": brand,
        "price": price,
        "stock": stock,
        "sku": sku,
        "product_class": product_class,
        "sizes": sizes,
        "colors": colors,
        "description": description,
    }
    return {key: value for key, value in fields.items() if value is not None}


def _read_uploads(files: list[UploadFile] | None) -> list[ImagePayload]:
    payloads: list[ImagePayload] = []
    for f in files or []:
        # Browsers send an empty part when no file was picked.
        if not f.filename and not f.size:
            continue
        payloads.append(
            ImagePayload(
                content_type=f.content_type or "application/octet-stream",
                data=f.file.read(),
                filename=f.filename,
            )
        )
    return payloads


def _decode_data_uris(values: list[str] | None) -> list[ImagePayload]:
    return [ImagePayload.from_data_uri(v) for v in values or [] if v and v.strip()]


# -------- Public endpoints --------


@router.get("", response_model=ProductListEnvelope)
def list_products(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    session: Session = Depends(get_session),
    service: ProductService = Depends(get_product_service),
):
    """
    List products, newest first.
    """
    return ProductListEnvelope(products=service.list_products(session, skip=skip, limit=limit))


@router.get("/{product_id}", response_model=ProductEnvelope)
def get_product(
    product_id: int,
    session: Session = Depends(get_session),
    service: ProductService = Depends(get_product_service),
):
    """
    Get a single product by id.
    """
    return ProductEnvelope(product=service.get_product(session, product_id))


# -------- Mutations --------


@router.post(
    "",
    response_model=ProductEnvelope,
    status_code=status.HTTP_201_CREATED,
)
def create_product(
    fields: dict[str, Any] = Depends(product_form),
    images: list[UploadFile] | None = File(None),
    image_data: list[str] | None = Form(None),
    session: Session = Depends(get_session),
    service: ProductService = Depends(get_product_service),
    caller: User | None = Depends(get_caller),
):
    """
    Create a product.

    - Images arrive as files (`images`) and/or base64 data URIs (`image_data`).
    - Missing fields get defaults; price/stock default to 0.
    - If saving fails, the uploaded images are removed again.
    """
    payloads = _read_uploads(images) + _decode_data_uris(image_data)
    result = service.create_product(session, fields, payloads, caller)
    return ProductEnvelope(
        product=result.product,
        message="Product uploaded successfully",
        warnings=result.warnings,
    )


@router.put("/{product_id}", response_model=ProductEnvelope)
def update_product(
    product_id: int,
    fields: dict[str, Any] = Depends(product_form),
    existing_images: list[str] | None = Form(None),
    images: list[UploadFile] | None = File(None),
    image_data: list[str] | None = Form(None),
    session: Session = Depends(get_session),
    service: ProductService = Depends(get_product_service),
    caller: User | None = Depends(get_caller),
):
    """
    Update a product (owner or admin when auth is enabled).

    - `existing_images`: URLs to keep, in order.
    - `images` / `image_data`: new images, appended after the kept ones.
    - Send none of the three to leave the images as they are.
    """
    new_images = _read_uploads(images) + _decode_data_uris(image_data)
    image_update = None
    if existing_images is not None or new_images:
        image_update = ImageUpdate(keep_urls=existing_images or [], new_images=new_images)

    result = service.update_product(session, product_id, fields, image_update, caller)
    return ProductEnvelope(
        product=result.product,
        message="Product updated successfully",
        warnings=result.warnings,
    )


@router.delete("/{product_id}", response_model=MessageEnvelope)
def delete_product(
    product_id: int,
    session: Session = Depends(get_session),
    service: ProductService = Depends(get_product_service),
    caller: User | None = Depends(get_caller),
):
    """
    Delete a product and its stored images (owner or admin when auth is enabled).
    """
    service.delete_product(session, product_id, caller)
    return MessageEnvelope(message="Product deleted successfully")


@legacy_router.post(
    "/upload",
    response_model=ProductEnvelope,
    status_code=status.HTTP_201_CREATED,
)
def upload_product(
    product_name: str | None = Form(None, alias="productName"),
    category: str | None = Form(None),
    brand: str | None = Form(None),
    price: str | None = Form(None),
    stock: str | None = Form(None),
    sku: str | None = Form(None),
    product_class: str | None = Form(None, alias="productClass"),
    sizes: str | None = Form(None),
    colors: str | None = Form(None),
    description: str | None = Form(None),
    image: UploadFile | None = File(None),
    session: Session = Depends(get_session),
    service: ProductService = Depends(get_product_service),
    caller: User | None = Depends(get_caller),
):
    """
    Create a product from the original upload form (camelCase fields,
    one `image` file).
    """
    fields = {
        "name": product_name,
        "category": category,
        "brand": brand,
        "price": price,
        "stock": stock,
        "sku": sku,
        "product_class": product_class,
        "sizes": sizes,
        "colors": colors,
        "description": description,
    }
    payloads = _read_uploads([image] if image else None)
    result = service.create_product(session, fields, payloads, caller, single_image=True)
    return ProductEnvelope(
        product=result.product,
        message="Product uploaded successfully",
        warnings=result.warnings,
    )
