# catalog/services/product_service.py
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from catalog.core.config import ServiceProfile
from catalog.core.errors import (
    DuplicateSkuError,
    ForbiddenError,
    NotFoundError,
    PayloadTooLargeError,
    PersistenceError,
    StorageError,
    ValidationError,
)
from catalog.core.health import DependencyStatus
from catalog.core.storage import ImagePayload, ObjectStore, StoredImage
from catalog.models.product import Product, ProductImage
from catalog.models.user import User
from catalog.repositories.product_repo import ProductRepository
from catalog.schemas.product import ProductCreate, ProductRead, ProductUpdate

logger = logging.getLogger(__name__)


class SagaState(str, Enum):
    STARTED = "started"
    VALIDATING = "validating"
    VALIDATED = "validated"
    VALIDATION_FAILED = "validation_failed"
    UPLOADING = "uploading"
    PERSISTING = "persisting"
    COMPENSATING = "compensating"
    DONE = "done"
    FAILED = "failed"


@dataclass
class CompensationResult:
    """
    Outcome of a best-effort cleanup of stored images.

    Failures are collected here instead of raised, so a cleanup problem
    never hides the error that caused the cleanup.
    """

    attempted: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return not self.failed


@dataclass(frozen=True)
class ImageUpdate:
    """
    Requested image set for an update.

    The resulting gallery is `keep_urls` (in the given order) followed by
    the uploaded `new_images`.
    """

    keep_urls: list[str] = field(default_factory=list)
    new_images: list[ImagePayload] = field(default_factory=list)


@dataclass
class SagaResult:
    product: ProductRead
    warnings: list[str] = field(default_factory=list)
    reclaimed: CompensationResult | None = None


class _Saga:
    """Tracks and logs the state of one create/update/delete call."""

    def __init__(self, operation: str, product_id: int | None = None):
        self.operation = operation
        self.product_id = product_id
        self.state = SagaState.STARTED
        self._log()

    def to(self, state: SagaState) -> None:
        self.state = state
        self._log()

    def _log(self) -> None:
        logger.debug(
            "%s product %s: %s",
            self.operation,
            self.product_id if self.product_id is not None else "<new>",
            self.state.value,
        )


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ProductService:
    """
    Business logic for products and their stored images.

    Every write spans two systems that share no transaction: the object
    store holding the image files and the database holding the rows.
    Uploads happen first; if the database write then fails, the uploads
    made by the same call are deleted again (compensation).

    Responsibilities:
      - normalize and validate product fields and image payloads
      - upload / delete images through the ObjectStore
      - persist through ProductRepository
      - enforce owner-or-admin for updates and deletes when auth is on
    """

    def __init__(
        self,
        repo: ProductRepository,
        store: ObjectStore,
        status: DependencyStatus,
        profile: ServiceProfile,
    ):
        self.repo = repo
        self.store = store
        self.status = status
        self.profile = profile

    # ----- Helpers -----

    def _to_read(self, product: Product, images: Iterable[ProductImage]) -> ProductRead:
        data = product.model_dump()
        data["images"] = [img.image_url for img in images]
        return ProductRead.model_validate(data)

    def _primary_url(self, images: list[ProductImage]) -> str:
        if images:
            return images[0].image_url
        return self.profile.placeholder_image_url

    @staticmethod
    def _first_error(exc: PydanticValidationError) -> str:
        err = exc.errors()[0]
        loc = ".".join(str(part) for part in err.get("loc", ()))
        msg = str(err.get("msg", "invalid value")).removeprefix("Value error, ")
        return f"{loc}: {msg}" if loc else msg

    def _get_or_404(self, session: Session, product_id: int) -> Product:
        product = self.repo.get_by_id(session, product_id)
        if not product:
            raise NotFoundError("Product not found")
        return product

    def _authorize(self, product: Product, caller: User | None) -> None:
        """
        Only the owner or an admin may modify a product.

        No-op when the service runs without authentication.
        """
        if not self.profile.auth_required:
            return
        if caller is None:
            raise ForbiddenError("Authentication required to modify products")
        if caller.role == "admin" or product.owner_id == caller.id:
            return
        raise ForbiddenError("Only the product owner or an admin can modify this product")

    def _ensure_sku_free(
        self, session: Session, sku: str, product_id: int | None = None
    ) -> None:
        existing = self.repo.get_by_sku(session, sku)
        if existing is not None and existing.id != product_id:
            raise DuplicateSkuError(f"A product with SKU '{sku}' already exists")

    def _validate_images(self, images: list[ImagePayload]) -> None:
        if len(images) > self.profile.max_images:
            raise ValidationError(
                f"Too many images (max {self.profile.max_images})"
            )
        for image in images:
            if not image.content_type.startswith("image/"):
                raise ValidationError("Only image files allowed")
            if not image.data:
                raise ValidationError("Image file is empty")
            if len(image.data) > self.profile.max_image_bytes:
                limit_mb = self.profile.max_image_bytes / (1024 * 1024)
                raise PayloadTooLargeError(f"Image too large (max {limit_mb:g}MB)")

    def _upload_each(
        self, images: list[ImagePayload]
    ) -> tuple[list[StoredImage], list[str]]:
        """
        Upload images independently.

        A failed upload is logged and skipped; it does not stop the others.

        Returns:
            (uploaded images in input order, warning messages)
        """
        uploaded: list[StoredImage] = []
        warnings: list[str] = []
        for index, image in enumerate(images):
            try:
                uploaded.append(self.store.upload(image, self.profile.storage_folder))
            except Exception as e:
                message = f"Image {index + 1} failed to upload and was skipped"
                logger.warning("%s: %s", message, e)
                warnings.append(message)
        if images and not uploaded:
            logger.warning("All %d image uploads failed; saving without images", len(images))
        return uploaded, warnings

    def _upload_one(self, image: ImagePayload) -> StoredImage:
        try:
            return self.store.upload(image, self.profile.storage_folder)
        except Exception as e:
            logger.error("Image upload failed: %s", e)
            raise StorageError("Image upload failed") from e

    def _delete_stored(self, storage_ids: Iterable[str], reason: str) -> CompensationResult:
        """
        Best-effort deletion of stored images.

        Never raises; failures are recorded in the returned result.
        """
        result = CompensationResult()
        for storage_id in storage_ids:
            if not storage_id:
                continue
            result.attempted.append(storage_id)
            try:
                self.store.delete(storage_id)
                result.deleted.append(storage_id)
            except Exception as e:
                result.failed[storage_id] = str(e)
                logger.warning("Could not delete image %s (%s): %s", storage_id, reason, e)
        if result.attempted:
            logger.info(
                "Image cleanup (%s): %d attempted, %d deleted, %d failed",
                reason,
                len(result.attempted),
                len(result.deleted),
                len(result.failed),
            )
        return result

    def _persistence_error(self, exc: Exception) -> PersistenceError:
        if isinstance(exc, IntegrityError) and "sku" in str(exc.orig).lower():
            return DuplicateSkuError()
        logger.error("Database write failed: %s", exc)
        return PersistenceError()

    # ----- Reads -----

    def list_products(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 100,
    ) -> list[ProductRead]:
        """Products ordered by creation time, newest first."""
        self.status.require_database()
        products = self.repo.list_recent(session, skip=skip, limit=limit)
        images = self.repo.images_by_product(session, [p.id for p in products])
        return [self._to_read(p, images[p.id]) for p in products]

    def get_product(self, session: Session, product_id: int) -> ProductRead:
        self.status.require_database()
        product = self._get_or_404(session, product_id)
        return self._to_read(product, self.repo.list_images(session, product_id))

    # ----- Create -----

    def create_product(
        self,
        session: Session,
        fields: dict[str, Any],
        images: list[ImagePayload],
        caller: User | None = None,
        single_image: bool = False,
    ) -> SagaResult:
        """
        Upload images, then insert the product.

        `single_image=True` applies the single-image rules whatever the
        profile says (used by the legacy upload form).

        - Multi-image: every image is uploaded independently; failed
          uploads are skipped and reported as warnings.
        - Single-image: an image is required and only the first is used;
          its upload failing aborts the create.
        - If the insert fails, every image uploaded here is deleted again.
        """
        saga = _Saga("create")
        self.status.require_database()
        multi_image = self.profile.multi_image and not single_image

        saga.to(SagaState.VALIDATING)
        try:
            payload = ProductCreate.model_validate(fields)
        except PydanticValidationError as e:
            saga.to(SagaState.VALIDATION_FAILED)
            raise ValidationError(self._first_error(e))

        if not multi_image:
            if not images:
                saga.to(SagaState.VALIDATION_FAILED)
                raise ValidationError("No image file uploaded")
            images = images[:1]

        try:
            self._validate_images(images)
            self._ensure_sku_free(session, payload.sku)
        except ValidationError:
            saga.to(SagaState.VALIDATION_FAILED)
            raise
        saga.to(SagaState.VALIDATED)

        warnings: list[str] = []
        uploaded: list[StoredImage] = []
        if images:
            self.status.require_storage()
            saga.to(SagaState.UPLOADING)
            if multi_image:
                uploaded, warnings = self._upload_each(images)
            else:
                try:
                    uploaded = [self._upload_one(images[0])]
                except StorageError:
                    saga.to(SagaState.FAILED)
                    raise

        rows = [ProductImage(image_url=s.url, storage_id=s.storage_id) for s in uploaded]
        now = _now()
        product = Product(
            **payload.model_dump(),
            image_url=self._primary_url(rows),
            owner_id=caller.id if caller else None,
            created_at=now,
            updated_at=now,
        )

        saga.to(SagaState.PERSISTING)
        try:
            product = self.repo.insert(session, product, rows)
        except Exception as e:
            session.rollback()
            saga.to(SagaState.COMPENSATING)
            self._delete_stored((s.storage_id for s in uploaded), "create rollback")
            saga.to(SagaState.FAILED)
            raise self._persistence_error(e) from e

        saga.product_id = product.id
        saga.to(SagaState.DONE)
        return SagaResult(
            product=self._to_read(product, self.repo.list_images(session, product.id)),
            warnings=warnings,
        )

    # ----- Update -----

    def update_product(
        self,
        session: Session,
        product_id: int,
        fields: dict[str, Any],
        image_update: ImageUpdate | None = None,
        caller: User | None = None,
    ) -> SagaResult:
        """
        Partial update of a product and, optionally, its image set.

        - `image_update=None` leaves the images untouched.
        - Multi-image: kept URLs come first, then the new uploads; failed
          uploads are skipped with a warning.
        - Single-image: a new image replaces the old one. The old file is
          deleted only after the new row is saved; if the upload fails
          nothing changes.
        - If the database write fails, the images uploaded here are deleted.
        - Images dropped from the record are deleted from storage after the
          write succeeds (always in single-image mode, and in multi-image
          mode when `reclaim_dropped_images` is on).
        """
        saga = _Saga("update", product_id)
        self.status.require_database()
        product = self._get_or_404(session, product_id)
        self._authorize(product, caller)

        saga.to(SagaState.VALIDATING)
        try:
            payload = ProductUpdate.model_validate(fields)
        except PydanticValidationError as e:
            saga.to(SagaState.VALIDATION_FAILED)
            raise ValidationError(self._first_error(e))

        new_images: list[ImagePayload] = []
        keep_urls: list[str] = []
        if image_update is not None:
            keep_urls = list(
                dict.fromkeys(url.strip() for url in image_update.keep_urls if url and url.strip())
            )
            new_images = list(image_update.new_images)
            if not self.profile.multi_image:
                if new_images:
                    new_images, keep_urls = new_images[:1], []
                else:
                    keep_urls = keep_urls[:1]
        try:
            if len(keep_urls) + len(new_images) > self.profile.max_images:
                raise ValidationError(f"Too many images (max {self.profile.max_images})")
            self._validate_images(new_images)
            if payload.sku is not None and payload.sku != product.sku:
                self._ensure_sku_free(session, payload.sku, product.id)
        except ValidationError:
            saga.to(SagaState.VALIDATION_FAILED)
            raise
        saga.to(SagaState.VALIDATED)

        existing = self.repo.list_images(session, product.id)
        warnings: list[str] = []
        uploaded: list[StoredImage] = []
        if new_images:
            self.status.require_storage()
            saga.to(SagaState.UPLOADING)
            if self.profile.multi_image:
                uploaded, warnings = self._upload_each(new_images)
            else:
                try:
                    uploaded = [self._upload_one(new_images[0])]
                except StorageError:
                    saga.to(SagaState.FAILED)
                    raise

        rows: list[ProductImage] | None = None
        dropped: list[str] = []
        if image_update is not None:
            stored_ids = {img.image_url: img.storage_id for img in existing}
            rows = [
                ProductImage(image_url=url, storage_id=stored_ids.get(url))
                for url in keep_urls
            ]
            rows += [ProductImage(image_url=s.url, storage_id=s.storage_id) for s in uploaded]
            kept_ids = {row.storage_id for row in rows if row.storage_id}
            dropped = [
                img.storage_id
                for img in existing
                if img.storage_id and img.storage_id not in kept_ids
            ]
            product.image_url = self._primary_url(rows)

        for name, value in payload.model_dump(exclude_none=True).items():
            setattr(product, name, value)
        product.updated_at = _now()

        saga.to(SagaState.PERSISTING)
        try:
            product = self.repo.update(session, product, rows)
        except Exception as e:
            session.rollback()
            saga.to(SagaState.COMPENSATING)
            self._delete_stored((s.storage_id for s in uploaded), "update rollback")
            saga.to(SagaState.FAILED)
            raise self._persistence_error(e) from e

        reclaimed = None
        if dropped:
            if self.profile.reclaim_dropped_images or not self.profile.multi_image:
                reclaimed = self._delete_stored(dropped, "dropped by update")
            else:
                logger.info(
                    "Product %s: %d dropped image(s) left in storage",
                    product.id,
                    len(dropped),
                )

        saga.to(SagaState.DONE)
        return SagaResult(
            product=self._to_read(product, self.repo.list_images(session, product.id)),
            warnings=warnings,
            reclaimed=reclaimed,
        )

    # ----- Delete -----

    def delete_product(
        self,
        session: Session,
        product_id: int,
        caller: User | None = None,
    ) -> CompensationResult:
        """
        Delete a product's stored images, then its row.

        Image deletion is best-effort: failures are logged and the row is
        deleted anyway. Calling this again for the same id raises
        NotFoundError.
        """
        saga = _Saga("delete", product_id)
        self.status.require_database()
        product = self._get_or_404(session, product_id)
        self._authorize(product, caller)

        images = self.repo.list_images(session, product.id)
        reclaimed = self._delete_stored(
            (img.storage_id for img in images if img.storage_id), "product deleted"
        )

        saga.to(SagaState.PERSISTING)
        try:
            self.repo.delete(session, product)
        except Exception as e:
            session.rollback()
            saga.to(SagaState.FAILED)
            raise self._persistence_error(e) from e

        saga.to(SagaState.DONE)
        return reclaimed
