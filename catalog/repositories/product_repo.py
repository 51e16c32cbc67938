# catalog/repositories/product_repo.py
from sqlmodel import Session, select

from catalog.models.product import Product, ProductImage


class ProductRepository:
    """
    Data access layer for Product & ProductImage.

    - Pure DB operations (CRUD + queries).
    - No FastAPI, no business logic.
    - Write methods commit once, so a product and its images are saved
      together or not at all.
    """

    # ----- Products -----

    def get_by_id(self, session: Session, product_id: int) -> Product | None:
        return session.get(Product, product_id)

    def get_by_sku(self, session: Session, sku: str) -> Product | None:
        stmt = select(Product).where(Product.sku == sku)
        return session.exec(stmt).first()

    def list_recent(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 100,
    ) -> list[Product]:
        stmt = (
            select(Product)
            .order_by(Product.created_at.desc(), Product.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(session.exec(stmt).all())

    def insert(
        self,
        session: Session,
        product: Product,
        images: list[ProductImage],
    ) -> Product:
        session.add(product)
        session.flush()
        for order, image in enumerate(images):
            image.product_id = product.id
            image.sort_order = order
            session.add(image)
        session.commit()
        session.refresh(product)
        return product

    def update(
        self,
        session: Session,
        product: Product,
        images: list[ProductImage] | None = None,
    ) -> Product:
        """
        Persist product changes.

        When `images` is given it replaces the product's image rows.
        """
        session.add(product)
        if images is not None:
            for old in self.list_images(session, product.id):
                session.delete(old)
            for order, image in enumerate(images):
                image.product_id = product.id
                image.sort_order = order
                session.add(image)
        session.commit()
        session.refresh(product)
        return product

    def delete(self, session: Session, product: Product) -> None:
        for image in self.list_images(session, product.id):
            session.delete(image)
        session.delete(product)
        session.commit()

    # ----- Product images -----

    def list_images(self, session: Session, product_id: int) -> list[ProductImage]:
        stmt = (
            select(ProductImage)
            .where(ProductImage.product_id == product_id)
            .order_by(ProductImage.sort_order)
        )
        return list(session.exec(stmt).all())

    def images_by_product(
        self,
        session: Session,
        product_ids: list[int],
    ) -> dict[int, list[ProductImage]]:
        """Load images for many products in one query."""
        grouped: dict[int, list[ProductImage]] = {pid: [] for pid in product_ids}
        if not product_ids:
            return grouped
        stmt = (
            select(ProductImage)
            .where(ProductImage.product_id.in_(product_ids))
            .order_by(ProductImage.product_id, ProductImage.sort_order)
        )
        for image in session.exec(stmt).all():
            grouped[image.product_id].append(image)
        return grouped
