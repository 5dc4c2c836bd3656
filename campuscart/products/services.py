"""
campuscart/products/services.py

Product Catalog Service Layer
Manages product listings and resolves the seller of a product for
the messaging subsystem.
"""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from campuscart.core.exceptions import ForbiddenError, ProductNotFound, StoreError, ValidationError
from campuscart.core.schemas import MessageResponse
from campuscart.products import models, schemas

logger = logging.getLogger(__name__)


# ---------------------------------------------------
# ProductCatalog
# ---------------------------------------------------
class ProductCatalog:
    """Handles product creation, listing, deletion, and seller resolution."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    def _construct_product_read_response(self, product: models.Product) -> schemas.ProductRead:
        """Helper to construct the ProductRead schema from a Product DB object."""
        seller = None
        if product.seller is not None:
            seller = schemas.SellerInfo(id=product.seller.id, email=product.seller.email)
        return schemas.ProductRead(
            id=product.id,
            seller_id=product.seller_id,
            seller=seller,
            name=product.name,
            description=product.description,
            price=product.price,
            image_url=product.image_url,
            created_at=product.created_at,
        )

    async def _get_product(self, product_id: UUID) -> models.Product:
        try:
            result = await self.db.execute(select(models.Product).filter_by(id=product_id))
            product = result.unique().scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"[PRODUCT ERROR] Failed to load product {product_id}: {e}")
            raise StoreError("Server error while fetching product.")
        if product is None:
            raise ProductNotFound()
        return product

    async def resolve_seller(self, product_id: UUID) -> UUID:
        """Return the seller id for a product, raising ProductNotFound if absent."""
        try:
            result = await self.db.execute(
                select(models.Product.seller_id).filter_by(id=product_id)
            )
            seller_id = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"[PRODUCT ERROR] Failed to resolve seller of {product_id}: {e}")
            raise StoreError("Server error while fetching product.")
        if seller_id is None:
            raise ProductNotFound()
        return seller_id

    async def list_products(self) -> list[schemas.ProductRead]:
        """All products, newest first."""
        try:
            result = await self.db.execute(
                select(models.Product).order_by(models.Product.created_at.desc())
            )
            products = result.unique().scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"[PRODUCT ERROR] Failed to list products: {e}")
            raise StoreError("Server error while fetching products.")
        logger.info(f"[PRODUCT] Listed {len(products)} products")
        return [self._construct_product_read_response(p) for p in products]

    async def create_product(
        self, seller_id: UUID, data: schemas.ProductCreate
    ) -> schemas.ProductRead:
        """Create a listing owned by `seller_id`."""
        name = (data.name or "").strip()
        description = (data.description or "").strip()
        if not name or not description or data.price is None or data.price < 0:
            raise ValidationError("Please provide a valid name, description, and price.")
        if not data.image_url:
            raise ValidationError("An image is required to create a product.")

        product = models.Product(
            seller_id=seller_id,
            name=name,
            description=description,
            price=data.price,
            image_url=data.image_url,
        )
        self.db.add(product)
        try:
            await self.db.commit()
            await self.db.refresh(product, attribute_names=["seller"])
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"[PRODUCT ERROR] Failed to create product: {e}", exc_info=True)
            raise StoreError("Server error while creating product.")
        logger.info(f"[PRODUCT] Created product {product.id} for seller {seller_id}")
        return self._construct_product_read_response(product)

    async def delete_product(self, user_id: UUID, product_id: UUID) -> MessageResponse:
        """Delete a listing; only its seller may do so."""
        product = await self._get_product(product_id)
        if product.seller_id != user_id:
            logger.warning(
                f"[PRODUCT] User {user_id} attempted to delete product {product_id} "
                f"owned by {product.seller_id}"
            )
            raise ForbiddenError("You are not authorized to delete this product.")
        try:
            await self.db.delete(product)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"[PRODUCT ERROR] Failed to delete product {product_id}: {e}")
            raise StoreError("Server error while deleting product.")
        logger.info(f"[PRODUCT] Deleted product {product_id}")
        return MessageResponse(message="Product deleted successfully.")
