from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Any, Dict, Optional
from decimal import Decimal
from uuid import UUID
import logging

from models.product import Product
from schemas.events import (
    ProductCreatedEvent,
    ProductUpdatedEvent,
    ProductDeletedEvent,
    PriceChangedEvent
)
from services.event_publishers import ProductEventPublisher
from core.exceptions import ConflictException, ErrorCode, NotFoundException, ValidationException

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("name", "description", "price", "currency", "category_id")

# Keys used in the "changes" map of product.updated
CHANGE_KEYS = {
    "name": "name",
    "description": "description",
    "price": "price",
    "currency": "currency",
    "category_id": "categoryId",
}


def parse_product_id(product_id: Any) -> Optional[UUID]:
    if isinstance(product_id, UUID):
        return product_id
    try:
        return UUID(str(product_id))
    except (TypeError, ValueError):
        return None


class ProductService:
    def __init__(self, db: AsyncSession, publisher: Optional[ProductEventPublisher] = None):
        self.db = db
        self.publisher = publisher

    async def find_active(self, product_id: Any) -> Optional[Product]:
        """Returns None for unknown, deleted or malformed ids."""
        product_uuid = parse_product_id(product_id)
        if product_uuid is None:
            return None
        result = await self.db.execute(
            select(Product).where(Product.id == product_uuid, Product.deleted_at.is_(None))
        )
        return result.scalars().first()

    async def get_product(self, product_id: Any) -> Product:
        product = await self.find_active(product_id)
        if not product:
            raise NotFoundException("Product", str(product_id), ErrorCode.PRODUCT_NOT_FOUND)
        return product

    async def create_product(
        self,
        name: str,
        sku: str,
        price: Decimal,
        currency: str = "DOP",
        description: Optional[str] = None,
        category_id: Optional[str] = None,
        user_id: str = "system"
    ) -> Product:
        existing = await self.db.execute(select(Product).where(Product.sku == sku))
        if existing.scalars().first():
            raise ConflictException("Product", sku)

        product = Product(
            name=name,
            sku=sku,
            description=description,
            category_id=category_id,
            stock_quantity=0,
            created_by=user_id
        )
        product.update_price(price, currency, user_id)
        self.db.add(product)
        await self.db.commit()
        logger.info(f"Product {product.id} ({sku}) created")

        if self.publisher:
            await self.publisher.publish_product_created(ProductCreatedEvent(
                product_id=str(product.id),
                name=product.name,
                sku=product.sku,
                category_id=product.category_id,
                price=float(product.price),
                currency=product.currency
            ))
        return product

    async def update_product(self, product_id: Any, changes: Dict[str, Any], user_id: str = "system") -> Product:
        product = await self.get_product(product_id)
        unknown = set(changes) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValidationException(
                message="Unknown product fields",
                errors={field: "not updatable" for field in sorted(unknown)}
            )

        old_price = product.price
        applied: Dict[str, Any] = {}
        for field, value in changes.items():
            if value is None:
                continue
            if field == "price":
                if Decimal(str(value)) == product.price:
                    continue
                old_currency = product.currency
                product.update_price(value, changes.get("currency"), user_id)
                applied[CHANGE_KEYS[field]] = float(product.price)
                if product.currency != old_currency:
                    applied[CHANGE_KEYS["currency"]] = product.currency
            elif getattr(product, field) != value:
                setattr(product, field, value)
                applied[CHANGE_KEYS[field]] = value

        if not applied:
            return product

        product.updated_by = user_id
        await self.db.commit()
        logger.info(f"Product {product.id} updated: {', '.join(applied)}")

        if self.publisher:
            await self.publisher.publish_product_updated(ProductUpdatedEvent(
                product_id=str(product.id),
                changes=applied
            ))
            if "price" in applied:
                await self.publisher.publish_price_changed(PriceChangedEvent(
                    product_id=str(product.id),
                    old_price=float(old_price),
                    new_price=float(product.price),
                    currency=product.currency,
                    created_by=user_id
                ))
        return product

    async def delete_product(self, product_id: Any, user_id: str = "system") -> Product:
        product = await self.get_product(product_id)
        product.soft_delete(user_id)
        await self.db.commit()
        logger.info(f"Product {product.id} deleted by {user_id}")

        if self.publisher:
            await self.publisher.publish_product_deleted(ProductDeletedEvent(
                product_id=str(product.id),
                sku=product.sku,
                deleted_by=user_id
            ))
        return product

    async def update_stock_mirror(self, product_id: Any, quantity: int, version: Optional[int] = None) -> Optional[bool]:
        """
        Overwrite the stock mirror inside the caller's transaction.

        Returns:
            None if the product is unknown or deleted, False if the version is
            stale, True once applied
        """
        product = await self.find_active(product_id)
        if not product:
            return None
        applied = product.update_stock(quantity, version)
        if applied:
            await self.db.flush()
        return applied
