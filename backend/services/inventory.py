# Inventory service use cases
# Adjustments commit first and publish afterwards; a failed publish never undoes a commit.

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Any, Dict, List, Optional, Union

from models.inventory import Inventory, InventoryMovement, MovementType
from schemas.events import InventoryAdjustedEvent
from services.event_publishers import InventoryEventPublisher
from core.cache import CacheService, inventory_cache_key
from core.exceptions import ErrorCode, InsufficientStockException, NotFoundException, ValidationException
import logging

logger = logging.getLogger(__name__)


class InventoryService:

    def __init__(
        self,
        db: AsyncSession,
        publisher: Optional[InventoryEventPublisher] = None,
        cache: Optional[CacheService] = None
    ):
        self.db = db
        self.publisher = publisher
        self.cache = cache

    async def find_by_product(self, product_id: str, for_update: bool = False) -> Optional[Inventory]:
        query = select(Inventory).where(
            Inventory.product_id == str(product_id),
            Inventory.deleted_at.is_(None)
        )
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalars().first()

    async def get_inventory_by_product(self, product_id: str) -> Inventory:
        inventory = await self.find_by_product(product_id)
        if not inventory:
            raise NotFoundException("Inventory", str(product_id), ErrorCode.INVENTORY_NOT_FOUND)
        return inventory

    async def get_inventory_snapshot(self, product_id: str) -> Dict[str, Any]:
        """Read-through cached view of an inventory row"""
        key = inventory_cache_key(product_id)
        if self.cache:
            cached = await self.cache.get_json(key)
            if cached is not None:
                return cached

        snapshot = (await self.get_inventory_by_product(product_id)).to_dict()
        if self.cache:
            await self.cache.set_json(key, snapshot)
        return snapshot

    async def get_movement_history(self, product_id: str, limit: int = 50) -> List[InventoryMovement]:
        inventory = await self.get_inventory_by_product(product_id)
        result = await self.db.execute(
            select(InventoryMovement)
            .where(InventoryMovement.inventory_id == inventory.id)
            .order_by(InventoryMovement.created_at.desc())
            .limit(limit)
        )
        return result.scalars().all()

    async def adjust_inventory(
        self,
        product_id: str,
        movement_type: Union[MovementType, str],
        quantity: int,
        reason: Optional[str] = None,
        reference: Optional[str] = None,
        user_id: str = "system"
    ) -> Inventory:
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationException(
                message="Quantity must be a positive integer",
                errors={"quantity": quantity}
            )
        try:
            movement_type = MovementType(movement_type)
        except ValueError:
            raise ValidationException(
                message=f"Unknown movement type '{movement_type}'",
                errors={"type": str(movement_type)}
            )

        inventory = await self.find_by_product(product_id, for_update=True)
        if not inventory:
            raise NotFoundException("Inventory", str(product_id), ErrorCode.INVENTORY_NOT_FOUND)

        quantity_before = inventory.quantity
        try:
            inventory.adjust_quantity(quantity, movement_type)
        except InsufficientStockException:
            await self.db.rollback()
            raise
        inventory.updated_by = user_id

        self.db.add(InventoryMovement(
            inventory_id=inventory.id,
            type=movement_type.value,
            quantity=quantity,
            quantity_before=quantity_before,
            quantity_after=inventory.quantity,
            reason=reason,
            reference=reference,
            created_by=user_id
        ))
        await self.db.commit()
        logger.info(
            f"Inventory for product {product_id} adjusted {quantity_before} -> {inventory.quantity} "
            f"({movement_type.value}, version {inventory.version})"
        )

        if self.cache:
            await self.cache.delete(inventory_cache_key(product_id))

        if self.publisher:
            await self.publisher.publish_inventory_adjusted(InventoryAdjustedEvent(
                inventory_id=str(inventory.id),
                product_id=inventory.product_id,
                old_quantity=quantity_before,
                new_quantity=inventory.quantity,
                movement_type=movement_type.value,
                created_by=user_id,
                version=inventory.version
            ))

        return inventory

    # --- Used by the product lifecycle consumer, inside its transaction ---
    async def create_inventory_for_product(self, product_id: str, created_by: str = "system") -> Optional[Inventory]:
        """Returns None when the product already has inventory."""
        result = await self.db.execute(
            select(Inventory).where(Inventory.product_id == str(product_id))
        )
        if result.scalars().first():
            logger.warning(f"Inventory already exists for product {product_id}")
            return None

        inventory = Inventory(product_id=str(product_id), quantity=0, version=1, created_by=created_by)
        self.db.add(inventory)
        await self.db.flush()
        logger.info(f"Inventory created for product {product_id}")
        return inventory

    async def deactivate_inventory_for_product(self, product_id: str, deleted_by: str = "system") -> Optional[Inventory]:
        """Returns None when there is no active inventory for the product."""
        inventory = await self.find_by_product(product_id)
        if not inventory:
            logger.warning(f"No active inventory for product {product_id}")
            return None

        inventory.soft_delete(deleted_by)
        inventory.updated_by = deleted_by
        await self.db.flush()
        logger.info(f"Inventory for product {product_id} deactivated by {deleted_by}")
        return inventory
