"""
Product lifecycle consumer of the inventory service.

product.created  -> create an empty inventory row
product.deleted  -> deactivate the inventory row and drop its cached read
product.updated  -> drop the cached read
"""
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict, Optional
import logging

from core.cache import CacheService, inventory_cache_key
from core.events.envelope import EventEnvelope
from core.events.registry import HandlerRegistryBuilder
from core.events.topics import KafkaTopic
from schemas.integration_events import (
    ProductCreatedIntegrationEvent,
    ProductDeletedIntegrationEvent,
    ProductUpdatedIntegrationEvent
)
from services.idempotency import IdempotencyService, ProcessingOutcome
from services.inventory import InventoryService

logger = logging.getLogger(__name__)

SYSTEM_USER = "system"


class ProductEventConsumer:

    def __init__(self, idempotency: IdempotencyService, cache: Optional[CacheService] = None):
        self.idempotency = idempotency
        self.cache = cache

    def register(self, builder: HandlerRegistryBuilder) -> HandlerRegistryBuilder:
        return (
            builder
            .subscribe(KafkaTopic.PRODUCT_CREATED, self.handle_product_created)
            .subscribe(KafkaTopic.PRODUCT_DELETED, self.handle_product_deleted)
            .subscribe(KafkaTopic.PRODUCT_UPDATED, self.handle_product_updated)
        )

    async def handle_product_created(self, envelope: EventEnvelope) -> ProcessingOutcome:
        return await self.idempotency.process_event(envelope, self._create_inventory)

    async def handle_product_deleted(self, envelope: EventEnvelope) -> ProcessingOutcome:
        outcome = await self.idempotency.process_event(envelope, self._deactivate_inventory)
        if outcome.processed and outcome.result:
            await self._invalidate(outcome.result)
        return outcome

    async def handle_product_updated(self, envelope: EventEnvelope) -> ProcessingOutcome:
        outcome = await self.idempotency.process_event(envelope, self._check_inventory)
        if outcome.processed and outcome.result:
            await self._invalidate(outcome.result)
        return outcome

    async def _create_inventory(self, db: AsyncSession, payload: Dict[str, Any]) -> Optional[str]:
        event = ProductCreatedIntegrationEvent.model_validate(payload)
        logger.info(f"Product created: {event.product_id} ({event.sku})")
        inventory = await InventoryService(db).create_inventory_for_product(event.product_id, SYSTEM_USER)
        return str(inventory.id) if inventory else None

    async def _deactivate_inventory(self, db: AsyncSession, payload: Dict[str, Any]) -> Optional[str]:
        event = ProductDeletedIntegrationEvent.model_validate(payload)
        deleted_by = event.deleted_by or SYSTEM_USER
        inventory = await InventoryService(db).deactivate_inventory_for_product(event.product_id, deleted_by)
        return event.product_id if inventory else None

    async def _check_inventory(self, db: AsyncSession, payload: Dict[str, Any]) -> Optional[str]:
        event = ProductUpdatedIntegrationEvent.model_validate(payload)
        inventory = await InventoryService(db).find_by_product(event.product_id)
        if not inventory:
            logger.warning(f"Product updated but no inventory found for {event.product_id}")
            return None
        logger.info(f"Product {event.product_id} updated: {', '.join(event.changes) or 'no changes'}")
        return event.product_id

    async def _invalidate(self, product_id: str):
        if self.cache:
            await self.cache.delete(inventory_cache_key(product_id))
