"""
Inventory adjustment consumer of the products service. Keeps the product
stock mirror equal to the latest inventory quantity it has seen.
"""
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict
import logging

from core.events.envelope import EventEnvelope
from core.events.registry import HandlerRegistryBuilder
from core.events.topics import KafkaTopic
from schemas.integration_events import InventoryAdjustedIntegrationEvent
from services.idempotency import IdempotencyService, ProcessingOutcome
from services.products import ProductService

logger = logging.getLogger(__name__)


class InventoryEventConsumer:

    def __init__(self, idempotency: IdempotencyService):
        self.idempotency = idempotency

    def register(self, builder: HandlerRegistryBuilder) -> HandlerRegistryBuilder:
        return builder.subscribe(KafkaTopic.INVENTORY_ADJUSTED, self.handle_inventory_adjusted)

    async def handle_inventory_adjusted(self, envelope: EventEnvelope) -> ProcessingOutcome:
        return await self.idempotency.process_event(envelope, self._update_stock_mirror)

    async def _update_stock_mirror(self, db: AsyncSession, payload: Dict[str, Any]) -> bool:
        event = InventoryAdjustedIntegrationEvent.model_validate(payload)
        applied = await ProductService(db).update_stock_mirror(
            event.product_id, event.new_quantity, event.version
        )
        if applied is None:
            logger.warning(f"Product {event.product_id} not found, stock update ignored")
            return False
        if not applied:
            logger.info(
                f"Stale inventory version {event.version} for product {event.product_id}, stock update ignored"
            )
            return False
        logger.info(
            f"Product {event.product_id} stock changed from {event.old_quantity} to "
            f"{event.new_quantity} ({event.movement_type})"
        )
        return True
