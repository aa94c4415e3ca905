"""
Event publishers - turn domain events into channel publishes.
Every method returns the channel's boolean; none of them raise.
"""
import logging

from core.events.channel import MessageChannel
from core.events.topics import KafkaTopic
from schemas.events import (
    DomainEvent,
    InventoryAdjustedEvent,
    ProductCreatedEvent,
    ProductUpdatedEvent,
    ProductDeletedEvent,
    PriceChangedEvent
)

logger = logging.getLogger(__name__)


class _ChannelPublisher:

    def __init__(self, channel: MessageChannel):
        self.channel = channel

    async def _publish(self, topic: KafkaTopic, event: DomainEvent) -> bool:
        published = await self.channel.publish(topic.value, event.to_payload())
        if not published:
            logger.warning(f"{topic.value} event was not published: {event.to_payload()}")
        return published


class InventoryEventPublisher(_ChannelPublisher):
    """Publisher used by the inventory service"""

    async def publish_inventory_adjusted(self, event: InventoryAdjustedEvent) -> bool:
        return await self._publish(KafkaTopic.INVENTORY_ADJUSTED, event)


class ProductEventPublisher(_ChannelPublisher):
    """Publisher used by the products service"""

    async def publish_product_created(self, event: ProductCreatedEvent) -> bool:
        return await self._publish(KafkaTopic.PRODUCT_CREATED, event)

    async def publish_product_updated(self, event: ProductUpdatedEvent) -> bool:
        return await self._publish(KafkaTopic.PRODUCT_UPDATED, event)

    async def publish_product_deleted(self, event: ProductDeletedEvent) -> bool:
        return await self._publish(KafkaTopic.PRODUCT_DELETED, event)

    async def publish_price_changed(self, event: PriceChangedEvent) -> bool:
        return await self._publish(KafkaTopic.PRODUCT_PRICE_CHANGED, event)
