"""
Start/stop sequence shared by the inventory and products services.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from core.events.channel import MessageChannel
from jobs.event_cleanup_tasks import EventCleanupTaskManager
from services.idempotency import IdempotencyService

logger = logging.getLogger(__name__)


@dataclass
class ServiceComponents:
    service_name: str
    idempotency: IdempotencyService
    channel: MessageChannel
    cleanup: EventCleanupTaskManager
    publisher: Any
    scheduler: Optional[AsyncIOScheduler] = None
    consumer_start_task: Optional[asyncio.Task] = None


async def delayed_consumer_start(channel: MessageChannel, delay_seconds: float):
    """Start the consumer after a cold-start stagger. Failures are logged, the service keeps running."""
    await asyncio.sleep(delay_seconds)
    try:
        await channel.start_consumer()
    except Exception as e:
        logger.critical(f"Kafka consumer failed to start after {delay_seconds}s delay: {e}", exc_info=True)


async def start_components(components: ServiceComponents, consumer_start_delay: float = 0.0):
    """
    Schedule the retention job and start consuming.

    With no delay a consumer start failure propagates and fails startup.
    """
    if components.scheduler is None:
        components.scheduler = AsyncIOScheduler()
    components.cleanup.schedule(components.scheduler)
    components.scheduler.start()

    if consumer_start_delay > 0:
        logger.info(f"Kafka consumer will start in {consumer_start_delay}s")
        components.consumer_start_task = asyncio.create_task(
            delayed_consumer_start(components.channel, consumer_start_delay)
        )
    else:
        await components.channel.start_consumer()
    logger.info(f"{components.service_name} started")


async def stop_components(components: ServiceComponents):
    if components.consumer_start_task is not None and not components.consumer_start_task.done():
        components.consumer_start_task.cancel()
        try:
            await components.consumer_start_task
        except asyncio.CancelledError:
            pass

    if components.scheduler is not None and components.scheduler.running:
        components.scheduler.shutdown(wait=False)

    await components.channel.disconnect()
    logger.info(f"{components.service_name} stopped")


def health_status(components: Optional[ServiceComponents]) -> Dict[str, Any]:
    if components is None:
        return {"status": "starting"}
    return {
        "status": "healthy",
        "service": components.service_name,
        "kafka": {
            "connected": components.channel.is_connected,
            "consuming": components.channel.is_consuming,
            "topics": components.channel.registry.topics,
        },
    }
