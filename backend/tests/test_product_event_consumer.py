"""
Product lifecycle consumer of the inventory service.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy import select

from core.events.envelope import EventEnvelope
from core.events.registry import HandlerRegistryBuilder
from models.inventory import Inventory
from models.processed_event import ProcessedEvent, ProcessingResult
from services.idempotency import IdempotencyService
from services.product_event_consumer import ProductEventConsumer


@pytest.fixture
def cache():
    mock = MagicMock()
    mock.delete = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def consumer(session_factory, cache):
    return ProductEventConsumer(IdempotencyService(session_factory), cache)


async def inventories(session_factory, product_id):
    async with session_factory() as db:
        result = await db.execute(select(Inventory).where(Inventory.product_id == product_id))
        return result.scalars().all()


async def results_for(session_factory, event_id):
    async with session_factory() as db:
        result = await db.execute(
            select(ProcessedEvent.processing_result)
            .where(ProcessedEvent.event_id == event_id)
            .order_by(ProcessedEvent.created_at)
        )
        return list(result.scalars().all())


def created(product_id="p1", event_id="created-1"):
    return EventEnvelope.create(
        "product.created",
        {"productId": product_id, "name": "Coffee", "sku": "SKU-1", "categoryId": "c1", "price": 10, "currency": "DOP"},
        event_id=event_id
    )


class TestRegistration:

    def test_registers_product_topics(self, consumer):
        registry = consumer.register(HandlerRegistryBuilder()).build()
        assert sorted(registry.topics) == ["product.created", "product.deleted", "product.updated"]


class TestProductCreated:

    @pytest.mark.asyncio
    async def test_creates_empty_inventory(self, consumer, session_factory):
        outcome = await consumer.handle_product_created(created())

        assert outcome.processed
        rows = await inventories(session_factory, "p1")
        assert len(rows) == 1
        assert rows[0].quantity == 0
        assert rows[0].created_by == "system"
        assert await results_for(session_factory, "created-1") == ["SUCCESS"]

    @pytest.mark.asyncio
    async def test_replay_is_skipped(self, consumer, session_factory):
        await consumer.handle_product_created(created())
        outcome = await consumer.handle_product_created(created())

        assert outcome.skipped
        assert len(await inventories(session_factory, "p1")) == 1
        assert await results_for(session_factory, "created-1") == ["SUCCESS", "SKIPPED"]

    @pytest.mark.asyncio
    async def test_existing_inventory_is_left_alone(self, consumer, session_factory):
        await consumer.handle_product_created(created(event_id="a"))
        outcome = await consumer.handle_product_created(created(event_id="b"))

        assert outcome.processed
        assert len(await inventories(session_factory, "p1")) == 1
        assert await results_for(session_factory, "b") == ["SUCCESS"]

    @pytest.mark.asyncio
    async def test_malformed_payload_is_recorded_as_failed(self, consumer, session_factory):
        envelope = EventEnvelope.create("product.created", {"name": "no id"}, event_id="bad")
        outcome = await consumer.handle_product_created(envelope)

        assert not outcome.processed
        assert outcome.error
        assert await results_for(session_factory, "bad") == [ProcessingResult.FAILED.value]


class TestProductDeleted:

    @pytest.mark.asyncio
    async def test_soft_deletes_and_invalidates_cache(self, consumer, session_factory, cache):
        await consumer.handle_product_created(created())
        envelope = EventEnvelope.create(
            "product.deleted", {"productId": "p1", "sku": "SKU-1", "deletedBy": "admin"}, event_id="deleted-1"
        )

        outcome = await consumer.handle_product_deleted(envelope)

        assert outcome.processed
        row = (await inventories(session_factory, "p1"))[0]
        assert row.is_deleted
        assert row.deleted_by == "admin"
        cache.delete.assert_awaited_once_with("inventory:product:p1")

    @pytest.mark.asyncio
    async def test_deleted_by_defaults_to_system(self, consumer, session_factory):
        await consumer.handle_product_created(created())
        await consumer.handle_product_deleted(EventEnvelope.create("product.deleted", {"productId": "p1"}))
        assert (await inventories(session_factory, "p1"))[0].deleted_by == "system"

    @pytest.mark.asyncio
    async def test_missing_inventory_is_a_successful_noop(self, consumer, session_factory, cache):
        envelope = EventEnvelope.create("product.deleted", {"productId": "ghost"}, event_id="deleted-ghost")

        outcome = await consumer.handle_product_deleted(envelope)

        assert outcome.processed
        assert await results_for(session_factory, "deleted-ghost") == ["SUCCESS"]
        cache.delete.assert_not_called()


class TestProductUpdated:

    @pytest.mark.asyncio
    async def test_invalidates_cached_inventory(self, consumer, cache):
        await consumer.handle_product_created(created())
        envelope = EventEnvelope.create("product.updated", {"productId": "p1", "changes": {"name": "New"}})

        outcome = await consumer.handle_product_updated(envelope)

        assert outcome.processed
        cache.delete.assert_awaited_once_with("inventory:product:p1")

    @pytest.mark.asyncio
    async def test_unknown_product_is_a_successful_noop(self, consumer, session_factory, cache):
        envelope = EventEnvelope.create("product.updated", {"productId": "ghost", "changes": {}}, event_id="u1")

        outcome = await consumer.handle_product_updated(envelope)

        assert outcome.processed
        assert await results_for(session_factory, "u1") == ["SUCCESS"]
        cache.delete.assert_not_called()

    @pytest.mark.asyncio
    async def test_works_without_cache(self, session_factory):
        consumer = ProductEventConsumer(IdempotencyService(session_factory))
        await consumer.handle_product_created(created())
        outcome = await consumer.handle_product_updated(
            EventEnvelope.create("product.updated", {"productId": "p1", "changes": {}})
        )
        assert outcome.processed
