"""
Inventory use cases: adjustment rules, movement history, publish after commit.
"""
import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4
from hypothesis import given, strategies as st, settings, HealthCheck
from sqlalchemy import select, func

from core.cache import inventory_cache_key
from core.exceptions import InsufficientStockException, NotFoundException, ValidationException
from models.inventory import Inventory, InventoryMovement, MovementType
from services.inventory import InventoryService

DEFAULT_SETTINGS = settings(
    max_examples=50,
    suppress_health_check=[HealthCheck.function_scoped_fixture],
    deadline=None
)


async def seed_inventory(session_factory, product_id="p1", quantity=0):
    async with session_factory() as db:
        db.add(Inventory(product_id=product_id, quantity=quantity, version=1, created_by="seed"))
        await db.commit()


async def load_inventory(session_factory, product_id="p1"):
    async with session_factory() as db:
        result = await db.execute(select(Inventory).where(Inventory.product_id == product_id))
        return result.scalars().first()


async def movement_count(session_factory):
    async with session_factory() as db:
        return await db.scalar(select(func.count(InventoryMovement.id)))


@pytest.fixture
def publisher():
    mock = MagicMock()
    mock.publish_inventory_adjusted = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def cache():
    mock = MagicMock()
    mock.get_json = AsyncMock(return_value=None)
    mock.set_json = AsyncMock(return_value=True)
    mock.delete = AsyncMock(return_value=True)
    return mock


class TestAdjustInventory:

    @pytest.mark.asyncio
    async def test_in_adds_and_writes_movement(self, session_factory, publisher, cache):
        await seed_inventory(session_factory, quantity=10)
        async with session_factory() as db:
            inventory = await InventoryService(db, publisher, cache).adjust_inventory(
                "p1", MovementType.IN, 50, reason="Restock", reference="PO-1", user_id="u1"
            )

        assert inventory.quantity == 60
        assert inventory.version == 2
        async with session_factory() as db:
            movements = await InventoryService(db).get_movement_history("p1")
        assert len(movements) == 1
        movement = movements[0]
        assert (movement.type, movement.quantity, movement.quantity_before, movement.quantity_after) == ("IN", 50, 10, 60)
        assert movement.reason == "Restock"
        assert movement.reference == "PO-1"
        assert movement.created_by == "u1"

    @pytest.mark.asyncio
    async def test_out_and_damage_subtract_return_adds(self, session_factory):
        await seed_inventory(session_factory, quantity=20)
        async with session_factory() as db:
            service = InventoryService(db)
            await service.adjust_inventory("p1", "OUT", 5)
            await service.adjust_inventory("p1", "DAMAGE", 3)
            inventory = await service.adjust_inventory("p1", "RETURN", 1)

        assert inventory.quantity == 13
        assert inventory.version == 4
        assert await movement_count(session_factory) == 3

    @pytest.mark.asyncio
    async def test_insufficient_stock_changes_nothing(self, session_factory, publisher):
        await seed_inventory(session_factory, quantity=5)
        async with session_factory() as db:
            with pytest.raises(InsufficientStockException) as exc_info:
                await InventoryService(db, publisher).adjust_inventory("p1", MovementType.OUT, 6)

        assert exc_info.value.error_code == "INSUFFICIENT_STOCK"
        assert exc_info.value.available == 5
        assert exc_info.value.requested == 6
        inventory = await load_inventory(session_factory)
        assert inventory.quantity == 5
        assert inventory.version == 1
        assert await movement_count(session_factory) == 0
        publisher.publish_inventory_adjusted.assert_not_called()

    @pytest.mark.asyncio
    async def test_publishes_after_commit(self, session_factory, publisher, cache):
        await seed_inventory(session_factory, quantity=0)
        async with session_factory() as db:
            inventory = await InventoryService(db, publisher, cache).adjust_inventory("p1", "IN", 50, user_id="u1")

        event = publisher.publish_inventory_adjusted.await_args.args[0]
        payload = event.to_payload()
        assert payload["inventoryId"] == str(inventory.id)
        assert payload["productId"] == "p1"
        assert payload["oldQuantity"] == 0
        assert payload["newQuantity"] == 50
        assert payload["movementType"] == "IN"
        assert payload["createdBy"] == "u1"
        assert payload["version"] == 2
        assert "timestamp" in payload
        cache.delete.assert_awaited_once_with(inventory_cache_key("p1"))

    @pytest.mark.asyncio
    async def test_publish_failure_keeps_committed_adjustment(self, session_factory, publisher):
        publisher.publish_inventory_adjusted = AsyncMock(return_value=False)
        await seed_inventory(session_factory, quantity=0)
        async with session_factory() as db:
            await InventoryService(db, publisher).adjust_inventory("p1", "IN", 7)

        assert (await load_inventory(session_factory)).quantity == 7
        assert await movement_count(session_factory) == 1

    @pytest.mark.asyncio
    async def test_unknown_product(self, session_factory):
        async with session_factory() as db:
            with pytest.raises(NotFoundException) as exc_info:
                await InventoryService(db).adjust_inventory("missing", "IN", 1)
        assert exc_info.value.error_code == "INVENTORY_NOT_FOUND"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("quantity", [0, -3, 1.5, True])
    async def test_quantity_must_be_positive_integer(self, session_factory, quantity):
        await seed_inventory(session_factory, quantity=10)
        async with session_factory() as db:
            with pytest.raises(ValidationException):
                await InventoryService(db).adjust_inventory("p1", "IN", quantity)

    @pytest.mark.asyncio
    async def test_unknown_movement_type(self, session_factory):
        await seed_inventory(session_factory, quantity=10)
        async with session_factory() as db:
            with pytest.raises(ValidationException):
                await InventoryService(db).adjust_inventory("p1", "TRANSFER", 1)

    @pytest.mark.asyncio
    async def test_deactivated_inventory_cannot_be_adjusted(self, session_factory):
        await seed_inventory(session_factory, quantity=10)
        async with session_factory() as db:
            await InventoryService(db).deactivate_inventory_for_product("p1", "admin")
            await db.commit()
        async with session_factory() as db:
            with pytest.raises(NotFoundException):
                await InventoryService(db).adjust_inventory("p1", "IN", 1)

    @given(movements=st.lists(
        st.tuples(st.sampled_from(list(MovementType)), st.integers(min_value=1, max_value=40)),
        min_size=1,
        max_size=15
    ))
    @DEFAULT_SETTINGS
    def test_quantity_never_negative_and_matches_movements(self, session_factory_maker, movements):
        """
        Property: after any sequence of adjustments the quantity is non-negative
        and equals the last movement's quantity_after; rejected adjustments
        leave no movement behind.
        """
        async def run():
            engine, factory = await session_factory_maker()
            try:
                product_id = str(uuid4())
                await seed_inventory(factory, product_id=product_id, quantity=0)
                expected = 0
                accepted = 0
                for movement_type, amount in movements:
                    async with factory() as db:
                        try:
                            await InventoryService(db).adjust_inventory(product_id, movement_type, amount)
                        except InsufficientStockException:
                            assert movement_type in (MovementType.OUT, MovementType.DAMAGE)
                            assert amount > expected
                            continue
                    accepted += 1
                    if movement_type in (MovementType.IN, MovementType.RETURN):
                        expected += amount
                    elif movement_type in (MovementType.OUT, MovementType.DAMAGE):
                        expected -= amount

                inventory = await load_inventory(factory, product_id)
                async with factory() as db:
                    history = await InventoryService(db).get_movement_history(product_id, limit=100)
                return expected, accepted, inventory, history
            finally:
                await engine.dispose()

        expected, accepted, inventory, history = asyncio.run(run())

        assert inventory.quantity >= 0
        assert inventory.quantity == expected
        assert inventory.version == 1 + accepted
        assert len(history) == accepted
        if history:
            assert history[0].quantity_after == inventory.quantity


class TestInventoryQueries:

    @pytest.mark.asyncio
    async def test_get_inventory_by_product(self, session_factory):
        await seed_inventory(session_factory, quantity=3)
        async with session_factory() as db:
            inventory = await InventoryService(db).get_inventory_by_product("p1")
        assert inventory.quantity == 3

    @pytest.mark.asyncio
    async def test_movement_history_newest_first_and_limited(self, session_factory):
        await seed_inventory(session_factory, quantity=0)
        async with session_factory() as db:
            service = InventoryService(db)
            for amount in (1, 2, 3):
                await service.adjust_inventory("p1", "IN", amount)
            history = await service.get_movement_history("p1", limit=2)
        assert [movement.quantity for movement in history] == [3, 2]

    @pytest.mark.asyncio
    async def test_snapshot_served_from_cache(self, session_factory, cache):
        cache.get_json = AsyncMock(return_value={"product_id": "p1", "quantity": 99})
        async with session_factory() as db:
            snapshot = await InventoryService(db, cache=cache).get_inventory_snapshot("p1")
        assert snapshot["quantity"] == 99
        cache.set_json.assert_not_called()

    @pytest.mark.asyncio
    async def test_snapshot_miss_reads_and_fills_cache(self, session_factory, cache):
        await seed_inventory(session_factory, quantity=4)
        async with session_factory() as db:
            snapshot = await InventoryService(db, cache=cache).get_inventory_snapshot("p1")
        assert snapshot["quantity"] == 4
        cache.set_json.assert_awaited_once()
        assert cache.set_json.await_args.args[0] == "inventory:product:p1"


class TestConsumerSideOperations:

    @pytest.mark.asyncio
    async def test_create_inventory_for_product_is_idempotent(self, session_factory):
        async with session_factory() as db:
            service = InventoryService(db)
            first = await service.create_inventory_for_product("p1")
            second = await service.create_inventory_for_product("p1")
            await db.commit()

        assert first is not None
        assert first.quantity == 0
        assert first.created_by == "system"
        assert second is None

    @pytest.mark.asyncio
    async def test_deactivate_missing_inventory(self, session_factory):
        async with session_factory() as db:
            assert await InventoryService(db).deactivate_inventory_for_product("nope") is None
