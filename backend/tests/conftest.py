import sys
import os
import json
import asyncio
import pytest
from collections import namedtuple
from typing import Any, Dict, List

# Add the backend directory to the Python path
backend_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if backend_dir not in sys.path:
    sys.path.insert(0, backend_dir)

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from core.database import Base
from core.events.envelope import EventEnvelope
import models  # noqa: F401  registers every table on Base.metadata

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


async def create_session_factory():
    """Fresh in-memory database with every table created"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False}
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return engine, sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session_factory():
    engine, factory = await create_session_factory()
    yield factory
    await engine.dispose()


@pytest.fixture
def session_factory_maker():
    """For property tests that build one database per example inside asyncio.run"""
    return create_session_factory


# --- Kafka fakes ---
FakeRecord = namedtuple("FakeRecord", ["topic", "partition", "offset", "key", "value", "headers"])


class FakeKafkaProducer:
    """Stands in for AIOKafkaProducer and keeps what was sent"""

    start_delay = 0.0

    def __init__(self, *args, **kwargs):
        self.config = kwargs
        self.sent: List[Dict[str, Any]] = []
        self.started = False
        self.fail_sends = False

    async def start(self):
        if self.start_delay:
            await asyncio.sleep(self.start_delay)
        self.started = True

    async def stop(self):
        self.started = False

    async def send(self, topic, value=None, key=None, headers=None):
        """Queue a record; the returned future resolves on acknowledgement"""
        delivery = asyncio.get_running_loop().create_future()
        if self.fail_sends:
            delivery.set_exception(ConnectionError("broker unavailable"))
        else:
            self.sent.append({"topic": topic, "value": value, "key": key, "headers": headers})
            delivery.set_result(None)
        return delivery

    async def send_and_wait(self, topic, value=None, key=None, headers=None):
        return await (await self.send(topic, value=value, key=key, headers=headers))

    def records(self, topic: str = None) -> List[FakeRecord]:
        """What a consumer would receive for the sent messages"""
        return [
            FakeRecord(
                topic=sent["topic"],
                partition=0,
                offset=offset,
                key=sent["key"].encode("utf-8") if sent["key"] else None,
                value=json.dumps(sent["value"]).encode("utf-8"),
                headers=sent["headers"]
            )
            for offset, sent in enumerate(self.sent)
            if topic is None or sent["topic"] == topic
        ]

    def envelopes(self, topic: str = None) -> List[EventEnvelope]:
        return [EventEnvelope.from_bytes(record.value) for record in self.records(topic)]


class FakeKafkaConsumer:
    """Stands in for AIOKafkaConsumer; iterates over preloaded records"""

    def __init__(self, *topics, **kwargs):
        self.topics = topics
        self.config = kwargs
        self.records: List[FakeRecord] = []
        self.started = False
        self.stopped = False

    async def start(self):
        self.started = True

    async def stop(self):
        self.stopped = True

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for record in self.records:
            yield record


def make_record(envelope: EventEnvelope, offset: int = 0) -> FakeRecord:
    return FakeRecord(
        topic=envelope.event_type,
        partition=0,
        offset=offset,
        key=envelope.partition_key.encode("utf-8"),
        value=envelope.to_bytes(),
        headers=envelope.headers()
    )


@pytest.fixture
def record_factory():
    return make_record


@pytest.fixture
def fake_producer_class():
    """Class whose instances are remembered, patched over AIOKafkaProducer"""
    instances: List[FakeKafkaProducer] = []

    class RecordingProducer(FakeKafkaProducer):
        def __init__(self, *args, **kwargs):
            super().__init__(*args, **kwargs)
            instances.append(self)

    RecordingProducer.instances = instances
    return RecordingProducer
