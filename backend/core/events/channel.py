"""
Kafka message channel: lazy producer, one consumer per service and a
sequential delivery loop over the frozen handler registry.
"""
import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

from aiokafka import AIOKafkaConsumer, AIOKafkaProducer

from core.config import settings
from .envelope import EventEnvelope
from .registry import HandlerRegistry

logger = logging.getLogger(__name__)


class MessageChannel:
    """
    Publish side connects on first use and never raises. Consume side is
    started explicitly and delivers each record to the handler subscribed
    to its topic, one record at a time.
    """

    def __init__(
        self,
        registry: HandlerRegistry,
        brokers: Optional[List[str]] = None,
        client_id: Optional[str] = None,
        group_id: Optional[str] = None
    ):
        self.registry = registry
        self.brokers = brokers or settings.KAFKA_BROKERS
        self.client_id = client_id or settings.KAFKA_CLIENT_ID or settings.SERVICE_NAME
        self.group_id = group_id or settings.KAFKA_GROUP_ID or f"{settings.SERVICE_NAME}-consumer-group"
        self.producer: Optional[AIOKafkaProducer] = None
        self.consumer: Optional[AIOKafkaConsumer] = None
        self._producer_started = False
        self._consumer_started = False
        self._consume_task: Optional[asyncio.Task] = None
        self._connect_lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        return self._producer_started or self._consumer_started

    @property
    def is_consuming(self) -> bool:
        return (
            self._consumer_started
            and self._consume_task is not None
            and not self._consume_task.done()
        )

    async def connect(self):
        """Start the Kafka producer; concurrent first publishers share one producer"""
        async with self._connect_lock:
            if self._producer_started:
                return
            producer = AIOKafkaProducer(
                bootstrap_servers=self.brokers,
                client_id=self.client_id,
                value_serializer=lambda v: json.dumps(v, default=str).encode('utf-8'),
                key_serializer=lambda k: k.encode('utf-8') if k else None,
                acks='all',
                request_timeout_ms=settings.KAFKA_REQUEST_TIMEOUT_MS,
                retry_backoff_ms=settings.KAFKA_RETRY_BACKOFF_MS
            )
            try:
                await producer.start()
            except Exception:
                await self._close_quietly(producer, "producer")
                raise
            self.producer = producer
            self._producer_started = True
            logger.info(f"Kafka producer connected to {', '.join(self.brokers)}")

    async def _ensure_producer(self):
        if not self._producer_started:
            await self.connect()

    async def _send(self, topic: str, envelope: EventEnvelope, key: str):
        await self.producer.send_and_wait(
            topic,
            value=envelope.to_dict(),
            key=key,
            headers=envelope.headers()
        )

    async def publish(
        self,
        topic: str,
        payload: Dict[str, Any],
        event_id: Optional[str] = None
    ) -> bool:
        """
        Wrap the payload in an envelope and send it.

        Returns:
            bool: True if the broker acknowledged the record, False otherwise
        """
        try:
            await self._ensure_producer()
            envelope = EventEnvelope.create(topic, payload, event_id)
            await self._send(topic, envelope, envelope.partition_key)
            logger.info(f"Published event {envelope.event_id} to topic {topic}")
            return True

        except Exception as e:
            logger.error(f"Failed to publish event to {topic}: {e}", exc_info=True)
            return False

    async def publish_with_key(
        self,
        topic: str,
        key: str,
        payload: Dict[str, Any],
        event_id: Optional[str] = None
    ) -> bool:
        """Same as publish, but every record with this key lands on one partition."""
        try:
            await self._ensure_producer()
            envelope = EventEnvelope.create(topic, payload, event_id)
            await self._send(topic, envelope, key)
            logger.info(f"Published event {envelope.event_id} to topic {topic} with key {key}")
            return True

        except Exception as e:
            logger.error(f"Failed to publish event with key {key} to {topic}: {e}", exc_info=True)
            return False

    async def publish_batch(self, topic: str, payloads: List[Dict[str, Any]]) -> bool:
        """
        Send one envelope per payload, each keyed by its own entity.

        Records are queued together and the call waits for every
        acknowledgement; one failure makes the whole call return False.
        """
        if not payloads:
            return True
        try:
            await self._ensure_producer()
            envelopes = [EventEnvelope.create(topic, payload) for payload in payloads]
            deliveries = []
            for envelope in envelopes:
                deliveries.append(await self.producer.send(
                    topic,
                    value=envelope.to_dict(),
                    key=envelope.partition_key,
                    headers=envelope.headers()
                ))
            await asyncio.gather(*deliveries)
            logger.info(f"Published {len(envelopes)} events to topic {topic}")
            return True

        except Exception as e:
            logger.error(f"Failed to publish batch of {len(payloads)} events to {topic}: {e}", exc_info=True)
            return False

    async def start_consumer(self):
        if self._consumer_started:
            logger.info("Kafka consumer already running")
            return
        topics = self.registry.topics
        if not topics:
            logger.info("No topics subscribed, consumer not started")
            return

        consumer = AIOKafkaConsumer(
            *topics,
            bootstrap_servers=self.brokers,
            client_id=self.client_id,
            group_id=self.group_id,
            auto_offset_reset='latest',
            enable_auto_commit=True,
            session_timeout_ms=settings.KAFKA_SESSION_TIMEOUT_MS,
            heartbeat_interval_ms=settings.KAFKA_HEARTBEAT_INTERVAL_MS,
            request_timeout_ms=settings.KAFKA_REQUEST_TIMEOUT_MS,
            retry_backoff_ms=settings.KAFKA_RETRY_BACKOFF_MS
        )
        try:
            await consumer.start()
        except Exception as e:
            logger.error(f"Failed to start Kafka consumer for {topics}: {e}", exc_info=True)
            await self._close_quietly(consumer, "consumer")
            raise

        self.consumer = consumer
        self._consumer_started = True
        self._consume_task = asyncio.create_task(self._consume())
        logger.info(f"Kafka consumer started (group {self.group_id}) on topics: {', '.join(topics)}")

    async def _consume(self):
        try:
            async for msg in self.consumer:
                await self._dispatch(msg)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.critical(f"Kafka consumer loop stopped, consumer must be restarted: {e}", exc_info=True)
            # clear state so start_consumer() builds a fresh consumer
            consumer, self.consumer = self.consumer, None
            self._consumer_started = False
            await self._close_quietly(consumer, "consumer")

    async def _dispatch(self, msg):
        """Deliver one record. Handler errors are logged, never propagated."""
        if not msg.value:
            logger.warning(f"Empty message received on {msg.topic} (offset {msg.offset})")
            return

        handler = self.registry.get_handler(msg.topic)
        if handler is None:
            logger.warning(f"No handler subscribed to topic {msg.topic}")
            return

        try:
            envelope = EventEnvelope.from_bytes(msg.value)
            logger.debug(f"Processing {envelope.event_id} from {msg.topic} partition {msg.partition}")
            await handler(envelope)
        except Exception as e:
            logger.error(
                f"Error processing message from {msg.topic} "
                f"(partition {msg.partition}, offset {msg.offset}): {e}",
                exc_info=True
            )

    @staticmethod
    async def _close_quietly(client, name: str):
        if client is None:
            return
        try:
            await client.stop()
        except Exception as e:
            logger.warning(f"Error stopping Kafka {name}: {e}")

    async def disconnect(self):
        if self._consume_task is not None:
            self._consume_task.cancel()
            try:
                await self._consume_task
            except asyncio.CancelledError:
                pass
            self._consume_task = None

        if self.consumer is not None and self._consumer_started:
            try:
                await self.consumer.stop()
            except Exception as e:
                logger.error(f"Error stopping Kafka consumer: {e}", exc_info=True)
        self._consumer_started = False
        self.consumer = None

        if self.producer is not None and self._producer_started:
            try:
                await self.producer.stop()
            except Exception as e:
                logger.error(f"Error stopping Kafka producer: {e}", exc_info=True)
        self._producer_started = False
        self.producer = None
        logger.info("Kafka channel disconnected")
