"""
At-most-once application of consumed events.

Each delivery claims its event id by inserting the authoritative ledger row
in the same transaction as the handler's side effects. A redelivery either
finds that row up front or loses the race on the unique index, and is
recorded as SKIPPED. A failing handler rolls back both its side effects and
the claim, and a FAILED row is written on its own.
"""
from dataclasses import dataclass
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Awaitable, Callable, Dict, List, Optional
import logging

from core.config import settings
from core.events.envelope import EventEnvelope, generate_event_id
from models.processed_event import ProcessedEvent, ProcessingResult
from services.processed_events import ProcessedEventStore

logger = logging.getLogger(__name__)

ALREADY_PROCESSED_MESSAGE = "Event was already processed"

EventProcessor = Callable[[AsyncSession, Dict[str, Any]], Awaitable[Any]]


@dataclass
class ProcessingOutcome:
    processed: bool
    result: Any = None
    error: Optional[str] = None
    skipped: bool = False


class IdempotencyService:

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def generate_event_id(self, event_type: str, payload: Dict[str, Any]) -> str:
        return generate_event_id(event_type, payload)

    async def is_event_processed(self, event_id: str) -> bool:
        async with self.session_factory() as db:
            return await ProcessedEventStore(db).is_event_processed(event_id)

    async def process_event(self, envelope: EventEnvelope, handler: EventProcessor) -> ProcessingOutcome:
        """
        Run ``handler(db, payload)`` unless the event was already processed.

        Never raises; the outcome says whether the handler ran and committed.
        """
        event_type = envelope.event_type
        payload = envelope.payload
        event_id = envelope.event_id or generate_event_id(event_type, payload)

        if await self.is_event_processed(event_id):
            logger.info(f"Event {event_id} ({event_type}) already processed, skipping")
            await self._record_outcome(event_id, event_type, payload, ProcessingResult.SKIPPED, ALREADY_PROCESSED_MESSAGE)
            return ProcessingOutcome(processed=False, skipped=True)

        async with self.session_factory() as db:
            store = ProcessedEventStore(db)
            try:
                await store.record(event_id, event_type, payload, ProcessingResult.SUCCESS)
            except IntegrityError:
                await db.rollback()
                logger.info(f"Event {event_id} ({event_type}) claimed by a concurrent delivery, skipping")
                await self._record_outcome(event_id, event_type, payload, ProcessingResult.SKIPPED, ALREADY_PROCESSED_MESSAGE)
                return ProcessingOutcome(processed=False, skipped=True)

            try:
                result = await handler(db, payload)
                await db.commit()
            except Exception as e:
                await db.rollback()
                logger.error(f"Failed to process event {event_id} ({event_type}): {e}", exc_info=True)
                await self._record_outcome(event_id, event_type, payload, ProcessingResult.FAILED, str(e))
                return ProcessingOutcome(processed=False, error=str(e))

        logger.info(f"Event {event_id} ({event_type}) processed successfully")
        return ProcessingOutcome(processed=True, result=result)

    async def _record_outcome(
        self,
        event_id: str,
        event_type: str,
        payload: Dict[str, Any],
        result: ProcessingResult,
        error_message: Optional[str] = None
    ):
        try:
            async with self.session_factory() as db:
                await ProcessedEventStore(db).record(event_id, event_type, payload, result, error_message)
                await db.commit()
        except Exception as e:
            logger.error(f"Failed to record {result.value} for event {event_id}: {e}", exc_info=True)

    async def get_event_history(self, event_type: str, limit: int = 100) -> List[ProcessedEvent]:
        async with self.session_factory() as db:
            return await ProcessedEventStore(db).find_by_event_type(event_type, limit)

    async def get_failed_events(self, limit: int = 100) -> List[ProcessedEvent]:
        async with self.session_factory() as db:
            return await ProcessedEventStore(db).find_failed(limit)

    async def cleanup_old_events(self, days: Optional[int] = None) -> int:
        if days is None:
            days = settings.EVENT_RETENTION_DAYS
        async with self.session_factory() as db:
            deleted = await ProcessedEventStore(db).delete_older_than(days)
            await db.commit()
        logger.info(f"Deleted {deleted} processed events older than {days} days")
        return deleted
