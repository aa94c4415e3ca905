from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
from typing import Any, Dict, List, Optional
from datetime import datetime, timedelta, timezone

from models.processed_event import ProcessedEvent, ProcessingResult
import logging

logger = logging.getLogger(__name__)


class ProcessedEventStore:
    """Reads and writes ledger rows inside the caller's transaction."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(
        self,
        event_id: str,
        event_type: str,
        event_data: Optional[Dict[str, Any]],
        result: ProcessingResult,
        error_message: Optional[str] = None
    ) -> ProcessedEvent:
        """Add a row and flush, so a unique violation surfaces here."""
        entry = ProcessedEvent(
            event_id=event_id,
            event_type=event_type,
            event_data=event_data,
            processing_result=result.value,
            error_message=error_message
        )
        self.db.add(entry)
        await self.db.flush()
        return entry

    async def find_by_event_id(self, event_id: str) -> Optional[ProcessedEvent]:
        """The row that claimed the event, if any. SKIPPED rows never count."""
        result = await self.db.execute(
            select(ProcessedEvent).where(
                ProcessedEvent.event_id == event_id,
                ProcessedEvent.processing_result != ProcessingResult.SKIPPED.value
            )
        )
        return result.scalars().first()

    async def is_event_processed(self, event_id: str) -> bool:
        return await self.find_by_event_id(event_id) is not None

    async def find_by_event_type(self, event_type: str, limit: int = 100) -> List[ProcessedEvent]:
        result = await self.db.execute(
            select(ProcessedEvent)
            .where(ProcessedEvent.event_type == event_type)
            .order_by(ProcessedEvent.created_at.desc())
            .limit(limit)
        )
        return result.scalars().all()

    async def find_failed(self, limit: int = 100) -> List[ProcessedEvent]:
        result = await self.db.execute(
            select(ProcessedEvent)
            .where(ProcessedEvent.processing_result == ProcessingResult.FAILED.value)
            .order_by(ProcessedEvent.created_at.desc())
            .limit(limit)
        )
        return result.scalars().all()

    async def delete_older_than(self, days: int) -> int:
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        result = await self.db.execute(
            delete(ProcessedEvent).where(ProcessedEvent.created_at < cutoff)
        )
        return result.rowcount or 0
