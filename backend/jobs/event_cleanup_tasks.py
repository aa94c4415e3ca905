"""
Background task for processed event retention
Deletes ledger rows older than EVENT_RETENTION_DAYS on a cron schedule
"""
import logging
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from core.config import settings
from services.idempotency import IdempotencyService

logger = logging.getLogger(__name__)

CLEANUP_JOB_ID = 'cleanup-old-events'


class EventCleanupTaskManager:
    """Manager for the processed events retention task"""

    def __init__(
        self,
        idempotency: IdempotencyService,
        retention_days: Optional[int] = None,
        cron: Optional[str] = None,
        timezone: Optional[str] = None
    ):
        self.idempotency = idempotency
        self.retention_days = settings.EVENT_RETENTION_DAYS if retention_days is None else retention_days
        self.cron = cron or settings.EVENT_CLEANUP_CRON
        self.timezone = timezone or settings.EVENT_CLEANUP_TIMEZONE

    async def run_cleanup(self) -> int:
        """
        Delete processed events older than the retention window

        Returns:
            Number of deleted rows, 0 when the cleanup failed
        """
        logger.info(f"Starting cleanup of processed events older than {self.retention_days} days")
        try:
            deleted = await self.idempotency.cleanup_old_events(self.retention_days)
            logger.info(f"Event cleanup completed. Deleted {deleted} old events")
            return deleted
        except Exception as e:
            logger.error(f"Error during event cleanup: {str(e)}", exc_info=True)
            return 0

    def schedule(self, scheduler: AsyncIOScheduler):
        scheduler.add_job(
            func=self.run_cleanup,
            trigger=CronTrigger.from_crontab(self.cron, timezone=self.timezone),
            id=CLEANUP_JOB_ID,
            name='Delete processed events past the retention window',
            replace_existing=True,
            misfire_grace_time=3600  # 1 hour grace time
        )
        logger.info(f"Event cleanup scheduled with cron '{self.cron}' ({self.timezone})")
