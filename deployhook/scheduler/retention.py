"""Audit retention - prunes old webhook run rows on an interval."""
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from deployhook.audit_log import AuditLog

logger = logging.getLogger(__name__)


class RetentionScheduler:
    """Runs AuditLog.prune every `interval_minutes` inside the server's event loop."""

    def __init__(self, audit_log: AuditLog, retention_days: int = 30, interval_minutes: int = 60):
        self.audit_log = audit_log
        self.retention_days = retention_days
        self.interval_minutes = interval_minutes
        self._scheduler = AsyncIOScheduler()

    def start(self) -> None:
        self._scheduler.add_job(
            self.prune,
            IntervalTrigger(minutes=self.interval_minutes),
            id="audit-retention",
        )
        self._scheduler.start()

    def stop(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown()

    async def prune(self) -> int:
        removed = self.audit_log.prune(self.retention_days)
        if removed:
            logger.info("Pruned %d webhook run rows older than %d days", removed, self.retention_days)
        return removed
