"""Periodic removal of jobs older than the retention window."""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from ffmpeg_jobs.jobs.dispatcher import JobDispatcher
from ffmpeg_jobs.jobs.models import utcnow
from ffmpeg_jobs.jobs.store import JobStore

logger = logging.getLogger(__name__)


class RetentionSweeper:
    """Deletes every job whose created_at is older than the retention window.

    Age is the only criterion. A job still processing when it ages out is
    removed through the dispatcher, which terminates its process before the
    files go, so nothing keeps running or writing for a deleted job.
    """

    def __init__(
        self,
        dispatcher: JobDispatcher,
        store: JobStore,
        retention: timedelta = timedelta(hours=24),
        interval: float = 3600.0,
    ):
        self._dispatcher = dispatcher
        self._store = store
        self._retention = retention
        self._interval = interval
        self._task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        self._task = asyncio.create_task(self._loop(), name="retention-sweeper")

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def sweep(self, now: Optional[datetime] = None) -> List[str]:
        """Run one cycle. Returns the ids that were removed."""
        cutoff = (now or utcnow()) - self._retention
        removed = []
        for job in self._store.records():
            if job.created_at >= cutoff:
                continue
            logger.info(f"Cleaning up old job: {job.id} ({job.status.value})")
            if await self._dispatcher.delete(job.id) is not None:
                removed.append(job.id)
        return removed

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                removed = await self.sweep()
            except Exception:
                logger.exception("Retention sweep failed")
                continue
            if removed:
                logger.info(f"Retention sweep removed {len(removed)} job(s)")
