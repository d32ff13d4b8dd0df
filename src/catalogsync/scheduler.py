"""
Scheduler for periodic catalog syncs.

Uses APScheduler to start a sync for the configured shop every
``schedule_interval`` seconds. A tick that finds a job already holding the
slot is skipped.
"""

import asyncio
import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .config import SyncOptions
from .errors import ConcurrencyConflict, ConfigurationError
from .jobs.controller import JobController
from .session import StaticSessionProvider

logger = logging.getLogger(__name__)


class SyncScheduler:
    """Interval trigger around ``JobController.start``."""

    def __init__(
        self,
        controller: JobController,
        sessions: StaticSessionProvider,
        interval: int,
        options: Optional[SyncOptions] = None,
    ):
        self.controller = controller
        self.sessions = sessions
        self.interval = interval
        self.options = options
        self.scheduler = AsyncIOScheduler()

    def start(self):
        """Start the scheduler."""
        self.scheduler.add_job(
            self.run_once,
            trigger=IntervalTrigger(seconds=self.interval),
            id="catalog_sync",
            name="Scheduled catalog sync",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        logger.info(f"Sync scheduler started. Syncing every {self.interval}s")

    async def stop(self):
        """Stop the scheduler."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            # Newer APScheduler releases defer shutdown to the next loop iteration
            while self.scheduler.running:
                await asyncio.sleep(0)
        logger.info("Sync scheduler stopped")

    async def run_once(self) -> Optional[str]:
        """Start one scheduled sync; returns the job id or None if skipped."""
        session = self.sessions.get_session()
        if session is None:
            logger.error("SHOPIFY_SHOP / SHOPIFY_ACCESS_TOKEN not configured")
            return None

        try:
            job_id = await self.controller.start(session, self.options)
        except ConcurrencyConflict as e:
            logger.info(f"Scheduled sync skipped: {e}")
            return None
        except ConfigurationError as e:
            logger.error(f"Scheduled sync rejected: {e}")
            return None

        logger.info(f"Scheduled sync started: {job_id}")
        return job_id
