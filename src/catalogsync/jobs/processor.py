"""
Batch processor.

Drives one sync job: Fetch page -> persist cursor -> write items -> flush.

Loop per page:
1. Stop (with a flush) if the live status is paused or cancelled
2. Fetch the page at the current cursor; an empty page completes the run
3. Persist cursor/offset before touching any item of the page
4. Write items one at a time through the destination writer, rate limited;
   failures are counted, a long enough failure streak aborts the run
5. Flush counters every ``flush_every`` items and at the end of the page
6. Move to the next cursor, or complete when the feed says it is exhausted
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Optional

from ..config import SyncSettings
from ..destination.shopify import DestinationWriter
from ..errors import DestinationError, FeedError, SystemicFailure
from ..feed.client import FeedClient
from ..feed.models import FeedPage
from ..ratelimit import IntervalLimiter
from ..session import ShopSession
from .models import JobStatus, SyncJob
from .slot import LiveJobSlot

logger = logging.getLogger(__name__)


class RunCancelled(Exception):
    """Raised inside the loop when the cancellation event fires."""


class BatchProcessor:
    """Runs the page loop for a single job until it stops or ends."""

    def __init__(
        self,
        slot: LiveJobSlot,
        job_id: str,
        session: ShopSession,
        feed: FeedClient,
        writer: DestinationWriter,
        limiter: IntervalLimiter,
        cancel_event: asyncio.Event,
        settings: SyncSettings,
    ):
        self.slot = slot
        self.job_id = job_id
        self.session = session
        self.feed = feed
        self.writer = writer
        self.limiter = limiter
        self.cancel_event = cancel_event
        self.settings = settings

        self._failure_streak = 0
        self._feed_failure_streak = 0
        self._unflushed = 0

    async def run(self) -> Optional[SyncJob]:
        """Execute the job. Never raises for item or feed failures.

        Returns:
            Final snapshot of the job, or None if it lost the slot
        """
        try:
            return await self._run()
        except RunCancelled:
            return await self._stop(JobStatus.CANCELLED)
        except asyncio.CancelledError:
            # Worker torn down from outside (event loop shutdown): keep it resumable
            logger.warning(f"Sync job {self.job_id} interrupted, parking as paused")
            await self.slot.finish(self.job_id, _park)
            raise
        except SystemicFailure as e:
            logger.error(f"Sync job {self.job_id} failed: {e}")
            return await self._finish_failed(str(e))
        except Exception as e:
            logger.exception(f"Sync job {self.job_id} crashed")
            return await self._finish_failed(str(e) or type(e).__name__)

    async def _run(self) -> Optional[SyncJob]:
        job = await self.slot.update(self.job_id, _claim, flush=True)
        if job is None:
            return None
        if job.status is not JobStatus.PROCESSING:
            return await self._stop(job.status)

        logger.info(
            f"Sync job {self.job_id} processing for {job.scope} "
            f"(cursor={job.cursor!r}, offset={job.page_offset}, "
            f"processed={job.processed_count}, failed={job.failed_count})"
        )

        cursor, skip = job.cursor, job.page_offset
        batch_size = job.batch_size

        while True:
            status = await self.slot.status(self.job_id)
            if status is not JobStatus.PROCESSING:
                return await self._stop(status)

            page = await self._fetch(cursor, batch_size)
            if page is None:
                continue
            if not page.items:
                return await self._complete()

            await self.slot.update(
                self.job_id,
                lambda j: _begin_page(j, page, cursor, skip),
                flush=True,
            )

            for index, item in enumerate(page.items):
                if index < skip:
                    continue

                status = await self.slot.status(self.job_id)
                if status is not JobStatus.PROCESSING:
                    return await self._stop(status)

                await self._interruptible(self.limiter.wait())
                try:
                    await self._interruptible(
                        self.writer.create_item(self.session, item)
                    )
                except DestinationError as e:
                    self._failure_streak += 1
                    await self.slot.update(
                        self.job_id, lambda j: _record_failure(j, index)
                    )
                    logger.warning(
                        f"Failed to create product {item.id} "
                        f"({self._failure_streak} in a row): {e}"
                    )
                    if self._failure_streak >= self.settings.max_consecutive_failures:
                        raise SystemicFailure(
                            f"Aborted after {self._failure_streak} consecutive "
                            f"failures: {e}"
                        ) from e
                else:
                    self._failure_streak = 0
                    await self.slot.update(
                        self.job_id, lambda j: _record_success(j, index)
                    )

                self._unflushed += 1
                if self._unflushed >= self.settings.flush_every:
                    await self._flush()

            if page.exhausted:
                return await self._complete()

            cursor, skip = page.next_cursor, 0
            await self.slot.update(
                self.job_id, lambda j: _advance(j, cursor), flush=True
            )
            self._unflushed = 0
            logger.debug(f"Sync job {self.job_id} advanced to cursor {cursor!r}")

    async def _fetch(self, cursor: Optional[str], batch_size: int) -> Optional[FeedPage]:
        """Fetch one page; None means "retry the same cursor"."""
        try:
            page = await self._interruptible(self.feed.fetch_page(cursor, batch_size))
        except FeedError as e:
            self._feed_failure_streak += 1
            await self.slot.update(self.job_id, _record_fetch_failure, flush=True)
            logger.warning(
                f"Feed fetch failed for job {self.job_id} at cursor {cursor!r} "
                f"({self._feed_failure_streak} in a row): {e}"
            )
            if self._feed_failure_streak >= self.settings.max_consecutive_failures:
                raise SystemicFailure(
                    f"Feed unreachable after {self._feed_failure_streak} "
                    f"attempts: {e}"
                ) from e
            await self._interruptible(asyncio.sleep(self.settings.request_interval))
            return None
        self._feed_failure_streak = 0
        return page

    async def _interruptible(self, awaitable: Awaitable[Any]) -> Any:
        """Await ``awaitable`` unless the job is cancelled first."""
        if self.cancel_event.is_set():
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise RunCancelled()

        work = asyncio.ensure_future(awaitable)
        stop = asyncio.ensure_future(self.cancel_event.wait())
        try:
            await asyncio.wait({work, stop}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop.cancel()
            if not work.done():
                work.cancel()

        if not work.cancelled() and work.done():
            return work.result()
        # Let the aborted call unwind before reporting the cancellation
        await asyncio.wait({work})
        raise RunCancelled()

    async def _flush(self) -> None:
        await self.slot.update(self.job_id, flush=True)
        self._unflushed = 0

    async def _stop(self, status: Optional[JobStatus]) -> Optional[SyncJob]:
        if status is None:
            logger.warning(f"Sync job {self.job_id} no longer holds the current slot")
            return None
        job = await self.slot.finish(self.job_id)
        if job is not None:
            logger.info(
                f"Sync job {self.job_id} {job.status.value}: "
                f"processed={job.processed_count}, failed={job.failed_count}, "
                f"cursor={job.cursor!r}, offset={job.page_offset}"
            )
        return job

    async def _complete(self) -> Optional[SyncJob]:
        job = await self.slot.finish(self.job_id, _mark_completed)
        if job is not None:
            logger.info(
                f"Sync job {self.job_id} {job.status.value}. "
                f"Processed: {job.processed_count}, Failed: {job.failed_count}"
            )
        return job

    async def _finish_failed(self, message: str) -> Optional[SyncJob]:
        return await self.slot.finish(self.job_id, lambda j: _mark_failed(j, message))


def _claim(job: SyncJob) -> None:
    if job.status is JobStatus.QUEUED:
        job.status = JobStatus.PROCESSING


def _park(job: SyncJob) -> None:
    if job.status in (JobStatus.QUEUED, JobStatus.PROCESSING):
        job.status = JobStatus.PAUSED


def _begin_page(job: SyncJob, page: FeedPage, cursor: Optional[str], skip: int) -> None:
    job.cursor = cursor
    job.page_offset = skip
    # First reported total wins; later pages are not reconciled
    if not job.total_items and page.approximate_total:
        job.total_items = page.approximate_total


def _record_success(job: SyncJob, index: int) -> None:
    job.processed_count += 1
    job.page_offset = index + 1


def _record_failure(job: SyncJob, index: int) -> None:
    job.failed_count += 1
    job.page_offset = index + 1


def _record_fetch_failure(job: SyncJob) -> None:
    job.failed_count += 1


def _advance(job: SyncJob, cursor: Optional[str]) -> None:
    job.cursor = cursor
    job.page_offset = 0


def _mark_completed(job: SyncJob) -> None:
    if job.status is JobStatus.CANCELLED:
        return
    job.status = JobStatus.COMPLETED
    job.cursor = None
    job.page_offset = 0


def _mark_failed(job: SyncJob, message: str) -> None:
    if job.status is JobStatus.CANCELLED:
        return
    job.status = JobStatus.FAILED
    job.error_message = message
