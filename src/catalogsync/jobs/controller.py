"""
Job controller.

Serializes access to the single current-job slot and validates every
transition request against it. At most one job is queued, processing or
paused per process; a paused job stays parked in the slot until it is
resumed or cancelled.

Usage:
    controller = JobController(store, feed, writer, settings)
    job_id = await controller.start(session, SyncOptions(batch_size=10))
    await controller.pause(job_id)
    await controller.resume(job_id, session)
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from ..config import MAX_BATCH_SIZE, MIN_BATCH_SIZE, SyncOptions, SyncSettings
from ..destination.shopify import DestinationWriter
from ..errors import AlreadyRunning, InvalidConfig, InvalidState, JobNotFound
from ..feed.client import FeedClient
from ..ratelimit import IntervalLimiter
from ..session import ShopSession, require_session
from .models import JobStatus, SyncJob
from .processor import BatchProcessor
from .slot import ActiveRun, LiveJobSlot
from .store import JobStore

logger = logging.getLogger(__name__)


def validate_options(options: SyncOptions) -> None:
    if not MIN_BATCH_SIZE <= options.batch_size <= MAX_BATCH_SIZE:
        raise InvalidConfig(
            f"batch_size must be between {MIN_BATCH_SIZE} and {MAX_BATCH_SIZE}, "
            f"got {options.batch_size}"
        )


class JobController:
    """Single owner of the current sync job.

    The destination rate limiter lives here so its budget is shared by
    every run this controller launches.
    """

    def __init__(
        self,
        store: JobStore,
        feed: FeedClient,
        writer: DestinationWriter,
        settings: Optional[SyncSettings] = None,
        limiter: Optional[IntervalLimiter] = None,
    ):
        self.store = store
        self.feed = feed
        self.writer = writer
        self.settings = settings or SyncSettings()
        self.limiter = limiter or IntervalLimiter(self.settings.request_interval)
        self._slot = LiveJobSlot(store)

    # =========================================================================
    # Transitions
    # =========================================================================

    async def start(
        self, session: Optional[ShopSession], options: Optional[SyncOptions] = None
    ) -> str:
        """Create a job for the session's shop and launch it.

        Returns immediately with the new job id.

        Raises:
            AlreadyRunning: another job holds the slot
            ConfigurationError: session missing or incomplete
            InvalidConfig: batch size out of range
        """
        options = options or SyncOptions(batch_size=self.settings.batch_size)
        while True:
            async with self._slot.lock:
                self._reap()
                run = self._slot.run
                if run is None:
                    session = require_session(session)
                    validate_options(options)
                    job = SyncJob.create(scope=session.shop, batch_size=options.batch_size)
                    await self.store.create(job)
                    self._launch(job, session)
                    break
                if run.job.status.is_active:
                    raise AlreadyRunning(run.job.id)
                pending = run.task
            # Previous job was cancelled and its worker is still unwinding
            await asyncio.wait({pending})

        logger.info(
            f"Sync job {job.id} queued for {job.scope} (batch_size={job.batch_size})"
        )
        return job.id

    async def pause(self, job_id: str) -> SyncJob:
        """Ask the worker to stop at its next safe point, keeping its place."""
        async with self._slot.lock:
            self._reap()
            run = self._slot.run
            if run is None or run.job.id != job_id:
                raise JobNotFound(job_id)
            job = run.job
            if job.status not in (JobStatus.PROCESSING, JobStatus.QUEUED):
                raise InvalidState(job_id, job.status.value, "pause")
            job.status = JobStatus.PAUSED
            job.touch()
            await self.store.save(job)
            snapshot = job.snapshot()

        logger.info(f"Sync job {job_id} pause requested")
        return snapshot

    async def resume(
        self,
        job_id: str,
        session: Optional[ShopSession],
        options: Optional[SyncOptions] = None,
    ) -> SyncJob:
        """Relaunch a paused job from its stored cursor.

        Raises:
            AlreadyRunning: a different job holds the slot
            JobNotFound: no durable record
            InvalidState: durable status is not paused
        """
        while True:
            async with self._slot.lock:
                self._reap()
                run = self._slot.run
                if run is not None and run.job.id != job_id:
                    raise AlreadyRunning(run.job.id)

                if run is not None and run.worker_running:
                    if run.job.status in (JobStatus.PROCESSING, JobStatus.QUEUED):
                        raise InvalidState(job_id, run.job.status.value, "resume")
                    pending = run.task
                else:
                    job = await self.store.get(job_id)
                    if job is None:
                        raise JobNotFound(job_id)
                    if job.status is not JobStatus.PAUSED:
                        raise InvalidState(job_id, job.status.value, "resume")
                    session = require_session(session)
                    if options is not None:
                        validate_options(options)
                        job.batch_size = options.batch_size

                    job.status = JobStatus.PROCESSING
                    job.error_message = None
                    job.touch()
                    await self.store.save(job)
                    self._launch(job, session)
                    snapshot = job.snapshot()
                    break
            # Pause was requested but the worker has not exited yet
            await asyncio.wait({pending})

        logger.info(
            f"Sync job {job_id} resumed at cursor {snapshot.cursor!r} "
            f"(offset={snapshot.page_offset}, processed={snapshot.processed_count})"
        )
        return snapshot

    async def cancel(self, job_id: str) -> SyncJob:
        """Cancel a job; an in-flight feed or destination call is aborted."""
        async with self._slot.lock:
            self._reap()
            if self._slot.holds(job_id):
                snapshot = await self._cancel_current()
            else:
                job = await self.store.get(job_id)
                if job is None:
                    raise JobNotFound(job_id)
                if not job.status.is_active:
                    raise InvalidState(job_id, job.status.value, "cancel")
                job.status = JobStatus.CANCELLED
                job.touch()
                await self.store.save(job)
                snapshot = job.snapshot()

        logger.info(f"Sync job {job_id} cancelled")
        return snapshot

    async def cancel_all(self) -> int:
        """Force-cancel the current job and every non-terminal durable record.

        Returns:
            Number of jobs moved to cancelled
        """
        logger.info("Force cancelling all sync jobs...")
        async with self._slot.lock:
            self._reap()
            count = 0
            run = self._slot.run
            if run is not None:
                # A job already cancelled but still unwinding is not swept again
                if run.job.status.is_active:
                    count += 1
                await self._cancel_current()
            count += await self.store.cancel_active()

        logger.info(f"Force cancelled {count} jobs")
        return count

    async def _cancel_current(self) -> SyncJob:
        """Cancel the job in the slot. Caller holds the lock."""
        run = self._slot.run
        job = run.job
        if job.status.is_active:
            job.status = JobStatus.CANCELLED
            job.touch()
            await self.store.save(job)
        run.cancel_event.set()
        snapshot = job.snapshot()
        if not run.worker_running:
            self._slot.run = None
        return snapshot

    # =========================================================================
    # Reads
    # =========================================================================

    def current_status(self) -> Optional[SyncJob]:
        """Live view of the current job, without touching the store."""
        run = self._slot.run
        return run.job.snapshot() if run is not None else None

    async def status(self, job_id: str) -> SyncJob:
        """Job by id; the live view wins over the last flush."""
        async with self._slot.lock:
            if self._slot.holds(job_id):
                return self._slot.run.job.snapshot()
        job = await self.store.get(job_id)
        if job is None:
            raise JobNotFound(job_id)
        return job

    async def history(self, scope: str) -> List[SyncJob]:
        """All jobs of a shop, newest first."""
        jobs = await self.store.list_for_scope(scope)
        live = self.current_status()
        if live is None:
            return jobs
        return [live if job.id == live.id else job for job in jobs]

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def recover(self) -> List[str]:
        """Park jobs left queued/processing by a previous process.

        Nothing is resumed automatically; the operator resumes or cancels.
        The newest paused job becomes current so a new start is refused
        until it is dealt with.
        """
        parked: List[str] = []
        async with self._slot.lock:
            active = await self.store.list_active()
            for job in active:
                if self._slot.holds(job.id):
                    continue
                previous = job.status
                if previous in (JobStatus.QUEUED, JobStatus.PROCESSING):
                    job.status = JobStatus.PAUSED
                    job.touch()
                    await self.store.save(job)
                    parked.append(job.id)
                    logger.warning(
                        f"Sync job {job.id} for {job.scope} was {previous.value} "
                        f"without a worker; marked paused, resume or cancel it"
                    )

            if self._slot.run is None and active:
                # list_active is oldest first
                job = active[-1]
                self._slot.run = ActiveRun(
                    job=job, session=None, cancel_event=asyncio.Event()
                )
                logger.info(f"Sync job {job.id} for {job.scope} is current (paused)")
        return parked

    async def wait(self, job_id: str) -> SyncJob:
        """Wait for the job's worker to exit and return the job."""
        run = self._slot.run
        if run is not None and run.job.id == job_id and run.task is not None:
            await asyncio.wait({run.task})
        return await self.status(job_id)

    async def shutdown(self) -> None:
        """Pause the running job so it can be resumed after restart."""
        async with self._slot.lock:
            run = self._slot.run
            if run is None or not run.worker_running:
                return
            if run.job.status in (JobStatus.PROCESSING, JobStatus.QUEUED):
                run.job.status = JobStatus.PAUSED
                run.job.touch()
                await self.store.save(run.job)
            job_id, task = run.job.id, run.task

        logger.info(f"Waiting for sync job {job_id} to stop...")
        await asyncio.wait({task})

    # =========================================================================
    # Internals
    # =========================================================================

    def _launch(self, job: SyncJob, session: ShopSession) -> None:
        """Install ``job`` as current and start its worker. Caller holds the lock."""
        run = ActiveRun(job=job, session=session, cancel_event=asyncio.Event())
        processor = BatchProcessor(
            slot=self._slot,
            job_id=job.id,
            session=session,
            feed=self.feed,
            writer=self.writer,
            limiter=self.limiter,
            cancel_event=run.cancel_event,
            settings=self.settings,
        )
        self._slot.run = run
        run.task = asyncio.create_task(processor.run(), name=f"sync-job-{job.id}")
        run.task.add_done_callback(self._on_worker_done)

    def _on_worker_done(self, task: asyncio.Task) -> None:
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                f"Sync worker {task.get_name()} raised", exc_info=task.exception()
            )
        self._reap()

    def _reap(self) -> None:
        """Drop a finished run whose job is no longer active."""
        run = self._slot.run
        if run is not None and not run.worker_running and not run.job.status.is_active:
            self._slot.run = None
