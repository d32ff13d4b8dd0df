"""The process-wide current-job cell.

Owned by JobController; the batch processor it launches gets a reference so
it can read and mutate the live job. Every read-modify-write happens under
``lock`` and durable writes are issued while the lock is held, so flushes for
a job are totally ordered with live transitions.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Callable, Optional

from ..session import ShopSession
from .models import JobStatus, SyncJob
from .store import JobStore

Mutation = Callable[[SyncJob], None]


@dataclass
class ActiveRun:
    """Live job plus the worker currently driving it."""

    job: SyncJob
    session: Optional[ShopSession]
    cancel_event: asyncio.Event
    task: Optional[asyncio.Task] = None

    @property
    def worker_running(self) -> bool:
        return self.task is not None and not self.task.done()


class LiveJobSlot:
    """Guarded reference to the single current job."""

    def __init__(self, store: JobStore):
        self.store = store
        self.lock = asyncio.Lock()
        self.run: Optional[ActiveRun] = None

    def holds(self, job_id: str) -> bool:
        return self.run is not None and self.run.job.id == job_id

    async def status(self, job_id: str) -> Optional[JobStatus]:
        """Live status, or None once the job no longer holds the slot."""
        async with self.lock:
            return self.run.job.status if self.holds(job_id) else None

    async def update(
        self, job_id: str, mutate: Optional[Mutation] = None, flush: bool = False
    ) -> Optional[SyncJob]:
        """Apply ``mutate`` to the live job, optionally writing it through."""
        async with self.lock:
            if not self.holds(job_id):
                return None
            job = self.run.job
            if mutate is not None:
                mutate(job)
            job.touch()
            if flush:
                await self.store.save(job)
            return job.snapshot()

    async def finish(
        self, job_id: str, mutate: Optional[Mutation] = None
    ) -> Optional[SyncJob]:
        """Final flush of a run.

        The slot is released unless the job ends paused: a paused job stays
        parked as current until it is resumed or cancelled.
        """
        async with self.lock:
            if not self.holds(job_id):
                return None
            job = self.run.job
            if mutate is not None:
                mutate(job)
            job.touch()
            try:
                await self.store.save(job)
            finally:
                if job.status is not JobStatus.PAUSED:
                    self.run = None
            return job.snapshot()
