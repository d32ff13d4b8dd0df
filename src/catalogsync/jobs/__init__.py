"""
Sync job lifecycle.

Components:
- models: SyncJob record and JobStatus
- store: durable job records (SQLite, PostgreSQL)
- slot: the single current-job cell
- processor: page loop for one job
- controller: start/pause/resume/cancel over the slot
"""

from .controller import JobController
from .models import ACTIVE_STATUSES, TERMINAL_STATUSES, JobStatus, SyncJob
from .processor import BatchProcessor
from .slot import ActiveRun, LiveJobSlot
from .store import JobStore, SQLiteJobStore, create_job_store

__all__ = [
    "JobController",
    "JobStatus",
    "SyncJob",
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
    "BatchProcessor",
    "ActiveRun",
    "LiveJobSlot",
    "JobStore",
    "SQLiteJobStore",
    "create_job_store",
]
