"""Error taxonomy for sync jobs.

Controller errors are raised to callers; item-level errors stay inside the
batch processor and only show up as ``failed_count``.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for all catalogsync errors."""


class ConfigurationError(SyncError):
    """Request rejected before any state was touched (e.g. missing session)."""


class InvalidConfig(ConfigurationError):
    """Job options outside the accepted range."""


class ConcurrencyConflict(SyncError):
    """Request conflicts with the job currently holding the slot."""


class AlreadyRunning(ConcurrencyConflict):
    """Another job is queued, processing or paused in this process."""

    def __init__(self, job_id: str):
        super().__init__(f"Sync job {job_id} is already running")
        self.job_id = job_id


class JobNotFound(SyncError):
    def __init__(self, job_id: str):
        super().__init__(f"Job {job_id} not found")
        self.job_id = job_id


class InvalidState(SyncError):
    """Transition not allowed from the job's current status."""

    def __init__(self, job_id: str, status: str, action: str):
        super().__init__(f"Cannot {action} job {job_id} in status '{status}'")
        self.job_id = job_id
        self.status = status
        self.action = action


class FeedError(SyncError):
    """Supplier feed could not return a page."""


class DestinationError(SyncError):
    """A single item could not be written to the destination store."""


class SystemicFailure(SyncError):
    """Run-ending failure: failure streak breached or feed unreachable."""
