"""Sync job record and status."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class JobStatus(str, Enum):
    """Lifecycle states of a sync job."""

    QUEUED = "queued"
    PROCESSING = "processing"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_active(self) -> bool:
        """True while the job may still hold the current-job slot."""
        return self in ACTIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


ACTIVE_STATUSES = frozenset(
    {JobStatus.QUEUED, JobStatus.PROCESSING, JobStatus.PAUSED}
)
TERMINAL_STATUSES = frozenset(
    {JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED}
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_job_id() -> str:
    return uuid.uuid4().hex


@dataclass
class SyncJob:
    """One catalog replication run.

    ``cursor`` points at the feed page currently being worked on and
    ``page_offset`` counts the items of that page already accounted for, so
    a resumed run neither skips nor repeats items.
    """

    id: str
    scope: str
    status: JobStatus = JobStatus.QUEUED
    batch_size: int = 10
    total_items: int = 0
    processed_count: int = 0
    failed_count: int = 0
    cursor: Optional[str] = None
    page_offset: int = 0
    error_message: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @classmethod
    def create(cls, scope: str, batch_size: int) -> "SyncJob":
        """Create a fresh queued job for a shop."""
        return cls(id=new_job_id(), scope=scope, batch_size=batch_size)

    @property
    def accounted(self) -> int:
        """Items handled so far, successful or not."""
        return self.processed_count + self.failed_count

    def touch(self) -> None:
        self.updated_at = utcnow()

    def snapshot(self) -> "SyncJob":
        """Independent copy safe to hand out of the controller lock."""
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase shape served by the HTTP API."""
        progress = None
        if self.total_items:
            progress = round(self.accounted / self.total_items * 100, 2)
        return {
            "id": self.id,
            "shopDomain": self.scope,
            "status": self.status.value,
            "batchSize": self.batch_size,
            "totalItems": self.total_items,
            "processedCount": self.processed_count,
            "failedCount": self.failed_count,
            "progress": progress,
            "cursor": self.cursor,
            "pageOffset": self.page_offset,
            "errorMessage": self.error_message,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }
