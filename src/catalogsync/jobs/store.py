"""
Durable job store.

One record per sync job, keyed by id, listed per shop newest first.
The store is a plain record log: it does not enforce the single-current-job
rule, the controller does.

Backends:
- SQLiteJobStore: stdlib sqlite3, calls run in a worker thread
- PostgresJobStore: psycopg async (see postgres.py)
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, List, Mapping, Optional

from .models import ACTIVE_STATUSES, JobStatus, SyncJob, utcnow

logger = logging.getLogger(__name__)

# Column order shared by both backends
COLUMNS = (
    "id",
    "shop_domain",
    "status",
    "batch_size",
    "total_items",
    "processed_count",
    "failed_count",
    "cursor",
    "page_offset",
    "error_message",
    "created_at",
    "updated_at",
)


def job_to_row(job: SyncJob) -> tuple:
    return (
        job.id,
        job.scope,
        job.status.value,
        job.batch_size,
        job.total_items,
        job.processed_count,
        job.failed_count,
        job.cursor,
        job.page_offset,
        job.error_message,
        job.created_at,
        job.updated_at,
    )


def row_to_job(row: Mapping[str, Any]) -> SyncJob:
    created_at = row["created_at"]
    updated_at = row["updated_at"]
    if isinstance(created_at, str):
        created_at = datetime.fromisoformat(created_at)
    if isinstance(updated_at, str):
        updated_at = datetime.fromisoformat(updated_at)
    return SyncJob(
        id=row["id"],
        scope=row["shop_domain"],
        status=JobStatus(row["status"]),
        batch_size=row["batch_size"],
        total_items=row["total_items"] or 0,
        processed_count=row["processed_count"] or 0,
        failed_count=row["failed_count"] or 0,
        cursor=row["cursor"],
        page_offset=row["page_offset"] or 0,
        error_message=row["error_message"],
        created_at=created_at,
        updated_at=updated_at,
    )


class JobStore(ABC):
    """Persistence interface for sync jobs."""

    async def open(self) -> None:
        """Connect and create the schema if needed."""

    async def close(self) -> None:
        """Release connections."""

    @abstractmethod
    async def create(self, job: SyncJob) -> None:
        """Insert a new job record."""

    @abstractmethod
    async def save(self, job: SyncJob) -> None:
        """Overwrite the mutable fields of an existing record (a flush)."""

    @abstractmethod
    async def get(self, job_id: str) -> Optional[SyncJob]:
        """Return a job by id, or None."""

    @abstractmethod
    async def list_for_scope(self, scope: str) -> List[SyncJob]:
        """Return all jobs of a shop, most recent first."""

    @abstractmethod
    async def list_active(self) -> List[SyncJob]:
        """Return jobs in queued, processing or paused state."""

    @abstractmethod
    async def cancel_active(self) -> int:
        """Mark every queued/processing/paused job cancelled.

        Returns:
            Number of records changed
        """


_SCHEMA = """
CREATE TABLE IF NOT EXISTS sync_jobs (
    id TEXT PRIMARY KEY,
    shop_domain TEXT NOT NULL,
    status TEXT NOT NULL,
    batch_size INTEGER NOT NULL DEFAULT 10,
    total_items INTEGER NOT NULL DEFAULT 0,
    processed_count INTEGER NOT NULL DEFAULT 0,
    failed_count INTEGER NOT NULL DEFAULT 0,
    cursor TEXT,
    page_offset INTEGER NOT NULL DEFAULT 0,
    error_message TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_sync_jobs_shop_created
    ON sync_jobs (shop_domain, created_at DESC);
"""


class SQLiteJobStore(JobStore):
    """SQLite-backed store for single-node deployments and tests."""

    def __init__(self, db_path: str | Path = "sync_jobs.db"):
        self.db_path = str(db_path)
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()

    async def open(self) -> None:
        if self._conn is not None:
            return
        await asyncio.to_thread(self._connect)
        logger.info(f"SQLite job store ready at {self.db_path}")

    def _connect(self) -> None:
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        if self.db_path != ":memory:":
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
        conn.executescript(_SCHEMA)
        conn.commit()
        self._conn = conn

    async def close(self) -> None:
        if self._conn is not None:
            conn, self._conn = self._conn, None
            await asyncio.to_thread(conn.close)

    def _run(self, sql: str, params: tuple = (), fetch: str = "") -> Any:
        if self._conn is None:
            raise RuntimeError("Job store is not open")
        with self._lock:
            cur = self._conn.execute(sql, params)
            if fetch == "one":
                return cur.fetchone()
            if fetch == "all":
                return cur.fetchall()
            self._conn.commit()
            return cur.rowcount

    async def _execute(self, sql: str, params: tuple = (), fetch: str = "") -> Any:
        return await asyncio.to_thread(self._run, sql, params, fetch)

    @staticmethod
    def _params(job: SyncJob) -> tuple:
        row = list(job_to_row(job))
        row[-2] = job.created_at.isoformat()
        row[-1] = job.updated_at.isoformat()
        return tuple(row)

    async def create(self, job: SyncJob) -> None:
        placeholders = ", ".join("?" for _ in COLUMNS)
        await self._execute(
            f"INSERT INTO sync_jobs ({', '.join(COLUMNS)}) VALUES ({placeholders})",
            self._params(job),
        )

    async def save(self, job: SyncJob) -> None:
        await self._execute(
            """
            UPDATE sync_jobs
            SET status=?, batch_size=?, total_items=?, processed_count=?,
                failed_count=?, cursor=?, page_offset=?, error_message=?,
                updated_at=?
            WHERE id=?
            """,
            (
                job.status.value,
                job.batch_size,
                job.total_items,
                job.processed_count,
                job.failed_count,
                job.cursor,
                job.page_offset,
                job.error_message,
                job.updated_at.isoformat(),
                job.id,
            ),
        )

    async def get(self, job_id: str) -> Optional[SyncJob]:
        row = await self._execute(
            "SELECT * FROM sync_jobs WHERE id=?", (job_id,), fetch="one"
        )
        return row_to_job(row) if row else None

    async def list_for_scope(self, scope: str) -> List[SyncJob]:
        rows = await self._execute(
            """
            SELECT * FROM sync_jobs WHERE shop_domain=?
            ORDER BY created_at DESC, rowid DESC
            """,
            (scope,),
            fetch="all",
        )
        return [row_to_job(row) for row in rows]

    async def list_active(self) -> List[SyncJob]:
        rows = await self._execute(
            "SELECT * FROM sync_jobs WHERE status IN (?, ?, ?) ORDER BY created_at, rowid",
            tuple(s.value for s in _ACTIVE_ORDER),
            fetch="all",
        )
        return [row_to_job(row) for row in rows]

    async def cancel_active(self) -> int:
        return await self._execute(
            "UPDATE sync_jobs SET status=?, updated_at=? WHERE status IN (?, ?, ?)",
            (JobStatus.CANCELLED.value, utcnow().isoformat())
            + tuple(s.value for s in _ACTIVE_ORDER),
        )


# Stable order for SQL parameters
_ACTIVE_ORDER = tuple(sorted(ACTIVE_STATUSES, key=lambda s: s.value))


def create_job_store(database_url: str) -> JobStore:
    """Build a store from a DATABASE_URL.

    Supported:
        sqlite:///relative/path.db, sqlite:////abs/path.db, sqlite:///:memory:
        postgresql://... or postgres://...
    """
    if database_url.startswith("sqlite:///"):
        return SQLiteJobStore(database_url[len("sqlite:///"):] or "sync_jobs.db")
    if database_url.startswith(("postgresql://", "postgres://")):
        from .postgres import PostgresJobStore

        return PostgresJobStore(database_url)
    raise ValueError(f"Unsupported DATABASE_URL scheme: {database_url}")
