"""PostgreSQL job store (psycopg async)."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

import psycopg
from psycopg.rows import dict_row

from .models import ACTIVE_STATUSES, JobStatus, SyncJob, utcnow
from .store import COLUMNS, JobStore, job_to_row, row_to_job

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS sync_jobs (
    id TEXT PRIMARY KEY,
    seq BIGSERIAL,
    shop_domain TEXT NOT NULL,
    status TEXT NOT NULL,
    batch_size INTEGER NOT NULL DEFAULT 10,
    total_items BIGINT NOT NULL DEFAULT 0,
    processed_count BIGINT NOT NULL DEFAULT 0,
    failed_count BIGINT NOT NULL DEFAULT 0,
    cursor TEXT,
    page_offset INTEGER NOT NULL DEFAULT 0,
    error_message TEXT,
    created_at TIMESTAMPTZ NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL
);
ALTER TABLE sync_jobs ADD COLUMN IF NOT EXISTS seq BIGSERIAL;
CREATE INDEX IF NOT EXISTS idx_sync_jobs_shop_created
    ON sync_jobs (shop_domain, created_at DESC);
"""


class PostgresJobStore(JobStore):
    """Job store on a single shared async connection.

    Statements are serialized with an asyncio lock; the controller issues at
    most one write at a time anyway.
    """

    def __init__(self, database_url: str):
        self.database_url = database_url
        self._conn: Optional[psycopg.AsyncConnection] = None
        self._lock = asyncio.Lock()

    async def open(self) -> None:
        if self._conn is not None:
            return
        self._conn = await psycopg.AsyncConnection.connect(
            self.database_url, row_factory=dict_row, autocommit=True
        )
        async with self._conn.cursor() as cur:
            await cur.execute(_SCHEMA)
        logger.info("PostgreSQL job store ready")

    async def close(self) -> None:
        if self._conn is not None:
            conn, self._conn = self._conn, None
            await conn.close()

    def _connection(self) -> psycopg.AsyncConnection:
        if self._conn is None:
            raise RuntimeError("Job store is not open")
        return self._conn

    async def create(self, job: SyncJob) -> None:
        placeholders = ", ".join("%s" for _ in COLUMNS)
        async with self._lock, self._connection().cursor() as cur:
            await cur.execute(
                f"INSERT INTO sync_jobs ({', '.join(COLUMNS)}) VALUES ({placeholders})",
                job_to_row(job),
            )

    async def save(self, job: SyncJob) -> None:
        async with self._lock, self._connection().cursor() as cur:
            await cur.execute(
                """
                UPDATE sync_jobs
                SET status=%s, batch_size=%s, total_items=%s, processed_count=%s,
                    failed_count=%s, cursor=%s, page_offset=%s, error_message=%s,
                    updated_at=%s
                WHERE id=%s
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
                    job.updated_at,
                    job.id,
                ),
            )

    async def get(self, job_id: str) -> Optional[SyncJob]:
        async with self._lock, self._connection().cursor() as cur:
            await cur.execute("SELECT * FROM sync_jobs WHERE id = %s", (job_id,))
            row = await cur.fetchone()
        return row_to_job(row) if row else None

    async def list_for_scope(self, scope: str) -> List[SyncJob]:
        async with self._lock, self._connection().cursor() as cur:
            await cur.execute(
                """
                SELECT * FROM sync_jobs
                WHERE shop_domain = %s
                ORDER BY created_at DESC, seq DESC
                """,
                (scope,),
            )
            rows = await cur.fetchall()
        return [row_to_job(row) for row in rows]

    async def list_active(self) -> List[SyncJob]:
        async with self._lock, self._connection().cursor() as cur:
            await cur.execute(
                "SELECT * FROM sync_jobs WHERE status = ANY(%s) ORDER BY created_at, seq",
                ([s.value for s in ACTIVE_STATUSES],),
            )
            rows = await cur.fetchall()
        return [row_to_job(row) for row in rows]

    async def cancel_active(self) -> int:
        async with self._lock, self._connection().cursor() as cur:
            await cur.execute(
                """
                UPDATE sync_jobs
                SET status = %s, updated_at = %s
                WHERE status = ANY(%s)
                """,
                (
                    JobStatus.CANCELLED.value,
                    utcnow(),
                    [s.value for s in ACTIVE_STATUSES],
                ),
            )
            return cur.rowcount
