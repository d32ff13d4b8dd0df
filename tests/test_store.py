"""
Tests for the durable job store.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from catalogsync.jobs.models import JobStatus, SyncJob
from catalogsync.jobs.postgres import PostgresJobStore
from catalogsync.jobs.store import COLUMNS, SQLiteJobStore, create_job_store, job_to_row

from conftest import SHOP


def make_job(status=JobStatus.QUEUED, scope=SHOP) -> SyncJob:
    job = SyncJob.create(scope=scope, batch_size=25)
    job.status = status
    return job


class TestSQLiteJobStore:
    """Test SQLiteJobStore persistence."""

    @pytest.mark.asyncio
    async def test_create_and_get(self, store):
        """Verify a created job reads back unchanged."""
        job = make_job()
        await store.create(job)

        loaded = await store.get(job.id)

        assert loaded.id == job.id
        assert loaded.scope == SHOP
        assert loaded.status is JobStatus.QUEUED
        assert loaded.batch_size == 25
        assert loaded.cursor is None
        assert loaded.created_at == job.created_at

    @pytest.mark.asyncio
    async def test_get_missing(self, store):
        assert await store.get("nope") is None

    @pytest.mark.asyncio
    async def test_save_updates_progress(self, store):
        """Verify save persists counters, cursor and error message."""
        job = make_job()
        await store.create(job)

        job.status = JobStatus.FAILED
        job.total_items = 100
        job.processed_count = 40
        job.failed_count = 2
        job.cursor = "abc"
        job.page_offset = 3
        job.error_message = "boom"
        job.touch()
        await store.save(job)

        loaded = await store.get(job.id)
        assert loaded.status is JobStatus.FAILED
        assert loaded.total_items == 100
        assert loaded.processed_count == 40
        assert loaded.failed_count == 2
        assert loaded.cursor == "abc"
        assert loaded.page_offset == 3
        assert loaded.error_message == "boom"
        assert loaded.updated_at == job.updated_at

    @pytest.mark.asyncio
    async def test_list_for_scope_newest_first(self, store):
        """Verify per-shop listing is newest first and scoped."""
        first, second = make_job(), make_job()
        other = make_job(scope="other.myshopify.com")
        for job in (first, second, other):
            await store.create(job)

        jobs = await store.list_for_scope(SHOP)

        assert [j.id for j in jobs] == [second.id, first.id]

    @pytest.mark.asyncio
    async def test_list_active(self, store):
        """Verify only queued/processing/paused records are active."""
        jobs = {status: make_job(status) for status in JobStatus}
        for job in jobs.values():
            await store.create(job)

        active = {j.status for j in await store.list_active()}

        assert active == {JobStatus.QUEUED, JobStatus.PROCESSING, JobStatus.PAUSED}

    @pytest.mark.asyncio
    async def test_cancel_active(self, store):
        """Verify cancel_active cancels non-terminal records and counts them."""
        for status in JobStatus:
            await store.create(make_job(status))

        assert await store.cancel_active() == 3
        assert await store.list_active() == []
        assert await store.cancel_active() == 0

    @pytest.mark.asyncio
    async def test_survives_reopen(self, tmp_path):
        """Verify records are durable across store instances."""
        path = tmp_path / "durable.db"
        store = SQLiteJobStore(path)
        await store.open()
        job = make_job(JobStatus.PAUSED)
        job.cursor = "7"
        await store.create(job)
        await store.close()

        reopened = SQLiteJobStore(path)
        await reopened.open()
        try:
            loaded = await reopened.get(job.id)
        finally:
            await reopened.close()

        assert loaded.status is JobStatus.PAUSED
        assert loaded.cursor == "7"

    @pytest.mark.asyncio
    async def test_use_before_open(self, tmp_path):
        store = SQLiteJobStore(tmp_path / "closed.db")
        with pytest.raises(RuntimeError):
            await store.get("x")


class TestCreateJobStore:
    """Test DATABASE_URL parsing."""

    def test_sqlite_url(self):
        store = create_job_store("sqlite:///data/jobs.db")
        assert isinstance(store, SQLiteJobStore)
        assert store.db_path == "data/jobs.db"

    def test_sqlite_memory(self):
        store = create_job_store("sqlite:///:memory:")
        assert store.db_path == ":memory:"

    @pytest.mark.parametrize(
        "url", ["postgresql://u:p@localhost/sync", "postgres://localhost/sync"]
    )
    def test_postgres_url(self, url):
        store = create_job_store(url)
        assert isinstance(store, PostgresJobStore)

    def test_unknown_scheme(self):
        with pytest.raises(ValueError):
            create_job_store("mysql://localhost/sync")


class FakeCursor:
    """Stand-in for a psycopg async cursor returning dict rows."""

    def __init__(self, rows=(), rowcount=0):
        self.rows = list(rows)
        self.rowcount = rowcount
        self.executed = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def execute(self, sql, params=None):
        self.executed.append((sql, params))

    async def fetchone(self):
        return self.rows[0] if self.rows else None

    async def fetchall(self):
        return self.rows


class TestPostgresJobStore:
    """Test PostgresJobStore SQL against a mocked connection."""

    async def open_store(self, cursor):
        conn = MagicMock()
        conn.cursor.return_value = cursor
        conn.close = AsyncMock()
        store = PostgresJobStore("postgresql://localhost/sync")
        with patch(
            "catalogsync.jobs.postgres.psycopg.AsyncConnection.connect",
            AsyncMock(return_value=conn),
        ) as mock_connect:
            await store.open()
        return store, conn, mock_connect

    @pytest.mark.asyncio
    async def test_open_creates_schema(self):
        cursor = FakeCursor()
        store, conn, mock_connect = await self.open_store(cursor)

        assert mock_connect.call_args.kwargs["autocommit"] is True
        assert "CREATE TABLE IF NOT EXISTS sync_jobs" in cursor.executed[0][0]

        await store.close()
        conn.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_get_maps_row(self):
        """Verify a dict row becomes a SyncJob."""
        job = make_job(JobStatus.PAUSED)
        job.cursor = "4"
        row = dict(zip(COLUMNS, job_to_row(job)))
        store, _, _ = await self.open_store(FakeCursor(rows=[row]))

        loaded = await store.get(job.id)

        assert loaded.id == job.id
        assert loaded.status is JobStatus.PAUSED
        assert loaded.cursor == "4"
        assert loaded.created_at == job.created_at

    @pytest.mark.asyncio
    async def test_cancel_active_returns_rowcount(self):
        cursor = FakeCursor(rowcount=2)
        store, _, _ = await self.open_store(cursor)

        assert await store.cancel_active() == 2
        sql, params = cursor.executed[-1]
        assert "status = ANY(%s)" in sql
        assert params[0] == "cancelled"
        assert sorted(params[2]) == ["paused", "processing", "queued"]

    @pytest.mark.asyncio
    async def test_history_order_has_tie_breaker(self):
        """Verify jobs created in the same instant keep insertion order."""
        cursor = FakeCursor()
        store, _, _ = await self.open_store(cursor)

        assert "seq BIGSERIAL" in cursor.executed[0][0]

        await store.list_for_scope(SHOP)
        assert "ORDER BY created_at DESC, seq DESC" in cursor.executed[-1][0]

        await store.list_active()
        assert "ORDER BY created_at, seq" in cursor.executed[-1][0]

    @pytest.mark.asyncio
    async def test_use_before_open(self):
        store = PostgresJobStore("postgresql://localhost/sync")
        with pytest.raises(RuntimeError):
            await store.get("x")
