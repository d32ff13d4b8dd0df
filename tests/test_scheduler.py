"""
Tests for SyncScheduler.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from catalogsync.config import SyncOptions
from catalogsync.errors import AlreadyRunning, InvalidConfig
from catalogsync.scheduler import SyncScheduler
from catalogsync.session import StaticSessionProvider

from conftest import SHOP


def make_scheduler(controller, shop=SHOP, token="shpat_test"):
    return SyncScheduler(
        controller,
        StaticSessionProvider(shop, token),
        interval=60,
        options=SyncOptions(batch_size=5),
    )


class TestSyncSchedulerRunOnce:
    """Test a single scheduled tick."""

    @pytest.mark.asyncio
    async def test_starts_sync(self):
        """Verify a tick starts a job for the configured shop."""
        controller = MagicMock()
        controller.start = AsyncMock(return_value="job-1")
        scheduler = make_scheduler(controller)

        assert await scheduler.run_once() == "job-1"

        session, options = controller.start.call_args.args
        assert session.shop == SHOP
        assert options.batch_size == 5

    @pytest.mark.asyncio
    async def test_skips_when_running(self):
        controller = MagicMock()
        controller.start = AsyncMock(side_effect=AlreadyRunning("job-0"))
        scheduler = make_scheduler(controller)

        assert await scheduler.run_once() is None

    @pytest.mark.asyncio
    async def test_rejected_options(self):
        controller = MagicMock()
        controller.start = AsyncMock(side_effect=InvalidConfig("bad batch"))
        scheduler = make_scheduler(controller)

        assert await scheduler.run_once() is None

    @pytest.mark.asyncio
    async def test_no_session_configured(self):
        """Verify nothing is started without shop credentials."""
        controller = MagicMock()
        controller.start = AsyncMock()
        scheduler = make_scheduler(controller, shop="", token="")

        assert await scheduler.run_once() is None
        controller.start.assert_not_called()

    @pytest.mark.asyncio
    async def test_end_to_end_with_controller(self, controller):
        """Verify a real tick creates a job and a second tick is skipped."""
        scheduler = make_scheduler(controller)

        job_id = await scheduler.run_once()
        assert job_id is not None
        assert await scheduler.run_once() is None

        await controller.wait(job_id)


class TestSyncSchedulerLifecycle:
    """Test start/stop wiring."""

    @pytest.mark.asyncio
    async def test_start_registers_interval_job(self):
        controller = MagicMock()
        scheduler = make_scheduler(controller)

        with patch.object(scheduler.scheduler, "start") as mock_start:
            scheduler.start()

        job = scheduler.scheduler.get_job("catalog_sync")
        assert job is not None
        assert job.trigger.interval.total_seconds() == 60
        mock_start.assert_called_once()

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        scheduler = make_scheduler(MagicMock())

        scheduler.start()
        assert scheduler.scheduler.running

        await scheduler.stop()
        assert not scheduler.scheduler.running

    @pytest.mark.asyncio
    async def test_stop_without_start(self):
        scheduler = make_scheduler(MagicMock())

        await scheduler.stop()
        assert not scheduler.scheduler.running
