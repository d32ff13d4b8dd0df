"""
Tests for the command line entry point.
"""

import json

import pytest
from unittest.mock import patch

from catalogsync import __main__ as cli
from catalogsync.config import FeedSettings, ShopifySettings, SyncSettings, WorkerConfig
from catalogsync.errors import ConfigurationError, InvalidConfig

from conftest import SHOP, RecordingWriter


def make_config(tmp_path, shop=SHOP, token="shpat_test") -> WorkerConfig:
    return WorkerConfig(
        database_url=f"sqlite:///{tmp_path / 'cli.db'}",
        sync=SyncSettings(batch_size=5, request_interval=0),
        feed=FeedSettings(synthetic_total=12),
        shopify=ShopifySettings(shop=shop, access_token=token),
    )


class TestRunOnce:
    """Test run_once() against the synthetic feed."""

    @pytest.mark.asyncio
    async def test_runs_to_completion(self, tmp_path):
        """Verify one sync over 12 synthetic items completes."""
        writer = RecordingWriter()
        with patch("catalogsync.server.ShopifyProductWriter", return_value=writer):
            result = await cli.run_once(make_config(tmp_path))

        assert result["status"] == "completed"
        assert result["processedCount"] == 12
        assert result["batchSize"] == 5
        assert writer.created == [str(i) for i in range(1, 13)]

    @pytest.mark.asyncio
    async def test_batch_size_override(self, tmp_path):
        with patch("catalogsync.server.ShopifyProductWriter", return_value=RecordingWriter()):
            result = await cli.run_once(make_config(tmp_path), batch_size=4)

        assert result["batchSize"] == 4
        assert result["processedCount"] == 12

    @pytest.mark.asyncio
    async def test_zero_batch_size_rejected(self, tmp_path):
        """Verify an explicit batch size of 0 is rejected, not defaulted."""
        with patch("catalogsync.server.ShopifyProductWriter", return_value=RecordingWriter()):
            with pytest.raises(InvalidConfig):
                await cli.run_once(make_config(tmp_path), batch_size=0)

    @pytest.mark.asyncio
    async def test_requires_shop(self, tmp_path):
        with patch("catalogsync.server.ShopifyProductWriter", return_value=RecordingWriter()):
            with pytest.raises(ConfigurationError):
                await cli.run_once(make_config(tmp_path, shop="", token=""))


class TestMain:
    """Test argument handling."""

    def test_once_prints_job(self, tmp_path, monkeypatch, capsys):
        config = make_config(tmp_path)
        monkeypatch.setattr("sys.argv", ["catalogsync", "--once", "--log-level", "WARNING"])

        with patch.object(cli, "get_config", return_value=config), patch(
            "catalogsync.server.ShopifyProductWriter", return_value=RecordingWriter()
        ):
            with pytest.raises(SystemExit) as exc_info:
                cli.main()

        assert exc_info.value.code == 0
        printed = json.loads(capsys.readouterr().out)
        assert printed["status"] == "completed"

    def test_once_without_session_exits_1(self, tmp_path, monkeypatch):
        config = make_config(tmp_path, shop="", token="")
        monkeypatch.setattr("sys.argv", ["catalogsync", "--once"])

        with patch.object(cli, "get_config", return_value=config):
            with pytest.raises(SystemExit) as exc_info:
                cli.main()

        assert exc_info.value.code == 1

    def test_serve_by_default(self, tmp_path, monkeypatch):
        config = make_config(tmp_path)
        monkeypatch.setattr("sys.argv", ["catalogsync", "--port", "9000"])

        with patch.object(cli, "get_config", return_value=config), patch(
            "catalogsync.server.serve"
        ) as mock_serve:
            cli.main()

        served = mock_serve.call_args.args[0]
        assert served.port == 9000
