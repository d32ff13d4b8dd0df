"""catalogsync entry point.

Serve the HTTP API (default):
    python -m catalogsync

Run one sync for the configured shop and print the final job:
    python -m catalogsync --once --batch-size 25
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Optional

from .config import SyncOptions, WorkerConfig, get_config
from .errors import SyncError
from .session import StaticSessionProvider


def setup_logging(level: str = "INFO"):
    """Setup logging configuration."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


async def run_once(config: WorkerConfig, batch_size: Optional[int] = None) -> dict:
    """Run a single sync to its end and return the job as a dict."""
    from .server import build_components

    session = StaticSessionProvider(
        config.shopify.shop, config.shopify.access_token
    ).get_session()

    components = build_components(config)
    await components.open()
    try:
        if batch_size is None:
            batch_size = config.sync.batch_size
        options = SyncOptions(batch_size=batch_size)
        job_id = await components.controller.start(session, options)
        job = await components.controller.wait(job_id)
        return job.to_dict()
    finally:
        await components.close()


def main():
    """CLI entry point."""
    config = get_config()

    parser = argparse.ArgumentParser(description="catalogsync - supplier catalog sync service")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run one sync for SHOPIFY_SHOP and exit instead of serving the API",
    )
    parser.add_argument(
        "--batch-size",
        "-b",
        type=int,
        default=None,
        help="Feed page size for --once (default: SYNC_BATCH_SIZE)",
    )
    parser.add_argument("--host", default=None, help="Bind address (default: HOST env)")
    parser.add_argument("--port", type=int, default=None, help="Port (default: PORT env)")
    parser.add_argument(
        "--log-level",
        default=config.log_level.upper(),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level",
    )

    args = parser.parse_args()
    setup_logging(args.log_level)
    logger = logging.getLogger(__name__)

    config = config.model_copy(
        update={
            "log_level": args.log_level,
            "host": args.host or config.host,
            "port": args.port or config.port,
        }
    )

    if args.once:
        try:
            result = asyncio.run(run_once(config, args.batch_size))
        except SyncError as e:
            logger.error(f"Sync failed to start: {e}")
            sys.exit(1)
        except KeyboardInterrupt:
            logger.info("Interrupted, job left paused")
            sys.exit(130)
        print(json.dumps(result, indent=2))
        sys.exit(0 if result["status"] == "completed" else 1)

    from .server import serve

    serve(config)


if __name__ == "__main__":
    main()
