"""HTTP server bootstrap for catalogsync.

Wires store, feed, writer and controller from configuration, runs startup
recovery, the optional scheduler and a graceful shutdown that leaves the
current job resumable.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

import uvicorn
from fastapi import FastAPI

from .api import register_routes
from .config import SyncOptions, WorkerConfig, get_config
from .destination.shopify import DestinationWriter, ShopifyProductWriter
from .feed.client import FeedClient, HttpFeedClient
from .feed.synthetic import SyntheticFeedClient
from .jobs.controller import JobController
from .jobs.store import JobStore, create_job_store
from .scheduler import SyncScheduler
from .session import StaticSessionProvider

logger = logging.getLogger(__name__)


@dataclass
class SyncComponents:
    """Everything a running sync service owns."""

    store: JobStore
    feed: FeedClient
    writer: DestinationWriter
    controller: JobController

    async def open(self) -> None:
        await self.store.open()
        parked = await self.controller.recover()
        if parked:
            logger.warning(f"Recovered {len(parked)} interrupted sync jobs as paused")

    async def close(self) -> None:
        await self.controller.shutdown()
        for resource in (self.feed, self.writer):
            close = getattr(resource, "close", None)
            if close is not None:
                await close()
        await self.store.close()


def build_feed(config: WorkerConfig) -> FeedClient:
    """HTTP feed when FEED_URL is set, generated catalog otherwise."""
    if config.feed.url:
        logger.info(f"Using supplier feed at {config.feed.url}")
        return HttpFeedClient(
            config.feed.url, api_key=config.feed.api_key, timeout=config.feed.timeout
        )
    logger.info(
        f"FEED_URL not set, using synthetic feed ({config.feed.synthetic_total} items)"
    )
    return SyntheticFeedClient(total=config.feed.synthetic_total)


def build_components(config: WorkerConfig) -> SyncComponents:
    store = create_job_store(config.database_url)
    feed = build_feed(config)
    writer = ShopifyProductWriter(
        api_version=config.shopify.api_version, timeout=config.shopify.timeout
    )
    controller = JobController(store, feed, writer, settings=config.sync)
    return SyncComponents(store=store, feed=feed, writer=writer, controller=controller)


def create_app(
    config: Optional[WorkerConfig] = None,
    components: Optional[SyncComponents] = None,
) -> FastAPI:
    """Build the FastAPI app.

    Args:
        config: Service configuration (defaults to ``get_config()``)
        components: Pre-built components, mainly for tests
    """
    config = config or get_config()
    components = components or build_components(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await components.open()

        scheduler = None
        if config.schedule_interval > 0:
            scheduler = SyncScheduler(
                components.controller,
                StaticSessionProvider(config.shopify.shop, config.shopify.access_token),
                interval=config.schedule_interval,
                options=SyncOptions(batch_size=config.sync.batch_size),
            )
            scheduler.start()
        else:
            logger.info("Sync scheduler DISABLED (SYNC_SCHEDULE_INTERVAL_SEC=0)")

        logger.info(f"{config.service_name} {config.service_version} ready")
        yield

        logger.info("Shutdown signal received, stopping sync service...")
        if scheduler is not None:
            await scheduler.stop()
        await components.close()
        logger.info("Sync service stopped.")

    app = FastAPI(
        title="Catalog Sync API",
        version=config.service_version,
        lifespan=lifespan,
    )
    app.state.controller = components.controller
    register_routes(app)

    @app.get("/health", tags=["Health"])
    async def health():
        job = components.controller.current_status()
        return {
            "status": "ok",
            "service": config.service_name,
            "version": config.service_version,
            "currentJob": job.to_dict() if job is not None else None,
        }

    return app


def serve(config: Optional[WorkerConfig] = None) -> None:
    """Run the API under uvicorn until SIGINT/SIGTERM."""
    config = config or get_config()
    logger.info(f"Catalog sync API starting on {config.host}:{config.port}")
    uvicorn.run(
        create_app(config),
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )


__all__ = ["SyncComponents", "build_components", "build_feed", "create_app", "serve"]
