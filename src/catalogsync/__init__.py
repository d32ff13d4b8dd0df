"""
catalogsync - Background catalog replication from a supplier feed into a shop.

Provides:
- JobController: start, pause, resume and cancel the single current sync job
- JobStore: durable job records (SQLite or PostgreSQL)
- FeedClient / DestinationWriter: collaborators for the page loop

Usage:
    from catalogsync import JobController, SQLiteJobStore, SyntheticFeedClient

    store = SQLiteJobStore("sync_jobs.db")
    await store.open()
    controller = JobController(store, SyntheticFeedClient(), ShopifyProductWriter())
    job_id = await controller.start(session)
"""

__version__ = "0.1.0"

from .config import SyncOptions, WorkerConfig, get_config
from .destination import ShopifyProductWriter
from .errors import (
    AlreadyRunning,
    ConfigurationError,
    InvalidConfig,
    InvalidState,
    JobNotFound,
    SyncError,
)
from .feed import HttpFeedClient, SyntheticFeedClient
from .jobs import JobController, JobStatus, JobStore, SQLiteJobStore, SyncJob
from .session import ShopSession

__all__ = [
    "__version__",
    # Jobs
    "JobController",
    "JobStatus",
    "JobStore",
    "SQLiteJobStore",
    "SyncJob",
    # Collaborators
    "HttpFeedClient",
    "SyntheticFeedClient",
    "ShopifyProductWriter",
    "ShopSession",
    # Config
    "SyncOptions",
    "WorkerConfig",
    "get_config",
    # Errors
    "SyncError",
    "AlreadyRunning",
    "ConfigurationError",
    "InvalidConfig",
    "InvalidState",
    "JobNotFound",
]
