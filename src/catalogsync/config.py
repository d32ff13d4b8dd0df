"""
Configuration for catalogsync.

Uses Pydantic for validation and environment loading.
"""

import os
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings

MIN_BATCH_SIZE = 1
MAX_BATCH_SIZE = 100


class SyncSettings(BaseModel):
    """Tuning for the batch processor."""

    batch_size: int = Field(default=10, description="Feed items per page")
    flush_every: int = Field(
        default=10, description="Flush counters after this many items"
    )
    request_interval: float = Field(
        default=0.5, description="Minimum seconds between destination calls"
    )
    max_consecutive_failures: int = Field(
        default=50, description="Failure streak that aborts a run"
    )


class FeedSettings(BaseModel):
    """Supplier feed connection. Empty url selects the synthetic feed."""

    url: str = Field(default="", description="Supplier feed base URL")
    api_key: str = Field(default="", description="Bearer token for the feed")
    timeout: float = Field(default=30.0, description="HTTP timeout in seconds")
    synthetic_total: int = Field(
        default=1_000_000, description="Item count of the synthetic feed"
    )


class ShopifySettings(BaseModel):
    """Destination store settings."""

    api_version: str = Field(default="2024-10")
    timeout: float = Field(default=30.0, description="HTTP timeout in seconds")

    # Used by the CLI and the scheduler; API requests bring their own session
    shop: str = Field(default="", description="myshopify.com domain")
    access_token: str = Field(default="", description="Admin API access token")


class WorkerConfig(BaseSettings):
    """Master configuration for catalogsync.

    Loads from environment variables (no prefix).
    """

    model_config = ConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )

    # Service identity
    service_name: str = Field(default="catalogsync")
    service_version: str = Field(default="0.1.0")
    log_level: str = Field(default="INFO")

    # HTTP API
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000)

    # Durable job store
    database_url: str = Field(
        default="sqlite:///sync_jobs.db", description="sqlite:/// or postgresql:// URL"
    )

    # Periodic sync, 0 disables the scheduler
    schedule_interval: int = Field(
        default=0, description="Seconds between scheduled syncs"
    )

    sync: SyncSettings = Field(default_factory=SyncSettings)
    feed: FeedSettings = Field(default_factory=FeedSettings)
    shopify: ShopifySettings = Field(default_factory=ShopifySettings)

    @classmethod
    def from_env(cls) -> "WorkerConfig":
        """Load configuration from environment variables."""
        return cls(
            service_name=os.getenv("SERVICE_NAME", "catalogsync"),
            service_version=os.getenv("SERVICE_VERSION", "0.1.0"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("BACKEND_PORT") or os.getenv("PORT", "3000")),
            database_url=os.getenv("DATABASE_URL", "sqlite:///sync_jobs.db"),
            schedule_interval=int(os.getenv("SYNC_SCHEDULE_INTERVAL_SEC", "0")),
            sync=SyncSettings(
                batch_size=int(os.getenv("SYNC_BATCH_SIZE", "10")),
                flush_every=int(os.getenv("SYNC_FLUSH_EVERY", "10")),
                request_interval=float(os.getenv("SYNC_REQUEST_INTERVAL", "0.5")),
                max_consecutive_failures=int(
                    os.getenv("SYNC_MAX_CONSECUTIVE_FAILURES", "50")
                ),
            ),
            feed=FeedSettings(
                url=os.getenv("FEED_URL", ""),
                api_key=os.getenv("FEED_API_KEY", ""),
                timeout=float(os.getenv("FEED_TIMEOUT", "30.0")),
                synthetic_total=int(os.getenv("FEED_SYNTHETIC_TOTAL", "1000000")),
            ),
            shopify=ShopifySettings(
                api_version=os.getenv("SHOPIFY_API_VERSION", "2024-10"),
                timeout=float(os.getenv("SHOPIFY_TIMEOUT", "30.0")),
                shop=os.getenv("SHOPIFY_SHOP", ""),
                access_token=os.getenv("SHOPIFY_ACCESS_TOKEN", ""),
            ),
        )


class SyncOptions(BaseModel):
    """Per-request options for starting or resuming a sync job."""

    batch_size: int = Field(default=10, description="Feed page size (1-100)")


@lru_cache(maxsize=1)
def get_config() -> WorkerConfig:
    """Return the process-wide configuration, reading .env once."""
    load_dotenv()
    return WorkerConfig.from_env()

