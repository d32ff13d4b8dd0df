"""
Shared fixtures: a scripted feed, a recording destination writer and a
controller over a SQLite store in tmp_path.
"""

import asyncio
from typing import Awaitable, Callable, List, Optional

import pytest
import pytest_asyncio

from catalogsync.config import SyncSettings
from catalogsync.destination.shopify import CreatedProduct
from catalogsync.errors import DestinationError, FeedError
from catalogsync.feed.models import FeedItem, FeedPage
from catalogsync.jobs.controller import JobController
from catalogsync.jobs.store import SQLiteJobStore
from catalogsync.session import ShopSession

SHOP = "test-shop.myshopify.com"


def make_item(item_id: int) -> FeedItem:
    return FeedItem(
        id=str(item_id),
        title=f"Product {item_id}",
        price="19.99",
        sku=f"SKU-{item_id}",
        inventory_quantity=5,
        vendor="ThirdParty Supplier",
    )


class ScriptedFeed:
    """Feed over fixed pages; cursors are page indexes ("1", "2", ...)."""

    def __init__(self, pages: List[List[FeedItem]], total: Optional[int] = None):
        self.pages = pages
        self.total = total
        self.calls: List[Optional[str]] = []

    @classmethod
    def of(cls, page_count: int, per_page: int) -> "ScriptedFeed":
        pages = [
            [make_item(p * per_page + i + 1) for i in range(per_page)]
            for p in range(page_count)
        ]
        return cls(pages, total=page_count * per_page)

    async def fetch_page(self, cursor: Optional[str], page_size: int) -> FeedPage:
        self.calls.append(cursor)
        index = int(cursor) if cursor else 0
        items = self.pages[index] if index < len(self.pages) else []
        has_more = index + 1 < len(self.pages)
        return FeedPage(
            items=items,
            next_cursor=str(index + 1) if has_more else None,
            approximate_total=self.total,
            has_more=has_more,
        )


class FailingFeed:
    """Feed that is never reachable."""

    def __init__(self):
        self.calls = 0

    async def fetch_page(self, cursor: Optional[str], page_size: int) -> FeedPage:
        self.calls += 1
        raise FeedError("connection refused")


class RecordingWriter:
    """Destination writer that records created item ids.

    Args:
        fail_ids: item ids that raise DestinationError
        fail_all: every call raises DestinationError
        after_create: awaited with the item after each successful write
        gate: when set, every call blocks until the event fires
        delay: seconds each call takes
    """

    def __init__(
        self,
        fail_ids=(),
        fail_all: bool = False,
        after_create: Optional[Callable[[FeedItem], Awaitable[None]]] = None,
        gate: Optional[asyncio.Event] = None,
        delay: float = 0,
    ):
        self.fail_ids = set(fail_ids)
        self.fail_all = fail_all
        self.after_create = after_create
        self.gate = gate
        self.delay = delay
        self.created: List[str] = []
        self.calls = 0
        self.entered = asyncio.Event()

    async def create_item(self, session: ShopSession, item: FeedItem) -> CreatedProduct:
        self.calls += 1
        self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_all or item.id in self.fail_ids:
            raise DestinationError(f"userErrors: cannot create {item.id}")
        self.created.append(item.id)
        if self.after_create is not None:
            await self.after_create(item)
        return CreatedProduct(id=f"gid://shopify/Product/{item.id}", title=item.title)


@pytest.fixture
def session():
    return ShopSession(shop=SHOP, access_token="shpat_test")


@pytest.fixture
def settings():
    return SyncSettings(
        batch_size=2,
        flush_every=1,
        request_interval=0,
        max_consecutive_failures=3,
    )


@pytest_asyncio.fixture
async def store(tmp_path):
    store = SQLiteJobStore(tmp_path / "jobs.db")
    await store.open()
    yield store
    await store.close()


@pytest.fixture
def feed():
    return ScriptedFeed.of(page_count=3, per_page=2)


@pytest.fixture
def writer():
    return RecordingWriter()


@pytest_asyncio.fixture
async def controller(store, feed, writer, settings):
    controller = JobController(store, feed, writer, settings=settings)
    yield controller
    job = controller.current_status()
    if job is not None:
        await controller.cancel_all()
        await controller.wait(job.id)
