"""
Synthetic supplier feed.

Generates a deterministic catalog for demos and load tests when no real
feed URL is configured. Cursors are page numbers ("2", "3", ...).
"""

from __future__ import annotations

import random
from decimal import Decimal
from typing import Optional

from ..errors import FeedError
from .models import FeedItem, FeedPage

CATEGORIES = ["Electronics", "Clothing", "Home", "Books"]
TAGS = ["new", "popular", "sale"]


class SyntheticFeedClient:
    """In-process feed over ``total`` generated products."""

    def __init__(self, total: int = 1_000_000, seed: int = 0):
        self.total = total
        self.seed = seed

    def make_item(self, item_id: int) -> FeedItem:
        rng = random.Random(self.seed * 1_000_003 + item_id)
        return FeedItem(
            id=str(item_id),
            title=f"Product {item_id}",
            description=f"Description for product {item_id}",
            price=Decimal(f"{rng.uniform(10, 110):.2f}"),
            sku=f"SKU-{item_id}",
            inventory_quantity=rng.randrange(100),
            images=[f"https://via.placeholder.com/300x300?text=Product+{item_id}"],
            category=rng.choice(CATEGORIES),
            tags=TAGS[: rng.randrange(3) + 1],
            vendor="ThirdParty Supplier",
            weight=round(rng.uniform(0, 5), 3),
            weight_unit="kg",
        )

    async def fetch_page(self, cursor: Optional[str], page_size: int) -> FeedPage:
        try:
            page = int(cursor) if cursor else 1
        except ValueError as e:
            raise FeedError(f"Invalid cursor for synthetic feed: {cursor!r}") from e

        start = (page - 1) * page_size + 1
        end = min(start + page_size, self.total + 1)
        items = [self.make_item(i) for i in range(start, end)]
        has_more = page * page_size < self.total
        return FeedPage(
            items=items,
            next_cursor=str(page + 1) if has_more else None,
            approximate_total=self.total,
            has_more=has_more,
        )
