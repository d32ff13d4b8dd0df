"""
Supplier feed clients.

A feed is read page by page with an opaque cursor issued by the server.
``cursor=None`` asks for the first page; reading the same cursor twice must
return the same page.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol, runtime_checkable

import httpx
from pydantic import ValidationError

from ..errors import FeedError
from .models import FeedItem, FeedPage

logger = logging.getLogger(__name__)


@runtime_checkable
class FeedClient(Protocol):
    """Anything that can return one page of supplier items."""

    async def fetch_page(self, cursor: Optional[str], page_size: int) -> FeedPage:
        ...


class HttpFeedClient:
    """JSON feed over HTTP.

    Expects ``GET {base_url}/products?cursor=..&limit=..`` to answer with::

        {"products": [...], "next_cursor": "...", "total": 123, "has_more": true}
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        """Lazy HTTP client."""
        if self._client is None:
            headers = {"Accept": "application/json"}
            if self.api_key:
                headers["Authorization"] = f"Bearer {self.api_key}"
            self._client = httpx.AsyncClient(headers=headers, timeout=self.timeout)
        return self._client

    async def fetch_page(self, cursor: Optional[str], page_size: int) -> FeedPage:
        params: Dict[str, Any] = {"limit": page_size}
        if cursor:
            params["cursor"] = cursor

        try:
            response = await self._get_client().get(
                f"{self.base_url}/products", params=params
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise FeedError(
                f"Feed returned HTTP {e.response.status_code} for cursor {cursor!r}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise FeedError(f"Feed request failed for cursor {cursor!r}: {e}") from e

        return parse_feed_page(payload)

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None


def parse_feed_page(payload: Dict[str, Any]) -> FeedPage:
    """Convert a feed JSON body into a FeedPage."""
    try:
        items = [FeedItem.model_validate(p) for p in payload.get("products") or []]
    except ValidationError as e:
        raise FeedError(f"Malformed product in feed page: {e}") from e

    next_cursor = payload.get("next_cursor")
    has_more = payload.get("has_more")
    if has_more is None:
        has_more = next_cursor is not None

    total = payload.get("total")
    return FeedPage(
        items=items,
        next_cursor=str(next_cursor) if next_cursor is not None else None,
        approximate_total=int(total) if total else None,
        has_more=bool(has_more),
    )
