"""
Shopify destination writer.

Creates one product per feed item through the Admin GraphQL API:
1. productCreate with the catalog fields
2. productVariantsBulkUpdate on the default variant (price, SKU, weight)

Images are not uploaded yet; the first image URL is only logged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

import httpx

from ..errors import DestinationError
from ..feed.models import FeedItem
from ..session import ShopSession

logger = logging.getLogger(__name__)

PRODUCT_CREATE = """
mutation productCreate($input: ProductInput!) {
  productCreate(input: $input) {
    product {
      id
      title
      handle
      variants(first: 1) {
        edges {
          node {
            id
          }
        }
      }
    }
    userErrors {
      field
      message
    }
  }
}
"""

VARIANTS_BULK_UPDATE = """
mutation productVariantsBulkUpdate($productId: ID!, $variants: [ProductVariantsBulkInput!]!) {
  productVariantsBulkUpdate(productId: $productId, variants: $variants) {
    productVariants {
      id
      price
      sku
    }
    userErrors {
      field
      message
    }
  }
}
"""


@dataclass
class CreatedProduct:
    """Handle of a product created in the destination store."""

    id: str
    title: str
    handle: str = ""
    variant_id: Optional[str] = None


class DestinationWriter(Protocol):
    """Writes one catalog item; raises DestinationError on failure."""

    async def create_item(self, session: ShopSession, item: FeedItem) -> CreatedProduct:
        ...


def build_product_input(item: FeedItem) -> Dict[str, Any]:
    """Map a feed item onto Shopify's ProductInput."""
    return {
        "title": item.title,
        "descriptionHtml": item.description,
        "vendor": item.vendor,
        "productType": item.category,
        "tags": list(item.tags),
    }


def build_variant_input(item: FeedItem, variant_id: str) -> List[Dict[str, Any]]:
    """Pricing/inventory facets for the default variant."""
    return [
        {
            "id": variant_id,
            "price": str(item.price),
            "sku": item.sku,
            "weight": item.weight,
            "weightUnit": _weight_unit(item.weight_unit),
            "inventoryQuantity": item.inventory_quantity,
        }
    ]


def _weight_unit(unit: str) -> str:
    aliases = {"kg": "KILOGRAMS", "g": "GRAMS", "lb": "POUNDS", "oz": "OUNCES"}
    return aliases.get(unit.lower(), unit.upper())


class ShopifyProductWriter:
    """Destination writer backed by the Shopify Admin GraphQL API."""

    def __init__(
        self,
        api_version: str = "2024-10",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_version = api_version
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        """Lazy HTTP client shared by all sessions."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    def endpoint(self, session: ShopSession) -> str:
        return f"https://{session.shop}/admin/api/{self.api_version}/graphql.json"

    async def _request(
        self, session: ShopSession, query: str, variables: Dict[str, Any]
    ) -> Dict[str, Any]:
        try:
            response = await self._get_client().post(
                self.endpoint(session),
                json={"query": query, "variables": variables},
                headers={"X-Shopify-Access-Token": session.access_token},
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            raise DestinationError(
                f"Shopify returned HTTP {e.response.status_code}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise DestinationError(f"Shopify request failed: {e}") from e

        if body.get("errors"):
            raise DestinationError(body["errors"][0].get("message", "GraphQL error"))
        return body.get("data") or {}

    async def create_item(self, session: ShopSession, item: FeedItem) -> CreatedProduct:
        data = await self._request(
            session, PRODUCT_CREATE, {"input": build_product_input(item)}
        )
        result = data.get("productCreate") or {}
        user_errors = result.get("userErrors") or []
        if user_errors:
            raise DestinationError(user_errors[0]["message"])
        product = result.get("product")
        if not product:
            raise DestinationError(f"productCreate returned no product for {item.id}")

        edges = (product.get("variants") or {}).get("edges") or []
        variant_id = edges[0]["node"]["id"] if edges else None
        created = CreatedProduct(
            id=product["id"],
            title=product.get("title", item.title),
            handle=product.get("handle", ""),
            variant_id=variant_id,
        )

        if variant_id:
            await self._update_default_variant(session, item, created)

        if item.images:
            logger.debug(
                f"Skipping image upload for product {created.id}: {item.images[0]}"
            )
        return created

    async def _update_default_variant(
        self, session: ShopSession, item: FeedItem, created: CreatedProduct
    ) -> None:
        data = await self._request(
            session,
            VARIANTS_BULK_UPDATE,
            {
                "productId": created.id,
                "variants": build_variant_input(item, created.variant_id),
            },
        )
        user_errors = (data.get("productVariantsBulkUpdate") or {}).get(
            "userErrors"
        ) or []
        if user_errors:
            # Product exists at this point; pricing can be fixed later
            logger.warning(
                f"Failed to update variant for product {created.id}: "
                f"{user_errors[0]['message']}"
            )

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
