"""Destination store writers."""

from .shopify import (
    CreatedProduct,
    DestinationWriter,
    ShopifyProductWriter,
    build_product_input,
    build_variant_input,
)

__all__ = [
    "CreatedProduct",
    "DestinationWriter",
    "ShopifyProductWriter",
    "build_product_input",
    "build_variant_input",
]
