"""Pydantic models for supplier feed data."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class FeedItem(BaseModel):
    """One product as served by the supplier feed."""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    id: str
    title: str
    description: str = ""
    price: Decimal = Field(default=Decimal("0"))
    sku: str = ""
    inventory_quantity: int = 0
    images: List[str] = Field(default_factory=list)
    category: str = ""
    tags: List[str] = Field(default_factory=list)
    vendor: str = ""
    weight: float = 0.0
    weight_unit: str = "kg"


@dataclass
class FeedPage:
    """One page of the feed plus the cursor of the page after it."""

    items: List[FeedItem] = field(default_factory=list)
    next_cursor: Optional[str] = None
    approximate_total: Optional[int] = None
    has_more: bool = False

    @property
    def exhausted(self) -> bool:
        """True when no page follows this one."""
        return not self.has_more or self.next_cursor is None
