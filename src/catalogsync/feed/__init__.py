"""
Supplier feed access.

Components:
- models: FeedItem / FeedPage
- client: FeedClient protocol and the HTTP implementation
- synthetic: generated catalog used when no feed URL is configured
"""

from .client import FeedClient, HttpFeedClient, parse_feed_page
from .models import FeedItem, FeedPage
from .synthetic import SyntheticFeedClient

__all__ = [
    "FeedClient",
    "HttpFeedClient",
    "parse_feed_page",
    "FeedItem",
    "FeedPage",
    "SyntheticFeedClient",
]
