"""
AuthorFeed Ingestion Module
===========================

Feed fetching and entry normalization.

This module handles:
- Multi-strategy feed fetching with URL variants and raw fallback
- Normalizing RSS/Atom entries into canonical items
"""

from .feed_fetcher import FeedFetcher, FetchMode
from .normalizer import build_url_variants, normalize_entry, normalize_feed

__all__ = [
    "FeedFetcher",
    "FetchMode",
    "build_url_variants",
    "normalize_entry",
    "normalize_feed",
]
