"""
AuthorFeed Processing Module
============================

Per-author aggregation and retention-bounded cache writes.
"""

from .aggregator import AuthorAggregator
from .cache_writer import CommitResult, RetentionCacheWriter

__all__ = [
    'AuthorAggregator',
    'CommitResult',
    'RetentionCacheWriter',
]
