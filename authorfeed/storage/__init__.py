"""
AuthorFeed Storage Layer
========================

Repository pattern implementations for data access abstraction.

This module provides:
- Source repository for the curated source registry
- Post repository for the cached post store
"""

from .post_repository import PostRepository
from .source_repository import SourceRepository

__all__ = [
    "PostRepository",
    "SourceRepository",
]
