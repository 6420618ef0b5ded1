"""
Catalog Service
===============

Read-only view over the curated source registry and the cached posts, shaped
for the REST layer: source listings, single-source lookups and paginated post
listings per source.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..config.settings import AuthorFeedSettings, get_settings
from ..database.connection import DatabaseConnection
from ..database.models import CachedPost, CuratedSource
from ..storage.post_repository import PostRepository
from ..storage.source_repository import SourceRepository
from ..utils.exceptions import SourceNotFoundError
from ..utils.logging import get_logger_for_component
from ..utils.validators import coerce_positive_int


@dataclass
class PostPage:
    """One page of a source's cached posts."""
    items: List[CachedPost] = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 20
    total_pages: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [post.model_dump(mode="json") for post in self.items],
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
            "total_pages": self.total_pages,
        }


class CatalogService:
    """Read-only catalog of curated sources and their cached posts."""

    def __init__(self, db_connection: DatabaseConnection, settings: Optional[AuthorFeedSettings] = None):
        """Initialize catalog service.

        Args:
            db_connection: Database connection manager
            settings: Application settings (default: global settings)
        """
        self.settings = settings or get_settings()
        self.sources = SourceRepository(db_connection)
        self.posts = PostRepository(db_connection)
        self.logger = get_logger_for_component("catalog_service")

    def list_sources(self) -> List[CuratedSource]:
        """All curated sources sorted by name."""
        return self.sources.list_sources_by_name()

    def get_source(self, source_id: int) -> CuratedSource:
        """Get a curated source.

        Raises:
            SourceNotFoundError: If no source has this ID
        """
        source = self.sources.get_source(source_id)
        if source is None:
            raise SourceNotFoundError(source_id)
        return source

    def _clamp_paging(self, page: Any, limit: Any) -> tuple:
        catalog = self.settings.catalog
        page = coerce_positive_int(page, 1)
        limit = coerce_positive_int(limit, catalog.default_page_size)
        return page, min(limit, catalog.max_page_size)

    def list_source_posts(self, source_id: int, page: Any = 1, limit: Any = None) -> PostPage:
        """Get one page of a source's cached posts, newest first.

        Args:
            source_id: Curated source ID
            page: 1-based page number; invalid values fall back to 1
            limit: Page size; invalid values fall back to the default and
                large values are capped at ``catalog.max_page_size``

        Returns:
            PostPage with the requested slice and paging totals

        Raises:
            SourceNotFoundError: If no source has this ID
        """
        self.get_source(source_id)
        page, limit = self._clamp_paging(page, limit)

        total = self.posts.count_by_source(source_id)
        items = self.posts.list_by_source(source_id, page=page, limit=limit)

        return PostPage(
            items=items,
            total=total,
            page=page,
            limit=limit,
            total_pages=math.ceil(total / limit) if total else 0,
        )
