"""
Retention Cache Writer
======================

Commits a source's retained window to the cache store:

1. upsert every windowed item keyed by (source_id, link)
2. delete the source's rows whose link is not in the window
3. trim whatever remains beyond the per-source hard cap

Each step is idempotent, so re-committing an unchanged window leaves the
store exactly as it was.
"""

import asyncio
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..config.settings import AuthorFeedSettings, get_settings
from ..database.models import CachedPost, CanonicalItem
from ..storage.post_repository import PostRepository
from ..utils.logging import get_logger_for_component


@dataclass
class CommitResult:
    """Row counts touched by one window commit."""
    upserted: int = 0
    evicted: int = 0
    capped: int = 0
    skipped_without_link: int = 0


class RetentionCacheWriter:
    """Writes retained windows and enforces per-source retention."""

    def __init__(self, post_repository: PostRepository, settings: Optional[AuthorFeedSettings] = None):
        self.posts = post_repository
        self.settings = settings or get_settings()
        self.hard_cap = self.settings.retention.hard_cap
        self.logger = get_logger_for_component("cache_writer")

    def _to_posts(self, source_id: int, items: Sequence[CanonicalItem]) -> List[CachedPost]:
        """Project window items onto cache rows, one row per link."""
        posts = []
        seen_links = set()
        for item in items:
            if not item.link:
                continue
            if item.link in seen_links:
                continue
            seen_links.add(item.link)
            posts.append(CachedPost.from_item(item, source_id=source_id))
        return posts

    def commit_sync(self, source_id: int, items: Sequence[CanonicalItem]) -> CommitResult:
        """Blocking variant of :meth:`commit`.

        Raises:
            DatabaseError: If any store operation fails
        """
        posts = self._to_posts(source_id, items)
        result = CommitResult(skipped_without_link=sum(1 for item in items if not item.link))

        result.upserted = self.posts.upsert_posts(posts)
        result.evicted = self.posts.delete_outside_window(source_id, [p.link for p in posts])
        result.capped = self.posts.enforce_hard_cap(source_id, self.hard_cap)

        if result.skipped_without_link:
            self.logger.debug(
                f"Skipped {result.skipped_without_link} items without a link for source {source_id}"
            )
        self.logger.debug(
            f"Committed window for source {source_id}: upserted={result.upserted} "
            f"evicted={result.evicted} capped={result.capped}"
        )
        return result

    async def commit(self, source_id: int, items: Sequence[CanonicalItem]) -> CommitResult:
        """Commit a retained window without blocking the event loop.

        Args:
            source_id: Owning curated source
            items: Retained window, newest first

        Returns:
            CommitResult with per-step row counts

        Raises:
            DatabaseError: If any store operation fails
        """
        return await asyncio.to_thread(self.commit_sync, source_id, list(items))
