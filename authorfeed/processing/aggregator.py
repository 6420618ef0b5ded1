"""
Author Aggregator
=================

Refreshes one curated source end to end: fetches each of its feed URLs in
order, merges and deduplicates the items, keeps the newest window and hands
it to the cache writer, then stamps the source's refresh time.

A refresh never raises. Failures are logged and reported on the returned
RefreshResult so that one broken source cannot stall the fleet.
"""

import asyncio
from typing import Iterable, List, Optional

from ..config.settings import AuthorFeedSettings, get_settings
from ..database.models import CanonicalItem, CuratedSource, RefreshResult, utc_now
from ..ingestion.feed_fetcher import FeedFetcher
from ..storage.source_repository import SourceRepository
from ..utils.logging import PerformanceLogger, get_logger_for_component
from .cache_writer import RetentionCacheWriter


class AuthorAggregator:
    """Per-source refresh: fetch, merge, dedup, rank, commit, stamp."""

    def __init__(
        self,
        fetcher: FeedFetcher,
        cache_writer: RetentionCacheWriter,
        source_repository: SourceRepository,
        settings: Optional[AuthorFeedSettings] = None,
    ):
        """Initialize aggregator.

        Args:
            fetcher: Feed fetcher used for every feed URL
            cache_writer: Writer that commits the retained window
            source_repository: Registry used to stamp refresh times
            settings: Application settings (default: global settings)
        """
        self.fetcher = fetcher
        self.cache_writer = cache_writer
        self.sources = source_repository
        self.settings = settings or get_settings()
        self.window_size = self.settings.retention.window_size
        self.logger = get_logger_for_component("aggregator")

    @staticmethod
    def deduplicate(items: Iterable[CanonicalItem]) -> List[CanonicalItem]:
        """Drop repeats by dedup key; the first occurrence wins."""
        seen = set()
        unique = []
        for item in items:
            key = item.dedup_key
            if key in seen:
                continue
            seen.add(key)
            unique.append(item)
        return unique

    @staticmethod
    def rank_and_truncate(items: List[CanonicalItem], window_size: int) -> List[CanonicalItem]:
        """Newest first, ties keep merge order, cut to ``window_size``."""
        ranked = sorted(items, key=lambda item: item.published_at, reverse=True)
        return ranked[:window_size]

    async def _collect(self, source: CuratedSource, result: RefreshResult) -> List[CanonicalItem]:
        """Fetch every feed URL of a source, one after another."""
        merged: List[CanonicalItem] = []
        for feed_url in source.feed_urls:
            result.feeds_attempted += 1
            items = await self.fetcher.fetch(feed_url)
            if items:
                result.feeds_with_items += 1
            for item in items:
                item.source_id = source.id
                if not item.source_label:
                    item.source_label = feed_url
            merged.extend(items)
        return merged

    async def refresh(self, source: CuratedSource) -> RefreshResult:
        """Refresh a single curated source.

        Args:
            source: Curated source to refresh

        Returns:
            RefreshResult describing what happened
        """
        result = RefreshResult(source_id=source.id, source_name=source.name)
        logger = get_logger_for_component("aggregator", source_id=source.id)

        if not source.has_feeds:
            logger.debug(f"Source '{source.name}' has no feed URLs, nothing to refresh")
            result.skipped = True
            return result

        with PerformanceLogger(logger, f"refresh of '{source.name}'", source_id=source.id) as perf:
            try:
                merged = await self._collect(source, result)
                result.items_fetched = len(merged)

                unique = self.deduplicate(merged)
                result.unique_items = len(unique)

                window = self.rank_and_truncate(unique, self.window_size)
                commit = await self.cache_writer.commit(source.id, window)
                result.retained = commit.upserted
                result.evicted = commit.evicted + commit.capped

            except Exception as e:
                result.error = str(e)
                logger.error(
                    f"Refresh failed for source '{source.name}': {e}",
                    exc_info=True,
                )

            # The attempt is recorded even when the commit failed
            try:
                result.stamped = await asyncio.to_thread(
                    self.sources.update_last_refreshed, source.id, utc_now()
                )
            except Exception as e:
                logger.error(f"Failed to stamp refresh time for '{source.name}': {e}")

            logger.info(
                f"Refreshed '{source.name}': {result.feeds_with_items}/{result.feeds_attempted} feeds, "
                f"{result.items_fetched} items, {result.unique_items} unique, "
                f"{result.retained} retained, {result.evicted} evicted "
                f"({perf.elapsed_seconds:.2f}s)"
            )

        return result
