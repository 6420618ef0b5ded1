"""
Unit tests for AuthorAggregator.

The fetcher is mocked per feed URL; the cache writer and source registry run
against the shared SQLite test database so the side effects of a refresh
(cached rows and the refresh stamp) can be observed directly.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, Mock

import pytest

from authorfeed.database.models import CuratedSource
from authorfeed.processing.aggregator import AuthorAggregator
from authorfeed.processing.cache_writer import RetentionCacheWriter
from authorfeed.utils.exceptions import DatabaseError


FEED_A = "https://author.example.com/feed"
FEED_B = "https://author.example.org/rss.xml"
BASE_TIME = datetime(2024, 9, 5, 12, 0, tzinfo=timezone.utc)


def _fetcher(responses):
    """Mock fetcher returning ``responses[url]`` (empty when missing)."""
    fetcher = Mock()
    fetcher.fetch = AsyncMock(side_effect=lambda url: list(responses.get(url, [])))
    return fetcher


class TestAuthorAggregatorRefresh:

    @pytest.fixture
    def writer(self, post_repo, test_settings):
        return RetentionCacheWriter(post_repo, test_settings)

    @pytest.fixture
    def make_source(self, source_repo):
        def _make(name="Agg Author", feed_urls=(FEED_A,)):
            source_id = source_repo.upsert_source(CuratedSource(name=name, feed_urls=list(feed_urls)))
            return source_repo.get_source(source_id)
        return _make

    def _aggregator(self, responses, writer, source_repo, settings):
        return AuthorAggregator(_fetcher(responses), writer, source_repo, settings)

    @pytest.mark.asyncio
    async def test_duplicate_guid_keeps_first_entry(
        self, writer, source_repo, post_repo, test_settings, make_source, make_item
    ):
        source = make_source()
        first = make_item(1, guid="same-guid", link="https://x.example/first", title="First")
        second = make_item(0, guid="same-guid", link="https://x.example/second", title="Second")
        aggregator = self._aggregator({FEED_A: [first, second]}, writer, source_repo, test_settings)

        result = await aggregator.refresh(source)

        assert result.unique_items == 1
        posts = post_repo.list_by_source(source.id)
        assert [p.title for p in posts] == ["First"]

    @pytest.mark.asyncio
    async def test_two_feeds_of_thirty_keep_newest_fifty(
        self, writer, source_repo, post_repo, test_settings, make_source, make_item
    ):
        source = make_source(feed_urls=(FEED_A, FEED_B))
        # Interleave ages across the two feeds: A gets even hours, B odd hours
        feed_a = [make_item(2 * i, guid=f"a-{i}", link=f"https://a.example/{i}") for i in range(30)]
        feed_b = [make_item(2 * i + 1, guid=f"b-{i}", link=f"https://b.example/{i}") for i in range(30)]
        aggregator = self._aggregator({FEED_A: feed_a, FEED_B: feed_b}, writer, source_repo, test_settings)

        result = await aggregator.refresh(source)

        assert result.items_fetched == 60
        assert result.unique_items == 60
        assert result.retained == 50
        assert post_repo.count_by_source(source.id) == 50

        kept = {p.published_at for p in post_repo.list_by_source(source.id, limit=100)}
        oldest_ten = {BASE_TIME - timedelta(hours=h) for h in range(50, 60)}
        assert kept.isdisjoint(oldest_ten)
        assert min(kept) == BASE_TIME - timedelta(hours=49)

    @pytest.mark.asyncio
    async def test_feeds_are_fetched_in_order(
        self, writer, source_repo, test_settings, make_source
    ):
        source = make_source(feed_urls=(FEED_A, FEED_B))
        aggregator = self._aggregator({}, writer, source_repo, test_settings)

        await aggregator.refresh(source)

        urls = [call.args[0] for call in aggregator.fetcher.fetch.await_args_list]
        assert urls == [FEED_A, FEED_B]

    @pytest.mark.asyncio
    async def test_items_are_tagged_and_labelled(
        self, writer, source_repo, post_repo, test_settings, make_source, make_item
    ):
        source = make_source()
        unlabelled = make_item(1, source_label="")
        aggregator = self._aggregator({FEED_A: [unlabelled]}, writer, source_repo, test_settings)

        await aggregator.refresh(source)

        assert unlabelled.source_id == source.id
        assert post_repo.list_by_source(source.id)[0].source_label == FEED_A

    @pytest.mark.asyncio
    async def test_refresh_evicts_posts_missing_from_new_window(
        self, writer, source_repo, post_repo, test_settings, make_source, make_item
    ):
        source = make_source()
        await self._aggregator(
            {FEED_A: [make_item(i) for i in range(4)]}, writer, source_repo, test_settings
        ).refresh(source)

        await self._aggregator(
            {FEED_A: [make_item(i) for i in range(2, 6)]}, writer, source_repo, test_settings
        ).refresh(source)

        links = set(post_repo.list_links(source.id))
        assert "https://example.com/posts/0" not in links
        assert "https://example.com/posts/1" not in links
        assert len(links) == 4

    @pytest.mark.asyncio
    async def test_stamp_is_set_even_without_items(
        self, writer, source_repo, test_settings, make_source
    ):
        source = make_source()
        assert source.last_refreshed_at is None
        aggregator = self._aggregator({}, writer, source_repo, test_settings)

        result = await aggregator.refresh(source)

        assert result.success
        assert result.stamped
        assert source_repo.get_source(source.id).last_refreshed_at is not None

    @pytest.mark.asyncio
    async def test_source_without_feeds_is_noop(self, writer, source_repo, test_settings, make_source):
        source = make_source(feed_urls=())
        aggregator = self._aggregator({}, writer, source_repo, test_settings)

        result = await aggregator.refresh(source)

        assert result.skipped
        assert not result.stamped
        aggregator.fetcher.fetch.assert_not_awaited()
        assert source_repo.get_source(source.id).last_refreshed_at is None

    @pytest.mark.asyncio
    async def test_commit_failure_is_contained_and_still_stamped(
        self, source_repo, test_settings, make_source, make_item
    ):
        source = make_source()
        writer = Mock()
        writer.commit = AsyncMock(side_effect=DatabaseError("database is locked"))
        aggregator = self._aggregator({FEED_A: [make_item(1)]}, writer, source_repo, test_settings)

        result = await aggregator.refresh(source)

        assert not result.success
        assert "database is locked" in result.error
        assert result.stamped
        assert source_repo.get_source(source.id).last_refreshed_at is not None

    @pytest.mark.asyncio
    async def test_stamp_failure_is_logged_not_raised(
        self, writer, test_settings, make_source, make_item
    ):
        source = make_source()
        broken_registry = Mock()
        broken_registry.update_last_refreshed.side_effect = DatabaseError("read-only")
        aggregator = self._aggregator({FEED_A: [make_item(1)]}, writer, broken_registry, test_settings)

        result = await aggregator.refresh(source)

        assert result.success
        assert not result.stamped

    @pytest.mark.asyncio
    async def test_fetcher_exception_is_contained(
        self, writer, source_repo, test_settings, make_source
    ):
        source = make_source()
        fetcher = Mock()
        fetcher.fetch = AsyncMock(side_effect=RuntimeError("fetcher exploded"))
        aggregator = AuthorAggregator(fetcher, writer, source_repo, test_settings)

        result = await aggregator.refresh(source)

        assert result.error == "fetcher exploded"
        assert result.stamped


class TestDedupAndRanking:

    def test_deduplicate_prefers_guid_then_link_then_title(self, make_item):
        items = [
            make_item(1, guid="g", link="l1", title="t1"),
            make_item(2, guid="g", link="l2", title="t2"),
            make_item(3, guid="", link="l3", title="t3"),
            make_item(4, guid="", link="l3", title="t4"),
            make_item(5, guid="", link="", title="t5"),
            make_item(6, guid="", link="", title="t5"),
        ]

        unique = AuthorAggregator.deduplicate(items)

        assert [item.title for item in unique] == ["t1", "t3", "t5"]

    def test_rank_is_stable_for_equal_dates(self, make_item):
        items = [make_item(1, title="a"), make_item(0, title="newest"), make_item(1, title="b")]

        ranked = AuthorAggregator.rank_and_truncate(items, 10)

        assert [item.title for item in ranked] == ["newest", "a", "b"]

    def test_truncate_to_window(self, make_item):
        items = [make_item(i) for i in range(10)]

        assert len(AuthorAggregator.rank_and_truncate(items, 3)) == 3
        assert AuthorAggregator.rank_and_truncate([], 3) == []
