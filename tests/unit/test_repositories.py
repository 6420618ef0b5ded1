"""
Tests for Repository Components
===============================

Test suite for SourceRepository and PostRepository against the shared SQLite
test database, plus error translation when the database is unavailable.
"""

import sqlite3
from datetime import datetime, timezone
from unittest.mock import Mock

import pytest

from authorfeed.config.settings import MAX_WINDOW_SIZE
from authorfeed.database.models import CachedPost, CuratedSource
from authorfeed.storage.post_repository import PostRepository
from authorfeed.storage.source_repository import SourceRepository
from authorfeed.utils.exceptions import DatabaseError, ErrorCode, SourceError


def _posts(source_id, make_item, numbers):
    posts = []
    for n in numbers:
        item = make_item(n)
        item.source_id = source_id
        posts.append(CachedPost.from_item(item))
    return posts


class TestSourceRepository:
    """Test suite for SourceRepository."""

    def test_upsert_and_get(self, source_repo, sample_sources):
        source_id = source_repo.upsert_source(sample_sources[0])

        retrieved = source_repo.get_source(source_id)

        assert retrieved.id == source_id
        assert retrieved.name == "Ada Writer"
        assert retrieved.handle == "ada"
        assert retrieved.feed_urls == sample_sources[0].feed_urls
        assert retrieved.tags == ["compilers"]
        assert retrieved.last_refreshed_at is None

    def test_get_missing_source(self, source_repo):
        assert source_repo.get_source(424242) is None

    def test_upsert_by_name_keeps_id_and_stamp(self, source_repo):
        source_id = source_repo.upsert_source(
            CuratedSource(name="Same Name", feed_urls=["https://one.example/feed"])
        )
        stamp = datetime(2024, 9, 1, 8, 30, tzinfo=timezone.utc)
        source_repo.update_last_refreshed(source_id, stamp)

        again = source_repo.upsert_source(
            CuratedSource(name="Same Name", feed_urls=["https://two.example/feed"])
        )

        assert again == source_id
        retrieved = source_repo.get_source(source_id)
        assert retrieved.feed_urls == ["https://two.example/feed"]
        assert retrieved.last_refreshed_at == stamp
        assert source_repo.count_sources() == 1

    def test_update_last_refreshed(self, source_repo, sample_sources):
        source_id = source_repo.upsert_source(sample_sources[1])
        stamp = datetime(2024, 9, 5, 12, 0, tzinfo=timezone.utc)

        assert source_repo.update_last_refreshed(source_id, stamp) is True
        assert source_repo.get_source(source_id).last_refreshed_at == stamp

    def test_update_last_refreshed_unknown_source(self, source_repo):
        assert source_repo.update_last_refreshed(424242) is False

    def test_list_all_sources_in_registration_order(self, source_repo, sample_sources):
        for source in reversed(sample_sources):
            source_repo.upsert_source(source)

        names = [source.name for source in source_repo.list_all_sources()]

        assert names == ["Cal Quiet", "Brook Blogger", "Ada Writer"]

    def test_list_sources_by_name_ignores_case(self, source_repo):
        for name in ("zoe", "Adam", "beth"):
            source_repo.upsert_source(CuratedSource(name=name))

        names = [source.name for source in source_repo.list_sources_by_name()]

        assert names == ["Adam", "beth", "zoe"]

    def test_source_without_feeds_round_trips(self, source_repo, sample_sources):
        source_id = source_repo.upsert_source(sample_sources[2])

        retrieved = source_repo.get_source(source_id)

        assert retrieved.feed_urls == []
        assert not retrieved.has_feeds

    @pytest.mark.parametrize("feed_urls", ['["bad.example/feed"]', "not json"])
    def test_malformed_rows_are_skipped_when_listing(self, source_repo, db_connection, feed_urls):
        good = source_repo.upsert_source(CuratedSource(name="Good", feed_urls=["https://good.example/feed"]))
        bad = source_repo.upsert_source(CuratedSource(name="Bad", feed_urls=["https://bad.example/feed"]))
        with db_connection.transaction() as conn:
            conn.execute("UPDATE curated_sources SET feed_urls = ? WHERE id = ?", (feed_urls, bad))

        assert [s.id for s in source_repo.list_all_sources()] == [good]
        assert [s.id for s in source_repo.list_sources_by_name()] == [good]
        assert source_repo.count_sources() == 2

    def test_count_sources(self, source_repo, sample_sources):
        assert source_repo.count_sources() == 0
        for source in sample_sources:
            source_repo.upsert_source(source)
        assert source_repo.count_sources() == 3

    def test_unavailable_registry_raises_source_error(self):
        db = Mock()
        db.get_connection.side_effect = sqlite3.OperationalError("unable to open database file")
        repo = SourceRepository(db)

        with pytest.raises(SourceError) as exc_info:
            repo.list_all_sources()

        assert exc_info.value.error_code == ErrorCode.SOURCE_REGISTRY_UNAVAILABLE

    def test_stamp_failure_raises_database_error(self):
        db = Mock()
        db.get_connection.side_effect = sqlite3.OperationalError("attempt to write a readonly database")
        repo = SourceRepository(db)

        with pytest.raises(DatabaseError):
            repo.update_last_refreshed(1)

    def test_count_sources_failure_returns_zero(self):
        db = Mock()
        db.get_connection.side_effect = sqlite3.OperationalError("disk I/O error")

        assert SourceRepository(db).count_sources() == 0


class TestPostRepository:
    """Test suite for PostRepository."""

    @pytest.fixture
    def source_id(self, source_repo):
        return source_repo.upsert_source(CuratedSource(name="Post Owner"))

    def test_upsert_posts(self, post_repo, source_id, make_item):
        written = post_repo.upsert_posts(_posts(source_id, make_item, range(3)))

        assert written == 3
        assert post_repo.count_by_source(source_id) == 3

    def test_upsert_empty_batch(self, post_repo):
        assert post_repo.upsert_posts([]) == 0

    def test_upsert_overwrites_same_link(self, post_repo, source_id, make_item):
        post_repo.upsert_posts(_posts(source_id, make_item, [1]))
        updated = CachedPost.from_item(make_item(1, title="Edited", source_id=source_id))

        post_repo.upsert_posts([updated])

        posts = post_repo.list_by_source(source_id)
        assert len(posts) == 1
        assert posts[0].title == "Edited"

    def test_same_link_is_separate_per_source(self, post_repo, source_repo, source_id, make_item):
        other_id = source_repo.upsert_source(CuratedSource(name="Second Owner"))

        post_repo.upsert_posts(_posts(source_id, make_item, [1]) + _posts(other_id, make_item, [1]))

        assert post_repo.count_by_source(source_id) == 1
        assert post_repo.count_by_source(other_id) == 1

    def test_delete_outside_window(self, post_repo, source_id, make_item):
        post_repo.upsert_posts(_posts(source_id, make_item, range(5)))
        keep = [f"https://example.com/posts/{n}" for n in (0, 2)]

        deleted = post_repo.delete_outside_window(source_id, keep)

        assert deleted == 3
        assert sorted(post_repo.list_links(source_id)) == sorted(keep)

    def test_delete_outside_empty_window_removes_all(self, post_repo, source_id, make_item):
        post_repo.upsert_posts(_posts(source_id, make_item, range(4)))

        assert post_repo.delete_outside_window(source_id, []) == 4
        assert post_repo.count_by_source(source_id) == 0

    def test_delete_is_repeatable(self, post_repo, source_id, make_item):
        post_repo.upsert_posts(_posts(source_id, make_item, range(4)))
        keep = ["https://example.com/posts/1"]

        post_repo.delete_outside_window(source_id, keep)

        assert post_repo.delete_outside_window(source_id, keep) == 0

    def test_delete_outside_largest_window(self, post_repo, source_id, make_item):
        post_repo.upsert_posts(_posts(source_id, make_item, range(3)))
        keep = [f"https://example.com/posts/{n}" for n in range(MAX_WINDOW_SIZE)]

        assert post_repo.delete_outside_window(source_id, keep) == 0
        assert post_repo.count_by_source(source_id) == 3

    def test_enforce_hard_cap_keeps_newest(self, post_repo, source_id, make_item):
        post_repo.upsert_posts(_posts(source_id, make_item, range(6)))

        deleted = post_repo.enforce_hard_cap(source_id, 4)

        assert deleted == 2
        assert post_repo.list_links(source_id) == [
            f"https://example.com/posts/{n}" for n in range(4)
        ]

    def test_enforce_hard_cap_under_limit(self, post_repo, source_id, make_item):
        post_repo.upsert_posts(_posts(source_id, make_item, range(3)))

        assert post_repo.enforce_hard_cap(source_id, 200) == 0

    def test_list_by_source_newest_first_and_paged(self, post_repo, source_id, make_item):
        # Insert oldest first so insertion order differs from publication order
        post_repo.upsert_posts(_posts(source_id, make_item, reversed(range(7))))

        first = post_repo.list_by_source(source_id, page=1, limit=3)
        third = post_repo.list_by_source(source_id, page=3, limit=3)

        assert [p.link for p in first] == [f"https://example.com/posts/{n}" for n in range(3)]
        assert [p.link for p in third] == ["https://example.com/posts/6"]

    def test_list_by_source_returns_models(self, post_repo, source_id, make_item):
        post_repo.upsert_posts(_posts(source_id, make_item, [2]))

        post = post_repo.list_by_source(source_id)[0]

        assert isinstance(post, CachedPost)
        assert post.id is not None
        assert post.source_id == source_id
        assert post.guid == "guid-2"
        assert post.created_at is not None

    def test_upsert_failure_raises_database_error(self, make_item):
        db = Mock()
        db.transaction.side_effect = sqlite3.OperationalError("database is locked")
        repo = PostRepository(db)

        with pytest.raises(DatabaseError) as exc_info:
            repo.upsert_posts(_posts(1, make_item, [1]))

        assert exc_info.value.error_code == ErrorCode.DATABASE_TRANSACTION
