"""
Post Repository
===============

Cache store for retained feed items. Rows are keyed by (source_id, link) and
written with upsert semantics, so repeating a write or a delete is harmless.
"""

from typing import Iterable, List, Sequence

from ..database.models import CachedPost, to_db_timestamp, utc_now
from ..database.connection import DatabaseConnection
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import DatabaseError, ErrorCode

UPSERT_POST_SQL = """
    INSERT INTO cached_posts (
        source_id, title, link, guid, excerpt, content,
        published_at, source_label, created_at, updated_at
    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT(source_id, link) DO UPDATE SET
        title = excluded.title,
        guid = excluded.guid,
        excerpt = excluded.excerpt,
        content = excluded.content,
        published_at = excluded.published_at,
        source_label = excluded.source_label,
        updated_at = excluded.updated_at
"""


class PostRepository:
    """Repository for cached posts with database abstraction."""

    def __init__(self, db_connection: DatabaseConnection):
        """Initialize post repository.

        Args:
            db_connection: Database connection manager
        """
        self.db = db_connection
        self.logger = get_logger_for_component("post_repository")

    def upsert_posts(self, posts: Sequence[CachedPost]) -> int:
        """Insert or fully overwrite posts keyed by (source_id, link).

        Args:
            posts: Posts to write

        Returns:
            Number of posts written

        Raises:
            DatabaseError: If the batch cannot be written
        """
        if not posts:
            return 0

        now = to_db_timestamp(utc_now())
        try:
            with self.db.transaction() as conn:
                conn.executemany(
                    UPSERT_POST_SQL,
                    [
                        (
                            post.source_id, post.title, post.link, post.guid,
                            post.excerpt, post.content,
                            to_db_timestamp(post.published_at), post.source_label,
                            now, now,
                        )
                        for post in posts
                    ],
                )

            self.logger.debug(f"Upserted {len(posts)} cached posts")
            return len(posts)

        except Exception as e:
            raise DatabaseError(
                f"Failed to upsert cached posts: {e}",
                error_code=ErrorCode.DATABASE_TRANSACTION
            ) from e

    def delete_outside_window(self, source_id: int, keep_links: Iterable[str]) -> int:
        """Delete every post of ``source_id`` whose link is not in ``keep_links``.

        An empty ``keep_links`` removes every post of the source.

        Returns:
            Number of posts deleted
        """
        links = list(dict.fromkeys(keep_links))
        try:
            with self.db.get_connection() as conn:
                if links:
                    placeholders = ','.join('?' * len(links))
                    cursor = conn.execute(
                        f"DELETE FROM cached_posts WHERE source_id = ? "
                        f"AND link NOT IN ({placeholders})",
                        (source_id, *links),
                    )
                else:
                    cursor = conn.execute(
                        "DELETE FROM cached_posts WHERE source_id = ?", (source_id,)
                    )
                conn.commit()

            return cursor.rowcount

        except Exception as e:
            raise DatabaseError(
                f"Failed to evict cached posts for source {source_id}: {e}",
                error_code=ErrorCode.DATABASE_ERROR
            ) from e

    def enforce_hard_cap(self, source_id: int, hard_cap: int) -> int:
        """Delete the oldest posts of a source beyond ``hard_cap`` rows.

        Returns:
            Number of posts deleted
        """
        try:
            with self.db.get_connection() as conn:
                cursor = conn.execute(
                    """
                    DELETE FROM cached_posts
                    WHERE source_id = ? AND id NOT IN (
                        SELECT id FROM cached_posts
                        WHERE source_id = ?
                        ORDER BY published_at DESC, id DESC
                        LIMIT ?
                    )
                    """,
                    (source_id, source_id, hard_cap),
                )
                conn.commit()

            return cursor.rowcount

        except Exception as e:
            raise DatabaseError(
                f"Failed to cap cached posts for source {source_id}: {e}",
                error_code=ErrorCode.DATABASE_ERROR
            ) from e

    def list_by_source(self, source_id: int, page: int = 1, limit: int = 20) -> List[CachedPost]:
        """Get one page of a source's posts, newest first.

        Args:
            source_id: Owning curated source
            page: 1-based page number
            limit: Page size

        Returns:
            List of CachedPost models
        """
        offset = (max(page, 1) - 1) * limit
        try:
            with self.db.get_connection() as conn:
                rows = conn.execute(
                    """
                    SELECT * FROM cached_posts
                    WHERE source_id = ?
                    ORDER BY published_at DESC, id ASC
                    LIMIT ? OFFSET ?
                    """,
                    (source_id, limit, offset)
                ).fetchall()

            return [CachedPost(**dict(row)) for row in rows]

        except Exception as e:
            raise DatabaseError(
                f"Failed to list cached posts for source {source_id}: {e}",
                error_code=ErrorCode.DATABASE_ERROR
            ) from e

    def list_links(self, source_id: int) -> List[str]:
        try:
            with self.db.get_connection() as conn:
                rows = conn.execute(
                    "SELECT link FROM cached_posts WHERE source_id = ? ORDER BY published_at DESC",
                    (source_id,)
                ).fetchall()
            return [row['link'] for row in rows]

        except Exception as e:
            raise DatabaseError(
                f"Failed to list cached links for source {source_id}: {e}",
                error_code=ErrorCode.DATABASE_ERROR
            ) from e

    def count_by_source(self, source_id: int) -> int:
        """Get the number of cached posts for a source."""
        try:
            with self.db.get_connection() as conn:
                result = conn.execute(
                    "SELECT COUNT(*) FROM cached_posts WHERE source_id = ?",
                    (source_id,)
                ).fetchone()
            return result[0] if result else 0

        except Exception as e:
            raise DatabaseError(
                f"Failed to count cached posts for source {source_id}: {e}",
                error_code=ErrorCode.DATABASE_ERROR
            ) from e
