"""
Source Repository
=================

Repository pattern implementation for the curated source registry.

The ingestion pipeline only reads sources and stamps ``last_refreshed_at``;
creating and editing sources belongs to the external curation process
(``upsert_source`` exists for seeding). Because rows can be written outside
this code, listings skip a row that no longer validates instead of failing
the whole registry.
"""

import sqlite3
from datetime import datetime
from typing import Iterable, List, Optional

from pydantic import ValidationError as ModelValidationError

from ..database.connection import DatabaseConnection
from ..database.models import CuratedSource, to_db_timestamp, utc_now
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import AuthorFeedError, DatabaseError, ErrorCode, SourceError


class SourceRepository:
    """Repository for curated sources stored in SQLite."""

    def __init__(self, db_connection: DatabaseConnection):
        """Initialize source repository.

        Args:
            db_connection: Database connection manager
        """
        self.db = db_connection
        self.logger = get_logger_for_component("source_repository")

    def _load_sources(self, order_by: str) -> List[CuratedSource]:
        try:
            with self.db.get_connection() as conn:
                rows = conn.execute(
                    f"SELECT * FROM curated_sources ORDER BY {order_by}"
                ).fetchall()

        except Exception as e:
            raise SourceError(
                f"Failed to list curated sources: {e}",
                error_code=ErrorCode.SOURCE_REGISTRY_UNAVAILABLE,
            ) from e

        return self._build_sources(rows)

    def _build_sources(self, rows: Iterable[sqlite3.Row]) -> List[CuratedSource]:
        """Convert rows to models; a row that fails validation is logged and skipped."""
        sources = []
        for row in rows:
            try:
                sources.append(CuratedSource.from_db_row(row))
            except (AuthorFeedError, ModelValidationError, ValueError, TypeError) as e:
                self.logger.error(
                    f"Skipping malformed curated source {row['id']} ({row['name']!r}): {e}",
                    extra={"source_id": row["id"]},
                )
        return sources

    def list_all_sources(self) -> List[CuratedSource]:
        """Load every valid curated source in registration order.

        Raises:
            SourceError: If the registry cannot be read
        """
        return self._load_sources("id")

    def list_sources_by_name(self) -> List[CuratedSource]:
        """Load every valid curated source sorted by display name."""
        return self._load_sources("name COLLATE NOCASE, id")

    def get_source(self, source_id: int) -> Optional[CuratedSource]:
        """Get a curated source by ID, or None if it does not exist."""
        try:
            with self.db.get_connection() as conn:
                row = conn.execute(
                    "SELECT * FROM curated_sources WHERE id = ?", (source_id,)
                ).fetchone()
            return CuratedSource.from_db_row(row) if row else None

        except Exception as e:
            raise DatabaseError(
                f"Failed to get curated source {source_id}: {e}",
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e

    def upsert_source(self, source: CuratedSource) -> int:
        """Insert or update a curated source keyed by its name.

        ``last_refreshed_at`` is never touched here.

        Returns:
            ID of the inserted or updated source
        """
        now = to_db_timestamp(utc_now())
        try:
            with self.db.transaction() as conn:
                conn.execute(
                    """
                    INSERT INTO curated_sources (
                        name, handle, short_bio, avatar_url, website, twitter,
                        linkedin, feed_urls, tags, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(name) DO UPDATE SET
                        handle = excluded.handle,
                        short_bio = excluded.short_bio,
                        avatar_url = excluded.avatar_url,
                        website = excluded.website,
                        twitter = excluded.twitter,
                        linkedin = excluded.linkedin,
                        feed_urls = excluded.feed_urls,
                        tags = excluded.tags,
                        updated_at = excluded.updated_at
                    """,
                    (
                        source.name,
                        source.handle,
                        source.short_bio,
                        source.avatar_url,
                        source.website,
                        source.twitter,
                        source.linkedin,
                        source.feed_urls_json(),
                        source.tags_json(),
                        to_db_timestamp(source.created_at) or now,
                        now,
                    ),
                )
                row = conn.execute(
                    "SELECT id FROM curated_sources WHERE name = ?", (source.name,)
                ).fetchone()

            source_id = row["id"]
            self.logger.info(f"Upserted curated source {source_id}: {source.name}")
            return source_id

        except Exception as e:
            raise DatabaseError(
                f"Failed to upsert curated source '{source.name}': {e}",
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e

    def update_last_refreshed(self, source_id: int, timestamp: Optional[datetime] = None) -> bool:
        """Stamp the time of the latest refresh attempt for a source.

        Returns:
            True if a source row was updated
        """
        stamp = to_db_timestamp(timestamp or utc_now())
        try:
            with self.db.get_connection() as conn:
                cursor = conn.execute(
                    "UPDATE curated_sources SET last_refreshed_at = ? WHERE id = ?",
                    (stamp, source_id),
                )
                conn.commit()

            updated = cursor.rowcount > 0
            if not updated:
                self.logger.warning(f"No curated source {source_id} to stamp")
            return updated

        except Exception as e:
            raise DatabaseError(
                f"Failed to stamp curated source {source_id}: {e}",
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e

    def count_sources(self) -> int:
        try:
            with self.db.get_connection() as conn:
                result = conn.execute("SELECT COUNT(*) FROM curated_sources").fetchone()
            return result[0] if result else 0

        except Exception as e:
            self.logger.error(f"Failed to count curated sources: {e}")
            return 0
