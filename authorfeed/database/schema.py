"""
AuthorFeed Database Schema
=========================

SQLite database schema with foreign key constraints and indexes.

Tables:
- curated_sources: externally curated authors and their feed URLs
- cached_posts: retained feed items per source, unique on (source_id, link)
"""

import sqlite3
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class DatabaseSchema:
    """Database schema manager for the AuthorFeed SQLite database."""

    def __init__(self, db_path: str = "data/authorfeed.db"):
        """Initialize database schema manager.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def create_tables(self) -> None:
        """Create all database tables with proper schema."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("PRAGMA foreign_keys = ON")

            self._create_curated_sources_table(conn)
            self._create_cached_posts_table(conn)
            self._create_indexes(conn)

            conn.commit()
            logger.info("Database schema created successfully")

    def _create_curated_sources_table(self, conn: sqlite3.Connection) -> None:
        """Create curated_sources table; feed_urls and tags hold JSON arrays."""
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS curated_sources (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL UNIQUE,
                handle TEXT,
                short_bio TEXT DEFAULT '',
                avatar_url TEXT DEFAULT '',
                website TEXT DEFAULT '',
                twitter TEXT DEFAULT '',
                linkedin TEXT DEFAULT '',
                feed_urls TEXT NOT NULL DEFAULT '[]',
                tags TEXT NOT NULL DEFAULT '[]',
                last_refreshed_at TIMESTAMP,
                created_at TIMESTAMP,
                updated_at TIMESTAMP
            )
        """
        )

    def _create_cached_posts_table(self, conn: sqlite3.Connection) -> None:
        """Create cached_posts table; one row per (source_id, link)."""
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS cached_posts (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                source_id INTEGER NOT NULL,
                title TEXT NOT NULL,
                link TEXT NOT NULL,
                guid TEXT DEFAULT '',
                excerpt TEXT DEFAULT '',
                content TEXT DEFAULT '',
                published_at TIMESTAMP NOT NULL,
                source_label TEXT DEFAULT '',
                created_at TIMESTAMP,
                updated_at TIMESTAMP,
                FOREIGN KEY (source_id) REFERENCES curated_sources(id) ON DELETE CASCADE,
                UNIQUE(source_id, link)
            )
        """
        )

    def _create_indexes(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_cached_posts_source_published "
            "ON cached_posts(source_id, published_at DESC)"
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_curated_sources_name "
            "ON curated_sources(name)"
        )

    def verify_schema(self) -> bool:
        """Check that every expected table exists."""
        expected = {"curated_sources", "cached_posts"}
        with sqlite3.connect(self.db_path) as conn:
            rows = conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table'"
            ).fetchall()
        missing = expected - {row[0] for row in rows}
        if missing:
            logger.error(f"Database schema missing tables: {sorted(missing)}")
            return False
        return True
