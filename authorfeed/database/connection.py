"""
AuthorFeed Database Connection Management
========================================

Pooled SQLite connections shared by the source registry and the post cache.

Repositories run on worker threads via ``asyncio.to_thread`` while the event
loop keeps fetching, so every connection is opened with
``check_same_thread=False`` and lent to exactly one caller at a time.
Connections are opened lazily, up to ``pool_size`` kept idle.
"""

import sqlite3
import threading
import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Generator, Dict, Any
from queue import LifoQueue, Empty, Full

logger = logging.getLogger(__name__)

BUSY_TIMEOUT_SECONDS = 30.0
SLOW_ACQUIRE_SECONDS = 1.0

PRAGMAS = (
    "PRAGMA foreign_keys = ON",
    "PRAGMA journal_mode = WAL",
    "PRAGMA synchronous = NORMAL",
    "PRAGMA temp_store = MEMORY",
)

TABLES = ("curated_sources", "cached_posts")


class DatabaseConnection:
    """Thread-safe SQLite connection manager with a small idle pool."""

    def __init__(self, db_path: str = "data/authorfeed.db", pool_size: int = 5):
        """Initialize database connection manager.

        Args:
            db_path: Path to SQLite database file
            pool_size: Maximum number of idle connections kept open
        """
        self.db_path = Path(db_path)
        self.pool_size = pool_size
        self._idle: LifoQueue = LifoQueue(maxsize=pool_size)
        self._lock = threading.Lock()
        self._open = 0

        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def open_connections(self) -> int:
        return self._open

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            self.db_path,
            check_same_thread=False,
            timeout=BUSY_TIMEOUT_SECONDS,
        )
        for pragma in PRAGMAS:
            conn.execute(pragma)
        conn.row_factory = sqlite3.Row

        with self._lock:
            self._open += 1
        logger.debug(f"Opened SQLite connection to {self.db_path} ({self._open} open)")
        return conn

    def _acquire(self) -> sqlite3.Connection:
        try:
            return self._idle.get_nowait()
        except Empty:
            return self._connect()

    def _release(self, conn: sqlite3.Connection) -> None:
        if conn.in_transaction:
            conn.rollback()
        try:
            self._idle.put_nowait(conn)
        except Full:
            conn.close()
            with self._lock:
                self._open -= 1

    @contextmanager
    def get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Borrow a connection; it returns to the pool on exit.

        Usage:
            with db_manager.get_connection() as conn:
                rows = conn.execute("SELECT * FROM curated_sources").fetchall()
        """
        started = time.monotonic()
        conn = self._acquire()

        waited = time.monotonic() - started
        if waited > SLOW_ACQUIRE_SECONDS:
            logger.warning(f"SQLite connection took {waited:.2f}s to acquire")

        try:
            yield conn
        except sqlite3.Error as e:
            logger.error(f"SQLite error on {self.db_path.name}: {e}")
            raise
        finally:
            self._release(conn)

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """Run statements in one write transaction.

        Commits on success and rolls back if the block raises.

        Usage:
            with db_manager.transaction() as conn:
                conn.executemany(UPSERT_POST_SQL, rows)
        """
        with self.get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except Exception as e:
                conn.rollback()
                logger.error(f"Transaction rolled back: {e}")
                raise
            conn.commit()

    def execute_one(self, query: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        """Run a query and return its first row."""
        with self.get_connection() as conn:
            return conn.execute(query, params).fetchone()

    def get_database_info(self) -> Dict[str, Any]:
        """Size, row counts and the most recent refresh stamp."""
        with self.get_connection() as conn:
            page_count = conn.execute("PRAGMA page_count").fetchone()[0]
            page_size = conn.execute("PRAGMA page_size").fetchone()[0]

            table_counts = {}
            for table in TABLES:
                try:
                    table_counts[table] = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
                except sqlite3.OperationalError:
                    table_counts[table] = 0

            try:
                last_refresh = conn.execute(
                    "SELECT MAX(last_refreshed_at) FROM curated_sources"
                ).fetchone()[0]
            except sqlite3.OperationalError:
                last_refresh = None

        return {
            'database_size_mb': page_count * page_size / (1024 * 1024),
            'table_counts': table_counts,
            'last_refreshed_at': last_refresh,
            'open_connections': self._open,
        }

    def close_all_connections(self) -> None:
        """Close every idle connection."""
        while True:
            try:
                conn = self._idle.get_nowait()
            except Empty:
                break
            conn.close()
            with self._lock:
                self._open -= 1
        logger.debug(f"Closed idle SQLite connections for {self.db_path}")


# Global database manager instance
_db_manager: Optional[DatabaseConnection] = None


def get_db_manager(db_path: str = "data/authorfeed.db", pool_size: int = 5) -> DatabaseConnection:
    """Get the process-wide connection manager for ``db_path``.

    Asking for a different path or pool size closes the previous manager and
    opens a new one.
    """
    global _db_manager

    if (
        _db_manager is None
        or _db_manager.db_path != Path(db_path)
        or _db_manager.pool_size != pool_size
    ):
        if _db_manager is not None:
            _db_manager.close_all_connections()
        _db_manager = DatabaseConnection(db_path, pool_size=pool_size)

    return _db_manager
