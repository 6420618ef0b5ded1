"""
PyTest Configuration and Fixtures
=================================

Shared fixtures and configuration for AuthorFeed tests.

- Session-scoped SQLite database, schema created once
- clean_db clears rows between tests
- Item factory for building canonical items with sensible defaults
"""

import pytest
import tempfile
import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test environment variables before any imports
_TEST_DIR = Path(tempfile.gettempdir()) / "authorfeed_tests"
os.environ["AUTHORFEED_DATABASE__PATH"] = str(_TEST_DIR / "authorfeed_settings.db")
os.environ["AUTHORFEED_LOGGING__FILE_PATH"] = ""
os.environ["AUTHORFEED_LOGGING__CONSOLE_LOGGING"] = "false"
os.environ["AUTHORFEED_DEBUG"] = "true"

BASE_TIME = datetime(2024, 9, 5, 12, 0, tzinfo=timezone.utc)


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture(scope="session")
def session_test_db():
    """Session-scoped test database (created once for all tests).

    Database name: authorfeed_test.db (easier to inspect/debug)
    """
    from authorfeed.database.schema import DatabaseSchema

    _TEST_DIR.mkdir(exist_ok=True)
    db_path = _TEST_DIR / "authorfeed_test.db"

    if db_path.exists():
        db_path.unlink()

    schema = DatabaseSchema(str(db_path))
    schema.create_tables()

    yield str(db_path)

    try:
        db_path.unlink()
    except FileNotFoundError:
        pass


@pytest.fixture
def clean_db(session_test_db):
    """Clean database fixture (clears data between tests).

    Returns:
        str: Path to clean database ready for testing
    """
    from authorfeed.database.connection import DatabaseConnection

    conn = DatabaseConnection(session_test_db, pool_size=2)

    with conn.get_connection() as db:
        # Order matters for foreign keys
        db.execute("DELETE FROM cached_posts")
        db.execute("DELETE FROM curated_sources")
        db.commit()

    conn.close_all_connections()

    yield session_test_db


@pytest.fixture
def db_connection(clean_db):
    """Create a database connection manager for testing."""
    from authorfeed.database.connection import DatabaseConnection

    connection = DatabaseConnection(clean_db, pool_size=2)
    yield connection

    connection.close_all_connections()


@pytest.fixture
def test_settings(clean_db):
    """Settings pointing at the test database, with file logging disabled."""
    from authorfeed.config.settings import AuthorFeedSettings, DatabaseSettings, LoggingSettings

    return AuthorFeedSettings(
        database=DatabaseSettings(path=clean_db, pool_size=2),
        logging=LoggingSettings(file_path=None, console_logging=False),
    )


@pytest.fixture
def source_repo(db_connection):
    from authorfeed.storage.source_repository import SourceRepository

    return SourceRepository(db_connection)


@pytest.fixture
def post_repo(db_connection):
    from authorfeed.storage.post_repository import PostRepository

    return PostRepository(db_connection)


# ============================================================================
# Sample Data
# ============================================================================


@pytest.fixture
def sample_sources():
    """Generate sample curated sources for testing."""
    from authorfeed.database.models import CuratedSource

    return [
        CuratedSource(
            name="Ada Writer",
            handle="ada",
            short_bio="Writes about compilers.",
            feed_urls=["https://ada.example.com/feed.xml", "https://ada.example.org/rss"],
            tags=["compilers"],
        ),
        CuratedSource(
            name="Brook Blogger",
            feed_urls=["https://brook.example.com/blog"],
        ),
        CuratedSource(
            name="Cal Quiet",
            feed_urls=[],
        ),
    ]


@pytest.fixture
def make_item():
    """Factory for canonical items.

    ``make_item(3)`` builds an item whose link, guid and title derive from 3
    and which is published 3 hours before BASE_TIME.
    """
    from authorfeed.database.models import CanonicalItem

    def _make(n=0, **overrides):
        fields = dict(
            title=f"Post {n}",
            link=f"https://example.com/posts/{n}",
            guid=f"guid-{n}",
            excerpt=f"Excerpt {n}",
            content=f"<p>Content {n}</p>",
            published_at=BASE_TIME - timedelta(hours=n),
            source_label="Example Feed",
        )
        fields.update(overrides)
        return CanonicalItem(**fields)

    return _make
