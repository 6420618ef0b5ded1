"""
AuthorFeed - Curated Author Feed Aggregation
============================================

Ingests RSS/Atom feeds for a curated set of authors, normalizes entries into
a canonical item shape, deduplicates across each author's feeds and keeps a
bounded cache of their newest posts, refreshed on a recurring schedule.

Main Components:
- Database: SQLite with connection pooling and schema management
- Configuration: environment variables with Pydantic validation
- Ingestion: multi-strategy feed fetching and entry normalization
- Processing: per-author aggregation and retention-bounded cache writes
- Scheduler: fault-isolated fleet passes on a clock-aligned interval
"""

__version__ = "1.0.0"
__author__ = "AuthorFeed Development Team"
__description__ = "Curated author feed aggregation service"

# Core imports for easy access
from .config.settings import get_settings
from .database.connection import get_db_manager
from .database.schema import DatabaseSchema
from .utils.logging import configure_application_logging, get_logger_for_component
from .utils.exceptions import AuthorFeedError

__all__ = [
    "get_settings",
    "get_db_manager",
    "DatabaseSchema",
    "configure_application_logging",
    "get_logger_for_component",
    "AuthorFeedError",
]
