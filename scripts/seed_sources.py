#!/usr/bin/env python3
"""
AuthorFeed Source Seeding Script
================================

Upserts the built-in curated sources into the configured database.

Usage:
    python scripts/seed_sources.py

Existing sources are matched by name and updated in place; their cached
posts and refresh stamps are left untouched.
"""

import logging
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from authorfeed.config.settings import get_settings
from authorfeed.database.connection import get_db_manager
from authorfeed.database.schema import DatabaseSchema
from authorfeed.database.seed import SEED_SOURCES, seed_sources
from authorfeed.storage.source_repository import SourceRepository
from authorfeed.utils.exceptions import AuthorFeedError, ConfigurationError

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s',
)
logger = logging.getLogger(__name__)


def main():
    """Seed curated sources."""
    try:
        settings = get_settings()
        logger.info(f"Database: {settings.database.path}")

        DatabaseSchema(settings.database.path).create_tables()
        db = get_db_manager(settings.database.path, settings.database.pool_size)
        repository = SourceRepository(db)

        logger.info(f"Seeding {len(SEED_SOURCES)} curated sources...")
        ids = seed_sources(repository)

        logger.info(f"Done! Upserted curated sources: {ids}")

    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)
    except AuthorFeedError as e:
        logger.error(f"Seed error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
