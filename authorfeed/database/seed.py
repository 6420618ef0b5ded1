"""
Curated source seed data.

Sources are upserted by name, so seeding repeatedly updates descriptive
fields and feed URLs without duplicating rows or clearing refresh stamps.
"""

from typing import Any, Dict, List

from ..storage.source_repository import SourceRepository
from .models import CuratedSource

SEED_SOURCES: List[Dict[str, Any]] = [
    {
        "name": "Sarah Drasner",
        "handle": "sarah_edo",
        "short_bio": "Engineering leader, author, speaker.",
        "website": "https://sarah.dev",
        "twitter": "https://twitter.com/sarah_edo",
        "feed_urls": ["https://sarahdrasner.com/feed/"],
    },
    {
        "name": "Casey Newton",
        "handle": "caseynewton",
        "short_bio": "Journalist covering the intersection of tech and society.",
        "website": "https://platformer.news",
        "twitter": "https://twitter.com/caseynewton",
        "feed_urls": ["https://platformer.news/feed"],
    },
]


def seed_sources(repository: SourceRepository, entries: List[Dict[str, Any]] = None) -> List[int]:
    """Upsert curated sources.

    Args:
        repository: Source repository to write to
        entries: Source definitions (default: ``SEED_SOURCES``)

    Returns:
        IDs of the upserted sources, in input order
    """
    entries = SEED_SOURCES if entries is None else entries
    return [repository.upsert_source(CuratedSource(**entry)) for entry in entries]
