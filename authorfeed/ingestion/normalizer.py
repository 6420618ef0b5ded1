"""
Entry Normalizer
================

Maps parsed feed entries onto CanonicalItem. The per-field fallback chains
decide which value later becomes the dedup key, so their order is fixed:

    title         title -> "Untitled"
    link          link -> guid -> id -> ""
    published_at  published -> updated -> fetch time
    excerpt       plain-text summary snippet -> raw summary -> ""
    content       full content -> summary -> ""
    guid          guid -> link -> id -> ""
    source_label  feed title -> requested URL
"""

import calendar
import re
from datetime import datetime, timezone
from typing import Any, List, Optional

from bs4 import BeautifulSoup

from ..database.models import CanonicalItem, UNTITLED

_WHITESPACE = re.compile(r"\s+")


def _text(value: Any) -> str:
    """Coerce a feedparser field to a stripped string ('' when absent)."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    return str(value).strip()


def html_to_snippet(markup: str) -> str:
    """Strip HTML tags and collapse whitespace."""
    if not markup:
        return ""
    if "<" in markup:
        markup = BeautifulSoup(markup, "html.parser").get_text(" ")
    return _WHITESPACE.sub(" ", markup).strip()


def parse_entry_date(entry: Any) -> Optional[datetime]:
    """Parse the publication date from an entry.

    feedparser exposes dates as UTC ``time.struct_time`` values.

    Returns:
        Aware UTC datetime or None when absent or unparseable
    """
    for field in ("published_parsed", "updated_parsed"):
        date_tuple = entry.get(field)
        if not date_tuple:
            continue
        try:
            return datetime.fromtimestamp(calendar.timegm(date_tuple), tz=timezone.utc)
        except (TypeError, ValueError, OverflowError):
            continue
    return None


def extract_content(entry: Any) -> str:
    """Full content when present, otherwise the summary."""
    for block in entry.get("content") or []:
        value = _text(block.get("value") if isinstance(block, dict) else block)
        if value:
            return value
    return _text(entry.get("summary"))


def normalize_entry(
    entry: Any,
    feed_title: str,
    requested_url: str,
    fetched_at: datetime,
) -> CanonicalItem:
    """Apply the field-level defaulting rules to one parsed entry.

    Args:
        entry: feedparser entry (dict-like)
        feed_title: Feed-level title, possibly empty
        requested_url: URL the entry was fetched from
        fetched_at: Time of the fetch, used when the entry has no date

    Returns:
        CanonicalItem without an owning source
    """
    entry_link = _text(entry.get("link"))
    entry_guid = _text(entry.get("guid"))
    entry_id = _text(entry.get("id"))
    summary = _text(entry.get("summary"))

    return CanonicalItem(
        title=_text(entry.get("title")) or UNTITLED,
        link=entry_link or entry_guid or entry_id,
        guid=entry_guid or entry_link or entry_id,
        excerpt=html_to_snippet(summary) or summary,
        content=extract_content(entry),
        published_at=parse_entry_date(entry) or fetched_at,
        source_label=_text(feed_title) or requested_url,
    )


def normalize_feed(parsed: Any, requested_url: str, fetched_at: datetime) -> List[CanonicalItem]:
    """Normalize every entry of a feedparser result.

    Args:
        parsed: Result of ``feedparser.parse``
        requested_url: URL the document was fetched from
        fetched_at: Time of the fetch

    Returns:
        Canonical items in document order
    """
    feed_title = _text(parsed.get("feed", {}).get("title"))
    return [
        normalize_entry(entry, feed_title, requested_url, fetched_at)
        for entry in parsed.get("entries") or []
    ]


def build_url_variants(feed_url: str, suffixes: List[str]) -> List[str]:
    """URL variants tried when the configured URL is not itself a feed.

    The trailing-slash form comes first (only when the URL lacks one), then
    each suffix appended to the URL without its trailing slash.

    >>> build_url_variants("https://example.com/blog", ["/feed", "/rss.xml"])
    ['https://example.com/blog/', 'https://example.com/blog/feed', 'https://example.com/blog/rss.xml']
    """
    variants = []
    if not feed_url.endswith("/"):
        variants.append(feed_url + "/")

    base = feed_url.rstrip("/")
    for suffix in suffixes:
        candidate = base + suffix
        if candidate != feed_url and candidate not in variants:
            variants.append(candidate)
    return variants
