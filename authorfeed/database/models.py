"""
AuthorFeed Data Models
=====================

Pydantic data models for curated sources and cached posts, plus the transient
canonical item every feed entry is normalized into. The persisted models
correspond to the database schema.
"""

from datetime import datetime, timezone
from typing import List, Optional, Dict, Any
from dataclasses import dataclass, field
from pydantic import BaseModel, Field, field_validator
import json

from ..utils.validators import URLValidator

UNTITLED = "Untitled"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_db_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime for storage; ISO-8601 UTC sorts lexically."""
    if value is None:
        return None
    return ensure_utc(value).isoformat()


class CuratedSource(BaseModel):
    """Externally curated content source (an author) with its feed URLs."""
    id: Optional[int] = Field(default=None, description="Database primary key")
    name: str = Field(..., min_length=1, max_length=255, description="Display name")
    handle: Optional[str] = Field(default=None, max_length=100, description="Short handle")
    short_bio: str = Field(default="", max_length=2000, description="Short biography")
    avatar_url: str = Field(default="", description="Avatar image URL")
    website: str = Field(default="", description="Personal website")
    twitter: str = Field(default="", description="Twitter profile URL")
    linkedin: str = Field(default="", description="LinkedIn profile URL")
    feed_urls: List[str] = Field(default_factory=list, description="Ordered feed URLs")
    tags: List[str] = Field(default_factory=list, description="Free-form tags")
    last_refreshed_at: Optional[datetime] = Field(default=None, description="Last refresh attempt")
    created_at: Optional[datetime] = Field(default_factory=utc_now)
    updated_at: Optional[datetime] = Field(default=None)

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Source name cannot be empty")
        return v

    @field_validator('feed_urls')
    @classmethod
    def validate_feed_urls(cls, v):
        """Feed URLs must be http(s); order is kept, repeats dropped."""
        return URLValidator.validate_feed_urls(v)

    @field_validator('tags')
    @classmethod
    def validate_tags(cls, v):
        cleaned = []
        for tag in v or []:
            if isinstance(tag, str) and tag.strip() and tag.strip() not in cleaned:
                cleaned.append(tag.strip())
        return cleaned

    def feed_urls_json(self) -> str:
        """Get feed URLs as JSON string for database storage."""
        return json.dumps(self.feed_urls)

    def tags_json(self) -> str:
        return json.dumps(self.tags)

    @classmethod
    def from_db_row(cls, row: Dict[str, Any]) -> "CuratedSource":
        """Create CuratedSource from database row with JSON parsing."""
        data = dict(row)

        if isinstance(data.get('feed_urls'), str):
            data['feed_urls'] = json.loads(data['feed_urls'])
        if isinstance(data.get('tags'), str):
            data['tags'] = json.loads(data['tags'])

        return cls(**data)

    @property
    def has_feeds(self) -> bool:
        return bool(self.feed_urls)

    def __str__(self) -> str:
        return f"CuratedSource({self.name}:{len(self.feed_urls)} feeds)"


@dataclass
class CanonicalItem:
    """One feed entry after field-level defaulting.

    Transient: exists only for the duration of a single refresh pass.
    """

    title: str
    link: str
    guid: str
    excerpt: str
    content: str
    published_at: datetime
    source_label: str
    source_id: Optional[int] = None

    def __post_init__(self):
        if not self.title:
            self.title = UNTITLED
        self.published_at = ensure_utc(self.published_at)

    @property
    def dedup_key(self) -> str:
        """Identity used to collapse duplicates: guid, else link, else title."""
        return self.guid or self.link or self.title


class CachedPost(BaseModel):
    """Durable projection of a canonical item, unique per (source_id, link)."""
    id: Optional[int] = Field(default=None, description="Database primary key")
    source_id: int = Field(..., description="Owning curated source")
    title: str = Field(..., description="Post title")
    link: str = Field(..., description="Canonical link URL")
    guid: str = Field(default="", description="Feed-provided unique identifier")
    excerpt: str = Field(default="", description="Short excerpt")
    content: str = Field(default="", description="Full or partial body")
    published_at: datetime = Field(..., description="Publication time")
    source_label: str = Field(default="", description="Feed title or feed URL")
    created_at: Optional[datetime] = Field(default=None)
    updated_at: Optional[datetime] = Field(default=None)

    @classmethod
    def from_item(cls, item: CanonicalItem, source_id: Optional[int] = None) -> "CachedPost":
        """Project an item; ``source_id`` overrides the item's own tag."""
        return cls(
            source_id=item.source_id if source_id is None else source_id,
            title=item.title,
            link=item.link,
            guid=item.guid,
            excerpt=item.excerpt,
            content=item.content,
            published_at=item.published_at,
            source_label=item.source_label,
        )

    def __str__(self) -> str:
        return f"CachedPost({self.title[:50]})"


@dataclass
class RefreshResult:
    """Outcome of refreshing one curated source."""
    source_id: Optional[int]
    source_name: str
    feeds_attempted: int = 0
    feeds_with_items: int = 0
    items_fetched: int = 0
    unique_items: int = 0
    retained: int = 0
    evicted: int = 0
    stamped: bool = False
    skipped: bool = False
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass
class FleetPassResult:
    """Outcome of one fleet pass across all curated sources."""
    started_at: datetime = field(default_factory=utc_now)
    sources_total: int = 0
    sources_dispatched: int = 0
    sources_skipped: int = 0
    results: List[RefreshResult] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None and all(r.success for r in self.results)

    @property
    def failed_sources(self) -> List[RefreshResult]:
        return [r for r in self.results if not r.success]
