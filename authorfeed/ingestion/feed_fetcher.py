"""
Feed Fetcher
============

Fetches one configured feed URL and returns normalized items, trying a fixed
sequence of strategies before giving up:

1. the URL itself, requested as a feed
2. each URL variant (trailing slash, /feed, /feed.xml, /rss.xml) as a feed
3. the URL itself as a plain HTTP GET, body parsed as a feed
4. each URL variant as a plain HTTP GET

The first attempt that yields at least one entry wins. Every attempt carries
its own timeout; a failed attempt just moves on to the next one, and a URL
whose strategies are all exhausted yields an empty list.
"""

import asyncio
import ssl
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional, Set, Tuple

import aiohttp
import certifi
import feedparser

from ..config.settings import AuthorFeedSettings, get_settings
from ..database.models import CanonicalItem, utc_now
from ..utils.exceptions import ErrorCode, FeedError, FeedFetchError
from ..utils.logging import get_logger_for_component
from .normalizer import build_url_variants, normalize_feed

FEED_ACCEPT = "application/rss+xml, application/atom+xml, application/xml;q=0.9, text/xml;q=0.8, */*;q=0.5"
RAW_ACCEPT = "text/html, application/xhtml+xml, */*"


class FetchMode(str, Enum):
    """How an attempt requests a URL."""
    FEED = "feed"  # feed-typed request, response headers passed to the parser
    RAW = "raw"    # plain GET, body parsed as a feed regardless of content type


@dataclass
class FetchAttempt:
    """Record of one request made while fetching a feed URL."""
    mode: FetchMode
    url: str
    item_count: int = 0
    error: Optional[str] = None


class FeedFetcher:
    """Multi-strategy feed fetcher that never raises."""

    def __init__(self, settings: Optional[AuthorFeedSettings] = None, timeout: Optional[float] = None):
        """Initialize feed fetcher.

        Args:
            settings: Application settings (default: global settings)
            timeout: Per-attempt timeout in seconds (default from config)
        """
        self.settings = settings or get_settings()
        self.timeout = timeout or self.settings.fetch.request_timeout
        self.suffixes = list(self.settings.fetch.feed_suffixes)
        self.logger = get_logger_for_component("feed_fetcher")

        self.ssl_context = ssl.create_default_context(cafile=certifi.where())

    @asynccontextmanager
    async def get_session(self) -> AsyncIterator[aiohttp.ClientSession]:
        """Get configured aiohttp session."""
        connector = aiohttp.TCPConnector(
            ssl=self.ssl_context,
            limit=self.settings.fetch.max_connections,
            limit_per_host=4,
            enable_cleanup_closed=True,
        )

        headers = {
            "User-Agent": self.settings.effective_user_agent,
            "Accept-Encoding": "gzip, deflate",
        }

        async with aiohttp.ClientSession(
            connector=connector,
            timeout=aiohttp.ClientTimeout(total=self.timeout),
            headers=headers,
        ) as session:
            yield session

    async def fetch(
        self, feed_url: str, session: Optional[aiohttp.ClientSession] = None
    ) -> List[CanonicalItem]:
        """Fetch and normalize the items of one feed URL.

        Args:
            feed_url: Configured feed URL
            session: Shared aiohttp session (a private one is opened if omitted)

        Returns:
            Normalized items from the first successful strategy, or an empty list
        """
        if not feed_url:
            return []

        if session is None:
            async with self.get_session() as own_session:
                return await self._fetch_with_session(feed_url, own_session)
        return await self._fetch_with_session(feed_url, session)

    async def _fetch_with_session(
        self, feed_url: str, session: aiohttp.ClientSession
    ) -> List[CanonicalItem]:
        fetched_at = utc_now()
        candidates = [feed_url, *build_url_variants(feed_url, self.suffixes)]
        tried: Set[Tuple[FetchMode, str]] = set()
        attempts: List[FetchAttempt] = []

        for mode in (FetchMode.FEED, FetchMode.RAW):
            for url in candidates:
                if (mode, url) in tried:
                    continue
                tried.add((mode, url))

                items = await self._attempt(mode, url, session, fetched_at, attempts)
                if items:
                    self.logger.info(
                        f"Fetched {len(items)} items for {feed_url} via {mode.value} "
                        f"request of {url} (attempt {len(attempts)})",
                        extra={"feed_url": feed_url, "attempts": len(attempts)},
                    )
                    return items

        self.logger.warning(
            f"All fetch attempts failed for {feed_url}",
            extra={
                "feed_url": feed_url,
                "attempts": [f"{a.mode.value}:{a.url}:{a.error or 'empty'}" for a in attempts],
            },
        )
        return []

    async def _attempt(
        self,
        mode: FetchMode,
        url: str,
        session: aiohttp.ClientSession,
        fetched_at: datetime,
        attempts: List[FetchAttempt],
    ) -> List[CanonicalItem]:
        """Run one request/parse attempt; any failure yields an empty list."""
        attempt = FetchAttempt(mode=mode, url=url)
        attempts.append(attempt)

        try:
            body, headers = await self._download(url, session, mode)
            parsed = self._parse(body, headers, mode)
            items = normalize_feed(parsed, url, fetched_at)
            attempt.item_count = len(items)
            if not items:
                attempt.error = "no entries"
            return items

        except asyncio.TimeoutError:
            attempt.error = f"timeout after {self.timeout}s"
        except aiohttp.ClientError as e:
            attempt.error = f"client error: {e}"
        except FeedError as e:
            attempt.error = str(e)
        except Exception as e:
            attempt.error = f"unexpected error: {e}"
            self.logger.bind(feed_url=url, mode=mode.value).warning(
                f"Unexpected error during fetch: {e}", exc_info=True
            )

        self.logger.bind(feed_url=url, mode=mode.value).debug(f"Attempt failed: {attempt.error}")
        return []

    async def _download(
        self, url: str, session: aiohttp.ClientSession, mode: FetchMode
    ) -> Tuple[bytes, Dict[str, str]]:
        """GET a URL and return its body and response headers.

        Raises:
            FeedFetchError: On a non-2xx response
            aiohttp.ClientError, asyncio.TimeoutError: On transport failure
        """
        accept = FEED_ACCEPT if mode is FetchMode.FEED else RAW_ACCEPT
        async with session.get(
            url,
            headers={"Accept": accept},
            timeout=aiohttp.ClientTimeout(total=self.timeout),
        ) as response:
            if not 200 <= response.status < 300:
                raise FeedFetchError(
                    f"HTTP {response.status}: {response.reason}",
                    feed_url=url,
                    error_code=ErrorCode.FEED_HTTP_STATUS,
                )
            body = await response.read()
            return body, dict(response.headers)

    def _parse(self, body: bytes, headers: Dict[str, str], mode: FetchMode) -> Any:
        """Parse a downloaded document as a feed.

        Feed-typed requests hand the response headers to feedparser so it can
        honour the declared encoding; raw requests ignore them since the
        server may be mislabelling feed content as HTML.
        """
        if not body:
            raise FeedFetchError("Empty response body", error_code=ErrorCode.FEED_EMPTY)

        if mode is FetchMode.FEED:
            parsed = feedparser.parse(body, response_headers=headers)
        else:
            parsed = feedparser.parse(body)

        if parsed.get("bozo") and not parsed.get("entries"):
            raise FeedFetchError(
                f"Feed parse error: {parsed.get('bozo_exception', 'invalid document')}",
                error_code=ErrorCode.FEED_PARSE_ERROR,
            )
        return parsed
