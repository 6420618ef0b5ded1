"""
AuthorFeed Input Validators
==========================

Validation utilities for curated source data: feed URLs and paging
parameters.
"""

import re
from urllib.parse import urlparse, urlunparse
from typing import Any, List

from .exceptions import ValidationError, ErrorCode


def _url_error(message: str, code: ErrorCode = ErrorCode.VALIDATION_INVALID_FORMAT) -> ValidationError:
    return ValidationError(message, error_code=code, field_name="url")


class URLValidator:
    """Feed URL validation and normalization."""

    ALLOWED_SCHEMES = {'http', 'https'}

    # Rejected before parsing, whatever the URL looks like otherwise
    SUSPICIOUS_PATTERN = re.compile(r'^\s*(javascript|data|file|ftp):', re.IGNORECASE)

    @classmethod
    def validate_feed_url(cls, url: str) -> str:
        """Validate and normalize a feed URL.

        Scheme and host are lower-cased and the fragment is dropped. The path
        is left untouched because URL variants are derived from it.

        Raises:
            ValidationError: If URL is invalid
        """
        if not url or not isinstance(url, str):
            raise _url_error("URL is required and must be a string", ErrorCode.VALIDATION_REQUIRED_FIELD)

        url = url.strip()
        if cls.SUSPICIOUS_PATTERN.match(url):
            raise _url_error("URL contains suspicious patterns")

        try:
            parsed = urlparse(url)
        except ValueError as e:
            raise _url_error(f"Invalid URL format: {e}") from e

        if parsed.scheme.lower() not in cls.ALLOWED_SCHEMES:
            raise _url_error(f"URL scheme must be {' or '.join(sorted(cls.ALLOWED_SCHEMES))}")
        if not parsed.netloc:
            raise _url_error("URL must include a hostname")

        return urlunparse(parsed._replace(
            scheme=parsed.scheme.lower(),
            netloc=parsed.netloc.lower(),
            fragment='',
        ))

    @classmethod
    def validate_feed_urls(cls, urls: List[str]) -> List[str]:
        """Validate a list of feed URLs, keeping order and dropping repeats."""
        validated = []
        for url in urls or []:
            normalized = cls.validate_feed_url(url)
            if normalized not in validated:
                validated.append(normalized)
        return validated


def validate_url(url: str) -> bool:
    """True if ``url`` would be accepted as a feed URL."""
    try:
        URLValidator.validate_feed_url(url)
    except ValidationError:
        return False
    return True


def coerce_positive_int(value: Any, default: int) -> int:
    """Parse a paging parameter.

    Unparseable input and zero fall back to ``default``; negatives clamp to 1.
    """
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    if number == 0:
        return default
    return max(number, 1)
