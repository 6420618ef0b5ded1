"""
AuthorFeed Configuration System
==============================

Configuration management with environment variables and Pydantic models.
Environment variables override Field defaults with clear precedence.
"""

from pathlib import Path
from typing import List, Optional
from enum import Enum

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

from ..utils.exceptions import ConfigurationError, ErrorCode


class LogLevel(str, Enum):
    """Available log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class FetchSettings(BaseModel):
    """Outbound feed fetching configuration."""
    request_timeout: float = Field(default=10.0, gt=0, le=120, description="Timeout per fetch attempt in seconds")
    feed_suffixes: List[str] = Field(
        default_factory=lambda: ["/feed", "/feed.xml", "/rss.xml"],
        description="Path suffixes tried after the trailing-slash variant, in order",
    )
    user_agent: Optional[str] = Field(default=None, description="User-Agent header (defaults to app name/version)")
    max_connections: int = Field(default=10, ge=1, le=100, description="Connection pool size per fetch session")

    @field_validator('feed_suffixes')
    @classmethod
    def validate_suffixes(cls, v):
        """Suffixes are appended to a URL, so they must start with a slash."""
        cleaned = []
        for suffix in v:
            suffix = suffix.strip()
            if not suffix:
                continue
            if not suffix.startswith('/'):
                suffix = '/' + suffix
            if suffix not in cleaned:
                cleaned.append(suffix)
        return cleaned


# Eviction binds one parameter per retained link plus the source id, and
# SQLite builds before 3.32 allow at most 999 bound parameters.
MAX_WINDOW_SIZE = 998


class RetentionSettings(BaseModel):
    """Cached post retention configuration."""
    window_size: int = Field(default=50, ge=1, le=MAX_WINDOW_SIZE, description="Newest items kept per source on every pass")
    hard_cap: int = Field(default=200, ge=1, le=10000, description="Absolute ceiling on cached posts per source")


class SchedulerSettings(BaseModel):
    """Fleet scheduler configuration."""
    interval_minutes: int = Field(default=15, ge=1, le=1440, description="Minutes between fleet passes")
    run_on_startup: bool = Field(default=True, description="Run a fleet pass immediately when the service starts")
    align_to_clock: bool = Field(default=True, description="Fire on wall-clock multiples of the interval")
    skip_if_running: bool = Field(default=True, description="Skip a source whose previous refresh is still in flight")


class DatabaseSettings(BaseModel):
    """Database configuration."""
    path: str = Field(default="data/authorfeed.db", description="SQLite database file path")
    pool_size: int = Field(default=5, ge=1, le=20, description="Connection pool size")


class LoggingSettings(BaseModel):
    """Logging configuration."""
    level: LogLevel = Field(default=LogLevel.INFO, description="Global log level")
    file_path: Optional[str] = Field(default="logs/authorfeed.log", description="Log file path")
    max_file_size_mb: int = Field(default=10, ge=1, le=100, description="Max log file size in MB")
    backup_count: int = Field(default=5, ge=1, le=20, description="Number of log backup files")
    structured_logging: bool = Field(default=False, description="Use structured JSON logging")
    console_logging: bool = Field(default=True, description="Enable console logging")


class CatalogSettings(BaseModel):
    """Read-only catalog paging limits."""
    default_page_size: int = Field(default=20, ge=1, le=200, description="Posts per page when no limit is given")
    max_page_size: int = Field(default=200, ge=1, le=1000, description="Largest accepted page size")


class AuthorFeedSettings(BaseSettings):
    """Main application settings."""

    fetch: FetchSettings = Field(default_factory=FetchSettings)
    retention: RetentionSettings = Field(default_factory=RetentionSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    catalog: CatalogSettings = Field(default_factory=CatalogSettings)

    # Application metadata
    app_name: str = Field(default="AuthorFeed", description="Application name")
    version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "env_nested_delimiter": "__",
        "env_prefix": "AUTHORFEED_",
        "extra": "ignore",
    }

    def validate_configuration(self) -> None:
        """Validate complete configuration."""
        errors = []

        if self.retention.hard_cap < self.retention.window_size:
            errors.append(
                f"retention.hard_cap ({self.retention.hard_cap}) must not be smaller "
                f"than retention.window_size ({self.retention.window_size})"
            )

        if self.catalog.default_page_size > self.catalog.max_page_size:
            errors.append("catalog.default_page_size exceeds catalog.max_page_size")

        try:
            db_path = Path(self.database.path)
            db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            errors.append(f"Invalid database path: {e}")

        if self.logging.file_path:
            try:
                log_path = Path(self.logging.file_path)
                log_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                errors.append(f"Invalid log file path: {e}")

        if errors:
            raise ConfigurationError(
                f"Configuration validation failed: {'; '.join(errors)}",
                error_code=ErrorCode.CONFIG_INVALID
            )

    @property
    def effective_user_agent(self) -> str:
        return self.fetch.user_agent or f"{self.app_name}/{self.version}"

    @property
    def scheduler_interval_seconds(self) -> float:
        return self.scheduler.interval_minutes * 60.0

    def get_effective_log_level(self) -> str:
        """Get effective log level considering debug mode."""
        if self.debug:
            return "DEBUG"
        return self.logging.level.value


def load_settings() -> AuthorFeedSettings:
    """Load settings from environment variables and defaults.

    Environment variables (and a local ``.env`` file) override Pydantic
    Field defaults.

    Returns:
        Loaded and validated settings

    Raises:
        ConfigurationError: If configuration is invalid
    """
    from dotenv import load_dotenv
    load_dotenv()

    try:
        settings = AuthorFeedSettings()
        settings.validate_configuration()
        return settings

    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(
            f"Failed to initialize settings: {e}",
            error_code=ErrorCode.CONFIG_INVALID
        ) from e


# Global settings instance
_settings: Optional[AuthorFeedSettings] = None


def get_settings(reload: bool = False) -> AuthorFeedSettings:
    """Get global settings instance (singleton pattern).

    Args:
        reload: Force reload of settings

    Returns:
        Global settings instance
    """
    global _settings

    if _settings is None or reload:
        _settings = load_settings()

    return _settings
