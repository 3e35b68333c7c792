"""Configuration management using Pydantic Settings."""

from enum import Enum

from pydantic_settings import BaseSettings


class CacheBackend(str, Enum):
    """Cache backend type."""
    MEMORY = "memory"
    SQLITE = "sqlite"
    NONE = "none"


class LogFormat(str, Enum):
    """Log output format."""
    JSON = "json"
    CONSOLE = "console"


class PageSize(str, Enum):
    """Supported paper sizes."""
    A4 = "A4"
    LETTER = "Letter"


# Page dimensions in PDF points (72 pt = 1 inch)
PAGE_DIMENSIONS: dict[PageSize, tuple[float, float]] = {
    PageSize.A4: (595.28, 841.89),
    PageSize.LETTER: (612.0, 792.0),
}


class CardConfig(BaseSettings):
    """Configuration for the xcard pipeline."""

    # Browser settings
    headless: bool = True
    browser_timeout_ms: int = 30000
    user_agent: str | None = None

    # Page hydration polling
    hydration_timeout_ms: int = 5000
    poll_interval_ms: int = 100
    grace_period_ms: int = 250
    allow_url_fallback_on_timeout: bool = True

    # Rate limiting and batch limits
    request_delay_ms: int = 1000
    max_batch_size: int = 20

    # Avatar fetching
    avatar_timeout_ms: int = 5000
    avatar_max_retries: int = 3
    avatar_backoff_base: float = 2.0

    # Cache settings
    cache_backend: CacheBackend = CacheBackend.MEMORY
    cache_ttl_seconds: int = 300
    cache_max_entries: int = 100
    sqlite_path: str = ".xcard_cache.db"

    # Layout defaults (PDF points)
    page_size: PageSize = PageSize.LETTER
    margin_pt: float = 36.0
    spacing_pt: float = 10.0
    card_width_pt: float = 252.0
    card_height_pt: float = 162.0

    # QR code
    qr_error_correction: str = "M"
    qr_box_size: int = 10
    qr_border: int = 2

    # URL validation
    reject_ambiguous_fragments: bool = True

    # Logging
    log_level: str = "INFO"
    log_format: LogFormat = LogFormat.CONSOLE
    debug: bool = False

    model_config = {
        "env_prefix": "XCARD_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }
