"""Custom exception hierarchy for xcard."""

from enum import Enum


class ErrorCode(str, Enum):
    """Stable error codes exposed at the API boundary."""
    INVALID_URL = "INVALID_URL"
    EXTRACTION_TIMEOUT = "EXTRACTION_TIMEOUT"
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
    ASSET_FETCH_FAILED = "ASSET_FETCH_FAILED"
    RENDER_ERROR = "RENDER_ERROR"
    INVALID_LAYOUT_CONFIG = "INVALID_LAYOUT_CONFIG"
    NO_VALID_PROFILES = "NO_VALID_PROFILES"
    BATCH_TOO_LARGE = "BATCH_TOO_LARGE"
    FETCH_FAILED = "FETCH_FAILED"
    CACHE_ERROR = "CACHE_ERROR"
    CONFIG_ERROR = "CONFIG_ERROR"


EXAMPLE_URL = "https://x.com/username"


class XcardError(Exception):
    """Base exception for all xcard errors."""

    code: ErrorCode = ErrorCode.CONFIG_ERROR
    retryable: bool = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        """Boundary-safe representation: code and message, never a traceback."""
        return {"code": self.code.value, "message": self.message}


class InvalidUrlError(XcardError):
    """URL failed the host or username grammar check."""

    code = ErrorCode.INVALID_URL

    def __init__(self, message: str, url: str | None = None):
        super().__init__(message)
        self.url = url


class FetchError(XcardError):
    """Failed to load the profile page."""

    code = ErrorCode.FETCH_FAILED
    retryable = True


class ExtractionTimeoutError(XcardError):
    """Page never hydrated its primary fields within the polling bound."""

    code = ErrorCode.EXTRACTION_TIMEOUT
    retryable = True


class MissingRequiredFieldError(XcardError):
    """Username could not be recovered from the page or the URL."""

    code = ErrorCode.MISSING_REQUIRED_FIELD


class AssetFetchError(XcardError):
    """Avatar or other image download failed."""

    code = ErrorCode.ASSET_FETCH_FAILED
    retryable = True


class RenderError(XcardError):
    """Card could not be produced."""

    code = ErrorCode.RENDER_ERROR


class InvalidLayoutConfigError(XcardError):
    """Requested page/grid geometry is impossible."""

    code = ErrorCode.INVALID_LAYOUT_CONFIG


class BatchTooLargeError(XcardError):
    """Batch exceeds the configured maximum size."""

    code = ErrorCode.BATCH_TOO_LARGE


class NoValidProfilesError(XcardError):
    """Every item in a batch failed."""

    code = ErrorCode.NO_VALID_PROFILES

    def __init__(self, message: str, failed: list | None = None):
        super().__init__(message)
        self.failed = failed or []


class CacheError(XcardError):
    """Cache operation failed."""

    code = ErrorCode.CACHE_ERROR


class ConfigError(XcardError):
    """Invalid configuration."""

    code = ErrorCode.CONFIG_ERROR
