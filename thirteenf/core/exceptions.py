"""
Core exception hierarchy for the 13F holdings pipeline.

All custom exceptions inherit from ThirteenFError for consistent error handling.
"""

from typing import Optional


class ThirteenFError(Exception):
    """Base exception for all pipeline errors."""

    def __init__(self, message: str, context: Optional[dict] = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.context:
            return f"{self.message} | Context: {self.context}"
        return self.message


# Ingestion Errors
class IngestionError(ThirteenFError):
    """Error while pulling data from an external provider."""
    pass


class ExternalApiError(IngestionError):
    """Non-retryable error response from an external API."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        url: Optional[str] = None,
        context: Optional[dict] = None,
    ):
        self.status_code = status_code
        self.url = url
        merged = dict(context or {})
        if status_code is not None:
            merged.setdefault("status_code", status_code)
        if url:
            merged.setdefault("url", url)
        super().__init__(message, merged)


class TransientNetworkError(ExternalApiError):
    """Connection failure, timeout, or 5xx response. Safe to retry."""
    pass


class RateLimitError(ExternalApiError):
    """HTTP 429 from an external API."""

    def __init__(
        self,
        retry_after: Optional[float] = None,
        url: Optional[str] = None,
    ):
        self.retry_after = retry_after
        message = (
            f"Rate limited. Retry after: {retry_after}s" if retry_after else "Rate limited"
        )
        super().__init__(message, status_code=429, url=url)


# Parsing Errors
class ParsingError(ThirteenFError):
    """Error during document parsing."""
    pass


class StructuralParseError(ParsingError):
    """Filing documents do not match any known layout."""
    pass


# Storage Errors
class StorageError(ThirteenFError):
    """Error during data storage operations."""
    pass


# Configuration Errors
class ConfigurationError(ThirteenFError):
    """Configuration error."""
    pass


class MissingConfigError(ConfigurationError):
    """Required configuration is missing."""
    pass


# Processing Errors
class PipelineError(ThirteenFError):
    """Pipeline execution error."""
    pass


# Caching Errors
class CacheError(ThirteenFError):
    """Error during cache operations."""
    pass
