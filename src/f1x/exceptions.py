"""Custom exceptions for the F1X cache backend and client."""

from __future__ import annotations


class F1XError(Exception):
    """Base exception for all F1X errors.

    ``status_code`` is the HTTP status the read service answers with when the
    error escapes a request handler.
    """

    status_code = 500


class UpstreamError(F1XError):
    """Raised when an upstream provider fails (non-2xx or transport failure)."""

    def __init__(self, status_code: int | None, message: str) -> None:
        self.status_code = status_code  # type: ignore[assignment]
        self.message = message
        if status_code is None:
            super().__init__(message)
        else:
            super().__init__(f"HTTP {status_code}: {message}")

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code == 429


class UpstreamConnectionError(UpstreamError):
    """Raised when the client cannot connect to an upstream provider."""

    def __init__(self, message: str) -> None:
        super().__init__(None, message)


class UpstreamTimeoutError(UpstreamError):
    """Raised when a request to an upstream provider times out."""

    def __init__(self, message: str) -> None:
        super().__init__(None, message)


class UpstreamValidationError(F1XError):
    """Raised when an upstream record fails model validation."""


class MissingParameterError(F1XError):
    """Raised when a read-service request lacks a required query parameter."""

    status_code = 400

    def __init__(self, message: str = "Missing required query parameters") -> None:
        super().__init__(message)


class RateLimitExceeded(F1XError):
    """Raised when a source IP exceeds its request allowance."""

    status_code = 429

    def __init__(self, retry_after_ms: int) -> None:
        self.retry_after_ms = retry_after_ms
        super().__init__("Too many requests")


class StorageQuotaError(F1XError):
    """Raised by a persistent key/value store when a write exceeds its quota."""
