"""F1X: rate-limited, cached access to OpenF1 and Jolpica motorsport data."""

from f1x.client import F1XClient
from f1x.client_cache import ClientCache
from f1x.config import Settings
from f1x.events import CacheEvents
from f1x.exceptions import (
    F1XError,
    MissingParameterError,
    RateLimitExceeded,
    StorageQuotaError,
    UpstreamConnectionError,
    UpstreamError,
    UpstreamTimeoutError,
    UpstreamValidationError,
)
from f1x.rate_limiter import DualRateLimiter
from f1x.store import CacheStore

__all__ = [
    "CacheEvents",
    "CacheStore",
    "ClientCache",
    "DualRateLimiter",
    "F1XClient",
    "F1XError",
    "MissingParameterError",
    "RateLimitExceeded",
    "Settings",
    "StorageQuotaError",
    "UpstreamConnectionError",
    "UpstreamError",
    "UpstreamTimeoutError",
    "UpstreamValidationError",
]

__version__ = "0.1.0"
