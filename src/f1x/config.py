"""Centralized configuration: all env vars in one place.

Every field can be overridden with an ``F1X_`` environment variable; nested
models use ``__`` as the delimiter, e.g. ``F1X_OPENF1_RATE_LIMIT__PER_MINUTE=20``.
"""

from __future__ import annotations

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

SECOND_MS = 1000
MINUTE_MS = 60 * SECOND_MS
HOUR_MS = 60 * MINUTE_MS

OPENF1_BASE = "https://api.openf1.org/v1"
JOLPICA_BASE = "https://api.jolpi.ca/ergast/f1"


class RateLimitSettings(BaseModel):
    """Dual-window ceiling for one upstream provider."""

    per_second: int = Field(gt=0)
    per_minute: int = Field(gt=0)


class IpRateLimitSettings(BaseModel):
    """Fixed-window request allowance per source IP on the read service."""

    max_requests: int = Field(default=60, gt=0)
    window_ms: int = Field(default=MINUTE_MS, gt=0)


class GracePeriodSettings(BaseModel):
    """Buffer around scheduled session times; sessions start late or overrun."""

    before_start_ms: int = Field(default=30 * MINUTE_MS, ge=0)
    after_end_ms: int = Field(default=60 * MINUTE_MS, ge=0)


class SchedulerSettings(BaseModel):
    """Cadence (seconds) and hard timeout of each background refresh job."""

    calendar_interval: float = 24 * 60 * 60
    standings_interval: float = 2 * 60 * 60
    live_interval: float = 60
    baseline_interval: float = 3 * 60 * 60
    job_timeout: float = 60
    live_job_timeout: float = 55


def _default_client_ttl() -> dict[str, int]:
    # Loosely aligned with the scheduler cadence above.
    return {
        "meetings": 24 * HOUR_MS,
        "sessions": 24 * HOUR_MS,
        "drivers": 3 * HOUR_MS,
        "standings": 2 * HOUR_MS,
        "positions": MINUTE_MS,
        "intervals": MINUTE_MS,
    }


class ClientCacheSettings(BaseModel):
    """Settings for the dashboard-side cache."""

    backend_base_url: str = "http://localhost:8000"
    key_prefix: str = "f1x_cache_"
    default_ttl_ms: int = MINUTE_MS
    ttl_ms: dict[str, int] = Field(default_factory=_default_client_ttl)

    @property
    def max_ttl_ms(self) -> int:
        return max([self.default_ttl_ms, *self.ttl_ms.values()])

    def ttl_for(self, resource_class: str) -> int:
        return self.ttl_ms.get(resource_class, self.default_ttl_ms)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="F1X_",
        env_nested_delimiter="__",
        env_ignore_empty=True,
        extra="ignore",
    )

    environment: str = "local"
    log_level: str = "INFO"
    log_file: str | None = None

    openf1_base_url: str = OPENF1_BASE
    jolpica_base_url: str = JOLPICA_BASE
    request_timeout: float = 30.0
    database_url: str = "sqlite:///f1x_cache.db"

    openf1_rate_limit: RateLimitSettings = Field(
        default_factory=lambda: RateLimitSettings(per_second=3, per_minute=30),
    )
    # Jolpica allows 500 req/hr; 60/min is a conservative per-minute cap.
    jolpica_rate_limit: RateLimitSettings = Field(
        default_factory=lambda: RateLimitSettings(per_second=4, per_minute=60),
    )
    ip_rate_limit: IpRateLimitSettings = Field(default_factory=IpRateLimitSettings)
    session_grace: GracePeriodSettings = Field(default_factory=GracePeriodSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)
    client_cache: ClientCacheSettings = Field(default_factory=ClientCacheSettings)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"
