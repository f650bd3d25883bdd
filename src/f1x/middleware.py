"""IP-based rate limiting and CORS for the read service."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from f1x.clock import now_ms
from f1x.config import IpRateLimitSettings
from f1x.exceptions import RateLimitExceeded

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
    "Access-Control-Max-Age": "3600",
}

PRUNE_INTERVAL_MS = 5 * 60 * 1000


@dataclass
class _Window:
    start: int
    count: int = 0


class IpRateLimiter:
    """Fixed-window request counter per source IP.

    Counters live in process memory and reset on restart. Entries idle for
    more than two windows are pruned every few minutes.
    """

    def __init__(
        self,
        settings: IpRateLimitSettings,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.max_requests = settings.max_requests
        self.window_ms = settings.window_ms
        self._clock = clock
        self._hits: dict[str, _Window] = {}
        self._last_prune = clock()

    def __len__(self) -> int:
        return len(self._hits)

    def _prune(self, now: int) -> None:
        if now - self._last_prune < PRUNE_INTERVAL_MS:
            return
        self._last_prune = now
        stale = [ip for ip, w in self._hits.items() if now - w.start > self.window_ms * 2]
        for ip in stale:
            del self._hits[ip]

    def check(self, ip: str) -> None:
        """Count one request from ``ip``; raise :class:`RateLimitExceeded` over the limit."""
        now = self._clock()
        self._prune(now)

        window = self._hits.get(ip)
        if window is None or now - window.start > self.window_ms:
            window = _Window(start=now)
            self._hits[ip] = window

        window.count += 1
        if window.count > self.max_requests:
            raise RateLimitExceeded(retry_after_ms=self.window_ms - (now - window.start))


def client_ip(request: Request) -> str:
    """Return the first ``X-Forwarded-For`` hop, else the peer address."""
    forwarded = request.headers.get("x-forwarded-for", "")
    first = forwarded.split(",")[0].strip()
    if first:
        return first
    if request.client is not None and request.client.host:
        return request.client.host
    return "unknown"


def register_middleware(app: FastAPI, limiter: IpRateLimiter) -> None:
    """Install CORS handling and IP rate limiting in front of every route."""

    @app.middleware("http")
    async def cors_and_rate_limit(request: Request, call_next):
        # Preflight
        if request.method == "OPTIONS":
            return Response(status_code=204, headers=CORS_HEADERS)

        ip = client_ip(request)
        try:
            limiter.check(ip)
        except RateLimitExceeded as exc:
            logger.info("Rate limited %s (retry in %dms)", ip, exc.retry_after_ms)
            return JSONResponse(
                {"error": str(exc), "retryAfterMs": exc.retry_after_ms},
                status_code=exc.status_code,
                headers=CORS_HEADERS,
            )

        response: Response = await call_next(request)
        response.headers.update(CORS_HEADERS)
        return response
