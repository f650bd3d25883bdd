"""Rate-limited upstream clients for the OpenF1 and Jolpica APIs."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Sequence

from f1x._http import AsyncTransport, build_query_params
from f1x.api_logging import log_upstream_call
from f1x.exceptions import UpstreamError
from f1x.rate_limiter import DualRateLimiter

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_BACKOFF = (1.0, 3.0, 8.0)
TRANSPORT_BACKOFF = 2.0


class UpstreamClient:
    """GET-only JSON client that goes through a rate limiter and retries.

    Each attempt first waits for a token from ``limiter``. HTTP 429 responses
    are retried after ``backoff[attempt]`` seconds and transport failures
    after ``transport_backoff`` seconds, up to ``max_retries`` additional
    attempts. Any other error status fails immediately.
    """

    def __init__(
        self,
        transport: AsyncTransport,
        limiter: DualRateLimiter,
        *,
        max_retries: int = MAX_RETRIES,
        backoff: Sequence[float] = RETRY_BACKOFF,
        transport_backoff: float = TRANSPORT_BACKOFF,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._transport = transport
        self._limiter = limiter
        self._max_retries = max_retries
        self._backoff = tuple(backoff)
        self._transport_backoff = transport_backoff
        self._sleep = sleep

    async def __aenter__(self) -> UpstreamClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP connection."""
        await self._transport.close()

    def _backoff_for(self, attempt: int) -> float:
        if attempt < len(self._backoff):
            return self._backoff[attempt]
        return self._backoff[-1]

    async def fetch_resource(self, endpoint: str, **params: Any) -> Any:
        """Fetch ``endpoint`` and return its parsed JSON body."""
        query = build_query_params(**params)
        for attempt in range(self._max_retries + 1):
            await self._limiter.acquire()
            try:
                return await self._transport.get(endpoint, query)
            except UpstreamError as exc:
                if exc.status_code is not None and not exc.is_rate_limited:
                    raise
                if attempt == self._max_retries:
                    raise
                if exc.is_rate_limited:
                    wait = self._backoff_for(attempt)
                else:
                    wait = self._transport_backoff
                logger.warning(
                    "%s%s failed (%s), retrying in %.1fs (attempt %d/%d)",
                    self._transport.base_url, endpoint, exc, wait,
                    attempt + 1, self._max_retries,
                )
                await self._sleep(wait)
        raise AssertionError("unreachable")


class OpenF1Client(UpstreamClient):
    """OpenF1 endpoints used by the refresh jobs.

    Usage:
        async with OpenF1Client(transport, limiter) as f1:
            drivers = await f1.drivers(9161)
    """

    # ── Endpoints ──────────────────────────────────────────────

    @log_upstream_call
    async def meetings(self, year: int) -> list[dict[str, Any]]:
        """Get Grand Prix weekends and test events for a season."""
        return await self.fetch_resource("/meetings", year=year)

    @log_upstream_call
    async def sessions(self, **params: Any) -> list[dict[str, Any]]:
        """Get sessions filtered by ``meeting_key``, ``year`` or ``session_key``."""
        return await self.fetch_resource("/sessions", **params)

    async def latest_session(self) -> dict[str, Any] | None:
        """Get the most recent session, or ``None`` when OpenF1 has none."""
        sessions = await self.sessions(session_key="latest")
        return sessions[0] if sessions else None

    @log_upstream_call
    async def drivers(self, session_key: int | str) -> list[dict[str, Any]]:
        """Get driver information for a session."""
        return await self.fetch_resource("/drivers", session_key=session_key)

    @log_upstream_call
    async def positions(self, session_key: int | str) -> list[dict[str, Any]]:
        """Get driver position changes throughout a session."""
        return await self.fetch_resource("/position", session_key=session_key)

    @log_upstream_call
    async def intervals(self, session_key: int | str) -> list[dict[str, Any]]:
        """Get real-time gaps between drivers."""
        return await self.fetch_resource("/intervals", session_key=session_key)

    @log_upstream_call
    async def session_result(self, session_key: int | str) -> list[dict[str, Any]]:
        """Get final standings after a session."""
        return await self.fetch_resource("/session_result", session_key=session_key)

    @log_upstream_call
    async def laps(
        self, session_key: int | str, driver_number: int | None = None,
    ) -> list[dict[str, Any]]:
        """Get lap data, optionally for a single driver."""
        return await self.fetch_resource(
            "/laps", session_key=session_key, driver_number=driver_number,
        )

    @log_upstream_call
    async def weather(self, session_key: int | str) -> list[dict[str, Any]]:
        """Get track weather conditions."""
        return await self.fetch_resource("/weather", session_key=session_key)

    @log_upstream_call
    async def race_control(self, session_key: int | str) -> list[dict[str, Any]]:
        """Get race control messages (flags, safety cars, incidents)."""
        return await self.fetch_resource("/race_control", session_key=session_key)

    @log_upstream_call
    async def stints(self, session_key: int | str) -> list[dict[str, Any]]:
        """Get tyre stint information."""
        return await self.fetch_resource("/stints", session_key=session_key)


def _standings_list(payload: Any, field: str) -> list[dict[str, Any]]:
    try:
        lists = payload["MRData"]["StandingsTable"]["StandingsLists"]
        return lists[0][field] if lists else []
    except (KeyError, IndexError, TypeError):
        return []


class JolpicaClient(UpstreamClient):
    """Jolpica (Ergast-compatible) championship standings."""

    @log_upstream_call
    async def driver_standings(self, year: int) -> list[dict[str, Any]]:
        """Get driver championship standings for a season."""
        payload = await self.fetch_resource(f"/{year}/driverstandings.json")
        return _standings_list(payload, "DriverStandings")

    @log_upstream_call
    async def constructor_standings(self, year: int) -> list[dict[str, Any]]:
        """Get constructor championship standings for a season."""
        payload = await self.fetch_resource(f"/{year}/constructorstandings.json")
        return _standings_list(payload, "ConstructorStandings")
