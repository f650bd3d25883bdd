"""Dashboard-facing client for the F1X read service."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Mapping

from f1x import keys
from f1x._http import AsyncTransport, build_query_params
from f1x.client_cache import ClientCache
from f1x.clock import current_year, now_ms, to_epoch_ms
from f1x.config import ClientCacheSettings
from f1x.events import CacheEvents
from f1x.kv_store import KeyValueStore, MemoryKeyValueStore

logger = logging.getLogger(__name__)


def _start_ms(record: Mapping[str, Any]) -> int | None:
    value = record.get("date_start")
    if not value:
        return None
    try:
        return to_epoch_ms(datetime.fromisoformat(str(value)))
    except ValueError:
        return None


def is_session_live(session: Mapping[str, Any] | None, now: int) -> bool:
    """Return True while ``now`` lies between the session's scheduled start and end."""
    if not session or not session.get("date_start") or not session.get("date_end"):
        return False
    try:
        start = to_epoch_ms(datetime.fromisoformat(str(session["date_start"])))
        end = to_epoch_ms(datetime.fromisoformat(str(session["date_end"])))
    except ValueError:
        return False
    return start <= now <= end


class F1XClient:
    """Read API used by dashboard widgets, backed by a :class:`ClientCache`.

    Usage:
        async with F1XClient() as f1x:
            await f1x.determine_active_season()
            standings = await f1x.get_driver_standings()
            f1x.events.subscribe("positions_9161", redraw)
    """

    def __init__(
        self,
        settings: ClientCacheSettings | None = None,
        *,
        persistent: KeyValueStore | None = None,
        transport: AsyncTransport | None = None,
        events: CacheEvents | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.settings = settings or ClientCacheSettings()
        self._transport = transport or AsyncTransport(self.settings.backend_base_url)
        self._clock = clock
        self.cache = ClientCache(
            self._fetch,
            persistent if persistent is not None else MemoryKeyValueStore(),
            self.settings,
            events=events,
            clock=clock,
        )
        self.active_season = current_year(clock())

    @property
    def events(self) -> CacheEvents:
        return self.cache.events

    async def __aenter__(self) -> F1XClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Wait for background refreshes, then close the HTTP connection."""
        await self.cache.drain()
        await self._transport.close()

    async def _fetch(self, endpoint: str, params: Mapping[str, Any]) -> Any:
        return await self._transport.get(f"/{endpoint}", build_query_params(**params))

    async def _get(self, endpoint: str, key: str, ttl_class: str, **params: Any) -> Any:
        return await self.cache.get(
            endpoint, params, key=key, ttl=self.settings.ttl_for(ttl_class),
        )

    # ── Endpoints ──────────────────────────────────────────────

    async def get_meetings(self, year: int | None = None) -> list[dict[str, Any]]:
        """Get Grand Prix weekends for a season (the active season by default)."""
        year = year or self.active_season
        return await self._get("getMeetings", keys.meetings(year), "meetings", year=year)

    async def get_sessions(self, meeting_key: int | str) -> list[dict[str, Any]]:
        return await self._get(
            "getSessions", keys.sessions(meeting_key), "sessions", meeting_key=meeting_key,
        )

    async def get_sessions_by_year(self, year: int | None = None) -> list[dict[str, Any]]:
        year = year or current_year(self._clock())
        return await self._get("getSessionsByYear", keys.sessions_by_year(year), "sessions", year=year)

    async def get_drivers(self, session_key: int | str) -> list[dict[str, Any]]:
        return await self._get(
            "getDrivers", keys.drivers(session_key), "drivers", session_key=session_key,
        )

    async def get_latest_drivers(self) -> list[dict[str, Any]]:
        """Get drivers of the most recent session; ``[]`` if unavailable."""
        try:
            return await self._get("getLatestDrivers", keys.LATEST_DRIVERS, "drivers")
        except Exception as exc:
            logger.error("Error getting latest drivers: %s", exc)
            return []

    async def get_positions(self, session_key: int | str) -> list[dict[str, Any]]:
        return await self._get(
            "getPositions", keys.positions(session_key), "positions", session_key=session_key,
        )

    async def get_intervals(self, session_key: int | str) -> list[dict[str, Any]]:
        return await self._get(
            "getIntervals", keys.intervals(session_key), "intervals", session_key=session_key,
        )

    async def get_session_result(self, session_key: int | str) -> list[dict[str, Any]]:
        return await self._get(
            "getSessionResult", keys.session_result(session_key), "meetings",
            session_key=session_key,
        )

    async def get_laps(
        self, session_key: int | str, driver_number: int | None = None,
    ) -> list[dict[str, Any]]:
        return await self._get(
            "getLaps", keys.laps(session_key, driver_number), "positions",
            session_key=session_key, driver_number=driver_number,
        )

    async def get_weather(self, session_key: int | str) -> list[dict[str, Any]]:
        return await self._get(
            "getWeather", keys.weather(session_key), "positions", session_key=session_key,
        )

    async def get_race_control(self, session_key: int | str) -> list[dict[str, Any]]:
        return await self._get(
            "getRaceControl", keys.race_control(session_key), "positions", session_key=session_key,
        )

    async def get_stints(self, session_key: int | str) -> list[dict[str, Any]]:
        """Get tyre stints for a session."""
        return await self._get(
            "getStints", keys.stints(session_key), "positions", session_key=session_key,
        )

    async def get_latest_session(self) -> dict[str, Any] | None:
        """Get the latest/current session; ``None`` if unavailable."""
        try:
            data = await self._get("getLatestSession", keys.LATEST_SESSION, "positions")
        except Exception as exc:
            logger.error("Error getting latest session: %s", exc)
            return None
        # Uncached documents come back as an empty list
        return data or None

    async def get_driver_standings(self, year: int | None = None) -> list[dict[str, Any]]:
        year = year or self.active_season
        try:
            return await self._get(
                "getDriverStandings", keys.driver_standings(year), "standings", year=year,
            )
        except Exception as exc:
            logger.error("Error fetching driver standings: %s", exc)
            return []

    async def get_constructor_standings(self, year: int | None = None) -> list[dict[str, Any]]:
        year = year or self.active_season
        try:
            return await self._get(
                "getConstructorStandings", keys.constructor_standings(year), "standings", year=year,
            )
        except Exception as exc:
            logger.error("Error fetching constructor standings: %s", exc)
            return []

    # ── Season helpers ─────────────────────────────────────────

    async def get_upcoming_meetings(self) -> list[dict[str, Any]]:
        """Meetings of the current year that have not started yet, soonest first."""
        now = self._clock()
        meetings = await self.get_meetings(current_year(now))
        upcoming = [(start, m) for m in meetings if (start := _start_ms(m)) is not None and start > now]
        return [m for _, m in sorted(upcoming, key=lambda pair: pair[0])]

    async def get_next_meeting(self) -> dict[str, Any] | None:
        upcoming = await self.get_upcoming_meetings()
        return upcoming[0] if upcoming else None

    async def determine_active_season(self) -> int:
        """Pick the season to display.

        Once the current year has no upcoming meetings and next year's
        calendar is published, the next year becomes active.
        """
        now = self._clock()
        year = current_year(now)
        try:
            meetings = await self.get_meetings(year)
            upcoming = [m for m in meetings if (start := _start_ms(m)) is not None and start > now]
            if not upcoming:
                next_meetings = await self.get_meetings(year + 1)
                if next_meetings:
                    logger.info("Season %d is over. Switching to %d.", year, year + 1)
                    self.active_season = year + 1
                    return self.active_season
        except Exception as exc:
            logger.error("Error determining active season: %s", exc)
        self.active_season = year
        return year

    @staticmethod
    def is_session_live(session: Mapping[str, Any] | None, now: int) -> bool:
        return is_session_live(session, now)
