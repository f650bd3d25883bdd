"""Background refresh jobs: fetch upstream data and write it to the cache store.

Every job catches its own failures, logs them and returns normally. A failed
fetch never touches the existing cache entry, so readers keep getting the
previous (stale but valid) document.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from f1x import keys
from f1x.api_logging import log_job
from f1x.clock import current_year, from_epoch_ms, now_ms
from f1x.config import GracePeriodSettings
from f1x.live_window import live_window_for
from f1x.models import Meeting, validate_one
from f1x.store import CacheStore
from f1x.upstream import JolpicaClient, OpenF1Client

logger = logging.getLogger(__name__)

# Python weekday numbers: Friday, Saturday, Sunday, Monday
RACE_WEEKEND_DAYS = frozenset({4, 5, 6, 0})


def is_race_weekend(now: int) -> bool:
    """Return True from Friday through Monday (UTC), when results change."""
    return from_epoch_ms(now).weekday() in RACE_WEEKEND_DAYS


async def _isolated(label: str, fetch: Awaitable[Any]) -> Any | None:
    """Await one sub-fetch; log and swallow its failure so siblings continue."""
    try:
        return await fetch
    except Exception as exc:
        logger.warning("%s: %s", label, exc)
        return None


class RefreshJobs:
    """The four scheduled refresh jobs, sharing one store and two upstreams."""

    def __init__(
        self,
        store: CacheStore,
        openf1: OpenF1Client,
        jolpica: JolpicaClient,
        grace: GracePeriodSettings,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.store = store
        self.openf1 = openf1
        self.jolpica = jolpica
        self.grace = grace
        self._clock = clock

    async def _write(self, key: str, data: Any) -> int:
        # SQLAlchemy commits block, so they run in a worker thread
        await asyncio.to_thread(self.store.write, key, data)
        return 1

    # ── Calendar ──────────────────────────────────────────────

    @log_job
    async def refresh_calendar(self) -> int:
        """Cache this season's meetings, each meeting's sessions and the year's sessions."""
        year = current_year(self._clock())
        written = 0
        try:
            meetings = await self.openf1.meetings(year)
            written += await self._write(keys.meetings(year), meetings)
            logger.info("Cached %d meetings for %d", len(meetings), year)

            for record in meetings:
                label = record.get("meeting_key") if isinstance(record, dict) else record
                try:
                    meeting = validate_one(Meeting, record)
                    if meeting.meeting_key is None:
                        continue
                    sessions = await self.openf1.sessions(meeting_key=meeting.meeting_key)
                    written += await self._write(keys.sessions(meeting.meeting_key), sessions)
                except Exception as exc:
                    logger.warning("Failed to cache sessions for meeting %s: %s", label, exc)

            year_sessions = await _isolated("sessions_year", self.openf1.sessions(year=year))
            if year_sessions is not None:
                written += await self._write(keys.sessions_by_year(year), year_sessions)
        except Exception:
            logger.exception("Failed to refresh meetings for %d", year)
        return written

    # ── Standings ─────────────────────────────────────────────

    @log_job
    async def refresh_standings(self) -> int:
        """Cache driver and constructor standings for the current season."""
        year = current_year(self._clock())
        try:
            results = await asyncio.gather(
                self.jolpica.driver_standings(year),
                self.jolpica.constructor_standings(year),
                return_exceptions=True,
            )
            for result in results:
                if isinstance(result, BaseException):
                    raise result
            driver_standings, constructor_standings = results
            await self._write(keys.driver_standings(year), driver_standings)
            await self._write(keys.constructor_standings(year), constructor_standings)
            logger.info(
                "Cached standings: %d drivers, %d constructors",
                len(driver_standings), len(constructor_standings),
            )
        except Exception:
            logger.exception("Failed to refresh standings for %d", year)
            return 0
        return 2

    # ── Live data ─────────────────────────────────────────────

    async def _refresh_latest_session(self) -> dict[str, Any] | None:
        latest = await self.openf1.latest_session()
        await self._write(keys.LATEST_SESSION, latest)
        return latest

    async def _write_drivers(self, session_key: Any, drivers: Any) -> int:
        await self._write(keys.drivers(session_key), drivers)
        await self._write(keys.LATEST_DRIVERS, drivers)
        return 2

    @log_job
    async def refresh_live_data(self) -> int:
        """Cache the latest session and, while it is live, its timing data."""
        try:
            latest = await self._refresh_latest_session()
            written = 1
            if latest is None:
                logger.info("No latest session found, skipping live data refresh")
                return written

            window = live_window_for(latest, self.grace)
            now = self._clock()
            if window is None or not window.contains(now):
                logger.info("Session %s not in live window, skipping", latest.get("session_key"))
                return written

            sk = latest["session_key"]
            logger.info("LIVE: refreshing live data for session %s", sk)
            f1 = self.openf1
            (positions, intervals, stints, weather, race_control,
             drivers, laps, result) = await asyncio.gather(
                _isolated("positions", f1.positions(sk)),
                _isolated("intervals", f1.intervals(sk)),
                _isolated("stints", f1.stints(sk)),
                _isolated("weather", f1.weather(sk)),
                _isolated("race_control", f1.race_control(sk)),
                _isolated("drivers", f1.drivers(sk)),
                _isolated("laps", f1.laps(sk)),
                _isolated("session_result", f1.session_result(sk)),
            )

            for key, data in (
                (keys.positions(sk), positions),
                (keys.intervals(sk), intervals),
                (keys.stints(sk), stints),
                (keys.weather(sk), weather),
                (keys.race_control(sk), race_control),
                (keys.laps(sk), laps),
                (keys.session_result(sk), result),
            ):
                if data is not None:
                    written += await self._write(key, data)
            if drivers is not None:
                written += await self._write_drivers(sk, drivers)
        except Exception:
            logger.exception("Failed to refresh live data")
            return 0
        logger.info("Live data refreshed for session %s (%d docs written)", sk, written)
        return written

    # ── Baseline ──────────────────────────────────────────────

    @log_job
    async def refresh_baseline(self) -> int:
        """Cache the latest session, its drivers and its result regardless of timing."""
        try:
            latest = await self._refresh_latest_session()
            written = 1
            if latest is None:
                logger.info("No latest session found")
                return written

            sk = latest.get("session_key")
            drivers = await _isolated("drivers", self.openf1.drivers(sk))
            if drivers is not None:
                written += await self._write_drivers(sk, drivers)
            result = await _isolated("session_result", self.openf1.session_result(sk))
            if result is not None:
                written += await self._write(keys.session_result(sk), result)
        except Exception:
            logger.exception("Failed to refresh baseline data")
            return 0
        logger.info("Baseline data refreshed (session %s)", sk)
        return written
