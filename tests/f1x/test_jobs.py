"""Tests for the background refresh jobs, run against a mocked upstream."""

from __future__ import annotations

import threading
from datetime import datetime, timezone

import httpx
import pytest
import respx

from f1x._http import AsyncTransport
from f1x.config import GracePeriodSettings
from f1x.jobs import RefreshJobs, is_race_weekend
from f1x.rate_limiter import DualRateLimiter
from f1x.store import CacheStore
from f1x.upstream import JolpicaClient, OpenF1Client
from tests.conftest import (
    JOLPICA_URL,
    OPENF1_URL,
    RACE_END_MS,
    RACE_START_MS,
    SAMPLE_CONSTRUCTOR_STANDING,
    SAMPLE_DRIVER,
    SAMPLE_DRIVER_STANDING,
    SAMPLE_MEETINGS,
    SAMPLE_POSITION,
    SAMPLE_SESSION,
    FakeWallClock,
    jolpica_payload,
)

MINUTE = 60 * 1000
LIVE_ENDPOINTS = (
    "position", "intervals", "stints", "weather", "race_control", "drivers", "laps", "session_result",
)


async def _no_sleep(seconds: float) -> None:
    return None


def _jobs(store: CacheStore, clock: FakeWallClock, grace: GracePeriodSettings | None = None) -> RefreshJobs:
    openf1 = OpenF1Client(AsyncTransport(OPENF1_URL), DualRateLimiter(100, 1000), sleep=_no_sleep)
    jolpica = JolpicaClient(AsyncTransport(JOLPICA_URL), DualRateLimiter(100, 1000), sleep=_no_sleep)
    return RefreshJobs(store, openf1, jolpica, grace or GracePeriodSettings(), clock=clock)


def _mock_latest(session: dict | None = SAMPLE_SESSION) -> respx.Route:
    body = [session] if session is not None else []
    return respx.get(f"{OPENF1_URL}/sessions", params={"session_key": "latest"}).mock(
        return_value=httpx.Response(200, json=body)
    )


def _mock_live_endpoints(failing: tuple[str, ...] = ()) -> dict[str, respx.Route]:
    routes = {}
    for endpoint in LIVE_ENDPOINTS:
        if endpoint in failing:
            response = httpx.Response(500, text="Internal Server Error")
        elif endpoint == "position":
            response = httpx.Response(200, json=[SAMPLE_POSITION])
        elif endpoint == "drivers":
            response = httpx.Response(200, json=[SAMPLE_DRIVER])
        else:
            response = httpx.Response(200, json=[{"session_key": 9900}])
        routes[endpoint] = respx.get(f"{OPENF1_URL}/{endpoint}").mock(return_value=response)
    return routes


def _utc_ms(*args: int) -> int:
    return int(datetime(*args, tzinfo=timezone.utc).timestamp() * 1000)


class TestIsRaceWeekend:
    @pytest.mark.parametrize(
        "day,expected",
        [
            (5, False),   # Thursday
            (6, True),    # Friday
            (7, True),    # Saturday
            (8, True),    # Sunday
            (9, True),    # Monday
            (10, False),  # Tuesday
            (11, False),  # Wednesday
        ],
    )
    def test_days(self, day: int, expected: bool) -> None:
        assert is_race_weekend(_utc_ms(2026, 3, day, 12)) is expected


class TestRefreshLiveData:
    @respx.mock
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "offset",
        [-30 * MINUTE - 1000, (RACE_END_MS - RACE_START_MS) + 60 * MINUTE + 1000],
        ids=["before-grace", "after-grace"],
    )
    async def test_outside_window_writes_only_latest_session(
        self, store: CacheStore, wall_clock: FakeWallClock, offset: int,
    ) -> None:
        _mock_latest()
        routes = _mock_live_endpoints()
        wall_clock.now = RACE_START_MS + offset

        written = await _jobs(store, wall_clock).refresh_live_data()

        assert written == 1
        assert store.keys() == ["latest_session"]
        assert store.read("latest_session") == SAMPLE_SESSION
        assert not any(route.called for route in routes.values())

    @respx.mock
    @pytest.mark.asyncio
    @pytest.mark.parametrize("offset", [-1_000_000, 3_660_000 + 1000])
    async def test_outside_narrow_grace(
        self, store: CacheStore, wall_clock: FakeWallClock, offset: int,
    ) -> None:
        _mock_latest()
        routes = _mock_live_endpoints()
        wall_clock.now = RACE_START_MS + offset
        grace = GracePeriodSettings(before_start_ms=15 * MINUTE, after_end_ms=MINUTE)

        assert await _jobs(store, wall_clock, grace).refresh_live_data() == 1
        assert store.keys() == ["latest_session"]
        assert not routes["position"].called

    @respx.mock
    @pytest.mark.asyncio
    async def test_inside_window_refreshes_everything(
        self, store: CacheStore, wall_clock: FakeWallClock,
    ) -> None:
        _mock_latest()
        _mock_live_endpoints()
        wall_clock.now = RACE_START_MS + 10 * MINUTE

        written = await _jobs(store, wall_clock).refresh_live_data()

        assert written == 10
        assert store.keys() == sorted([
            "latest_session",
            "positions_9900",
            "intervals_9900",
            "stints_9900",
            "weather_9900",
            "race_control_9900",
            "laps_9900_all",
            "result_9900",
            "drivers_9900",
            "drivers_latest",
        ])
        assert store.read("positions_9900") == [SAMPLE_POSITION]
        assert store.read("drivers_latest") == [SAMPLE_DRIVER]

    @respx.mock
    @pytest.mark.asyncio
    async def test_failed_resource_keeps_previous_document(
        self, store: CacheStore, wall_clock: FakeWallClock,
    ) -> None:
        store.write("weather_9900", [{"air_temperature": 21.0}])
        _mock_latest()
        routes = _mock_live_endpoints(failing=("weather",))
        wall_clock.now = RACE_START_MS + 10 * MINUTE

        written = await _jobs(store, wall_clock).refresh_live_data()

        assert written == 9
        assert routes["weather"].call_count == 1
        assert store.read("weather_9900") == [{"air_temperature": 21.0}]
        assert store.read("positions_9900") == [SAMPLE_POSITION]

    @respx.mock
    @pytest.mark.asyncio
    async def test_no_latest_session(self, store: CacheStore, wall_clock: FakeWallClock) -> None:
        _mock_latest(None)
        assert await _jobs(store, wall_clock).refresh_live_data() == 1
        assert store.keys() == ["latest_session"]
        assert store.read("latest_session") is None

    @respx.mock
    @pytest.mark.asyncio
    async def test_latest_session_failure(self, store: CacheStore, wall_clock: FakeWallClock) -> None:
        store.write("latest_session", SAMPLE_SESSION)
        respx.get(f"{OPENF1_URL}/sessions").mock(return_value=httpx.Response(500))

        assert await _jobs(store, wall_clock).refresh_live_data() == 0
        assert store.read("latest_session") == SAMPLE_SESSION

    @respx.mock
    @pytest.mark.asyncio
    async def test_store_writes_leave_the_event_loop(
        self, store: CacheStore, wall_clock: FakeWallClock, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        loop_thread = threading.get_ident()
        write_threads: list[int] = []
        write = store.write

        def recording_write(key: str, data: object) -> None:
            write_threads.append(threading.get_ident())
            write(key, data)

        monkeypatch.setattr(store, "write", recording_write)
        _mock_latest(None)

        assert await _jobs(store, wall_clock).refresh_live_data() == 1

        assert len(write_threads) == 1
        assert loop_thread not in write_threads
        assert store.keys() == ["latest_session"]


class TestRefreshCalendar:
    @respx.mock
    @pytest.mark.asyncio
    async def test_writes_meetings_and_sessions(self, store: CacheStore, wall_clock: FakeWallClock) -> None:
        respx.get(f"{OPENF1_URL}/meetings", params={"year": "2026"}).mock(
            return_value=httpx.Response(200, json=SAMPLE_MEETINGS)
        )
        respx.get(f"{OPENF1_URL}/sessions", params={"meeting_key": "1279"}).mock(
            return_value=httpx.Response(200, json=[SAMPLE_SESSION])
        )
        respx.get(f"{OPENF1_URL}/sessions", params={"meeting_key": "1280"}).mock(
            return_value=httpx.Response(500)
        )
        respx.get(f"{OPENF1_URL}/sessions", params={"year": "2026"}).mock(
            return_value=httpx.Response(200, json=[SAMPLE_SESSION])
        )

        written = await _jobs(store, wall_clock).refresh_calendar()

        assert written == 3
        assert store.read("meetings_2026") == SAMPLE_MEETINGS
        assert store.read("sessions_1279") == [SAMPLE_SESSION]
        assert store.read("sessions_1280") is None
        assert store.read("sessions_year_2026") == [SAMPLE_SESSION]

    @respx.mock
    @pytest.mark.asyncio
    async def test_malformed_meeting_is_skipped(self, store: CacheStore, wall_clock: FakeWallClock) -> None:
        meetings = [SAMPLE_MEETINGS[0], {"meeting_key": "TBA"}, SAMPLE_MEETINGS[1]]
        respx.get(f"{OPENF1_URL}/meetings", params={"year": "2026"}).mock(
            return_value=httpx.Response(200, json=meetings)
        )
        respx.get(f"{OPENF1_URL}/sessions", params={"meeting_key": "1279"}).mock(
            return_value=httpx.Response(200, json=[SAMPLE_SESSION])
        )
        respx.get(f"{OPENF1_URL}/sessions", params={"meeting_key": "1280"}).mock(
            return_value=httpx.Response(200, json=[])
        )
        respx.get(f"{OPENF1_URL}/sessions", params={"year": "2026"}).mock(
            return_value=httpx.Response(200, json=[SAMPLE_SESSION])
        )

        written = await _jobs(store, wall_clock).refresh_calendar()

        assert written == 4
        assert store.read("meetings_2026") == meetings
        assert store.read("sessions_1279") == [SAMPLE_SESSION]
        assert store.read("sessions_1280") == []
        assert store.read("sessions_year_2026") == [SAMPLE_SESSION]
        assert store.keys() == ["meetings_2026", "sessions_1279", "sessions_1280", "sessions_year_2026"]

    @respx.mock
    @pytest.mark.asyncio
    async def test_meetings_failure(self, store: CacheStore, wall_clock: FakeWallClock) -> None:
        store.write("meetings_2026", SAMPLE_MEETINGS[:1])
        respx.get(f"{OPENF1_URL}/meetings").mock(return_value=httpx.Response(503))

        assert await _jobs(store, wall_clock).refresh_calendar() == 0
        assert store.read("meetings_2026") == SAMPLE_MEETINGS[:1]


class TestRefreshStandings:
    @respx.mock
    @pytest.mark.asyncio
    async def test_writes_both(self, store: CacheStore, wall_clock: FakeWallClock) -> None:
        respx.get(f"{JOLPICA_URL}/2026/driverstandings.json").mock(
            return_value=httpx.Response(
                200, json=jolpica_payload("DriverStandings", [SAMPLE_DRIVER_STANDING])
            )
        )
        respx.get(f"{JOLPICA_URL}/2026/constructorstandings.json").mock(
            return_value=httpx.Response(
                200, json=jolpica_payload("ConstructorStandings", [SAMPLE_CONSTRUCTOR_STANDING])
            )
        )

        assert await _jobs(store, wall_clock).refresh_standings() == 2
        assert store.read("driver_standings_2026") == [SAMPLE_DRIVER_STANDING]
        assert store.read("constructor_standings_2026") == [SAMPLE_CONSTRUCTOR_STANDING]

    @respx.mock
    @pytest.mark.asyncio
    async def test_failure_writes_nothing(self, store: CacheStore, wall_clock: FakeWallClock) -> None:
        respx.get(f"{JOLPICA_URL}/2026/driverstandings.json").mock(
            return_value=httpx.Response(500)
        )
        respx.get(f"{JOLPICA_URL}/2026/constructorstandings.json").mock(
            return_value=httpx.Response(200, json=jolpica_payload("ConstructorStandings", []))
        )

        assert await _jobs(store, wall_clock).refresh_standings() == 0
        assert store.keys() == []


class TestRefreshBaseline:
    @respx.mock
    @pytest.mark.asyncio
    async def test_writes_session_drivers_and_result(
        self, store: CacheStore, wall_clock: FakeWallClock,
    ) -> None:
        _mock_latest()
        respx.get(f"{OPENF1_URL}/drivers", params={"session_key": "9900"}).mock(
            return_value=httpx.Response(200, json=[SAMPLE_DRIVER])
        )
        respx.get(f"{OPENF1_URL}/session_result", params={"session_key": "9900"}).mock(
            return_value=httpx.Response(200, json=[{"position": 1, "driver_number": 1}])
        )
        # Outside the live window
        wall_clock.now = RACE_END_MS + 24 * 60 * MINUTE

        assert await _jobs(store, wall_clock).refresh_baseline() == 4
        assert store.keys() == ["drivers_9900", "drivers_latest", "latest_session", "result_9900"]

    @respx.mock
    @pytest.mark.asyncio
    async def test_drivers_failure_is_isolated(self, store: CacheStore, wall_clock: FakeWallClock) -> None:
        _mock_latest()
        respx.get(f"{OPENF1_URL}/drivers").mock(return_value=httpx.Response(500))
        respx.get(f"{OPENF1_URL}/session_result").mock(return_value=httpx.Response(200, json=[]))

        assert await _jobs(store, wall_clock).refresh_baseline() == 2
        assert store.keys() == ["latest_session", "result_9900"]
