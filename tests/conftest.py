"""Shared test fixtures, fake clocks and sample API responses."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from f1x.config import GracePeriodSettings, Settings
from f1x.store import CacheStore

OPENF1_URL = "https://api.openf1.org/v1"
JOLPICA_URL = "https://api.jolpi.ca/ergast/f1"
BACKEND_URL = "http://backend.test"

# 2026-03-08T15:00:00Z, a Sunday
RACE_START_MS = int(datetime(2026, 3, 8, 15, 0, tzinfo=timezone.utc).timestamp() * 1000)
RACE_END_MS = RACE_START_MS + 3_600_000


SAMPLE_DRIVER = {
    "broadcast_name": "M VERSTAPPEN",
    "country_code": "NED",
    "driver_number": 1,
    "first_name": "Max",
    "full_name": "Max VERSTAPPEN",
    "headshot_url": "https://example.com/ver.png",
    "last_name": "Verstappen",
    "meeting_key": 1279,
    "name_acronym": "VER",
    "session_key": 9900,
    "team_colour": "3671C6",
    "team_name": "Red Bull Racing",
}

SAMPLE_SESSION = {
    "circuit_key": 10,
    "circuit_short_name": "Melbourne",
    "country_code": "AUS",
    "country_name": "Australia",
    "date_end": "2026-03-08T16:00:00+00:00",
    "date_start": "2026-03-08T15:00:00+00:00",
    "gmt_offset": "11:00:00",
    "location": "Melbourne",
    "meeting_key": 1279,
    "session_key": 9900,
    "session_name": "Race",
    "session_type": "Race",
    "year": 2026,
}

SAMPLE_MEETINGS = [
    {
        "circuit_short_name": "Melbourne",
        "country_code": "AUS",
        "date_start": "2026-03-06T01:30:00+00:00",
        "meeting_key": 1279,
        "meeting_name": "Australian Grand Prix",
        "year": 2026,
    },
    {
        "circuit_short_name": "Shanghai",
        "country_code": "CHN",
        "date_start": "2026-03-13T03:30:00+00:00",
        "meeting_key": 1280,
        "meeting_name": "Chinese Grand Prix",
        "year": 2026,
    },
]

SAMPLE_POSITION = {
    "date": "2026-03-08T15:10:00+00:00",
    "driver_number": 1,
    "meeting_key": 1279,
    "position": 1,
    "session_key": 9900,
}

SAMPLE_DRIVER_STANDING = {
    "position": "1",
    "points": "25",
    "wins": "1",
    "Driver": {"driverId": "max_verstappen", "code": "VER"},
    "Constructors": [{"constructorId": "red_bull", "name": "Red Bull"}],
}

SAMPLE_CONSTRUCTOR_STANDING = {
    "position": "1",
    "points": "43",
    "wins": "1",
    "Constructor": {"constructorId": "red_bull", "name": "Red Bull"},
}


def jolpica_payload(field: str, standings: list[dict]) -> dict:
    return {
        "MRData": {
            "StandingsTable": {
                "season": "2026",
                "StandingsLists": [{"season": "2026", "round": "1", field: standings}],
            }
        }
    }


class FakeClock:
    """Monotonic clock in seconds whose ``sleep`` advances time instantly."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


class FakeWallClock:
    """Epoch-millisecond wall clock controlled by the test."""

    def __init__(self, now: int) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def wall_clock() -> FakeWallClock:
    return FakeWallClock(RACE_START_MS)


@pytest.fixture
def store(wall_clock: FakeWallClock) -> CacheStore:
    return CacheStore.from_url("sqlite://", clock=wall_clock)


@pytest.fixture
def grace() -> GracePeriodSettings:
    return GracePeriodSettings()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url="sqlite://",
        openf1_base_url=OPENF1_URL,
        jolpica_base_url=JOLPICA_URL,
    )
