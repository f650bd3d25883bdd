"""Cache key formulas shared by the refresh jobs, read service and client.

A key is the resource name followed by its identifying parameters, joined
with underscores. One key identifies exactly one cached document.
"""

from __future__ import annotations

LATEST_SESSION = "latest_session"
LATEST_DRIVERS = "drivers_latest"
ALL_DRIVERS = "all"


def meetings(year: int | str) -> str:
    return f"meetings_{year}"


def sessions(meeting_key: int | str) -> str:
    return f"sessions_{meeting_key}"


def sessions_by_year(year: int | str) -> str:
    return f"sessions_year_{year}"


def drivers(session_key: int | str) -> str:
    return f"drivers_{session_key}"


def positions(session_key: int | str) -> str:
    return f"positions_{session_key}"


def intervals(session_key: int | str) -> str:
    return f"intervals_{session_key}"


def session_result(session_key: int | str) -> str:
    return f"result_{session_key}"


def laps(session_key: int | str, driver_number: int | str | None = None) -> str:
    return f"laps_{session_key}_{driver_number or ALL_DRIVERS}"


def weather(session_key: int | str) -> str:
    return f"weather_{session_key}"


def race_control(session_key: int | str) -> str:
    return f"race_control_{session_key}"


def stints(session_key: int | str) -> str:
    return f"stints_{session_key}"


def driver_standings(year: int | str) -> str:
    return f"driver_standings_{year}"


def constructor_standings(year: int | str) -> str:
    return f"constructor_standings_{year}"
