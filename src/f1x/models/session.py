"""Session model (practice, qualifying, sprint, race)."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class Session(BaseModel):
    """F1 session as reported by OpenF1.

    Only timing and identity fields are modelled; the scheduler relays the
    raw upstream record to the cache unchanged.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    circuit_short_name: str | None = None
    country_name: str | None = None
    date_end: datetime | None = None
    date_start: datetime | None = None
    location: str | None = None
    meeting_key: int | None = None
    session_key: int | None = None
    session_name: str | None = None
    session_type: str | None = None
    year: int | None = None
