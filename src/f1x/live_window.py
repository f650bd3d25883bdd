"""Live-window rule deciding when the live-data job polls upstream."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from f1x.clock import to_epoch_ms
from f1x.config import GracePeriodSettings
from f1x.exceptions import UpstreamValidationError
from f1x.models import Session, validate_one


@dataclass(frozen=True)
class LiveWindow:
    """Scheduled session span widened by the grace periods (epoch ms)."""

    session_key: int | None
    start: int
    end: int
    before_start: int
    after_end: int

    @property
    def opens_at(self) -> int:
        return self.start - self.before_start

    @property
    def closes_at(self) -> int:
        return self.end + self.after_end

    def contains(self, now: int) -> bool:
        return self.opens_at <= now <= self.closes_at


def live_window_for(
    session: Mapping[str, Any] | Session | None,
    grace: GracePeriodSettings,
) -> LiveWindow | None:
    """Build the live window of ``session``; ``None`` when it lacks timing."""
    if session is None:
        return None
    if not isinstance(session, Session):
        try:
            session = validate_one(Session, dict(session))
        except UpstreamValidationError:
            return None
    if session.date_start is None or session.date_end is None:
        return None
    return LiveWindow(
        session_key=session.session_key,
        start=to_epoch_ms(session.date_start),
        end=to_epoch_ms(session.date_end),
        before_start=grace.before_start_ms,
        after_end=grace.after_end_ms,
    )


def is_session_in_live_window(
    session: Mapping[str, Any] | Session | None,
    now: int,
    grace: GracePeriodSettings,
) -> bool:
    """Return True iff ``now`` lies in ``[start - before_start, end + after_end]``."""
    window = live_window_for(session, grace)
    return window is not None and window.contains(now)
