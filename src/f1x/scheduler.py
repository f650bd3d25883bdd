"""Interval scheduler for the refresh jobs.

Each job runs on its own cadence, never overlaps with itself and is abandoned
once it exceeds its timeout. Jobs only ever overwrite cache documents, so an
abandoned run leaves the store in a safe (stale) state.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from f1x.clock import now_ms
from f1x.config import SchedulerSettings
from f1x.jobs import RefreshJobs, is_race_weekend

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JobSpec:
    """A named job with its cadence (seconds), timeout and optional time gate."""

    name: str
    run: Callable[[], Awaitable[Any]]
    interval: float
    timeout: float
    gate: Callable[[int], bool] | None = None


def build_job_specs(jobs: RefreshJobs, settings: SchedulerSettings) -> list[JobSpec]:
    return [
        JobSpec("calendar", jobs.refresh_calendar, settings.calendar_interval, settings.job_timeout),
        JobSpec(
            "standings", jobs.refresh_standings, settings.standings_interval,
            settings.job_timeout, gate=is_race_weekend,
        ),
        JobSpec("live", jobs.refresh_live_data, settings.live_interval, settings.live_job_timeout),
        JobSpec("baseline", jobs.refresh_baseline, settings.baseline_interval, settings.job_timeout),
    ]


class RefreshScheduler:
    """Runs :class:`JobSpec` instances on their intervals in one event loop."""

    def __init__(
        self,
        specs: list[JobSpec],
        clock: Callable[[], int] = now_ms,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.specs = {spec.name: spec for spec in specs}
        self._clock = clock
        self._sleep = sleep
        self._running: set[str] = set()
        self._loops: list[asyncio.Task[None]] = []

    @property
    def job_names(self) -> list[str]:
        return list(self.specs)

    async def run_once(self, name: str, *, force: bool = False) -> bool:
        """Run job ``name`` once; return False if it was skipped.

        A job is skipped when its previous run is still going or, unless
        ``force`` is set, when its gate rejects the current time.
        """
        spec = self.specs[name]
        if name in self._running:
            logger.warning("Job %s still running, skipping this trigger", name)
            return False
        if not force and spec.gate is not None and not spec.gate(self._clock()):
            logger.debug("Job %s gated off at this time", name)
            return False

        self._running.add(name)
        try:
            async with asyncio.timeout(spec.timeout):
                await spec.run()
        except TimeoutError:
            logger.error("Job %s exceeded %.0fs and was abandoned", name, spec.timeout)
        finally:
            self._running.discard(name)
        return True

    async def _loop(self, spec: JobSpec) -> None:
        while True:
            await self.run_once(spec.name)
            await self._sleep(spec.interval)

    async def run_forever(self) -> None:
        """Start every job loop and wait until :meth:`stop` cancels them."""
        self._loops = [
            asyncio.create_task(self._loop(spec), name=f"refresh-{spec.name}")
            for spec in self.specs.values()
        ]
        logger.info("Scheduler started: %s", ", ".join(self.job_names))
        await asyncio.gather(*self._loops, return_exceptions=True)
        logger.info("Scheduler stopped")

    async def stop(self) -> None:
        for task in self._loops:
            task.cancel()
        await asyncio.gather(*self._loops, return_exceptions=True)
        self._loops = []
