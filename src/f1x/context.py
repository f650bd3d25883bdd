"""Process-scoped application context.

Everything with process lifetime (store, limiters, upstream clients, jobs) is
built once here and handed to the components that need it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from f1x._http import AsyncTransport
from f1x.clock import now_ms
from f1x.config import Settings
from f1x.jobs import RefreshJobs
from f1x.middleware import IpRateLimiter
from f1x.rate_limiter import DualRateLimiter
from f1x.scheduler import RefreshScheduler, build_job_specs
from f1x.store import CacheStore
from f1x.upstream import JolpicaClient, OpenF1Client


@dataclass
class AppContext:
    settings: Settings
    store: CacheStore
    ip_limiter: IpRateLimiter
    openf1: OpenF1Client
    jolpica: JolpicaClient
    jobs: RefreshJobs
    scheduler: RefreshScheduler
    clock: Callable[[], int] = field(default=now_ms)

    @classmethod
    def build(
        cls,
        settings: Settings | None = None,
        *,
        clock: Callable[[], int] = now_ms,
        store: CacheStore | None = None,
    ) -> AppContext:
        settings = settings or Settings()
        store = store or CacheStore.from_url(settings.database_url, clock=clock)

        openf1 = OpenF1Client(
            AsyncTransport(settings.openf1_base_url, timeout=settings.request_timeout),
            DualRateLimiter(
                settings.openf1_rate_limit.per_second,
                settings.openf1_rate_limit.per_minute,
                name="openf1",
            ),
        )
        jolpica = JolpicaClient(
            AsyncTransport(settings.jolpica_base_url, timeout=settings.request_timeout),
            DualRateLimiter(
                settings.jolpica_rate_limit.per_second,
                settings.jolpica_rate_limit.per_minute,
                name="jolpica",
            ),
        )
        jobs = RefreshJobs(store, openf1, jolpica, settings.session_grace, clock=clock)
        return cls(
            settings=settings,
            store=store,
            ip_limiter=IpRateLimiter(settings.ip_rate_limit, clock=clock),
            openf1=openf1,
            jolpica=jolpica,
            jobs=jobs,
            scheduler=RefreshScheduler(build_job_specs(jobs, settings.scheduler), clock=clock),
            clock=clock,
        )

    async def aclose(self) -> None:
        await self.openf1.close()
        await self.jolpica.close()
        self.store.close()
