"""Two-tier client cache with stale-while-revalidate.

Entries live in an in-memory mapping (authoritative for the process) and are
mirrored to a persistent key/value store used to hydrate on cold start.

For a key, :meth:`ClientCache.get` behaves as follows:

- absent: fetch from the backend and wait for the result;
- fresh (age < ttl): return the cached data, no network;
- stale (age >= ttl): return the cached data at once and refresh it in the
  background, unless a refresh for that key is already in flight.

Concurrent fetches for one key share a single in-flight task. A successful
background refresh updates both tiers and publishes the key on
:class:`~f1x.events.CacheEvents`; a failed one is logged and the stale data
stays in place.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Mapping
from urllib.parse import urlencode

from f1x.clock import now_ms
from f1x.config import ClientCacheSettings
from f1x.events import ACTIVITY_TOPIC, CacheEvents
from f1x.exceptions import StorageQuotaError
from f1x.kv_store import KeyValueStore
from f1x.models.cache_entry import CacheEntry

logger = logging.getLogger(__name__)

Fetcher = Callable[[str, Mapping[str, Any]], Awaitable[Any]]


def default_key(resource: str, params: Mapping[str, Any]) -> str:
    query = urlencode(sorted((k, v) for k, v in params.items() if v is not None))
    return f"{resource}?{query}" if query else resource


class ClientCache:
    """Stale-while-revalidate cache in front of a backend fetcher.

    Args:
        fetcher: Coroutine function ``(resource, params) -> data``.
        persistent: Durable key/value tier.
        settings: Key prefix and TTL table.
        events: Registry receiving "cache updated" and activity notifications.
        clock: Wall clock in epoch milliseconds.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        persistent: KeyValueStore,
        settings: ClientCacheSettings,
        *,
        events: CacheEvents | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._fetcher = fetcher
        self._persistent = persistent
        self.settings = settings
        self.events = events or CacheEvents()
        self._clock = clock
        self._memory: dict[str, CacheEntry] = {}
        self._in_flight: dict[str, asyncio.Task[Any]] = {}
        self._active = 0

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    @property
    def refreshing(self) -> bool:
        return self._active > 0

    # ── Tiers ─────────────────────────────────────────────────

    def _persistent_key(self, key: str) -> str:
        return self.settings.key_prefix + key

    def peek(self, key: str) -> CacheEntry | None:
        """Return the entry for ``key`` from memory, else hydrate it from the persistent tier."""
        entry = self._memory.get(key)
        if entry is not None:
            return entry

        pkey = self._persistent_key(key)
        raw = self._persistent.get(pkey)
        if raw is None:
            return None
        try:
            obj = json.loads(raw)
            entry = CacheEntry(key=key, data=obj["data"], timestamp=int(obj["timestamp"]))
        except (ValueError, KeyError, TypeError):
            logger.warning("Removing corrupt cache entry %s", key)
            self._persistent.remove(pkey)
            return None
        self._memory[key] = entry
        return entry

    def set(self, key: str, data: Any) -> CacheEntry:
        """Store ``data`` under ``key`` in both tiers, stamped with the current time."""
        entry = CacheEntry(key=key, data=data, timestamp=self._clock())
        self._memory[key] = entry
        self._persist(entry)
        return entry

    def _persist(self, entry: CacheEntry) -> None:
        pkey = self._persistent_key(entry.key)
        raw = json.dumps({"data": entry.data, "timestamp": entry.timestamp})
        try:
            self._persistent.set(pkey, raw)
            return
        except StorageQuotaError:
            removed = self.cleanup_persistent()
            logger.info("Storage full, removed %d expired entries", removed)
        try:
            self._persistent.set(pkey, raw)
        except StorageQuotaError:
            # Memory tier stays authoritative for this process.
            logger.debug("Dropping persistent write for %s", entry.key)

    def cleanup_persistent(self) -> int:
        """Remove persistent entries older than the longest TTL, plus corrupt ones."""
        now = self._clock()
        max_age = self.settings.max_ttl_ms
        removed = 0
        for pkey in self._persistent.keys():
            if not pkey.startswith(self.settings.key_prefix):
                continue
            raw = self._persistent.get(pkey)
            try:
                expired = now - int(json.loads(raw)["timestamp"]) > max_age
            except (ValueError, KeyError, TypeError):
                expired = True
            if expired:
                self._persistent.remove(pkey)
                removed += 1
        return removed

    # ── Fetching ──────────────────────────────────────────────

    def _set_active(self, delta: int) -> None:
        before = self._active
        self._active = max(0, self._active + delta)
        if before == 0 and self._active > 0:
            self.events.publish(ACTIVITY_TOPIC, True)
        elif before > 0 and self._active == 0:
            self.events.publish(ACTIVITY_TOPIC, False)

    async def _fetch_and_store(
        self, key: str, resource: str, params: Mapping[str, Any], notify: bool,
    ) -> Any:
        self._set_active(1)
        try:
            data = await self._fetcher(resource, params)
            self.set(key, data)
        finally:
            self._set_active(-1)
        if notify:
            self.events.publish(key, data)
        return data

    def _start_fetch(
        self, key: str, resource: str, params: Mapping[str, Any], *, background: bool,
    ) -> asyncio.Task[Any]:
        task = asyncio.create_task(self._fetch_and_store(key, resource, params, notify=background))
        self._in_flight[key] = task

        def finished(done: asyncio.Task[Any]) -> None:
            if self._in_flight.get(key) is done:
                del self._in_flight[key]
            if done.cancelled():
                return
            exc = done.exception()
            if exc is not None and background:
                logger.warning("Background refresh failed for %s: %s", key, exc)

        task.add_done_callback(finished)
        return task

    async def get(
        self,
        resource: str,
        params: Mapping[str, Any] | None = None,
        *,
        key: str | None = None,
        ttl: int | None = None,
    ) -> Any:
        """Return data for ``resource``/``params``, honouring ``ttl`` (ms)."""
        params = params or {}
        key = key or default_key(resource, params)
        ttl = self.settings.default_ttl_ms if ttl is None else ttl

        entry = self.peek(key)
        if entry is not None:
            if entry.age(self._clock()) >= ttl and key not in self._in_flight:
                self._start_fetch(key, resource, params, background=True)
            return entry.data

        task = self._in_flight.get(key)
        if task is None:
            task = self._start_fetch(key, resource, params, background=False)
        return await asyncio.shield(task)

    async def drain(self) -> None:
        """Wait for every in-flight fetch to settle."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight.values()), return_exceptions=True)
