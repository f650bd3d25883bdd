"""Publish/subscribe registry for client cache notifications."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable

logger = logging.getLogger(__name__)

Callback = Callable[[str, Any], None]

# Topic carrying True when background fetching starts and False when it stops.
ACTIVITY_TOPIC = "f1x:bg-refresh"


class CacheEvents:
    """Observer registry keyed by cache key.

    Usage:
        events = CacheEvents()
        unsubscribe = events.subscribe("positions_9161", on_update)
        events.publish("positions_9161", data)
        unsubscribe()

    Callbacks receive ``(key, data)``. A callback that raises is logged and
    does not prevent delivery to the others.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str | None, list[Callback]] = defaultdict(list)

    def subscribe(self, key: str | None, callback: Callback) -> Callable[[], None]:
        """Register ``callback`` for ``key`` (``None`` for every key)."""
        self._subscribers[key].append(callback)

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(key, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    def subscribe_all(self, callback: Callback) -> Callable[[], None]:
        return self.subscribe(None, callback)

    def publish(self, key: str, data: Any) -> None:
        for callback in [*self._subscribers.get(key, []), *self._subscribers.get(None, [])]:
            try:
                callback(key, data)
            except Exception:
                logger.exception("Subscriber for %s failed", key)
