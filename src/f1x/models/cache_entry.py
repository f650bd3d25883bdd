"""Cached document shape shared by the durable store and the client cache."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class CacheEntry:
    """Last good payload for ``key`` and when it was written (epoch ms)."""

    key: str
    data: Any
    timestamp: int

    def age(self, now: int) -> int:
        return now - self.timestamp
