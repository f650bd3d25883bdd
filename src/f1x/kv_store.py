"""Persistent string key/value stores backing the client cache.

Both stores mimic browser local storage: string keys, string values, and an
optional byte quota. A write that would exceed the quota raises
:class:`~f1x.exceptions.StorageQuotaError` and leaves the store unchanged.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Protocol
from urllib.parse import quote, unquote

from f1x.exceptions import StorageQuotaError


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...

    def keys(self) -> list[str]: ...


def _size(key: str, value: str) -> int:
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))


class MemoryKeyValueStore:
    """Dict-backed store, mainly for tests and short-lived processes."""

    def __init__(self, quota_bytes: int | None = None) -> None:
        self.quota_bytes = quota_bytes
        self._data: dict[str, str] = {}

    def _used(self, excluding: str | None = None) -> int:
        return sum(_size(k, v) for k, v in self._data.items() if k != excluding)

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if self.quota_bytes is not None:
            if self._used(excluding=key) + _size(key, value) > self.quota_bytes:
                raise StorageQuotaError(f"Quota of {self.quota_bytes} bytes exceeded writing {key}")
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class FileKeyValueStore:
    """One file per key under ``directory``; survives process restarts."""

    def __init__(self, directory: str | Path, quota_bytes: int | None = None) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self.quota_bytes = quota_bytes

    def _path(self, key: str) -> Path:
        return self.directory / quote(key, safe="")

    def _used(self, excluding: Path | None = None) -> int:
        return sum(p.stat().st_size for p in self.directory.iterdir() if p.is_file() and p != excluding)

    def get(self, key: str) -> str | None:
        try:
            return self._path(key).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        if self.quota_bytes is not None:
            if self._used(excluding=path) + len(value.encode("utf-8")) > self.quota_bytes:
                raise StorageQuotaError(f"Quota of {self.quota_bytes} bytes exceeded writing {key}")
        tmp = path.with_name(path.name + ".tmp")
        tmp.write_text(value, encoding="utf-8")
        os.replace(tmp, path)

    def remove(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    def keys(self) -> list[str]:
        return [unquote(p.name) for p in self.directory.iterdir() if p.is_file() and not p.name.endswith(".tmp")]
