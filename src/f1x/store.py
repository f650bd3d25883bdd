"""Durable cache store: one JSON document per cache key.

The store holds the last good payload for each key together with the time it
was written. It has no expiry; absence of a key means it was never populated.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Any, Callable

from sqlalchemy import BigInteger, Column, String, Text, create_engine, delete, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from f1x.clock import now_ms
from f1x.models.cache_entry import CacheEntry

logger = logging.getLogger(__name__)

Base = declarative_base()

CACHE_TABLE = "f1_cache"


class CacheDocument(Base):
    __tablename__ = CACHE_TABLE

    key = Column(String(255), primary_key=True)
    payload = Column(Text, nullable=False)  # JSON string
    timestamp = Column(BigInteger, nullable=False)  # epoch ms


def create_store_engine(url: str) -> Engine:
    """Create an engine; in-memory SQLite shares a single connection."""
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True)
    kwargs: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


class CacheStore:
    """Key/document store with last-write-wins upserts.

    Usage:
        store = CacheStore.from_url("sqlite:///f1x_cache.db")
        store.write("meetings_2026", meetings)
        store.read("meetings_2026")
    """

    def __init__(self, engine: Engine, clock: Callable[[], int] = now_ms) -> None:
        self._engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)
        self._clock = clock
        # Writes arrive from worker threads; in-memory SQLite shares one connection
        self._write_lock = threading.Lock()
        Base.metadata.create_all(engine)

    @classmethod
    def from_url(cls, url: str, clock: Callable[[], int] = now_ms) -> CacheStore:
        return cls(create_store_engine(url), clock=clock)

    def write(self, key: str, data: Any) -> None:
        """Upsert the document for ``key``; the whole write commits or none of it."""
        payload = json.dumps(data, separators=(",", ":"))
        with self._write_lock, self._session_factory.begin() as session:
            session.merge(CacheDocument(key=key, payload=payload, timestamp=self._clock()))

    def read_entry(self, key: str) -> CacheEntry | None:
        """Return the stored entry for ``key``, or ``None`` if never written."""
        with self._session_factory() as session:
            doc = session.get(CacheDocument, key)
            if doc is None:
                return None
            return CacheEntry(key=doc.key, data=json.loads(doc.payload), timestamp=doc.timestamp)

    def read(self, key: str) -> Any | None:
        """Return the cached data for ``key``, or ``None`` if never written."""
        entry = self.read_entry(key)
        return None if entry is None else entry.data

    def keys(self) -> list[str]:
        with self._session_factory() as session:
            return list(session.scalars(select(CacheDocument.key).order_by(CacheDocument.key)))

    def reset(self) -> int:
        """Delete every cached document and return how many were removed."""
        with self._write_lock, self._session_factory.begin() as session:
            result = session.execute(delete(CacheDocument))
        logger.warning("Cache store reset: %d documents deleted", result.rowcount)
        return result.rowcount

    def close(self) -> None:
        self._engine.dispose()
