# mlshub/adapters/cache.py
from __future__ import annotations

import json
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Protocol

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..models import CacheEntry


class ListingCache(Protocol):
    """
    get/set/delete with TTL. Values must be JSON-safe.
    Last write wins; no transactional guarantees.
    """

    async def get(self, key: str) -> Any | None: ...

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def purge_expired(self) -> int: ...


class CacheStats:
    """Process-lifetime counters (exposed on the debug router)."""

    def __init__(self) -> None:
        self.hits = 0
        self.misses = 0
        self.sets = 0
        self.deletes = 0

    def snapshot(self) -> dict[str, int]:
        return {"hits": self.hits, "misses": self.misses, "sets": self.sets, "deletes": self.deletes}

    def reset(self) -> None:
        self.hits = self.misses = self.sets = self.deletes = 0


class InMemoryCache:
    """
    Process-local TTL cache. Expired keys are dropped when read, and `set`
    sweeps the whole dict at most once per `sweep_interval_s`.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval_s: float = 60.0,
    ) -> None:
        self._clock = clock
        self._data: dict[str, tuple[float, Any]] = {}
        self._sweep_interval_s = sweep_interval_s
        self._next_sweep = clock() + sweep_interval_s
        self.stats = CacheStats()

    async def get(self, key: str) -> Any | None:
        hit = self._data.get(key)
        if hit is None:
            self.stats.misses += 1
            return None
        expires_at, value = hit
        if self._clock() >= expires_at:
            self._data.pop(key, None)
            self.stats.misses += 1
            return None
        self.stats.hits += 1
        return value

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        now = self._clock()
        if now >= self._next_sweep:
            self._sweep(now)
        self._data[key] = (now + float(ttl_seconds), value)
        self.stats.sets += 1

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)
        self.stats.deletes += 1

    def _sweep(self, now: float) -> int:
        stale = [k for k, (expires_at, _) in self._data.items() if now >= expires_at]
        for k in stale:
            del self._data[k]
        self._next_sweep = now + self._sweep_interval_s
        return len(stale)

    async def purge_expired(self) -> int:
        return self._sweep(self._clock())

    def __len__(self) -> int:
        return len(self._data)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _ensure_aware_utc(dt: datetime) -> datetime:
    """
    SQLite + SQLAlchemy gives back naive datetimes even for timezone=True columns.
    If naive, assume it's UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class SqlCache:
    """
    TTL cache persisted in `cache_entries`. One short session per call so
    concurrent fan-out branches never share a session.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        *,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._session_maker = session_maker
        self._now = now
        self.stats = CacheStats()

    async def get(self, key: str) -> Any | None:
        async with self._session_maker() as session:
            row = await session.get(CacheEntry, key)
            if row is None or _ensure_aware_utc(row.expires_at) <= self._now():
                self.stats.misses += 1
                return None
            self.stats.hits += 1
            return json.loads(row.value_json)

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        now = self._now()
        payload = json.dumps(value, default=str)
        expires_at = now + timedelta(seconds=ttl_seconds)
        async with self._session_maker() as session:
            row = await session.get(CacheEntry, key)
            if row is None:
                session.add(CacheEntry(key=key, value_json=payload, expires_at=expires_at, updated_at=now))
            else:
                row.value_json = payload
                row.expires_at = expires_at
                row.updated_at = now
            try:
                await session.commit()
            except IntegrityError:
                # another in-flight set inserted the key first; overwrite it
                await session.rollback()
                await session.execute(
                    update(CacheEntry)
                    .where(CacheEntry.key == key)
                    .values(value_json=payload, expires_at=expires_at, updated_at=now)
                )
                await session.commit()
        self.stats.sets += 1

    async def delete(self, key: str) -> None:
        async with self._session_maker() as session:
            await session.execute(delete(CacheEntry).where(CacheEntry.key == key))
            await session.commit()
        self.stats.deletes += 1

    async def purge_expired(self) -> int:
        async with self._session_maker() as session:
            stale = (
                await session.execute(select(CacheEntry.key).where(CacheEntry.expires_at <= self._now()))
            ).scalars().all()
            if stale:
                await session.execute(delete(CacheEntry).where(CacheEntry.key.in_(stale)))
                await session.commit()
        return len(stale)
