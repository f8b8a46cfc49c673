# stockdata/cache_store.py
from __future__ import annotations
import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, Optional

from stockdata.errors import PersistenceError
from stockdata.kv_store import KeyValueStore
from stockdata.quota import Clock, QuotaState, QuotaTracker, utc_date, utc_now

logger = logging.getLogger(__name__)

CACHE_SLOT = "stock_cache"
QUOTA_SLOT = "stock_rate_limit"


@dataclass
class CacheEntry:
    key: str
    payload: Any
    fetched_at: float  # epoch seconds


@dataclass
class CacheInfo:
    cache_size: int
    requests_made: int
    window_date: str
    daily_limit: int

    @property
    def remaining(self) -> int:
        return max(self.daily_limit - self.requests_made, 0)


class ResponseCache:
    """Last good payload per key. Stale entries stay as fallback values."""

    def __init__(self, entries: Dict[str, CacheEntry], ttl: timedelta, clock: Clock = utc_now):
        self.entries = entries
        self.ttl = ttl
        self._clock = clock

    def __len__(self) -> int:
        return len(self.entries)

    def get(self, key: str) -> Optional[CacheEntry]:
        return self.entries.get(key)

    def put(self, key: str, payload: Any) -> CacheEntry:
        entry = CacheEntry(key=key, payload=payload, fetched_at=self._clock().timestamp())
        self.entries[key] = entry
        return entry

    def is_fresh(self, entry: CacheEntry) -> bool:
        return self._clock().timestamp() - entry.fetched_at < self.ttl.total_seconds()

    def clear(self) -> None:
        self.entries.clear()


def _dump_entries(entries: Dict[str, CacheEntry]) -> str:
    return json.dumps({k: {"payload": e.payload, "ts": e.fetched_at} for k, e in entries.items()})


def _parse_entries(raw: Optional[str]) -> Dict[str, CacheEntry]:
    if not raw:
        return {}
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("cache slot is not an object")
    return {
        k: CacheEntry(key=k, payload=v["payload"], fetched_at=float(v["ts"]))
        for k, v in data.items()
    }


def _parse_quota(raw: Optional[str], clock: Clock) -> QuotaState:
    if not raw:
        return QuotaState(requests_made=0, window_date=utc_date(clock))
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("quota slot is not an object")
    return QuotaState.from_dict(data)


class CacheStore:
    """Process-wide cache + quota state, written through to a key-value store."""

    def __init__(
        self,
        kv: KeyValueStore,
        entries: Optional[Dict[str, CacheEntry]] = None,
        quota: Optional[QuotaState] = None,
        *,
        ttl: timedelta = timedelta(hours=24),
        daily_limit: int = 25,
        clock: Clock = utc_now,
    ):
        self.kv = kv
        self._clock = clock
        self._lock = asyncio.Lock()
        self.cache = ResponseCache(entries if entries is not None else {}, ttl, clock)
        self.quota = QuotaTracker(
            quota or QuotaState(requests_made=0, window_date=utc_date(clock)),
            daily_limit,
            self.persist,
            clock,
        )

    @classmethod
    async def load(
        cls,
        kv: KeyValueStore,
        *,
        ttl: timedelta = timedelta(hours=24),
        daily_limit: int = 25,
        clock: Clock = utc_now,
    ) -> "CacheStore":
        """Hydrate from storage. Each slot falls back to empty/zero on any failure."""
        try:
            entries = _parse_entries(await kv.get_item(CACHE_SLOT))
        except (PersistenceError, ValueError, KeyError, TypeError) as e:
            logger.warning("Discarding unreadable response cache: %s", e)
            entries = {}
        try:
            quota = _parse_quota(await kv.get_item(QUOTA_SLOT), clock)
        except (PersistenceError, ValueError, KeyError, TypeError) as e:
            logger.warning("Discarding unreadable quota state: %s", e)
            quota = None
        logger.info("Loaded %s cached responses", len(entries))
        return cls(kv, entries, quota, ttl=ttl, daily_limit=daily_limit, clock=clock)

    async def persist(self) -> None:
        """Write both slots. Failures are logged; memory stays authoritative."""
        cache_blob = _dump_entries(self.cache.entries)
        quota_blob = json.dumps(self.quota.state.to_dict())
        async with self._lock:
            try:
                await self.kv.set_item(CACHE_SLOT, cache_blob)
                await self.kv.set_item(QUOTA_SLOT, quota_blob)
            except PersistenceError as e:
                logger.warning("Could not persist cache state: %s", e)

    async def clear(self) -> None:
        self.cache.clear()
        self.quota.reset()
        logger.info("Cache and quota cleared")
        async with self._lock:
            try:
                await self.kv.remove_item(CACHE_SLOT)
                await self.kv.remove_item(QUOTA_SLOT)
            except PersistenceError as e:
                logger.warning("Could not remove persisted cache state: %s", e)

    def info(self) -> CacheInfo:
        return CacheInfo(
            cache_size=len(self.cache),
            requests_made=self.quota.state.requests_made,
            window_date=self.quota.state.window_date,
            daily_limit=self.quota.daily_limit,
        )
