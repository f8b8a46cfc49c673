# stockdata/orchestrator.py
"""
Single chokepoint for upstream calls: cache-first, quota-gated, and falling
back to a stale entry on any failure.
"""
from __future__ import annotations
import asyncio
import logging
from typing import Any, Dict, Optional, Protocol

from stockdata.av_client import Endpoint
from stockdata.cache_store import CacheEntry, CacheStore
from stockdata.errors import QuotaExceededError, UpstreamError

logger = logging.getLogger(__name__)


class Fetcher(Protocol):
    async def fetch(self, endpoint: Endpoint) -> Dict[str, Any]: ...


class FetchOrchestrator:
    def __init__(self, store: CacheStore, client: Fetcher, *, coalesce: bool = True):
        self.store = store
        self.client = client
        self.coalesce = coalesce
        self._pending: Dict[str, "asyncio.Future[Any]"] = {}

    async def resolve(self, key: str, endpoint: Endpoint) -> Any:
        """
        Return the payload for `key`.

        Fresh cache hits never touch the network or the quota. Otherwise a live
        call is made if the daily budget allows; if that is not possible or it
        fails, any cached payload for the key is returned however old it is.

        Raises:
            QuotaExceededError: budget spent and nothing cached for `key`.
            TransportError / UpstreamSemanticError: live call failed and nothing cached.
        """
        entry = self.store.cache.get(key)
        if entry is not None and self.store.cache.is_fresh(entry):
            logger.debug("Cache hit %s", key)
            return entry.payload

        if not self.coalesce:
            return await self._refresh(key, endpoint, entry)

        pending = self._pending.get(key)
        if pending is None:
            pending = asyncio.ensure_future(self._refresh(key, endpoint, entry))
            self._pending[key] = pending
            pending.add_done_callback(lambda fut: self._forget(key, fut))
        else:
            logger.debug("Joining in-flight request for %s", key)
        # a cancelled caller must not cancel the shared upstream call
        return await asyncio.shield(pending)

    def _forget(self, key: str, fut: "asyncio.Future[Any]") -> None:
        if self._pending.get(key) is fut:
            del self._pending[key]
        if not fut.cancelled():
            fut.exception()  # mark retrieved when every waiter went away

    async def _refresh(self, key: str, endpoint: Endpoint, entry: Optional[CacheEntry]) -> Any:
        quota = self.store.quota
        if not await quota.check_and_roll():
            if entry is not None:
                logger.warning("Daily quota spent (%s/%s); serving stale %s",
                               quota.state.requests_made, quota.daily_limit, key)
                return entry.payload
            raise QuotaExceededError(
                f"Daily limit of {quota.daily_limit} requests reached and nothing cached for {key}"
            )

        try:
            with quota.in_flight():
                payload = await self.client.fetch(endpoint)
        except UpstreamError as e:
            if e.counts_against_quota:
                await quota.increment()
            return self._fallback(key, entry, e)

        self.store.cache.put(key, payload)
        await quota.increment()  # persists cache + quota together
        return payload

    def _fallback(self, key: str, entry: Optional[CacheEntry], error: UpstreamError) -> Any:
        if entry is None:
            logger.warning("Request for %s failed with nothing cached: %s", key, error)
            raise error
        logger.warning("Request for %s failed (%s); serving stale copy", key, error)
        return entry.payload
