# stockdata/stock_service.py
from __future__ import annotations
import logging
from typing import Any, Callable, List, Optional

import httpx

from stockdata import adapters
from stockdata.av_client import (
    AlphaVantageClient,
    Endpoint,
    build_http_client,
    overview,
    symbol_search,
    time_series_daily,
    top_gainers_losers,
)
from stockdata.cache_store import CacheInfo, CacheStore
from stockdata.config import Settings, resolve_api_key, save_api_key
from stockdata.debounce import QueryDebouncer
from stockdata.errors import UpstreamSemanticError
from stockdata.kv_store import JsonFileStore, KeyValueStore
from stockdata.models import ChartPoint, CompanyInfo, SearchResult, Stock
from stockdata.orchestrator import FetchOrchestrator
from stockdata.quota import Clock, utc_now

logger = logging.getLogger(__name__)


class StockService:
    """
    What screens call. Ordinary failures (error-shaped or unusable payloads)
    come back as an empty list / None. TransportError and QuotaExceededError
    still propagate: they mean there is no data for the key at all.
    """

    def __init__(
        self,
        store: CacheStore,
        orchestrator: FetchOrchestrator,
        kv: KeyValueStore,
        settings: Settings,
        http: Optional[httpx.AsyncClient] = None,
    ):
        self.store = store
        self.orchestrator = orchestrator
        self.kv = kv
        self.settings = settings
        self._http = http  # closed by aclose() when the service created it
        self.debouncer: QueryDebouncer[SearchResult] = QueryDebouncer(
            self.search_stocks, delay=settings.debounce_delay
        )

    async def __aenter__(self) -> "StockService":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        self.debouncer.cancel()
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def _resolve(self, endpoint: Endpoint) -> Any:
        try:
            return await self.orchestrator.resolve(endpoint.cache_key(), endpoint)
        except UpstreamSemanticError as e:
            logger.warning("No usable data for %s: %s", endpoint.function, e)
            return None

    # ---------- market movers ----------
    async def get_top_gainers(self) -> List[Stock]:
        return adapters.to_top_gainers(await self._resolve(top_gainers_losers()))

    async def get_top_losers(self) -> List[Stock]:
        return adapters.to_top_losers(await self._resolve(top_gainers_losers()))

    async def get_most_actively_traded(self) -> List[Stock]:
        return adapters.to_most_active(await self._resolve(top_gainers_losers()))

    async def get_all_stocks(self) -> List[Stock]:
        return adapters.merge_all_stocks(await self._resolve(top_gainers_losers()))

    async def get_stock_by_symbol(self, symbol: str) -> Optional[Stock]:
        wanted = symbol.strip().upper()
        for stock in await self.get_all_stocks():
            if stock.symbol == wanted:
                return stock
        return None

    # ---------- search ----------
    async def search_stocks(self, query: str) -> List[SearchResult]:
        if not query.strip():
            return []
        return adapters.to_search_results(await self._resolve(symbol_search(query)))

    def debounced_search_stocks(self, query: str, on_result: Callable[[List[SearchResult]], None]) -> None:
        self.debouncer.submit(query, on_result)

    # ---------- single stock ----------
    async def get_stock_chart_data(self, symbol: str) -> List[ChartPoint]:
        payload = await self._resolve(time_series_daily(symbol))
        return adapters.to_chart_data(payload, max_points=self.settings.chart_points)

    async def fetch_company_info(self, symbol: str) -> Optional[CompanyInfo]:
        payload = await self._resolve(overview(symbol))
        if payload is None:
            return None
        return adapters.to_company_info(payload, symbol)

    # ---------- cache / settings ----------
    def get_cache_info(self) -> CacheInfo:
        return self.store.info()

    async def clear_cache(self) -> None:
        self.debouncer.cancel()
        await self.store.clear()

    async def set_api_key(self, key: Optional[str]) -> None:
        await save_api_key(self.kv, key)


async def create_service(
    settings: Optional[Settings] = None,
    kv: Optional[KeyValueStore] = None,
    http: Optional[httpx.AsyncClient] = None,
    clock: Clock = utc_now,
) -> StockService:
    """Build the long-lived service: hydrate state once, wire client and orchestrator."""
    settings = settings or Settings.from_env()
    kv = kv if kv is not None else JsonFileStore(settings.cache_path)
    store = await CacheStore.load(
        kv, ttl=settings.cache_ttl, daily_limit=settings.daily_request_limit, clock=clock
    )
    owned = None
    if http is None:
        http = owned = build_http_client(settings.request_timeout)

    async def api_key() -> str:
        return await resolve_api_key(kv, settings)

    client = AlphaVantageClient(http, api_key, settings.base_url)
    orchestrator = FetchOrchestrator(store, client, coalesce=settings.coalesce_requests)
    return StockService(store, orchestrator, kv, settings, http=owned)
