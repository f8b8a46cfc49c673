# stockdata/av_client.py
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from stockdata.errors import HttpStatusError, ResponseTimeoutError, TransportError, UpstreamSemanticError

logger = logging.getLogger(__name__)

TOP_GAINERS_LOSERS = "TOP_GAINERS_LOSERS"
SYMBOL_SEARCH = "SYMBOL_SEARCH"
OVERVIEW = "OVERVIEW"
TIME_SERIES_DAILY = "TIME_SERIES_DAILY"

# keys Alpha Vantage uses for throttling / bad key / bad request bodies (sent with HTTP 200)
ERROR_KEYS = frozenset({"Error Message", "Note", "Information", "Warning"})


@dataclass(frozen=True)
class Endpoint:
    """One upstream query: `function` plus its parameters (apikey excluded)."""
    function: str
    params: Dict[str, str] = field(default_factory=dict)

    def cache_key(self) -> str:
        if not self.params:
            return self.function
        parts = "&".join(f"{k}={self.params[k]}" for k in sorted(self.params))
        return f"{self.function}?{parts}"


def top_gainers_losers() -> Endpoint:
    return Endpoint(TOP_GAINERS_LOSERS)


def symbol_search(keywords: str) -> Endpoint:
    return Endpoint(SYMBOL_SEARCH, {"keywords": " ".join(keywords.split()).lower()})


def overview(symbol: str) -> Endpoint:
    return Endpoint(OVERVIEW, {"symbol": symbol.strip().upper()})


def time_series_daily(symbol: str, output_size: str = "compact") -> Endpoint:
    return Endpoint(TIME_SERIES_DAILY, {"symbol": symbol.strip().upper(), "outputsize": output_size})


def is_error_payload(data: Any) -> bool:
    """True when a syntactically valid body is really a failure."""
    if not isinstance(data, dict) or not data:
        return True
    return set(data.keys()) <= ERROR_KEYS


def error_message(data: Any) -> str:
    if isinstance(data, dict):
        for k in ("Error Message", "Note", "Information", "Warning"):
            if data.get(k):
                return str(data[k])
        if not data:
            return "Empty response"
    return f"Unexpected response type: {type(data).__name__}"


class AlphaVantageClient:
    """Issues exactly one GET per call. No retries: every attempt costs quota."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        api_key: Callable[[], Awaitable[str]],
        base_url: str,
    ):
        self._http = http
        self._api_key = api_key
        self.base_url = base_url

    async def fetch(self, endpoint: Endpoint) -> Dict[str, Any]:
        params: Dict[str, Any] = {"function": endpoint.function, **endpoint.params}
        params["apikey"] = await self._api_key()
        logger.info("Alpha Vantage request function=%s params=%s", endpoint.function, endpoint.params)
        try:
            resp = await self._http.get(self.base_url, params=params)
        except (httpx.ReadTimeout, httpx.WriteTimeout) as e:
            # request already left, upstream may have counted it
            raise ResponseTimeoutError(f"{endpoint.function}: {e!r}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"{endpoint.function}: {e}") from e
        if resp.status_code >= 400:
            raise HttpStatusError(f"{endpoint.function}: HTTP {resp.status_code}", resp.status_code)
        try:
            data = resp.json()
        except ValueError:
            raise UpstreamSemanticError(f"Non-JSON response, status {resp.status_code}")
        if is_error_payload(data):
            raise UpstreamSemanticError(error_message(data))
        return data


def build_http_client(timeout: float = 30.0, transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=timeout,
        headers={"User-Agent": "stockdata/1.0"},
        transport=transport,
    )
