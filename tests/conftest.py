from datetime import datetime, timedelta, timezone

import httpx
import pytest

from stockdata.cache_store import CacheStore
from stockdata.config import Settings
from stockdata.kv_store import MemoryStore


class FakeClock:
    def __init__(self, start=datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeFetcher:
    """Stands in for AlphaVantageClient; `result` may be a payload, an exception, or a callable."""

    def __init__(self, result=None):
        self.result = result if result is not None else {"ok": True}
        self.calls = []
        self.gate = None  # asyncio.Event to hold calls in flight

    async def fetch(self, endpoint):
        self.calls.append(endpoint)
        if self.gate is not None:
            await self.gate.wait()
        result = self.result(endpoint) if callable(self.result) else self.result
        if isinstance(result, Exception):
            raise result
        return result


GAINERS_LOSERS = {
    "metadata": "Top gainers, losers, and most actively traded US tickers",
    "last_updated": "2024-01-02 16:15:59 US/Eastern",
    "top_gainers": [
        {"ticker": "ABC", "price": "2.10", "change_amount": "0.60", "change_percentage": "40.0%", "volume": "1000"},
        {"ticker": "XYZ", "price": "5.00", "change_amount": "2.50", "change_percentage": "100.0%", "volume": "5000"},
        {"ticker": "QQQ", "price": "abc", "change_amount": "", "change_percentage": "None", "volume": "-"},
    ],
    "top_losers": [
        {"ticker": "DN1", "price": "1.00", "change_amount": "-0.20", "change_percentage": "-16.67%", "volume": "300"},
        {"ticker": "DN2", "price": "3.00", "change_amount": "-3.00", "change_percentage": "-50.0%", "volume": "400"},
    ],
    "most_actively_traded": [
        {"ticker": "XYZ", "price": "5.00", "change_amount": "2.50", "change_percentage": "100.0%", "volume": "5000"},
        {"ticker": "BIG", "price": "150.25", "change_amount": "1.25", "change_percentage": "0.84%", "volume": "90000000"},
    ],
}

SEARCH = {
    "bestMatches": [
        {"1. symbol": "TSCO.LON", "2. name": "Tesco PLC", "3. type": "Equity", "4. region": "United Kingdom",
         "5. marketOpen": "08:00", "6. marketClose": "16:30", "7. timezone": "UTC+01", "8. currency": "GBX",
         "9. matchScore": "0.7273"},
        {"1. symbol": "TSCDF", "2. name": "Tesco plc", "3. type": "Equity", "4. region": "United States",
         "5. marketOpen": "09:30", "6. marketClose": "16:00", "7. timezone": "UTC-04", "8. currency": "USD",
         "9. matchScore": "0.8000"},
    ]
}

DAILY = {
    "Meta Data": {"2. Symbol": "IBM"},
    "Time Series (Daily)": {
        "2024-01-03": {"1. open": "160.0", "2. high": "161.0", "3. low": "159.0", "4. close": "160.5", "5. volume": "100"},
        "2024-01-02": {"1. open": "158.0", "2. high": "159.0", "3. low": "157.0", "4. close": "158.5", "5. volume": "100"},
        "2024-01-04": {"1. open": "161.0", "2. high": "163.0", "3. low": "160.0", "4. close": "None", "5. volume": "100"},
    },
}

OVERVIEW = {
    "Symbol": "IBM",
    "Name": "International Business Machines",
    "Exchange": "NYSE",
    "Currency": "USD",
    "Country": "USA",
    "Sector": "TECHNOLOGY",
    "Industry": "COMPUTER & OFFICE EQUIPMENT",
    "MarketCapitalization": "150000000000",
    "PERatio": "22.5",
    "EPS": "None",
    "Beta": "-",
    "AnalystTargetPrice": "180.1",
    "AnalystRatingStrongBuy": "3",
    "AnalystRatingBuy": "5",
    "AnalystRatingHold": "8",
    "AnalystRatingSell": "1",
    "AnalystRatingStrongSell": "None",
}


def alpha_vantage_transport(responses, seen=None):
    """MockTransport answering by `function` query param from `responses`."""

    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        fn = request.url.params.get("function")
        body = responses.get(fn)
        if isinstance(body, Exception):
            raise body
        if isinstance(body, httpx.Response):
            return body
        if body is None:
            return httpx.Response(404)
        return httpx.Response(200, json=body)

    return httpx.MockTransport(handler)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def kv():
    return MemoryStore()


@pytest.fixture
def store(kv, clock):
    return CacheStore(kv, ttl=timedelta(hours=24), daily_limit=25, clock=clock)


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        default_api_key="test-key",
        debounce_delay=0.05,
        cache_path=str(tmp_path / "cache.json"),
    )


