# stockdata/adapters.py
"""
Pure mapping from raw Alpha Vantage payloads to domain objects.

Upstream encodes numbers as strings and omits or blanks fields freely
("None", "-", "" ...). Every value passes through the coercion helpers here so
a missing or malformed field becomes 0 / "N/A" and never NaN.
"""
from __future__ import annotations
import logging
import math
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from stockdata.models import ChartPoint, CompanyInfo, SearchResult, Stock

logger = logging.getLogger(__name__)

_INVALID_STRINGS = {"", "none", "nan", "null", "-", "n/a"}
_INT64_LIMIT = 2.0 ** 63

GAINERS = "top_gainers"
LOSERS = "top_losers"
MOST_ACTIVE = "most_actively_traded"

FINANCIAL_FIELDS = [
    "MarketCapitalization", "PERatio", "EPS", "ForwardPE", "DividendYield",
    "DividendPerShare", "Beta", "52WeekHigh", "52WeekLow", "50DayMovingAverage",
    "200DayMovingAverage", "BookValue", "RevenueTTM", "EBITDA", "ProfitMargin",
    "ReturnOnEquityTTM",
]
ANALYST_RATING_FIELDS = {
    "strong_buy": "AnalystRatingStrongBuy",
    "buy": "AnalystRatingBuy",
    "hold": "AnalystRatingHold",
    "sell": "AnalystRatingSell",
    "strong_sell": "AnalystRatingStrongSell",
}
ANALYST_FIELDS = ["AnalystTargetPrice", *ANALYST_RATING_FIELDS.values()]
BASIC_FIELDS = ["Sector", "Industry", "Exchange", "Country", "Address", "Name", "Description"]


# ---------- coercion ----------
def is_present_and_valid(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, float) and math.isnan(value):
        return False
    if isinstance(value, str) and value.strip().lower() in _INVALID_STRINGS:
        return False
    return True


def parse_number_or_default(value: Any, default: float = 0.0) -> float:
    if not is_present_and_valid(value) or isinstance(value, bool):
        return default
    text = str(value).strip().rstrip("%").replace(",", "")
    try:
        num = float(text)
    except ValueError:
        return default
    return num if math.isfinite(num) else default


def safe_string(value: Any, default: str = "N/A") -> str:
    return str(value).strip() if is_present_and_valid(value) else default


def _clean_key(k: str) -> str:
    # "1. symbol" -> "symbol"
    return k.split(". ", 1)[1] if ". " in k else k


# ---------- market movers ----------
def _movers_frame(rows: Any) -> pd.DataFrame:
    """Coerced, per-list de-duplicated frame in upstream rank order."""
    if not isinstance(rows, list):
        return pd.DataFrame()
    df = pd.DataFrame([r for r in rows if isinstance(r, dict)])
    if df.empty or "ticker" not in df.columns:
        return pd.DataFrame()

    df = df[df["ticker"].map(is_present_and_valid)].copy()
    df["ticker"] = df["ticker"].astype(str).str.strip().str.upper()
    for col in ["price", "change_amount", "change_percentage", "volume"]:
        if col not in df.columns:
            df[col] = 0
    for col in ["price", "change_amount", "change_percentage", "volume"]:
        df[col] = _numeric_column(df[col])
    # outside int64 range counts as malformed
    df["volume"] = df["volume"].where(df["volume"].abs() < _INT64_LIMIT, 0).astype("int64")
    return df.drop_duplicates(subset="ticker", keep="first").reset_index(drop=True)


def _numeric_column(col: pd.Series) -> pd.Series:
    """Same rule as parse_number_or_default: '%' and ',' stripped, non-finite -> 0."""
    text = col.astype(str).str.strip().str.rstrip("%").str.replace(",", "", regex=False)
    num = pd.to_numeric(text, errors="coerce")
    return num.replace([math.inf, -math.inf], math.nan).fillna(0).astype("float64")


def _to_stocks(df: pd.DataFrame) -> List[Stock]:
    out: List[Stock] = []
    for row in df.to_dict(orient="records"):
        price = float(row["price"])
        change = float(row["change_amount"])
        out.append(Stock(
            id=row["ticker"],
            symbol=row["ticker"],
            name=row["ticker"],
            current_price=price,
            change=change,
            change_percent=float(row["change_percentage"]),
            volume=int(row["volume"]),
            previous_close=price - change,
        ))
    return out


def _movers(payload: Any, list_name: str) -> pd.DataFrame:
    if not isinstance(payload, dict):
        return pd.DataFrame()
    return _movers_frame(payload.get(list_name))


def to_top_gainers(payload: Any) -> List[Stock]:
    df = _movers(payload, GAINERS)
    if df.empty:
        return []
    return _to_stocks(df.sort_values("change_percentage", ascending=False, kind="mergesort"))


def to_top_losers(payload: Any) -> List[Stock]:
    df = _movers(payload, LOSERS)
    if df.empty:
        return []
    return _to_stocks(df.sort_values("change_percentage", ascending=True, kind="mergesort"))


def to_most_active(payload: Any) -> List[Stock]:
    df = _movers(payload, MOST_ACTIVE)
    return [] if df.empty else _to_stocks(df)


def merge_all_stocks(payload: Any) -> List[Stock]:
    """Gainers, losers, then most-active; a ticker keeps its first appearance."""
    frames = [f for f in (_movers(payload, n) for n in (GAINERS, LOSERS, MOST_ACTIVE)) if not f.empty]
    if not frames:
        return []
    merged = pd.concat(frames, ignore_index=True).drop_duplicates(subset="ticker", keep="first")
    return _to_stocks(merged)


# ---------- daily series ----------
def to_chart_data(payload: Any, max_points: int = 30) -> List[ChartPoint]:
    """Last `max_points` daily closes, oldest first. Rows without a usable close are dropped."""
    series = payload.get("Time Series (Daily)") if isinstance(payload, dict) else None
    if not isinstance(series, dict):
        return []
    series = {d: v for d, v in series.items() if isinstance(v, dict)}
    if not series:
        return []

    df = (
        pd.DataFrame.from_dict(series, orient="index")
        .rename(columns=_clean_key)
        .reset_index()
        .rename(columns={"index": "date"})
    )
    if "close" not in df.columns:
        return []
    df["close"] = pd.to_numeric(df["close"], errors="coerce")
    df["date"] = pd.to_datetime(df["date"], format="%Y-%m-%d", errors="coerce")
    dropped = len(df)
    df = df.dropna(subset=["date", "close"])
    dropped -= len(df)
    if dropped:
        logger.warning("Skipped %s daily rows without a valid date/close", dropped)
    df = df.sort_values("date").tail(max_points)

    return [
        ChartPoint(
            date=ts.strftime("%Y-%m-%d"),
            timestamp=int(ts.timestamp() * 1000),
            price=float(close),
        )
        for ts, close in zip(df["date"], df["close"])
    ]


# ---------- symbol search ----------
def to_search_results(payload: Any) -> List[SearchResult]:
    matches = payload.get("bestMatches") if isinstance(payload, dict) else None
    if not isinstance(matches, list):
        return []
    out: List[SearchResult] = []
    for m in matches:
        if not isinstance(m, dict):
            continue
        clean = {_clean_key(k): v for k, v in m.items()}
        symbol = safe_string(clean.get("symbol"), "")
        if not symbol:
            continue
        out.append(SearchResult(
            symbol=symbol.upper(),
            name=safe_string(clean.get("name"), symbol.upper()),
            type=safe_string(clean.get("type")),
            region=safe_string(clean.get("region")),
            market_open=safe_string(clean.get("marketOpen")),
            market_close=safe_string(clean.get("marketClose")),
            timezone=safe_string(clean.get("timezone")),
            currency=safe_string(clean.get("currency")),
            match_score=parse_number_or_default(clean.get("matchScore")),
        ))
    return out


# ---------- company overview ----------
def has_valid_company_data(raw: Optional[Dict[str, Any]], fields: Iterable[str]) -> bool:
    """At least one of `fields` carries a real value."""
    if not raw:
        return False
    return any(is_present_and_valid(raw.get(f)) for f in fields)


def has_valid_financial_metrics(raw: Optional[Dict[str, Any]]) -> bool:
    return has_valid_company_data(raw, FINANCIAL_FIELDS)


def has_valid_analyst_ratings(raw: Optional[Dict[str, Any]]) -> bool:
    return has_valid_company_data(raw, ANALYST_FIELDS)


def has_valid_basic_info(raw: Optional[Dict[str, Any]]) -> bool:
    return has_valid_company_data(raw, BASIC_FIELDS)


def get_total_analyst_count(raw: Optional[Dict[str, Any]]) -> int:
    if not raw:
        return 0
    return int(sum(parse_number_or_default(raw.get(f)) for f in ANALYST_RATING_FIELDS.values()))


def to_company_info(payload: Any, symbol: str) -> Optional[CompanyInfo]:
    if not isinstance(payload, dict):
        return None

    def num(k: str) -> float:
        return parse_number_or_default(payload.get(k))

    def text(k: str) -> str:
        return safe_string(payload.get(k))

    return CompanyInfo(
        symbol=safe_string(payload.get("Symbol"), symbol.upper()),
        name=text("Name"),
        description=text("Description"),
        exchange=text("Exchange"),
        currency=text("Currency"),
        country=text("Country"),
        sector=text("Sector"),
        industry=text("Industry"),
        address=text("Address"),
        market_capitalization=num("MarketCapitalization"),
        pe_ratio=num("PERatio"),
        forward_pe=num("ForwardPE"),
        eps=num("EPS"),
        dividend_yield=num("DividendYield"),
        dividend_per_share=num("DividendPerShare"),
        beta=num("Beta"),
        week_52_high=num("52WeekHigh"),
        week_52_low=num("52WeekLow"),
        moving_average_50=num("50DayMovingAverage"),
        moving_average_200=num("200DayMovingAverage"),
        book_value=num("BookValue"),
        revenue_ttm=num("RevenueTTM"),
        ebitda=num("EBITDA"),
        profit_margin=num("ProfitMargin"),
        return_on_equity_ttm=num("ReturnOnEquityTTM"),
        analyst_target_price=num("AnalystTargetPrice"),
        analyst_ratings={k: int(num(f)) for k, f in ANALYST_RATING_FIELDS.items()},
        total_analyst_count=get_total_analyst_count(payload),
        has_financial_metrics=has_valid_financial_metrics(payload),
        has_analyst_ratings=has_valid_analyst_ratings(payload),
        has_basic_info=has_valid_basic_info(payload),
    )
