# stockdata/models.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict


@dataclass
class Stock:
    id: str
    symbol: str
    name: str
    current_price: float = 0.0
    change: float = 0.0
    change_percent: float = 0.0
    volume: int = 0
    market_cap: float = 0.0
    pe_ratio: float = 0.0
    high: float = 0.0
    low: float = 0.0
    open: float = 0.0
    previous_close: float = 0.0
    currency: str = "USD"
    region: str = "United States"


@dataclass
class ChartPoint:
    date: str         # YYYY-MM-DD trading day
    timestamp: int    # epoch milliseconds, midnight UTC of `date`
    price: float      # close


@dataclass
class SearchResult:
    symbol: str
    name: str
    type: str = "N/A"
    region: str = "N/A"
    market_open: str = "N/A"
    market_close: str = "N/A"
    timezone: str = "N/A"
    currency: str = "N/A"
    match_score: float = 0.0


@dataclass
class CompanyInfo:
    symbol: str
    name: str = "N/A"
    description: str = "N/A"
    exchange: str = "N/A"
    currency: str = "N/A"
    country: str = "N/A"
    sector: str = "N/A"
    industry: str = "N/A"
    address: str = "N/A"
    market_capitalization: float = 0.0
    pe_ratio: float = 0.0
    forward_pe: float = 0.0
    eps: float = 0.0
    dividend_yield: float = 0.0
    dividend_per_share: float = 0.0
    beta: float = 0.0
    week_52_high: float = 0.0
    week_52_low: float = 0.0
    moving_average_50: float = 0.0
    moving_average_200: float = 0.0
    book_value: float = 0.0
    revenue_ttm: float = 0.0
    ebitda: float = 0.0
    profit_margin: float = 0.0
    return_on_equity_ttm: float = 0.0
    analyst_target_price: float = 0.0
    analyst_ratings: Dict[str, int] = field(default_factory=dict)
    total_analyst_count: int = 0
    has_financial_metrics: bool = False
    has_analyst_ratings: bool = False
    has_basic_info: bool = False
