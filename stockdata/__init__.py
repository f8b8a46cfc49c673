"""Alpha Vantage stock data with a persistent, quota-aware request cache."""

__version__ = "1.0.0"
