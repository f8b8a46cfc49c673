# stockdata/errors.py
from __future__ import annotations


class StockDataError(Exception):
    pass


class UpstreamError(StockDataError):
    """Any failure obtaining a usable payload from Alpha Vantage."""

    # True when the request reached the upstream, so it used up a daily slot
    counts_against_quota = False


class TransportError(UpstreamError):
    """Network, DNS or timeout failure reaching the endpoint."""


class HttpStatusError(TransportError):
    """The upstream answered with HTTP status >= 400."""

    counts_against_quota = True

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


class ResponseTimeoutError(TransportError):
    """The request was sent but no response arrived in time."""

    counts_against_quota = True


class UpstreamSemanticError(UpstreamError):
    """HTTP 200 but the body is error-shaped ('Note', 'Information', ...) or unusable."""

    counts_against_quota = True


class QuotaExceededError(StockDataError):
    """Daily request budget is spent and nothing is cached for the key."""


class PersistenceError(StockDataError):
    """Durable store read/write failure. Never fatal."""
