# stockdata/config.py
from __future__ import annotations
import logging
import os
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional

from dotenv import load_dotenv

from stockdata.errors import PersistenceError
from stockdata.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

AV_BASE = "https://www.alphavantage.co/query"
DEFAULT_API_KEY = "demo"
DAILY_REQUEST_LIMIT = 25
API_KEY_SLOT = "api_key"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring malformed %s=%r, using %s", name, raw, default)
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    base_url: str = AV_BASE
    default_api_key: str = DEFAULT_API_KEY
    daily_request_limit: int = DAILY_REQUEST_LIMIT
    cache_ttl: timedelta = field(default_factory=lambda: timedelta(hours=24))
    debounce_delay: float = 0.5       # seconds
    request_timeout: float = 30.0     # seconds
    cache_path: str = os.path.join(".cache", "stock_cache.json")
    coalesce_requests: bool = True
    chart_points: int = 30

    @classmethod
    def from_env(cls) -> "Settings":
        """Settings from the process environment (.env honoured)."""
        load_dotenv()
        return cls(
            base_url=os.getenv("ALPHAVANTAGE_BASE_URL") or AV_BASE,
            default_api_key=os.getenv("ALPHAVANTAGE_API_KEY") or DEFAULT_API_KEY,
            daily_request_limit=int(_env_float("STOCKDATA_DAILY_LIMIT", DAILY_REQUEST_LIMIT)),
            cache_ttl=timedelta(hours=_env_float("STOCKDATA_CACHE_TTL_HOURS", 24)),
            debounce_delay=_env_float("STOCKDATA_DEBOUNCE_MS", 500) / 1000.0,
            request_timeout=_env_float("STOCKDATA_TIMEOUT", 30.0),
            cache_path=os.getenv("STOCKDATA_CACHE_PATH") or os.path.join(".cache", "stock_cache.json"),
            coalesce_requests=_env_bool("STOCKDATA_COALESCE", True),
            chart_points=int(_env_float("STOCKDATA_CHART_POINTS", 30)),
        )


async def resolve_api_key(store: KeyValueStore, settings: Settings) -> str:
    """User override saved in the store wins over the configured default key."""
    try:
        override = await store.get_item(API_KEY_SLOT)
    except PersistenceError as e:
        logger.warning("Could not read saved API key: %s", e)
        override = None
    if override and override.strip():
        return override.strip()
    return settings.default_api_key


async def save_api_key(store: KeyValueStore, key: Optional[str]) -> None:
    """Persist a user override. Blank or None removes it."""
    if key is None or not key.strip():
        await store.remove_item(API_KEY_SLOT)
    else:
        await store.set_item(API_KEY_SLOT, key.strip())
