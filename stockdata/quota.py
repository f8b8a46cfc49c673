# stockdata/quota.py
from __future__ import annotations
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Iterator

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_date(clock: Clock) -> str:
    return clock().astimezone(timezone.utc).date().isoformat()


@dataclass
class QuotaState:
    requests_made: int
    window_date: str  # YYYY-MM-DD (UTC)

    def to_dict(self) -> Dict[str, Any]:
        return {"requestsMade": self.requests_made, "windowDate": self.window_date}

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "QuotaState":
        made = int(raw["requestsMade"])
        window = str(raw["windowDate"])
        datetime.strptime(window, "%Y-%m-%d")  # reject garbage dates
        return cls(requests_made=max(made, 0), window_date=window)


class QuotaTracker:
    """Counts live upstream calls per UTC day against a hard daily limit."""

    def __init__(
        self,
        state: QuotaState,
        daily_limit: int,
        persist: Callable[[], Awaitable[None]],
        clock: Clock = utc_now,
    ):
        self.state = state
        self.daily_limit = daily_limit
        self._persist = persist
        self._clock = clock
        self._in_flight = 0

    @property
    def remaining(self) -> int:
        return max(self.daily_limit - self.state.requests_made, 0)

    def _roll(self) -> bool:
        today = utc_date(self._clock)
        # ISO dates compare lexically; a clock moved backwards never resets
        if today > self.state.window_date:
            logger.info(
                "Quota window rolled %s -> %s (%s requests made)",
                self.state.window_date, today, self.state.requests_made,
            )
            self.state.requests_made = 0
            self.state.window_date = today
            return True
        return False

    async def check_and_roll(self) -> bool:
        """Whether one more live call may start today. Persists a day reset.

        The room check runs after the last await so a caller entering
        `in_flight()` right after sees the same count.
        """
        if self._roll():
            await self._persist()
        return self.state.requests_made + self._in_flight < self.daily_limit

    async def increment(self) -> None:
        self.state.requests_made += 1
        await self._persist()

    @contextmanager
    def in_flight(self) -> Iterator[None]:
        """Hold a slot for a live call that has not been counted yet."""
        self._in_flight += 1
        try:
            yield
        finally:
            self._in_flight -= 1

    def reset(self) -> None:
        self.state.requests_made = 0
        self.state.window_date = utc_date(self._clock)
