# stockdata/debounce.py
from __future__ import annotations
import asyncio
import logging
from typing import Awaitable, Callable, Generic, List, Optional, TypeVar

from stockdata.errors import StockDataError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _consume(fut: "asyncio.Future[object]") -> None:
    if not fut.cancelled() and fut.exception() is not None:
        logger.debug("Superseded search ended with %r", fut.exception())


class QueryDebouncer(Generic[T]):
    """
    Coalesces search-as-you-type input: only the latest query submitted before
    `delay` seconds of quiet is evaluated, and only its callback fires.
    """

    def __init__(self, evaluate: Callable[[str], Awaitable[List[T]]], delay: float = 0.5):
        self._evaluate = evaluate
        self.delay = delay
        self.latest_query = ""
        self._pending: Optional["asyncio.Task[None]"] = None

    @property
    def pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def submit(self, query: str, on_result: Callable[[List[T]], None]) -> None:
        self.cancel()
        self.latest_query = query
        if not query.strip():
            on_result([])
            return
        self._pending = asyncio.get_running_loop().create_task(self._run(query, on_result))

    def cancel(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def _run(self, query: str, on_result: Callable[[List[T]], None]) -> None:
        await asyncio.sleep(self.delay)
        me = asyncio.current_task()
        # the search itself is never cut off, only its delivery
        search = asyncio.ensure_future(self._evaluate(query))
        search.add_done_callback(_consume)
        try:
            results = await asyncio.shield(search)
        except StockDataError as e:
            logger.warning("Search for %r failed: %s", query, e)
            results = []
        except Exception:
            logger.exception("Search for %r raised unexpectedly", query)
            results = []
        if self._pending is not me:
            return
        self._pending = None
        on_result(results)
