import asyncio

import pytest

from stockdata.debounce import QueryDebouncer
from stockdata.errors import UpstreamSemanticError


class Recorder:
    def __init__(self):
        self.evaluated = []
        self.delivered = []

    async def evaluate(self, query):
        self.evaluated.append(query)
        return [query.upper()]

    def callback(self, tag):
        return lambda results: self.delivered.append((tag, results))


@pytest.mark.asyncio
async def test_rapid_submits_evaluate_only_latest():
    rec = Recorder()
    deb = QueryDebouncer(rec.evaluate, delay=0.05)
    deb.submit("A", rec.callback("A"))
    deb.submit("AB", rec.callback("AB"))
    deb.submit("ABC", rec.callback("ABC"))
    await asyncio.sleep(0.15)
    assert rec.evaluated == ["ABC"]
    assert rec.delivered == [("ABC", ["ABC"])]
    assert not deb.pending


@pytest.mark.asyncio
async def test_new_submit_restarts_the_quiet_window():
    rec = Recorder()
    deb = QueryDebouncer(rec.evaluate, delay=0.2)
    deb.submit("te", rec.callback("te"))
    await asyncio.sleep(0.1)
    deb.submit("tes", rec.callback("tes"))
    await asyncio.sleep(0.1)
    assert rec.evaluated == []
    await asyncio.sleep(0.25)
    assert rec.delivered == [("tes", ["TES"])]


@pytest.mark.asyncio
async def test_blank_query_short_circuits_synchronously():
    rec = Recorder()
    deb = QueryDebouncer(rec.evaluate, delay=0.05)
    deb.submit("IBM", rec.callback("IBM"))
    deb.submit("   ", rec.callback("blank"))
    assert rec.delivered == [("blank", [])]
    await asyncio.sleep(0.1)
    assert rec.evaluated == []
    assert rec.delivered == [("blank", [])]


@pytest.mark.asyncio
async def test_cancel_drops_pending_query():
    rec = Recorder()
    deb = QueryDebouncer(rec.evaluate, delay=0.05)
    deb.submit("IBM", rec.callback("IBM"))
    assert deb.pending
    deb.cancel()
    await asyncio.sleep(0.1)
    assert rec.evaluated == []
    assert rec.delivered == []


@pytest.mark.asyncio
async def test_superseded_search_in_flight_is_not_delivered():
    gate = asyncio.Event()
    evaluated = []

    async def slow(query):
        evaluated.append(query)
        if query == "old":
            await gate.wait()
        return [query]

    delivered = []
    deb = QueryDebouncer(slow, delay=0.01)
    deb.submit("old", delivered.append)
    await asyncio.sleep(0.05)
    assert evaluated == ["old"]
    deb.submit("new", delivered.append)
    gate.set()
    await asyncio.sleep(0.05)
    assert evaluated == ["old", "new"]
    assert delivered == [["new"]]


@pytest.mark.asyncio
async def test_search_failure_delivers_empty_list():
    async def failing(query):
        raise UpstreamSemanticError("bad")

    delivered = []
    deb = QueryDebouncer(failing, delay=0.01)
    deb.submit("IBM", delivered.append)
    await asyncio.sleep(0.05)
    assert delivered == [[]]


@pytest.mark.asyncio
async def test_unexpected_search_error_still_delivers_empty_list():
    async def broken(query):
        raise KeyError("ticker")

    delivered = []
    deb = QueryDebouncer(broken, delay=0.01)
    deb.submit("IBM", delivered.append)
    await asyncio.sleep(0.05)
    assert delivered == [[]]
    assert not deb.pending
