import json
from datetime import timedelta

import pytest

from stockdata.cache_store import CACHE_SLOT, QUOTA_SLOT, CacheStore
from stockdata.errors import PersistenceError
from stockdata.kv_store import JsonFileStore, MemoryStore


class BrokenStore(MemoryStore):
    async def set_item(self, key, value):
        raise PersistenceError("disk full")

    async def remove_item(self, key):
        raise PersistenceError("disk full")


def test_put_then_fresh_until_ttl(store, clock):
    entry = store.cache.put("k", {"a": 1})
    assert store.cache.get("k") is entry
    assert store.cache.is_fresh(entry)

    clock.advance(hours=23, minutes=59)
    assert store.cache.is_fresh(entry)

    clock.advance(minutes=1)
    assert not store.cache.is_fresh(entry)
    # stale entries are never dropped on read
    assert store.cache.get("k").payload == {"a": 1}


def test_put_resets_fetched_at(store, clock):
    store.cache.put("k", 1)
    clock.advance(hours=30)
    entry = store.cache.put("k", 2)
    assert entry.fetched_at == clock().timestamp()
    assert store.cache.is_fresh(entry)
    assert len(store.cache) == 1


@pytest.mark.asyncio
async def test_persist_and_reload(kv, clock):
    store = CacheStore(kv, clock=clock)
    store.cache.put("OVERVIEW?symbol=IBM", {"Symbol": "IBM"})
    await store.quota.increment()

    reloaded = await CacheStore.load(kv, clock=clock)
    entry = reloaded.cache.get("OVERVIEW?symbol=IBM")
    assert entry.payload == {"Symbol": "IBM"}
    assert entry.fetched_at == clock().timestamp()
    assert reloaded.quota.state.requests_made == 1
    assert reloaded.quota.state.window_date == "2024-01-01"


@pytest.mark.asyncio
async def test_load_corrupt_slots_resets_to_empty(clock):
    kv = MemoryStore({CACHE_SLOT: "{not json", QUOTA_SLOT: json.dumps({"requestsMade": 3})})
    store = await CacheStore.load(kv, clock=clock)
    assert len(store.cache) == 0
    assert store.quota.state.requests_made == 0
    assert store.quota.state.window_date == "2024-01-01"


@pytest.mark.asyncio
async def test_load_keeps_good_slot_when_other_is_corrupt(clock):
    kv = MemoryStore({
        CACHE_SLOT: json.dumps({"k": {"payload": [1, 2], "ts": 5.0}}),
        QUOTA_SLOT: "[]",
    })
    store = await CacheStore.load(kv, clock=clock)
    assert store.cache.get("k").payload == [1, 2]
    assert store.quota.state.requests_made == 0


@pytest.mark.asyncio
async def test_clear_empties_cache_quota_and_storage(kv, store):
    store.cache.put("a", 1)
    store.cache.put("b", 2)
    for _ in range(4):
        await store.quota.increment()
    assert CACHE_SLOT in kv.data

    await store.clear()

    assert store.cache.get("a") is None
    assert store.cache.get("b") is None
    assert store.quota.state.requests_made == 0
    assert kv.data == {}


@pytest.mark.asyncio
async def test_persistence_failures_are_not_raised(clock):
    store = CacheStore(BrokenStore(), clock=clock)
    store.cache.put("a", 1)
    await store.quota.increment()
    await store.clear()
    assert store.quota.state.requests_made == 0


@pytest.mark.asyncio
async def test_json_file_store_survives_restart(tmp_path, clock):
    path = str(tmp_path / "nested" / "cache.json")
    store = CacheStore(JsonFileStore(path), ttl=timedelta(hours=24), clock=clock)
    store.cache.put("TOP_GAINERS_LOSERS", {"top_gainers": []})
    await store.quota.increment()

    reloaded = await CacheStore.load(JsonFileStore(path), clock=clock)
    assert reloaded.info().cache_size == 1
    assert reloaded.info().requests_made == 1
    assert reloaded.info().remaining == 24


@pytest.mark.asyncio
async def test_json_file_store_unreadable_file(tmp_path, clock):
    path = tmp_path / "cache.json"
    path.write_text("garbage")
    kv = JsonFileStore(str(path))
    with pytest.raises(PersistenceError):
        await kv.get_item(CACHE_SLOT)

    store = await CacheStore.load(kv, clock=clock)
    assert len(store.cache) == 0
    # next write replaces the unreadable file
    await kv.set_item("x", "1")
    assert await kv.get_item("x") == "1"
