"""
Tests for the cache service and the in-memory store behind it.
"""

import pytest

from storyboard_cache.errors import CacheUnavailable
from storyboard_cache.repositories import InMemoryKeyValueStore
from storyboard_cache.services import CacheService
from tests.fakes import make_entry


class BrokenStore(InMemoryKeyValueStore):
    """Store whose backend is down."""

    def get(self, key):
        raise CacheUnavailable("connection refused")

    def put(self, key, value, ttl=None):
        raise CacheUnavailable("connection refused")

    def ping(self):
        return False


@pytest.mark.asyncio
async def test_lookup_normalizes_on_read_and_write(cache):
    await cache.store(" Cat On Table ", make_entry())

    entry = await cache.lookup("cat on table")
    assert entry is not None
    assert entry.persistent_url == "https://imagedelivery.example/img-1/public"
    assert cache.list_keys() == ["cat on table"]


@pytest.mark.asyncio
async def test_lookup_miss(cache):
    assert await cache.lookup("nothing here") is None
    assert await cache.exists("nothing here") is False


@pytest.mark.asyncio
async def test_unreadable_record_is_a_miss(cache, store):
    store.put(cache.storage_key("broken"), "{not json")
    assert await cache.lookup("broken") is None


@pytest.mark.asyncio
async def test_unavailable_store_is_a_miss_and_writes_are_best_effort(settings):
    cache = CacheService.create(store=BrokenStore(), config=settings)

    assert await cache.lookup("cat on table") is None
    assert await cache.store("cat on table", make_entry()) is False
    assert cache.is_healthy() is False


@pytest.mark.asyncio
async def test_put_strict_propagates_store_failure(settings):
    cache = CacheService.create(store=BrokenStore(), config=settings)
    with pytest.raises(CacheUnavailable):
        await cache.put_strict("cat on table", make_entry())


@pytest.mark.asyncio
async def test_list_keys_prefix_and_limit(cache):
    for prompt in ["man walking", "man running", "woman walking"]:
        await cache.store(prompt, make_entry(prompt))

    assert sorted(cache.list_keys(prefix="Man ")) == ["man running", "man walking"]
    assert len(cache.list_keys(limit=2)) == 2
    assert cache.count() == 3


@pytest.mark.asyncio
async def test_get_many_skips_missing_and_unreadable(cache, store):
    await cache.store("a", make_entry("a"))
    store.put(cache.storage_key("b"), "garbage")

    entries = await cache.get_many(["a", "b", "c"])
    assert list(entries) == ["a"]


@pytest.mark.asyncio
async def test_delete_and_clear_leave_other_records(cache, store):
    await cache.store("a", make_entry("a"))
    await cache.store("b", make_entry("b"))
    store.put("session:s-1", "{}")

    assert cache.delete(" A ") is True
    assert cache.delete("a") is False
    assert cache.clear() == 1
    assert store.get("session:s-1") == "{}"


def test_memory_store_expiry():
    now = [100.0]
    store = InMemoryKeyValueStore(clock=lambda: now[0])
    store.put("k", "v", ttl=10)
    store.put("forever", "v")

    assert store.get("k") == "v"
    now[0] = 110.0
    assert store.get("k") is None
    assert store.list_keys() == ["forever"]
    assert len(store) == 1
