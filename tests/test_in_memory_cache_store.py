"""Unit tests for the in-memory cache storage."""

import httpx
import pytest

from leaf_tracker.adapters.cache.base import CachedResponse, cache_key
from leaf_tracker.adapters.cache.in_memory import InMemoryCacheStorage, InMemoryCacheStore


def _request(url: str = "http://tracker.test/api/streets", method: str = "GET") -> httpx.Request:
    return httpx.Request(method, url)


def test_cache_key_ignores_fragment_and_normalizes_method() -> None:
    key1 = cache_key(_request("http://tracker.test/index.html#top", method="get"))
    key2 = cache_key(_request("http://tracker.test/index.html"))
    key3 = cache_key(_request("http://tracker.test/index.html?v=2"))

    assert key1 == key2 == "GET http://tracker.test/index.html"
    assert key1 != key3


@pytest.mark.asyncio
async def test_snapshot_strips_wire_headers_and_keeps_body() -> None:
    response = httpx.Response(
        200,
        headers={"content-type": "application/json", "content-encoding": "identity"},
        content=b'{"records": []}',
    )

    snapshot = await CachedResponse.from_response(response)

    names = {name.lower() for name, _ in snapshot.headers}
    assert "content-type" in names
    assert "content-encoding" not in names
    assert snapshot.content == b'{"records": []}'
    assert response.content == b'{"records": []}'


@pytest.mark.asyncio
async def test_match_and_put_update_hit_miss_counters() -> None:
    store = InMemoryCacheStore("leaf-tracker-v1")
    request = _request()

    assert await store.match(request) is None

    await store.put(request, CachedResponse(200, (("content-type", "text/plain"),), b"elm"))
    cached = await store.match(request)

    assert cached is not None
    assert cached.status_code == 200
    assert cached.text == "elm"
    assert store.stats() == {"name": "leaf-tracker-v1", "entries": 1, "hits": 1, "misses": 1}


@pytest.mark.asyncio
async def test_each_match_returns_a_fresh_response() -> None:
    store = InMemoryCacheStore("leaf-tracker-v1")
    request = _request()
    await store.put(request, CachedResponse(200, (), b"elm"))

    first = await store.match(request)
    second = await store.match(request)

    assert first is not second
    assert first.content == second.content == b"elm"


@pytest.mark.asyncio
async def test_last_write_wins_and_moves_key_to_the_end() -> None:
    store = InMemoryCacheStore("leaf-tracker-v1")
    streets = _request("http://tracker.test/api/streets")
    messages = _request("http://tracker.test/api/messages")

    await store.put(streets, CachedResponse(200, (), b"old"))
    await store.put(messages, CachedResponse(200, (), b"msgs"))
    await store.put(streets, CachedResponse(200, (), b"new"))

    assert (await store.match(streets)).content == b"new"
    assert await store.keys() == [cache_key(messages), cache_key(streets)]
    assert len(store) == 2


@pytest.mark.asyncio
async def test_delete_entry() -> None:
    store = InMemoryCacheStore("leaf-tracker-v1")
    request = _request()
    await store.put(request, CachedResponse(200, (), b"elm"))

    assert await store.delete(request) is True
    assert await store.delete(request) is False
    assert await store.match(request) is None


@pytest.mark.asyncio
async def test_storage_opens_stores_by_name_and_deletes_them() -> None:
    storage = InMemoryCacheStorage()

    static = await storage.open("leaf-tracker-v1")
    assert await storage.open("leaf-tracker-v1") is static
    await storage.open("leaf-tracker-api-v1")

    assert await storage.has("leaf-tracker-v1")
    assert await storage.keys() == ["leaf-tracker-v1", "leaf-tracker-api-v1"]

    assert await storage.delete("leaf-tracker-v1") is True
    assert await storage.delete("leaf-tracker-v1") is False
    assert await storage.keys() == ["leaf-tracker-api-v1"]
