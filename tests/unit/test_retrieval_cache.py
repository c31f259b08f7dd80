import pytest

from rag_gateway.config import RetrievalConfig
from rag_gateway.rag.cache import KEY_PREFIX, RetrievalCache, fingerprint, normalize_query
from rag_gateway.stores.kv import InMemoryCacheStore
from rag_gateway.types import SearchHit, SearchResponse


def _response() -> SearchResponse:
    return SearchResponse(
        count=4,
        results=[SearchHit(content="Stacks are LIFO.", score=0.82, metadata={"id": "doc-1"})],
    )


def test_normalize_query_folds_case_width_and_whitespace() -> None:
    assert normalize_query("  What   IS\tRecursion? ") == "what is recursion?"
    assert normalize_query("ＡＢＣ") == "abc"


def test_fingerprint_is_stable_for_equivalent_questions() -> None:
    key = fingerprint("What is recursion?", "knowledge", 5)

    assert key.startswith(KEY_PREFIX)
    assert key == fingerprint("what is   RECURSION?", "knowledge", 5)
    assert key != fingerprint("What is recursion?", "courses", 5)
    assert key != fingerprint("What is recursion?", "knowledge", 3)


@pytest.mark.asyncio
async def test_cache_round_trip_counts_hits_and_misses() -> None:
    cache = RetrievalCache(InMemoryCacheStore(), RetrievalConfig())

    assert await cache.get("q", "knowledge", 5) is None
    assert await cache.set("q", "knowledge", 5, _response()) is True

    cached = await cache.get("Q ", "knowledge", 5)

    assert cached == _response()
    assert cache.stats() == {"hits": 1, "misses": 1, "hit_ratio": 50}


@pytest.mark.asyncio
async def test_entries_expire_after_ttl() -> None:
    now = [0.0]
    store = InMemoryCacheStore(clock=lambda: now[0])
    cache = RetrievalCache(store, RetrievalConfig(cache_ttl_seconds=10))

    await cache.set("q", "knowledge", 5, _response())
    now[0] = 10.0

    assert await cache.get("q", "knowledge", 5) is None


@pytest.mark.asyncio
async def test_store_failure_degrades_to_miss(unreachable_store) -> None:
    cache = RetrievalCache(unreachable_store, RetrievalConfig())

    assert await cache.get("q", "knowledge", 5) is None
    assert await cache.set("q", "knowledge", 5, _response()) is False
    assert cache.misses == 1


@pytest.mark.asyncio
async def test_disabled_cache_never_touches_store(unreachable_store) -> None:
    cache = RetrievalCache(unreachable_store, RetrievalConfig(cache_enabled=False))

    assert await cache.get("q", "knowledge", 5) is None
    assert await cache.set("q", "knowledge", 5, _response()) is False
    assert cache.stats()["misses"] == 0


@pytest.mark.asyncio
async def test_undecodable_entry_is_a_miss() -> None:
    store = InMemoryCacheStore()
    cache = RetrievalCache(store, RetrievalConfig())
    await store.set(fingerprint("q", "knowledge", 5), ["stale", "format"], 60)

    assert await cache.get("q", "knowledge", 5) is None
    assert cache.stats() == {"hits": 0, "misses": 1, "hit_ratio": 0}
