"""Tests for the TTL + LRU result cache."""
import time

import pytest

from subsearch.models.search import ResultType, SearchResult
from subsearch.services.result_cache import ResultCache, cache_key, estimate_size


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _result(i: int, content: str = "body") -> SearchResult:
    return SearchResult(id=f"id{i}", title=f"title {i}", type=ResultType.POST, content=content)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    cache = ResultCache(max_items=3, default_ttl=60, cleanup_interval=None, clock=clock)
    yield cache
    cache.close()


def test_get_within_ttl_returns_value_unchanged(cache):
    value = [_result(1), _result(2)]
    cache.set("k", value)

    got, found = cache.get("k")

    assert found is True
    assert got is value
    assert [r.id for r in got] == ["id1", "id2"]


def test_get_after_ttl_is_not_found_and_evicts(cache, clock):
    cache.set("k", [_result(1)])
    clock.advance(61)

    got, found = cache.get("k")

    assert found is False
    assert got is None
    assert len(cache) == 0
    assert cache.size_bytes == 0


def test_set_with_ttl_overrides_default(cache, clock):
    cache.set_with_ttl("short", "v", 5)
    cache.set("long", "v")
    clock.advance(10)

    assert cache.get("short") == (None, False)
    assert cache.get("long") == ("v", True)


def test_capacity_evicts_least_recently_used_first(clock):
    evicted = []
    cache = ResultCache(
        max_items=3,
        cleanup_interval=None,
        clock=clock,
        on_evict=lambda key, value: evicted.append(key),
    )
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("c", 3)
    cache.get("a")  # b is now least recently used

    cache.set("d", 4)

    assert evicted == ["b"]
    assert cache.get("b") == (None, False)
    assert cache.get("a") == (1, True)
    assert len(cache) == 3


def test_size_bound_evicts_until_it_fits(clock):
    big = "x" * 400
    per_item = estimate_size(big)
    cache = ResultCache(max_items=100, max_size_bytes=per_item * 2, cleanup_interval=None, clock=clock)

    cache.set("a", big)
    cache.set("b", big)
    cache.set("c", big)

    assert cache.get("a") == (None, False)
    assert len(cache) == 2
    assert cache.size_bytes == per_item * 2


def test_oversized_value_is_not_cached(clock):
    cache = ResultCache(max_items=10, max_size_bytes=100, cleanup_interval=None, clock=clock)
    assert cache.set("k", "y" * 1000) is False
    assert len(cache) == 0
    assert cache.size_bytes == 0


def test_size_accounting_never_drifts(cache):
    cache.set("k", [_result(1, "short")])
    cache.set("k", [_result(1, "a much longer body " * 20)])
    cache.set("j", "value")
    cache.delete("k")
    cache.delete("j")
    cache.delete("missing")

    assert cache.size_bytes == 0
    cache.set("k", "again")
    cache.clear()
    assert cache.size_bytes == 0
    assert len(cache) == 0


def test_delete_and_clear_invoke_callback(clock):
    evicted = []
    cache = ResultCache(cleanup_interval=None, clock=clock, on_evict=lambda k, v: evicted.append((k, v)))
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("c", 3)

    assert cache.delete("a") is True
    cache.clear()

    assert evicted[0] == ("a", 1)
    assert sorted(evicted[1:]) == [("b", 2), ("c", 3)]


def test_cleanup_expired_sweeps_without_access(cache, clock):
    cache.set_with_ttl("old", 1, 5)
    cache.set_with_ttl("fresh", 2, 500)
    clock.advance(10)

    assert cache.cleanup_expired() == 1
    assert len(cache) == 1


def test_janitor_thread_runs_and_stops():
    cache = ResultCache(default_ttl=0.01, cleanup_interval=0.02)
    cache.set("k", "v")
    assert cache.janitor_running

    deadline = time.monotonic() + 2
    while len(cache) and time.monotonic() < deadline:
        time.sleep(0.01)

    assert len(cache) == 0
    cache.close()
    assert not cache.janitor_running
    cache.close()


def test_stats_counts_hits_and_misses(cache):
    cache.set("k", "v")
    cache.get("k")
    cache.get("nope")

    stats = cache.stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["items"] == 1


def test_cache_key_normalizes_query():
    assert cache_key("Top  Movies ", "All", 25) == cache_key("top movies", "all", 25)
    assert cache_key("top movies", "All", 25) != cache_key("top movies", "Posts", 25)
    assert cache_key("top movies", "All", 25) != cache_key("top movies", "All", 10)
