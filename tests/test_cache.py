from concurrent.futures import ThreadPoolExecutor

import pytest

from buzen.cache import NormalizationCache
from buzen.errors import DomainError, NumericalError
from buzen.metrics import analyze
from buzen.network import Network


def test_repeated_queries_hit_the_cache():
    cache = NormalizationCache()
    first = cache.get([2.0, 3.0], 3)
    second = cache.get([2, 3], 3)
    assert first is second
    assert list(first) == [1.0, 5.0, 19.0, 65.0]
    assert cache.stats() == {"max": 256, "size": 1, "hits": 1, "misses": 1, "evictions": 0}


def test_policy_is_part_of_the_key():
    cache = NormalizationCache()
    direct = cache.get([2.0, 3.0], 3)
    logged = cache.get([2.0, 3.0], 3, policy="log")
    assert direct is not logged
    assert logged.policy == "log"
    assert len(cache) == 2


def test_oldest_entries_are_evicted():
    cache = NormalizationCache(max_entries=2)
    cache.get([1.0], 1)
    cache.get([1.0], 2)
    cache.get([1.0], 3)
    assert len(cache) == 2
    assert cache.evictions == 1
    cache.get([1.0], 1)
    assert cache.misses == 4


def test_concurrent_callers_compute_once():
    cache = NormalizationCache()
    with ThreadPoolExecutor(max_workers=8) as pool:
        tables = list(pool.map(lambda _: cache.get([0.5, 1.5, 2.5], 200), range(32)))
    assert cache.misses == 1
    assert cache.hits == 31
    assert all(t is tables[0] for t in tables)


def test_invalid_input_is_not_cached():
    cache = NormalizationCache()
    with pytest.raises(DomainError):
        cache.get([-1.0], 2)
    with pytest.raises(DomainError):
        cache.get([1.0], 3, policy="rescale", rescale_threshold=0.0)
    with pytest.raises(DomainError):
        cache.get([1.0], 3, policy="rescale", rescale_threshold=None)
    assert len(cache) == 0
    assert cache._key_locks == {}
    with pytest.raises(ValueError):
        NormalizationCache(max_entries=0)


def test_analyze_through_cache():
    cache = NormalizationCache()
    net = Network.from_loads([2.0, 3.0], 3)
    a = analyze(net, cache=cache)
    b = analyze(net, cache=cache)
    assert a.table is b.table
    assert a.expected_lengths == b.expected_lengths
    assert cache.hits == 1


def test_failed_compute_releases_the_key_lock():
    cache = NormalizationCache()
    with pytest.raises(NumericalError):
        cache.get([1e300, 1e300], 3, policy="rescale")
    assert len(cache) == 0
    assert cache._key_locks == {}
    assert cache.misses == 1


def test_clear_resets_counters():
    cache = NormalizationCache(max_entries=1)
    cache.get([1.0], 1)
    cache.get([1.0], 1)
    cache.get([1.0], 2)
    assert cache.stats()["evictions"] == 1
    cache.clear()
    assert cache.stats() == {"max": 1, "size": 0, "hits": 0, "misses": 0, "evictions": 0}


def test_reset_stats_keeps_tables():
    cache = NormalizationCache()
    first = cache.get([2.0, 3.0], 3)
    cache.reset_stats()
    assert cache.get([2.0, 3.0], 3) is first
    assert cache.stats()["hits"] == 1
    assert cache.stats()["misses"] == 0
