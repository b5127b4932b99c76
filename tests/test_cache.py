import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from prometheus_client import REGISTRY

from cache.core import CacheEntry, TTLCache
from cache.monitoring import CacheMonitor


def test_cache_basic_operations(cache):
    """Test set, get and delete."""
    cache.set("test_key", "test_value")
    assert cache.get("test_key") == ("test_value", True)

    assert cache.get("missing") == (None, False)

    assert cache.delete("test_key") is True
    assert cache.get("test_key") == (None, False)

    # Deleting an absent key is a no-op
    assert cache.delete("test_key") is False


def test_cached_falsy_value_is_a_hit(cache):
    cache.set("empty", ())
    assert cache.get("empty") == ((), True)


def test_entry_expires_at_deadline(cache, clock):
    cache.set("ttl_key", "ttl_value", ttl=10)

    clock.advance(9.5)
    assert cache.get("ttl_key") == ("ttl_value", True)

    clock.advance(0.5)
    assert cache.get("ttl_key") == (None, False)
    # Expired entry was removed on read
    assert len(cache) == 0


def test_default_ttl_applies(cache, clock):
    cache.set("key", "value")
    clock.advance(59)
    assert "key" in cache
    clock.advance(1)
    assert "key" not in cache


def test_overwrite_replaces_value_and_deadline(cache, clock):
    cache.set("key", "v1", ttl=5)
    clock.advance(4)
    cache.set("key", "v2", ttl=5)

    clock.advance(4)
    assert cache.get("key") == ("v2", True)
    clock.advance(1)
    assert cache.get("key") == (None, False)


def test_sweep_removes_only_expired(cache, clock):
    cache.set("short", 1, ttl=1)
    cache.set("long", 2, ttl=100)
    clock.advance(2)

    assert cache.sweep() == 1
    assert len(cache) == 1
    assert cache.get("long") == (2, True)


def test_size_readers_skip_expired_entries(cache, clock):
    cache.set("k", "v", ttl=1)
    cache.set("live", "v", ttl=100)
    clock.advance(2)

    assert "k" not in cache
    assert len(cache) == 1
    assert cache.get_stats()["size"] == 1

    clock.advance(100)
    assert len(cache) == 0
    assert cache.get_stats()["size"] == 0


def test_monitor_size_gauge_ignores_expired_entries(cache, clock):
    monitor = CacheMonitor(cache, cache_type="expiry_test")
    cache.set("k", "v", ttl=1)
    clock.advance(2)
    monitor.update_size()

    assert monitor.get_metrics_report()["cache_size"] == 0
    assert REGISTRY.get_sample_value("stake_cache_size", {"cache_type": "expiry_test"}) == 0


def test_max_size_evicts_entry_closest_to_expiry(clock):
    small_cache = TTLCache(default_ttl=60, max_size=3, clock=clock)
    small_cache.set("key1", "val1", ttl=30)
    small_cache.set("key2", "val2", ttl=10)
    small_cache.set("key3", "val3", ttl=50)

    small_cache.set("key4", "val4")
    assert len(small_cache) == 3
    assert small_cache.get("key2") == (None, False)
    assert small_cache.get("key1") == ("val1", True)

    # Overwriting an existing key never evicts
    small_cache.set("key1", "val1b")
    assert len(small_cache) == 3


def test_max_size_prefers_dropping_expired(clock):
    small_cache = TTLCache(default_ttl=60, max_size=2, clock=clock)
    small_cache.set("old", 1, ttl=1)
    small_cache.set("fresh", 2, ttl=5)
    clock.advance(2)

    small_cache.set("new", 3, ttl=1)
    assert small_cache.get("fresh") == (2, True)
    assert small_cache.get("new") == (3, True)


def test_invalid_max_size():
    with pytest.raises(ValueError):
        TTLCache(max_size=0)


def test_cache_entry_expiry():
    entry = CacheEntry(value="x", expires_at=10.0)
    assert not entry.is_expired(9.5)
    assert entry.is_expired(10.0)


def test_cache_stats(cache):
    """Test cache statistics."""
    cache.set("key1", "val1")
    cache.set("key2", "val2")
    cache.get("key1")  # Hit
    cache.get("key3")  # Miss

    stats = cache.get_stats()

    assert stats["size"] == 2
    assert stats["max_size"] == 100
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["hit_ratio"] == 0.5

    cache.clear()
    assert cache.get_stats()["size"] == 0
    assert cache.get_stats()["hits"] == 0


def test_monitor_report_reflects_cache(cache):
    monitor = CacheMonitor(cache, cache_type="test")
    cache.set("a", 1)
    cache.get("a")
    monitor.record_hit()
    monitor.update_size()

    report = monitor.get_metrics_report()
    assert report["cache_type"] == "test"
    assert report["cache_size"] == 1
    assert report["total_hits"] == 1


def test_concurrent_access_is_consistent():
    shared = TTLCache(default_ttl=60)
    errors = []

    def worker(n):
        try:
            for i in range(200):
                key = f"{n}:{i % 10}"
                shared.set(key, (n, i))
                value, found = shared.get(key)
                assert found
                assert isinstance(value, tuple) and len(value) == 2
                if i % 7 == 0:
                    shared.delete(key)
        except Exception as e:  # collected and asserted below
            errors.append(e)

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(worker, range(16)))

    assert errors == []
    assert len(shared) <= 160


def test_stats_read_during_writes():
    shared = TTLCache()
    barrier = threading.Barrier(2)

    def reader():
        barrier.wait()
        for _ in range(100):
            shared.get_stats()

    thread = threading.Thread(target=reader)
    thread.start()
    barrier.wait()
    for i in range(100):
        shared.set(str(i), i)
    thread.join()
    assert len(shared) == 100
