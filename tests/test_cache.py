import threading

import pytest

from envmonitor.cache import ExpiringCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return ExpiringCache(default_ttl=300, cleanup_interval=600, clock=clock)


def test_get_missing_returns_default(cache):
    assert cache.get("absent") is None
    assert cache.get("absent", "fallback") == "fallback"


def test_set_then_get(cache):
    cache.set("key", {"value": 1})
    assert cache.get("key") == {"value": 1}
    assert "key" in cache


def test_entry_expires_after_ttl(cache, clock):
    cache.set("key", True, ttl=120)
    clock.advance(119)
    assert cache.get("key") is True
    clock.advance(2)
    assert cache.get("key") is None
    assert "key" not in cache


def test_default_ttl_used_for_none_and_zero(cache, clock):
    cache.set("a", 1)
    cache.set("b", 2, ttl=0)
    clock.advance(299)
    assert cache.get("a") == 1 and cache.get("b") == 2
    clock.advance(2)
    assert cache.get("a") is None
    assert cache.get("b") is None


def test_negative_ttl_never_expires(cache, clock):
    cache.set("forever", "x", ttl=-5)
    clock.advance(10 ** 6)
    assert cache.get("forever") == "x"


def test_delete(cache):
    cache.set("key", 1)
    cache.delete("key")
    cache.delete("never-set")
    assert "key" not in cache
    assert len(cache) == 0


def test_len_counts_only_live_entries(cache, clock):
    cache.set("short", 1, ttl=10)
    cache.set("long", 2, ttl=100)
    assert len(cache) == 2
    clock.advance(50)
    assert len(cache) == 1


def test_purge_returns_removed_count(cache, clock):
    cache.set("a", 1, ttl=10)
    cache.set("b", 2, ttl=10)
    cache.set("c", 3, ttl=1000)
    clock.advance(20)
    assert cache.purge() == 2
    assert cache.purge() == 0
    assert cache.get("c") == 3


def test_overwrite_refreshes_value_and_ttl(cache, clock):
    cache.set("key", "old", ttl=10)
    clock.advance(5)
    cache.set("key", "new", ttl=10)
    clock.advance(8)
    assert cache.get("key") == "new"


def test_concurrent_sets(cache):
    def worker(start):
        for n in range(start, start + 100):
            cache.set(n, n)

    threads = [threading.Thread(target=worker, args=(i * 100,)) for i in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert len(cache) == 400
    assert cache.get(250) == 250