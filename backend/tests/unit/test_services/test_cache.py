"""
Test TTL cache
"""

import pytest

from storekv.domain.kv_store import IMAGES_KEY
from storekv.services.cache import ALL_KEY, TTLCache


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return TTLCache(all_ttl=2.0, images_ttl=60.0, default_ttl=10.0, clock=clock)


def test_ttl_classes(cache):
    assert cache.ttl_for(ALL_KEY) == 2.0
    assert cache.ttl_for(IMAGES_KEY) == 60.0
    assert cache.ttl_for("cm_settings") == 10.0


def test_entry_expires_after_its_ttl(cache, clock):
    cache.set("x", "v")

    clock.now += 9.999
    assert cache.get("x") == "v"

    clock.now += 0.002
    assert cache.get("x") is None


def test_images_and_aggregate_use_their_own_ttl(cache, clock):
    cache.set(ALL_KEY, {"a": 1})
    cache.set(IMAGES_KEY, {"logo": "data:..."})

    clock.now += 5
    assert cache.get(ALL_KEY) is None
    assert cache.get(IMAGES_KEY) == {"logo": "data:..."}

    clock.now += 56
    assert cache.get(IMAGES_KEY) is None


def test_cached_none_is_distinguishable_from_a_miss(cache):
    missing = object()
    cache.set("absent_key", None)

    assert cache.get("absent_key", missing) is None
    assert cache.get("never_seen", missing) is missing


def test_invalidate_drops_key_and_aggregate(cache):
    cache.set("x", 1)
    cache.set("y", 2)
    cache.set(ALL_KEY, {"x": 1, "y": 2})

    cache.invalidate("x")

    assert cache.get("x") is None
    assert cache.get(ALL_KEY) is None
    assert cache.get("y") == 2


def test_flush(cache):
    cache.set("x", 1)
    cache.set(ALL_KEY, {})

    cache.flush()

    assert cache.stats().alive == 0


def test_stats(cache, clock):
    cache.set("x", 1)
    cache.set(ALL_KEY, {})
    cache.get("x")
    cache.get("missing")

    clock.now += 3
    stats = cache.stats()

    assert stats.hits == 1
    assert stats.misses == 1
    assert stats.alive == 1
    assert stats.expired == 1


def test_from_settings(test_settings):
    cache = TTLCache.from_settings(test_settings)

    assert cache.ttl_for(ALL_KEY) == test_settings.CACHE_ALL_TTL_SECONDS
    assert cache.ttl_for(IMAGES_KEY) == test_settings.CACHE_IMAGES_TTL_SECONDS


def test_stats_wire_names(cache):
    cache.set("x", 1)

    dumped = cache.stats().model_dump(by_alias=True)

    assert dumped == {"hits": 0, "misses": 0, "aliveCount": 1, "expiredCount": 0}
