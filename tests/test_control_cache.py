from datetime import datetime, timezone

from app.domain.control import ControlState
from app.services.application.control_cache import CONTROL_STATE_KEY, ControlCache
from app.utils.cache import CacheRegistry, TTLCache

NOW = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def test_entry_expires_after_ttl(control_cache, monotonic):
    state = ControlState.default(NOW).with_version(1)
    control_cache.put(state)

    monotonic.advance(4.9)
    assert control_cache.get() is state

    monotonic.advance(0.1)
    assert control_cache.get() is None


def test_invalidate_drops_entry(control_cache):
    control_cache.put(ControlState.default(NOW))

    control_cache.invalidate()

    assert control_cache.get() is None
    assert control_cache.stats()["invalidations"] == 1


def test_put_after_invalidation_is_dropped(control_cache):
    """A reader that loaded before a write must not cache the old document."""
    generation = control_cache.generation
    stale = ControlState.default(NOW).with_version(1)

    control_cache.invalidate()

    assert control_cache.put(stale, generation=generation) is False
    assert control_cache.get() is None
    assert control_cache.put(stale, generation=control_cache.generation) is True


def test_disabled_cache_always_misses(monotonic):
    cache = ControlCache(ttl_seconds=5, enabled=False, clock=monotonic)

    cache.put(ControlState.default(NOW))

    assert cache.get() is None
    assert cache.stats()["enabled"] is False


def test_zero_ttl_disables_cache(monotonic):
    cache = ControlCache(ttl_seconds=0, clock=monotonic)

    cache.put(ControlState.default(NOW))

    assert cache.get() is None


def test_registry_reports_control_cache(monotonic):
    registry = CacheRegistry()
    cache = ControlCache(ttl_seconds=5, registry=registry, clock=monotonic)
    cache.put(ControlState.default(NOW))
    cache.get()
    monotonic.advance(10)
    cache.get()

    stats = registry.get_all_stats()[CONTROL_STATE_KEY]
    summary = registry.get_summary()

    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["keys"] == 0
    assert summary["total_caches"] == 1
    assert summary["overall_hit_rate"] == 50.0


def test_ttl_cache_loader_and_eviction(monotonic):
    cache = TTLCache(ttl_seconds=30, maxsize=2, clock=monotonic)

    assert cache.get("a", loader=lambda: 1) == 1
    cache.set("b", 2)
    cache.set("c", 3)

    assert cache.get("a") is None
    assert cache.key_count() == 2
    assert cache.get_stats()["evictions"] == 1
