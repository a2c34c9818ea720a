# app/utils/cache.py
"""Tiny per-process TTL cache with explicit invalidation and metrics."""

from __future__ import annotations

import time
from collections import OrderedDict
from threading import Lock
from typing import Any, Callable


class TTLCache:
    """Tiny per-process TTL cache with explicit invalidation.

    Values are stored and returned as-is; callers that need isolation must
    store immutable values.
    """

    def __init__(
        self,
        *,
        enabled: bool = True,
        ttl_seconds: float = 30,
        maxsize: int = 128,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the TTL cache.
        Args:
            enabled: Whether the cache is enabled
            ttl_seconds: Time-to-live for cache entries in seconds
            maxsize: Maximum number of entries in the cache
            clock: Monotonic time source in seconds
        """
        self.enabled = enabled and ttl_seconds > 0 and maxsize > 0
        self.ttl = float(ttl_seconds) if self.enabled else 0.0
        self.maxsize = max(1, maxsize) if self.enabled else 0
        self._clock = clock
        self._store: OrderedDict[Any, tuple[float, Any]] = OrderedDict()
        self._lock = Lock()

        # Metrics tracking
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._invalidations = 0

    def get(self, key: Any, loader: Callable[[], Any] | None = None) -> Any:
        """Get a cache entry by key, loading it if missing or expired."""
        if not self.enabled:
            self._misses += 1
            return loader() if loader else None

        now = self._clock()
        with self._lock:
            entry = self._store.get(key)
            if entry:
                expires_at, value = entry
                if expires_at > now:
                    self._hits += 1
                    self._store.move_to_end(key)
                    return value
                self._store.pop(key, None)
            self._misses += 1

        if loader is None:
            return None

        value = loader()
        self.set(key, value)
        return value

    def set(self, key: Any, value: Any) -> None:
        """Set a cache entry with the given key and value."""
        if not self.enabled:
            return
        with self._lock:
            if value is None:
                self._store.pop(key, None)
                return
            self._store[key] = (self._clock() + self.ttl, value)
            self._store.move_to_end(key)
            if len(self._store) > self.maxsize:
                self._store.popitem(last=False)
                self._evictions += 1

    def invalidate(self, key: Any) -> None:
        """Invalidate a specific cache entry by key."""
        with self._lock:
            self._invalidations += 1
            self._store.pop(key, None)

    def clear(self) -> None:
        """Clear the entire cache."""
        with self._lock:
            self._store.clear()

    def key_count(self) -> int:
        """Number of live (unexpired) entries."""
        now = self._clock()
        with self._lock:
            return sum(1 for expires_at, _ in self._store.values() if expires_at > now)

    def get_stats(self) -> dict[str, Any]:
        """
        Get cache statistics for monitoring.

        Returns:
            Dictionary with cache metrics including:
            - enabled: Whether cache is enabled
            - keys: Current number of live entries
            - maxsize: Maximum capacity
            - ttl_seconds: Time-to-live for entries
            - hits / misses / hit_rate: lookup outcomes
            - evictions: Number of evictions due to size limit
            - invalidations: Number of explicit invalidations
        """
        keys = self.key_count()
        with self._lock:
            hits = self._hits
            misses = self._misses
            evictions = self._evictions
            invalidations = self._invalidations

        total_requests = hits + misses
        hit_rate = (hits / total_requests * 100) if total_requests > 0 else 0.0

        return {
            "enabled": self.enabled,
            "keys": keys,
            "maxsize": self.maxsize,
            "ttl_seconds": self.ttl,
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hit_rate, 2),
            "evictions": evictions,
            "invalidations": invalidations,
        }


class CacheRegistry:
    """
    Registry of named TTLCache instances for diagnostics.

    Owned by the service container; the health API reads it.
    """

    def __init__(self) -> None:
        self._caches: dict[str, TTLCache] = {}
        self._registry_lock = Lock()

    def register(self, name: str, cache: TTLCache) -> None:
        """
        Register a cache for monitoring.

        Args:
            name: Unique identifier for the cache (e.g., "control_state")
            cache: TTLCache instance to register
        """
        with self._registry_lock:
            if name in self._caches:
                raise ValueError(f"Cache '{name}' is already registered")
            self._caches[name] = cache

    def get_all_stats(self) -> dict[str, dict[str, Any]]:
        with self._registry_lock:
            caches = dict(self._caches)
        return {name: cache.get_stats() for name, cache in caches.items()}

    def get_summary(self) -> dict[str, Any]:
        """Aggregate key count and hit rate across all registered caches."""
        all_stats = self.get_all_stats()
        total_hits = sum(stats["hits"] for stats in all_stats.values())
        total_misses = sum(stats["misses"] for stats in all_stats.values())
        total_requests = total_hits + total_misses
        overall_hit_rate = (total_hits / total_requests * 100) if total_requests > 0 else 0.0

        return {
            "total_caches": len(all_stats),
            "total_keys": sum(stats["keys"] for stats in all_stats.values()),
            "total_hits": total_hits,
            "total_misses": total_misses,
            "overall_hit_rate": round(overall_hit_rate, 2),
            "enabled_caches": sum(1 for stats in all_stats.values() if stats["enabled"]),
        }
