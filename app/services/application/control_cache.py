"""
Control Document Cache
======================

Single-entry, time-boxed cache in front of the control document store.

Entries are frozen :class:`~app.domain.control.ControlState` snapshots, so a
reader can never alter what the next reader sees. Writers persist first and
then call :meth:`ControlCache.invalidate`; the next read repopulates from the
store.

Every invalidation bumps a generation counter. A reader that loaded from the
store passes the generation it observed *before* loading to :meth:`put`; if a
write was invalidated in between, the put is dropped instead of caching a
superseded document.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Optional

from app.domain.control import ControlState
from app.utils.cache import CacheRegistry, TTLCache

logger = logging.getLogger(__name__)

CONTROL_STATE_KEY = "control_state"


class ControlCache:
    """Cache-aside holder for the control document."""

    def __init__(
        self,
        *,
        ttl_seconds: float = 5,
        enabled: bool = True,
        registry: Optional[CacheRegistry] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._cache = TTLCache(enabled=enabled, ttl_seconds=ttl_seconds, maxsize=1, clock=clock)
        self._generation = 0
        self._lock = threading.Lock()
        if registry is not None:
            registry.register(CONTROL_STATE_KEY, self._cache)

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def get(self) -> Optional[ControlState]:
        """Return the cached snapshot, or None on a miss."""
        return self._cache.get(CONTROL_STATE_KEY)

    def put(self, state: ControlState, *, generation: Optional[int] = None) -> bool:
        """Cache ``state``. Returns False if an invalidation happened since ``generation``."""
        with self._lock:
            if generation is not None and generation != self._generation:
                logger.debug("Dropped stale control state (version %s)", state.version)
                return False
            self._cache.set(CONTROL_STATE_KEY, state)
            return True

    def invalidate(self) -> None:
        with self._lock:
            self._generation += 1
            self._cache.invalidate(CONTROL_STATE_KEY)
        logger.debug("Control state cache invalidated")

    def stats(self) -> dict[str, Any]:
        stats = self._cache.get_stats()
        stats["generation"] = self.generation
        return stats
