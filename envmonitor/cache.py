"""A thread-safe in-memory cache whose entries expire."""

import threading
import time
from collections.abc import Callable, Hashable
from typing import Any, Optional

DEFAULT_TTL = 5 * 60.0
CLEANUP_INTERVAL = 10 * 60.0


class ExpiringCache:
    """Key/value store with per-entry lifetimes in seconds.

    A ``ttl`` of ``None`` or ``0`` uses the default lifetime; a negative
    ``ttl`` keeps the entry until it is deleted.
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL,
        cleanup_interval: float = CLEANUP_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._default_ttl = default_ttl
        self._cleanup_interval = cleanup_interval
        self._clock = clock
        self._items: dict[Hashable, tuple[Any, Optional[float]]] = {}
        self._lock = threading.Lock()
        self._next_cleanup = clock() + cleanup_interval if cleanup_interval > 0 else None

    def _expired(self, expires_at: Optional[float], now: float) -> bool:
        return expires_at is not None and now > expires_at

    def _purge_locked(self, now: float) -> int:
        stale = [key for key, (_, exp) in self._items.items() if self._expired(exp, now)]
        for key in stale:
            del self._items[key]
        return len(stale)

    def _maybe_cleanup(self, now: float) -> None:
        if self._next_cleanup is not None and now >= self._next_cleanup:
            self._purge_locked(now)
            self._next_cleanup = now + self._cleanup_interval

    def get(self, key: Hashable, default: Any = None) -> Any:
        with self._lock:
            now = self._clock()
            self._maybe_cleanup(now)
            item = self._items.get(key)
            if item is None:
                return default
            value, expires_at = item
            if self._expired(expires_at, now):
                del self._items[key]
                return default
            return value

    def set(self, key: Hashable, value: Any, ttl: Optional[float] = None) -> None:
        with self._lock:
            now = self._clock()
            self._maybe_cleanup(now)
            if ttl is None or ttl == 0:
                ttl = self._default_ttl
            expires_at = now + ttl if ttl > 0 else None
            self._items[key] = (value, expires_at)

    def delete(self, key: Hashable) -> None:
        with self._lock:
            self._items.pop(key, None)

    def purge(self) -> int:
        """Drop every expired entry and return how many were dropped."""
        with self._lock:
            return self._purge_locked(self._clock())

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            item = self._items.get(key)
            return item is not None and not self._expired(item[1], self._clock())

    def __len__(self) -> int:
        with self._lock:
            now = self._clock()
            return sum(1 for _, exp in self._items.values() if not self._expired(exp, now))