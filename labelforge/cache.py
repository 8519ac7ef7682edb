"""TTL-bounded in-memory store.

Used for provider detection results. The store is created by its owner
and injected, never module-global, so tests can swap in a fake clock.

Expiry policy: an entry is valid for `ttl` seconds after it was set.
Expired entries are dropped lazily on get() or eagerly via
purge_expired(); clear() resets the store.
"""

import threading
import time
from collections.abc import Callable
from typing import Any

Clock = Callable[[], float]


class TTLCache:
    """Thread-safe key/value store with per-entry expiry.

    Example:
        cache = TTLCache(ttl=3600)
        cache.set("example.com", "gmail")
        cache.get("example.com")  # "gmail" for the next hour
    """

    def __init__(self, ttl: float, clock: Clock = time.monotonic):
        """Initialize the cache.

        Args:
            ttl: Lifetime of each entry in seconds.
            clock: Returns the current time in seconds. Defaults to
                   time.monotonic.
        """
        if ttl <= 0:
            raise ValueError("ttl must be positive")

        self._ttl = ttl
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}
        self._lock = threading.Lock()

    @property
    def ttl(self) -> float:
        return self._ttl

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None if missing or expired."""
        with self._lock:
            item = self._entries.get(key)
            if item is None:
                return None

            expires_at, value = item
            if self._clock() >= expires_at:
                del self._entries[key]
                return None

            return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._entries[key] = (self._clock() + self._ttl, value)

    def purge_expired(self) -> int:
        """Drop all expired entries.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            now = self._clock()
            expired = [k for k, (exp, _) in self._entries.items() if now >= exp]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
