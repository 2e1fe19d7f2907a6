"""
Cache Module

Cache collaborator used to memoize project metadata between calls.
The in-memory implementation supports TTL and LRU eviction.
"""

import time
from collections import OrderedDict
from dataclasses import dataclass
from threading import Lock
from typing import Any, Protocol, runtime_checkable

DEFAULT_TTL = 600.0


@runtime_checkable
class Cache(Protocol):
    """Protocol for a key/value cache."""

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None if absent or expired."""
        ...

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Store a value, expiring after ``ttl`` seconds."""
        ...

    def delete(self, key: str) -> bool:
        """Drop one entry, returning whether it was present."""
        ...

    def clear(self) -> None:
        """Drop every entry."""
        ...


@dataclass
class CacheEntry:
    """Cache entry with its expiry."""

    value: Any
    created_at: float
    ttl: float | None = None

    def is_expired(self) -> bool:
        if self.ttl is None:
            return False
        return time.time() > self.created_at + self.ttl


class MemoryCache:
    """
    Thread-safe in-memory cache with TTL and LRU eviction.

    One instance may back several project contexts at once.
    """

    def __init__(self, default_ttl: float | None = DEFAULT_TTL, max_size: int = 1024) -> None:
        """
        Initialize the cache.

        Args:
            default_ttl: Default TTL in seconds (None = no expiry).
            max_size: Maximum number of entries.
        """
        self._default_ttl = default_ttl
        self._max_size = max_size
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            if entry.is_expired():
                del self._entries[key]
                return None

            self._entries.move_to_end(key)
            return entry.value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        with self._lock:
            if key in self._entries:
                del self._entries[key]

            while len(self._entries) >= self._max_size:
                self._entries.popitem(last=False)

            self._entries[key] = CacheEntry(
                value=value,
                created_at=time.time(),
                ttl=ttl if ttl is not None else self._default_ttl,
            )

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    @property
    def size(self) -> int:
        """Current number of entries, expired ones included."""
        with self._lock:
            return len(self._entries)
