"""
Bounded least-recently-used cache.

Backed by an OrderedDict whose order is recency: the first key is the least
recently used. Every operation runs under a lock and never awaits, so
interleaved coroutines and threads see a consistent order and size.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from collections.abc import Hashable
from typing import Any

from rmraw.cache.base import CacheProtocol, CacheStats


class LRUCache(CacheProtocol):
    """Fixed-capacity cache evicting the least recently used entry.

    Example:
        >>> cache = LRUCache(2)
        >>> cache.set("a", 1); cache.set("b", 2); cache.set("c", 3)
        >>> cache.has("a")
        False
    """

    def __init__(self, capacity: int) -> None:
        """Initialize the cache.

        Args:
            capacity: Maximum number of entries; must be at least 1.

        Raises:
            ValueError: If capacity is less than 1.
        """
        if capacity < 1:
            raise ValueError(f"LRUCache capacity must be at least 1, got {capacity}")
        self._capacity = capacity
        self._entries: OrderedDict[Hashable, Any] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def get(self, key: Hashable) -> Any | None:
        """Return the cached value and mark it most recently used, or None."""
        with self._lock:
            if key not in self._entries:
                self._misses += 1
                return None
            self._entries.move_to_end(key)
            self._hits += 1
            return self._entries[key]

    def set(self, key: Hashable, value: Any) -> None:
        """Insert or overwrite, mark most recently used, evict one entry if over capacity."""
        if value is None:
            raise ValueError("LRUCache cannot store None; None means a miss")
        with self._lock:
            self._entries[key] = value
            self._entries.move_to_end(key)
            if len(self._entries) > self._capacity:
                self._entries.popitem(last=False)
                self._evictions += 1

    def has(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._entries

    def delete(self, key: Hashable) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def keys(self) -> list[Hashable]:
        """Keys from least to most recently used."""
        with self._lock:
            return list(self._entries)

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
                size=len(self._entries),
                capacity=self._capacity,
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries
