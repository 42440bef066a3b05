"""
Base classes for caching.

Defines the interface RawStoreClient uses for memoizing immutable lookups and
the statistics every implementation reports.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Hashable
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class CacheStats:
    """Point-in-time cache counters."""

    hits: int
    misses: int
    evictions: int
    size: int
    capacity: int

    @property
    def hit_rate(self) -> float:
        """Fraction of lookups that hit, 0.0 when nothing was looked up."""
        lookups = self.hits + self.misses
        return self.hits / lookups if lookups else 0.0


class CacheProtocol(ABC):
    """Abstract interface for cache implementations.

    Methods are synchronous so that no caller can be suspended halfway through
    a mutation.
    """

    @abstractmethod
    def get(self, key: Hashable) -> Any | None:
        """Get a value from the cache, or None on a miss."""
        ...

    @abstractmethod
    def set(self, key: Hashable, value: Any) -> None:
        """Set a value in the cache."""
        ...

    @abstractmethod
    def has(self, key: Hashable) -> bool:
        """Check if a key is cached without touching its recency."""
        ...

    @abstractmethod
    def delete(self, key: Hashable) -> bool:
        """Delete a value from the cache. Returns whether it was present."""
        ...

    @abstractmethod
    def clear(self) -> None:
        """Drop every entry."""
        ...

    @abstractmethod
    def stats(self) -> CacheStats:
        """Current counters."""
        ...
