"""
Cache package for hash-keyed lookups.

This package provides:
- CacheProtocol (base.py): Interface the client depends on
- LRUCache (lru.py): Bounded in-memory cache with least-recently-used eviction

Keys are content hashes, so cached values never go stale; capacity pressure
is the only reason an entry leaves the cache.
"""

from rmraw.cache.base import CacheProtocol, CacheStats
from rmraw.cache.lru import LRUCache

__all__ = [
    "CacheProtocol",
    "CacheStats",
    "LRUCache",
]
