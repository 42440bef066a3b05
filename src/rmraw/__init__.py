"""
rmraw - hash-level client for a content-addressed document sync service.

Main entry points:
- RawStoreClient: fetch/validate by hash, list collections, upload, advance the root
- RootSynchronizer: root pointer reads and compare-and-swap writes
- SchemaValidator: multi-variant payload validation
- LRUCache: bounded cache for hash-keyed lookups
- run_transaction / rewrite_path: read-recompute-write helpers
"""

from rmraw.cache import LRUCache
from rmraw.client import RawStoreClient
from rmraw.root import RootSynchronizer
from rmraw.schemas import SchemaValidator
from rmraw.transaction import rewrite_path, run_transaction
from rmraw.types import (
    Collection,
    CollectionEntry,
    EntityKind,
    EntryKind,
    RootPointer,
    ValidatedEntity,
)

__version__ = "0.1.0"

__all__ = [
    "Collection",
    "CollectionEntry",
    "EntityKind",
    "EntryKind",
    "LRUCache",
    "RawStoreClient",
    "RootPointer",
    "RootSynchronizer",
    "SchemaValidator",
    "ValidatedEntity",
    "__version__",
    "rewrite_path",
    "run_transaction",
]
