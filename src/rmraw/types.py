"""
Core types for the raw store client.

This module defines the fundamental data structures used throughout the client:
- Enums for entry kinds and entity kinds
- Frozen dataclasses for immutable tree data (CollectionEntry, Collection, RootPointer)
- Validation results (ValidatedEntity, FieldFailure)
- Helper for ID generation
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from uuid6 import uuid7

# Collection index schema versions the codec can read and write.
KNOWN_SCHEMA_VERSIONS: tuple[int, ...] = (3, 4)


def generate_id(prefix: str = "") -> str:
    """Generate a time-ordered unique ID using UUID7.

    Args:
        prefix: Optional prefix for the ID (e.g., "txn")

    Returns:
        A unique ID string, optionally prefixed.
    """
    uid = str(uuid7())
    return f"{prefix}_{uid}" if prefix else uid


class EntryKind(str, Enum):
    """Wire flag of a collection entry."""

    FILE = "0"
    COLLECTION = "80000000"


class EntityKind(str, Enum):
    """Categories of JSON payloads the validator knows about."""

    METADATA = "metadata"
    DOCUMENT_CONTENT = "document_content"
    COLLECTION_CONTENT = "collection_content"
    CONTENT = "content"  # document or collection content, whichever matches
    ROOT = "root"
    ROOT_UPDATE = "root_update"


@dataclass(frozen=True)
class CollectionEntry:
    """One line of a collection index.

    For files, subfiles is 0 and size is the byte length of the blob. For
    sub-collections, subfiles is the child count and size the summed child size.
    """

    hash: str
    kind: EntryKind
    id: str
    subfiles: int
    size: int

    @property
    def is_collection(self) -> bool:
        return self.kind is EntryKind.COLLECTION


@dataclass(frozen=True)
class Collection:
    """An immutable collection: entries plus the schema version they are encoded with.

    Entries keep the order they were given (decoded collections keep file
    order). Derived collections returned by with_entry/without_entry are in
    canonical order, ascending by id.
    """

    schema_version: int
    entries: tuple[CollectionEntry, ...] = ()
    id: str = "."

    def get(self, entry_id: str) -> CollectionEntry | None:
        """Look up an entry by id."""
        for entry in self.entries:
            if entry.id == entry_id:
                return entry
        return None

    def with_entry(self, entry: CollectionEntry) -> Collection:
        """Return a copy with entry added, replacing any entry with the same id."""
        kept = [e for e in self.entries if e.id != entry.id]
        kept.append(entry)
        return Collection(
            schema_version=self.schema_version,
            entries=tuple(sorted(kept, key=lambda e: e.id)),
            id=self.id,
        )

    def without_entry(self, entry_id: str) -> Collection:
        """Return a copy without the entry with this id.

        Raises:
            KeyError: If no entry has this id.
        """
        if self.get(entry_id) is None:
            raise KeyError(entry_id)
        return Collection(
            schema_version=self.schema_version,
            entries=tuple(sorted((e for e in self.entries if e.id != entry_id), key=lambda e: e.id)),
            id=self.id,
        )

    @property
    def size(self) -> int:
        """Summed size of all entries."""
        return sum(entry.size for entry in self.entries)

    @property
    def ids(self) -> list[str]:
        return [entry.id for entry in self.entries]


@dataclass(frozen=True)
class RootPointer:
    """The mutable reference to the current tree state.

    generation only exists for optimistic concurrency; it is not a content version.
    """

    hash: str
    generation: int
    schema_version: int


@dataclass(frozen=True)
class FieldFailure:
    """Why one field failed one schema variant."""

    path: str
    expected: str
    actual: str

    def __str__(self) -> str:
        return f"{self.path or '<root>'}: expected {self.expected}, got {self.actual}"


@dataclass(frozen=True)
class ValidatedEntity:
    """A payload that matched one schema variant.

    payload is the object exactly as received unless normalized is True, in
    which case it is a rewritten copy. Treat it as read-only: cached entities
    are shared between callers.
    """

    kind: EntityKind
    variant: str
    payload: Any
    normalized: bool = False
    extra_keys: tuple[str, ...] = field(default_factory=tuple)

    def get(self, key: str, default: Any = None) -> Any:
        """Read a top-level field of an object payload."""
        if isinstance(self.payload, dict):
            return self.payload.get(key, default)
        return default

    def __getitem__(self, key: str) -> Any:
        return self.payload[key]
