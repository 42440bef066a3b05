"""
Collection index codec and content hashing.

Wire format (text, UTF-8, every line newline-terminated):

    3
    <hash>:<kind>:<id>:<subfiles>:<size>
    ...

Schema version 4 adds a summary line after the version:

    4
    0:<collection id>:<entry count>:<total size>
    <hash>:<kind>:<id>:<subfiles>:<size>
    ...

Entries are written in canonical order (ascending id). Decoding is strict:
anything unexpected raises MalformedCollectionError, never a partial result.
"""

from __future__ import annotations

import hashlib
import re
from collections.abc import Iterable, Sequence

from rmraw.exceptions import MalformedCollectionError
from rmraw.types import KNOWN_SCHEMA_VERSIONS, Collection, CollectionEntry, EntryKind

DELIMITER = ":"
ENTRY_FIELDS = 5
SUMMARY_FIELDS = 4
SUMMARY_MARKER = "0"

_HASH_RE = re.compile(r"^[0-9a-f]{64}$")
_UINT_RE = re.compile(r"^[0-9]+$")
_ENTRY_KINDS = {kind.value: kind for kind in EntryKind}


def is_hash(value: object) -> bool:
    """Whether value looks like a lowercase hex SHA-256 digest."""
    return isinstance(value, str) and _HASH_RE.match(value) is not None


def short_hash(value: str) -> str:
    """Abbreviate a hash for log output."""
    if len(value) <= 12:
        return value
    return f"{value[:8]}…{value[-4:]}"


def content_hash(data: bytes) -> str:
    """SHA-256 of exactly these bytes, hex encoded."""
    return hashlib.sha256(data).hexdigest()


def canonical_order(entries: Iterable[CollectionEntry]) -> list[CollectionEntry]:
    """Entries sorted the way they are encoded."""
    return sorted(entries, key=lambda entry: entry.id)


def legacy_collection_hash(entries: Sequence[CollectionEntry]) -> str:
    """Schema 3 collection hash: SHA-256 over the binary child hashes, in the given order."""
    hasher = hashlib.sha256()
    for entry in entries:
        hasher.update(bytes.fromhex(entry.hash))
    return hasher.hexdigest()


def collection_hash(collection: Collection) -> str:
    """Hash a collection the way the server does for its schema version."""
    if collection.schema_version == 3:
        return legacy_collection_hash(canonical_order(collection.entries))
    return content_hash(encode_collection(collection))


def collection_entry(collection: Collection, entry_id: str | None = None) -> CollectionEntry:
    """The entry a parent collection uses to point at this collection."""
    return CollectionEntry(
        hash=collection_hash(collection),
        kind=EntryKind.COLLECTION,
        id=collection.id if entry_id is None else entry_id,
        subfiles=len(collection.entries),
        size=collection.size,
    )


def file_entry(entry_id: str, data: bytes) -> CollectionEntry:
    """The entry a collection uses to point at a blob."""
    return CollectionEntry(
        hash=content_hash(data),
        kind=EntryKind.FILE,
        id=entry_id,
        subfiles=0,
        size=len(data),
    )


def _check_entry(entry: CollectionEntry) -> None:
    if not is_hash(entry.hash):
        raise MalformedCollectionError(
            "Entry hash is not a SHA-256 hex digest",
            context={"id": entry.id, "hash": entry.hash},
        )
    if not entry.id or any(ch in entry.id for ch in (DELIMITER, "\n", "\r")):
        raise MalformedCollectionError(
            "Entry id is empty or contains a reserved character",
            context={"id": entry.id},
        )
    if entry.subfiles < 0 or entry.size < 0:
        raise MalformedCollectionError(
            "Entry counts must be non-negative",
            context={"id": entry.id, "subfiles": entry.subfiles, "size": entry.size},
        )
    if entry.kind is EntryKind.FILE and entry.subfiles != 0:
        raise MalformedCollectionError(
            "File entries cannot have subfiles",
            context={"id": entry.id, "subfiles": entry.subfiles},
        )


def encode(
    entries: Iterable[CollectionEntry],
    schema_version: int = 3,
    collection_id: str = ".",
) -> bytes:
    """Encode entries as a canonical collection index.

    Args:
        entries: Entries in any order; they are written sorted by id.
        schema_version: Index schema version (3 or 4).
        collection_id: Id written on the schema 4 summary line.

    Returns:
        The index bytes.

    Raises:
        MalformedCollectionError: If an entry cannot be represented.
    """
    if schema_version not in KNOWN_SCHEMA_VERSIONS:
        raise MalformedCollectionError(
            f"Cannot encode schema version {schema_version}",
            context={"known": KNOWN_SCHEMA_VERSIONS},
        )

    ordered = canonical_order(entries)
    seen: set[str] = set()
    for entry in ordered:
        _check_entry(entry)
        if entry.id in seen:
            raise MalformedCollectionError("Duplicate entry id", context={"id": entry.id})
        seen.add(entry.id)

    lines = [str(schema_version)]
    if schema_version >= 4:
        if not collection_id or DELIMITER in collection_id or "\n" in collection_id:
            raise MalformedCollectionError(
                "Collection id is empty or contains a reserved character",
                context={"id": collection_id},
            )
        total = sum(entry.size for entry in ordered)
        lines.append(DELIMITER.join([SUMMARY_MARKER, collection_id, str(len(ordered)), str(total)]))
    for entry in ordered:
        lines.append(
            DELIMITER.join(
                [entry.hash, entry.kind.value, entry.id, str(entry.subfiles), str(entry.size)]
            )
        )
    return ("\n".join(lines) + "\n").encode("utf-8")


def encode_collection(collection: Collection) -> bytes:
    """Encode a Collection with its own schema version and id."""
    return encode(collection.entries, collection.schema_version, collection.id)


def _parse_uint(value: str, name: str, line_no: int) -> int:
    if not _UINT_RE.match(value):
        raise MalformedCollectionError(
            f"Field {name} is not a non-negative integer",
            context={"line": line_no, "value": value},
        )
    return int(value)


def _parse_entry(line: str, line_no: int) -> CollectionEntry:
    fields = line.split(DELIMITER)
    if len(fields) != ENTRY_FIELDS:
        raise MalformedCollectionError(
            f"Expected {ENTRY_FIELDS} fields, found {len(fields)}",
            context={"line": line_no},
        )
    hash_, kind_flag, entry_id, subfiles, size = fields
    if not is_hash(hash_):
        raise MalformedCollectionError(
            "Entry hash is not a SHA-256 hex digest",
            context={"line": line_no, "hash": hash_},
        )
    kind = _ENTRY_KINDS.get(kind_flag)
    if kind is None:
        raise MalformedCollectionError(
            "Unknown entry kind flag",
            context={"line": line_no, "kind": kind_flag},
        )
    if not entry_id:
        raise MalformedCollectionError("Entry id is empty", context={"line": line_no})
    return CollectionEntry(
        hash=hash_,
        kind=kind,
        id=entry_id,
        subfiles=_parse_uint(subfiles, "subfiles", line_no),
        size=_parse_uint(size, "size", line_no),
    )


def decode_collection(data: bytes, collection_id: str = ".") -> Collection:
    """Decode collection index bytes.

    Args:
        data: Raw index bytes.
        collection_id: Id to give a schema 3 collection, whose index does not
            carry one. Schema 4 indexes use the id on their summary line.

    Returns:
        The collection, entries in file order.

    Raises:
        MalformedCollectionError: On any deviation from the format.
    """
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedCollectionError("Collection index is not UTF-8") from e

    if not text.endswith("\n"):
        raise MalformedCollectionError("Collection index must end with a newline")
    lines = text[:-1].split("\n")

    header = lines[0]
    if not _UINT_RE.match(header) or int(header) not in KNOWN_SCHEMA_VERSIONS:
        raise MalformedCollectionError(
            "Unrecognized collection schema version",
            context={"line": 1, "header": header[:20], "known": KNOWN_SCHEMA_VERSIONS},
        )
    schema_version = int(header)

    body_start = 1
    summary: tuple[str, int, int] | None = None
    if schema_version >= 4:
        if len(lines) < 2:
            raise MalformedCollectionError("Missing summary line", context={"line": 2})
        fields = lines[1].split(DELIMITER)
        if len(fields) != SUMMARY_FIELDS or fields[0] != SUMMARY_MARKER or not fields[1]:
            raise MalformedCollectionError("Malformed summary line", context={"line": 2})
        summary = (
            fields[1],
            _parse_uint(fields[2], "count", 2),
            _parse_uint(fields[3], "size", 2),
        )
        body_start = 2

    entries: list[CollectionEntry] = []
    seen: set[str] = set()
    for offset, line in enumerate(lines[body_start:]):
        line_no = body_start + offset + 1
        if not line:
            raise MalformedCollectionError("Blank line in collection index", context={"line": line_no})
        entry = _parse_entry(line, line_no)
        if entry.id in seen:
            raise MalformedCollectionError(
                "Duplicate entry id", context={"line": line_no, "id": entry.id}
            )
        seen.add(entry.id)
        entries.append(entry)

    if summary is not None:
        collection_id, count, total = summary
        if count != len(entries) or total != sum(entry.size for entry in entries):
            raise MalformedCollectionError(
                "Summary line disagrees with entries",
                context={
                    "count": count,
                    "entries": len(entries),
                    "size": total,
                    "entries_size": sum(entry.size for entry in entries),
                },
            )

    return Collection(schema_version=schema_version, entries=tuple(entries), id=collection_id)


def decode(data: bytes) -> list[CollectionEntry]:
    """Decode collection index bytes into entries, in file order."""
    return list(decode_collection(data).entries)


def fetched_collection_hash(data: bytes, collection: Collection) -> str:
    """Hash fetched index bytes the way the server does.

    Schema 4 hashes the raw bytes as received. Schema 3 hashes the child hashes
    in file order. Neither re-serializes, so encoding drift shows up as a
    mismatch instead of being papered over.
    """
    if collection.schema_version == 3:
        return legacy_collection_hash(collection.entries)
    return content_hash(data)
