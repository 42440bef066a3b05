"""
Raw store client.

Composes the transport, codec, validator, root synchronizer and cache into
the operations a higher-level API is built from: fetch and validate entities
by hash, list a collection's entries, upload blobs and collections, and
advance the root.

Everything fetched by hash is verified against that hash before it is cached
or returned, so a cached value is always the content its key names.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import orjson

from rmraw.cache import CacheProtocol, LRUCache
from rmraw.codec import (
    canonical_order,
    collection_entry,
    content_hash,
    decode_collection,
    encode_collection,
    fetched_collection_hash,
    file_entry,
    short_hash,
)
from rmraw.config import Settings, get_settings
from rmraw.exceptions import IntegrityError
from rmraw.logging import get_logger
from rmraw.root import RootSynchronizer
from rmraw.schemas import SchemaValidator
from rmraw.transport.base import Transport
from rmraw.transport.http import HttpTransport
from rmraw.types import Collection, CollectionEntry, EntityKind, RootPointer, ValidatedEntity

logger = get_logger(__name__)

ROOT_FILENAME = "root.docSchema"


class RawStoreClient:
    """Hash-level access to the sync service.

    The cache is optional and owned by the caller; pass the same instance to
    several clients to share it, or a fresh one per test.
    """

    def __init__(
        self,
        transport: Transport,
        cache: CacheProtocol | None = None,
        validator: SchemaValidator | None = None,
        absent_schema_version: int | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            transport: Transport to the sync service.
            cache: Cache for hash-keyed lookups. None disables caching.
            validator: Schema validator. Defaults to the standard registry.
            absent_schema_version: Schema version to assume when the root
                response does not say.
        """
        self.transport = transport
        self.cache = cache
        self.validator = validator or SchemaValidator()
        self.root = RootSynchronizer(transport, self.validator, absent_schema_version)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> RawStoreClient:
        """Build an HTTP-backed client with an LRU cache sized from settings."""
        settings = settings or get_settings()
        return cls(
            transport=HttpTransport.from_settings(settings),
            cache=LRUCache(settings.CACHE_CAPACITY),
            absent_schema_version=settings.ABSENT_SCHEMA_VERSION,
        )

    async def close(self) -> None:
        """Close the transport."""
        await self.transport.close()

    async def __aenter__(self) -> RawStoreClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _cached(self, kind: str, hash: str) -> Any | None:
        if self.cache is None:
            return None
        value = self.cache.get((kind, hash))
        if value is not None:
            logger.debug("Cache hit", kind=kind, hash=short_hash(hash))
        return value

    def _remember(self, kind: str, hash: str, value: Any) -> None:
        if self.cache is not None:
            self.cache.set((kind, hash), value)

    def clear_cache(self) -> None:
        """Drop everything cached."""
        if self.cache is not None:
            self.cache.clear()

    # Root

    async def get_root(self) -> RootPointer:
        """Read the root pointer. Never cached."""
        return await self.root.read()

    async def put_root(self, hash: str, generation: int, broadcast: bool = True) -> int:
        """Compare-and-swap the root. See RootSynchronizer.write."""
        return await self.root.write(hash, generation, broadcast)

    # Reads

    async def _fetch_verified(self, hash: str) -> bytes:
        data = await self.transport.get_file(hash)
        actual = content_hash(data)
        if actual != hash:
            raise IntegrityError(
                "Fetched bytes do not match their hash",
                context={"expected": hash, "actual": actual},
            )
        return data

    async def get_file(self, hash: str) -> bytes:
        """Fetch a blob by hash.

        Raises:
            IntegrityError: If the bytes do not hash to hash.
            NotFoundError: If nothing is stored under hash.
        """
        cached = self._cached("file", hash)
        if cached is not None:
            return cached
        data = await self._fetch_verified(hash)
        self._remember("file", hash, data)
        return data

    async def get_text(self, hash: str) -> str:
        """Fetch a blob and decode it as UTF-8."""
        return (await self.get_file(hash)).decode("utf-8")

    async def get_entries(self, hash: str, collection_id: str = ".") -> Collection:
        """Fetch and decode a collection.

        Args:
            hash: Collection hash.
            collection_id: Id for schema 3 collections, whose index has none.

        Raises:
            MalformedCollectionError: If the index does not decode.
            IntegrityError: If the index does not hash to hash.
        """
        cached = self._cached("collection", hash)
        if cached is not None:
            return cached
        data = await self.transport.get_file(hash)
        collection = decode_collection(data, collection_id)
        actual = fetched_collection_hash(data, collection)
        if actual != hash:
            raise IntegrityError(
                "Fetched collection does not match its hash",
                context={
                    "expected": hash,
                    "actual": actual,
                    "schema_version": collection.schema_version,
                },
            )
        self._remember("collection", hash, collection)
        return collection

    async def get_entity(
        self,
        kind: EntityKind,
        hash: str,
        normalize: bool = False,
    ) -> ValidatedEntity:
        """Fetch a JSON blob and validate it as kind.

        Raises:
            IntegrityError: If the bytes do not hash to hash.
            ValidationError: If the payload matches no variant of kind.
        """
        cache_kind = f"{kind.value}+normalized" if normalize else kind.value
        cached = self._cached(cache_kind, hash)
        if cached is not None:
            return cached
        data = await self._fetch_verified(hash)
        entity = self.validator.validate_json(kind, data, normalize=normalize)
        self._remember(cache_kind, hash, entity)
        return entity

    async def get_metadata(self, hash: str) -> ValidatedEntity:
        """Fetch and validate a .metadata blob."""
        return await self.get_entity(EntityKind.METADATA, hash)

    async def get_content(self, hash: str, normalize: bool = False) -> ValidatedEntity:
        """Fetch and validate a .content blob of either a document or a folder."""
        return await self.get_entity(EntityKind.CONTENT, hash, normalize=normalize)

    # Writes

    async def put_file(self, entry_id: str, data: bytes) -> CollectionEntry:
        """Upload a blob.

        Args:
            entry_id: Id the blob will have in its collection, e.g. "<doc id>.pdf".
            data: Blob bytes.

        Returns:
            The entry to add to the parent collection.
        """
        entry = file_entry(entry_id, data)
        await self.transport.put_file(entry.hash, entry_id, data)
        self._remember("file", entry.hash, bytes(data))
        return entry

    async def put_entity(
        self,
        entry_id: str,
        kind: EntityKind,
        payload: Mapping[str, Any],
    ) -> CollectionEntry:
        """Validate and upload a JSON blob.

        Payloads are validated before upload so that nothing is written which
        this client would refuse to read back.

        Raises:
            ValidationError: If the payload matches no variant of kind.
        """
        self.validator.validate(kind, dict(payload))
        return await self.put_file(entry_id, orjson.dumps(dict(payload)))

    async def put_metadata(self, document_id: str, metadata: Mapping[str, Any]) -> CollectionEntry:
        """Upload the .metadata blob of a document or folder."""
        return await self.put_entity(f"{document_id}.metadata", EntityKind.METADATA, metadata)

    async def put_content(self, document_id: str, content: Mapping[str, Any]) -> CollectionEntry:
        """Upload the .content blob of a document or folder."""
        return await self.put_entity(f"{document_id}.content", EntityKind.CONTENT, content)

    async def put_entries(self, collection: Collection) -> CollectionEntry:
        """Encode and upload a collection.

        Returns:
            The entry a parent collection uses to point at it.

        Raises:
            MalformedCollectionError: If the collection cannot be encoded.
        """
        data = encode_collection(collection)
        entry = collection_entry(collection)
        filename = ROOT_FILENAME if collection.id == "." else f"{collection.id}.docSchema"
        await self.transport.put_file(entry.hash, filename, data)
        canonical = Collection(
            schema_version=collection.schema_version,
            entries=tuple(canonical_order(collection.entries)),
            id=collection.id,
        )
        self._remember("collection", entry.hash, canonical)
        logger.debug(
            "Uploaded collection",
            id=collection.id,
            hash=short_hash(entry.hash),
            entries=entry.subfiles,
        )
        return entry
