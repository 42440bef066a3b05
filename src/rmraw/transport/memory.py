"""
In-memory transport.

Behaves like the sync service for everything the client relies on: files are
stored by hash, the root pointer is compare-and-swapped on generation, and the
root starts out pointing at an empty collection. Useful offline and in tests.
"""

from __future__ import annotations

import asyncio
from collections import deque

import orjson

from rmraw.codec import collection_hash, encode_collection, short_hash
from rmraw.exceptions import ConflictError, NotFoundError, ResponseError
from rmraw.logging import get_logger
from rmraw.types import Collection

logger = get_logger(__name__)


class MemoryTransport:
    """Process-local stand-in for the sync service."""

    def __init__(self, schema_version: int = 3, report_schema_version: bool = True) -> None:
        """Initialize with an empty tree.

        Args:
            schema_version: Schema version of the initial root collection, and
                the value reported by get_root.
            report_schema_version: Include schemaVersion in get_root responses,
                as current servers do. Older servers omit it.
        """
        self.schema_version = schema_version
        self.report_schema_version = report_schema_version
        self.files: dict[str, bytes] = {}
        self.requests: list[tuple[str, str]] = []
        self._failures: dict[str, deque[Exception]] = {}

        empty_root = Collection(schema_version=schema_version)
        self.root_hash = collection_hash(empty_root)
        self.files[self.root_hash] = encode_collection(empty_root)
        self.generation = 0

    def fail_next(self, operation: str, error: Exception, times: int = 1) -> None:
        """Make the next calls to an operation raise error instead of running."""
        queue = self._failures.setdefault(operation, deque())
        queue.extend([error] * times)

    async def _enter(self, operation: str, target: str = "") -> None:
        self.requests.append((operation, target))
        # Let other tasks interleave, as they would around a network call.
        await asyncio.sleep(0)
        queue = self._failures.get(operation)
        if queue:
            raise queue.popleft()

    async def get_root(self) -> bytes:
        await self._enter("get_root")
        payload: dict[str, object] = {"hash": self.root_hash, "generation": self.generation}
        if self.report_schema_version:
            payload["schemaVersion"] = self.schema_version
        return orjson.dumps(payload)

    async def put_root(self, hash: str, generation: int, broadcast: bool = True) -> bytes:
        await self._enter("put_root", hash)
        if generation != self.generation:
            raise ConflictError(
                "Root generation changed since it was read",
                context={
                    "hash": short_hash(hash),
                    "expected_generation": generation,
                    "current_generation": self.generation,
                },
            )
        if hash not in self.files:
            raise ResponseError("Root hash was never uploaded", 400, context={"hash": hash})
        self.root_hash = hash
        self.generation += 1
        logger.debug("Root swapped", hash=short_hash(hash), generation=self.generation)
        return orjson.dumps({"hash": self.root_hash, "generation": self.generation})

    async def get_file(self, hash: str) -> bytes:
        await self._enter("get_file", hash)
        try:
            return self.files[hash]
        except KeyError:
            raise NotFoundError("No file stored under hash", 404, context={"hash": hash}) from None

    async def put_file(self, hash: str, filename: str, data: bytes) -> None:
        await self._enter("put_file", hash)
        self.files[hash] = bytes(data)

    async def close(self) -> None:
        return None
