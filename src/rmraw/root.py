"""
Root pointer reads and compare-and-swap writes.

The root is the only mutable state in the store. Writes succeed only if the
generation they were computed from is still current; a ConflictError means
another writer got there first, and the caller must re-read and recompute.
Nothing in this module retries.
"""

from __future__ import annotations

from rmraw.codec import is_hash, short_hash
from rmraw.exceptions import ConfigurationError, ConflictError, IntegrityError
from rmraw.logging import get_logger
from rmraw.schemas import SchemaValidator
from rmraw.transport.base import Transport
from rmraw.types import KNOWN_SCHEMA_VERSIONS, EntityKind, RootPointer

logger = get_logger(__name__)

# Schema version to assume for root variants that carry no schemaVersion.
# Servers that omit it have only been seen serving version 3 indexes; add a
# row per new variant rather than guessing.
ABSENT_SCHEMA_VERSION: dict[str, int] = {
    "root-legacy": 3,
}


class RootSynchronizer:
    """Reads and conditionally writes the root pointer."""

    def __init__(
        self,
        transport: Transport,
        validator: SchemaValidator | None = None,
        absent_schema_version: int | None = None,
    ) -> None:
        """Initialize the synchronizer.

        Args:
            transport: Transport to the sync service.
            validator: Validator for root payloads. Defaults to the standard registry.
            absent_schema_version: Override the ABSENT_SCHEMA_VERSION table when
                the caller knows which schema version an old server speaks.

        Raises:
            ConfigurationError: If the override is not a known schema version.
        """
        if absent_schema_version is not None and absent_schema_version not in KNOWN_SCHEMA_VERSIONS:
            raise ConfigurationError(
                "Unknown schema version",
                context={"absent_schema_version": absent_schema_version},
            )
        self.transport = transport
        self.validator = validator or SchemaValidator()
        self.absent_schema_version = absent_schema_version

    async def read(self) -> RootPointer:
        """Fetch the current root pointer.

        Returns:
            The root hash, its generation and the schema version in use.

        Raises:
            ValidationError: If the response matches no root variant.
            TransportError: If the request fails.
        """
        raw = await self.transport.get_root()
        entity = self.validator.validate_json(EntityKind.ROOT, raw)
        payload = entity.payload

        if "schemaVersion" in payload:
            schema_version = payload["schemaVersion"]
        elif self.absent_schema_version is not None:
            schema_version = self.absent_schema_version
        elif entity.variant in ABSENT_SCHEMA_VERSION:
            schema_version = ABSENT_SCHEMA_VERSION[entity.variant]
        else:
            raise ConfigurationError(
                "No schema version known for root variant",
                context={"variant": entity.variant},
            )

        root = RootPointer(
            hash=payload["hash"],
            generation=payload["generation"],
            schema_version=schema_version,
        )
        logger.debug(
            "Read root",
            hash=short_hash(root.hash),
            generation=root.generation,
            schema_version=root.schema_version,
            variant=entity.variant,
        )
        return root

    async def write(
        self,
        new_hash: str,
        expected_generation: int,
        broadcast: bool = True,
    ) -> int:
        """Compare-and-swap the root to new_hash.

        Args:
            new_hash: Hash of the new top-level collection. Must already be uploaded.
            expected_generation: Generation of the root new_hash was computed from.
            broadcast: Ask the service to notify other devices.

        Returns:
            The new generation.

        Raises:
            ValueError: If new_hash is not a hash or the generation is negative.
            ConflictError: If the root moved on since expected_generation. The
                write had no effect.
            IntegrityError: If the service acknowledged something other than
                this write.
            TransportError: If the request fails.
        """
        if not is_hash(new_hash):
            raise ValueError(f"Not a SHA-256 hex digest: {new_hash!r}")
        if expected_generation < 0:
            raise ValueError(f"Generation cannot be negative: {expected_generation}")

        try:
            raw = await self.transport.put_root(new_hash, expected_generation, broadcast)
        except ConflictError:
            logger.info(
                "Root write lost to a concurrent writer",
                hash=short_hash(new_hash),
                expected_generation=expected_generation,
            )
            raise

        ack = self.validator.validate_json(EntityKind.ROOT_UPDATE, raw)
        if ack["hash"] != new_hash or ack["generation"] <= expected_generation:
            raise IntegrityError(
                "Root write acknowledged a different state",
                context={
                    "expected": short_hash(new_hash),
                    "actual": short_hash(ack["hash"]),
                    "generation": ack["generation"],
                },
            )

        logger.info(
            "Root advanced",
            hash=short_hash(new_hash),
            generation=ack["generation"],
        )
        return ack["generation"]
