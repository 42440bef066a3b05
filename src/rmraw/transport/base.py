"""
Transport interface for the sync service.

Transports move bytes. They do not parse or validate payloads; that is the
job of the client and the schema validator. They do map failures onto the
rmraw exception taxonomy so the client can tell transient failures, missing
hashes and root conflicts apart.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Transport(Protocol):
    """Protocol for sync service transports."""

    async def get_root(self) -> bytes:
        """Fetch the root pointer as raw JSON.

        Returns:
            JSON text of {hash, generation} or {hash, generation, schemaVersion}.

        Raises:
            TransportError: If the request fails.
        """
        ...

    async def put_root(self, hash: str, generation: int, broadcast: bool = True) -> bytes:
        """Compare-and-swap the root pointer.

        Args:
            hash: New root hash.
            generation: Generation the new root was computed from.
            broadcast: Ask the service to notify other devices.

        Returns:
            JSON text of {hash, generation} with the new generation.

        Raises:
            ConflictError: If generation is no longer current.
            TransportError: If the request fails.
        """
        ...

    async def get_file(self, hash: str) -> bytes:
        """Fetch the bytes stored under a hash.

        Raises:
            NotFoundError: If nothing is stored under the hash.
            TransportError: If the request fails.
        """
        ...

    async def put_file(self, hash: str, filename: str, data: bytes) -> None:
        """Store bytes under their hash.

        Raises:
            TransportError: If the request fails.
        """
        ...

    async def close(self) -> None:
        """Close any open connections."""
        ...
