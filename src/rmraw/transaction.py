"""
Tree rewrites and the read-recompute-write loop.

rewrite_path() turns a change to one collection into a new top-level hash by
re-hashing every collection between it and the root. run_transaction() wraps
a mutation in the optimistic concurrency loop: read the root, compute the new
tree from it, compare-and-swap, and on conflict start over from a fresh read.

Example:
    >>> async def add_folder_entry(root):
    ...     return await rewrite_path(
    ...         client, root.hash, [folder_id], lambda c: c.with_entry(entry)
    ...     )
    >>> new_root = await run_transaction(client, add_folder_entry)
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import replace

from rmraw.client import RawStoreClient
from rmraw.codec import short_hash
from rmraw.exceptions import ConflictError
from rmraw.logging import get_logger, log_context
from rmraw.types import Collection, CollectionEntry, RootPointer, generate_id

logger = get_logger(__name__)

CollectionMutation = Callable[[Collection], Collection | Awaitable[Collection]]
RootMutation = Callable[[RootPointer], Awaitable[str]]


async def rewrite_path(
    client: RawStoreClient,
    root_hash: str,
    path: Sequence[str],
    mutate: CollectionMutation,
) -> str:
    """Apply mutate to the collection at path and re-hash its ancestors.

    Args:
        client: Client to read and upload collections with.
        root_hash: Hash of the top-level collection to start from.
        path: Entry ids of nested collections, outermost first. Empty means
            the top-level collection itself.
        mutate: Receives the collection at path and returns its replacement.
            May be a coroutine function.

    Returns:
        Hash of the new top-level collection. Nothing outside the rewritten
        path changes: every other entry keeps its hash.

    Raises:
        KeyError: If an id on the path does not exist.
        ValueError: If an id on the path is a file, not a collection.
    """
    collection = await client.get_entries(root_hash)
    chain: list[Collection] = [collection]
    pointers: list[CollectionEntry] = []

    for child_id in path:
        entry = collection.get(child_id)
        if entry is None:
            raise KeyError(f"No entry {child_id!r} in collection {collection.id!r}")
        if not entry.is_collection:
            raise ValueError(f"Entry {child_id!r} is a file, not a collection")
        collection = await client.get_entries(entry.hash, collection_id=child_id)
        chain.append(collection)
        pointers.append(entry)

    result = mutate(collection)
    if inspect.isawaitable(result):
        result = await result

    new_entry = await client.put_entries(result)
    for parent, old_pointer in zip(reversed(chain[:-1]), reversed(pointers)):
        pointer = replace(
            old_pointer,
            hash=new_entry.hash,
            subfiles=new_entry.subfiles,
            size=new_entry.size,
        )
        new_entry = await client.put_entries(parent.with_entry(pointer))

    logger.debug(
        "Rewrote path",
        path="/".join(path) or ".",
        old_root=short_hash(root_hash),
        new_root=short_hash(new_entry.hash),
    )
    return new_entry.hash


async def run_transaction(
    client: RawStoreClient,
    mutation: RootMutation,
    max_attempts: int = 3,
    broadcast: bool = True,
) -> RootPointer:
    """Advance the root with retry-on-conflict.

    Each attempt reads the root and calls mutation with it; mutation must
    compute the new top-level hash from that root, uploading whatever it needs.
    A conflict discards the attempt and the next one recomputes from a fresh
    read, so a concurrent writer's change is never overwritten.

    Args:
        client: Client to the store.
        mutation: Coroutine function mapping the current root to a new root hash.
        max_attempts: Attempts before giving up.
        broadcast: Ask the service to notify other devices.

    Returns:
        The root after the successful write (or the unchanged root if mutation
        returned the current hash).

    Raises:
        ConflictError: If every attempt lost to a concurrent writer.
        ValueError: If max_attempts is less than 1.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

    last_conflict: ConflictError | None = None
    with log_context(transaction_id=generate_id("txn"), operation="root-update"):
        for attempt in range(1, max_attempts + 1):
            root = await client.get_root()
            new_hash = await mutation(root)
            if new_hash == root.hash:
                logger.info("Mutation left the tree unchanged", generation=root.generation)
                return root

            try:
                generation = await client.put_root(new_hash, root.generation, broadcast)
            except ConflictError as e:
                last_conflict = e
                logger.warning(
                    "Root moved during transaction, recomputing",
                    attempt=attempt,
                    max_attempts=max_attempts,
                )
                continue

            return RootPointer(
                hash=new_hash,
                generation=generation,
                schema_version=root.schema_version,
            )

    raise ConflictError(
        "Root kept moving; transaction abandoned",
        context={"attempts": max_attempts},
    ) from last_conflict
