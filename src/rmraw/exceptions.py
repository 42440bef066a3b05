"""
Custom exception hierarchy for the raw store client.

All exceptions inherit from RawStoreError, which provides optional context
for structured error handling and logging.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from rmraw.types import EntityKind, FieldFailure


class RawStoreError(Exception):
    """Base exception for all raw store errors.

    Attributes:
        message: Human-readable error message.
        context: Optional structured context for logging/debugging.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class ConfigurationError(RawStoreError):
    """Raised when configuration is invalid or missing.

    Examples:
        - Missing session token for the HTTP transport
        - Unknown fallback schema version
    """

    pass


class MalformedCollectionError(RawStoreError):
    """Raised when collection index bytes cannot be decoded or encoded.

    Context should include:
        - line: 1-based line number of the offending line, if any
        - reason: What was wrong with it
    """

    pass


class IntegrityError(RawStoreError):
    """Raised when fetched bytes do not hash to the hash they were fetched by.

    Context should include:
        - expected: The requested hash
        - actual: The hash of the bytes received
    """

    pass


class ValidationError(RawStoreError):
    """Raised when a payload matches none of the schema variants for its kind.

    Attributes:
        kind: The entity kind that was being validated.
        failures: Variant tag -> field failures, in the order variants were tried.
    """

    def __init__(
        self,
        kind: EntityKind,
        failures: dict[str, list[FieldFailure]],
        context: dict[str, Any] | None = None,
    ) -> None:
        self.kind = kind
        self.failures = failures
        lines = [f"{kind.value} payload matched none of {len(failures)} schema variant(s)"]
        for variant, field_failures in failures.items():
            for failure in field_failures:
                lines.append(f"  [{variant}] {failure}")
        super().__init__("\n".join(lines), context)

    def failed_paths(self, variant: str) -> list[str]:
        """Paths that failed for one variant."""
        return [failure.path for failure in self.failures.get(variant, [])]


class ConflictError(RawStoreError):
    """Raised when a root compare-and-swap loses to a concurrent writer.

    Never retry the same write verbatim: re-read the root, recompute the
    mutation against it, then write again.

    Context should include:
        - hash: The hash that was being written
        - expected_generation: The generation the write was based on
    """

    pass


class TransportError(RawStoreError):
    """Raised when a request to the store fails below the protocol level.

    Only TransientTransportError subclasses are safe to retry.
    """

    transient: bool = False


class TransientTransportError(TransportError):
    """A transport failure that is safe to retry with backoff."""

    transient = True


class TransportTimeoutError(TransientTransportError):
    """The request timed out."""

    pass


class TransportConnectionError(TransientTransportError):
    """The connection failed or was reset."""

    pass


class ServiceUnavailableError(TransientTransportError):
    """The service answered 429 or a retryable 5xx status."""

    def __init__(
        self,
        message: str,
        status_code: int,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, {"status_code": status_code, **(context or {})})
        self.status_code = status_code


class ResponseError(TransportError):
    """The service answered with a non-retryable error status."""

    def __init__(
        self,
        message: str,
        status_code: int,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, {"status_code": status_code, **(context or {})})
        self.status_code = status_code


class NotFoundError(ResponseError):
    """The requested hash does not exist in the store."""

    pass
