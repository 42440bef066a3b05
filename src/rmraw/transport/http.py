"""
HTTP transport for the sync service.

Uses an httpx AsyncClient with bearer authentication. Idempotent requests
(root read, blob read, blob upload) are retried with exponential backoff on
transient failures. The root write is never retried here: a lost response
followed by a retry would surface as a conflict against our own write.
"""

from __future__ import annotations

from typing import Any

import httpx
import orjson
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from rmraw.codec import short_hash
from rmraw.config import Settings, get_settings
from rmraw.exceptions import (
    ConfigurationError,
    ConflictError,
    NotFoundError,
    ResponseError,
    ServiceUnavailableError,
    TransientTransportError,
    TransportConnectionError,
    TransportError,
    TransportTimeoutError,
)
from rmraw.logging import get_logger

logger = get_logger(__name__)

ROOT_READ_PATH = "/sync/v4/root"
ROOT_WRITE_PATH = "/sync/v3/root"
FILES_PATH = "/sync/v3/files"

RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})
PRECONDITION_FAILED = 412


def _log_retry(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Transient transport failure, backing off",
        attempt=retry_state.attempt_number,
        error=str(error),
    )


class HttpTransport:
    """Transport speaking the sync service's HTTP API.

    Use as an async context manager, or call close() when done.
    """

    def __init__(
        self,
        session_token: str,
        raw_host: str = "https://eu.tectonic.remarkable.com",
        timeout: float = 30.0,
        retry_attempts: int = 3,
        backoff_min: float = 0.5,
        backoff_max: float = 8.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            session_token: Session (user) token sent as a bearer token.
            raw_host: Base URL of the sync service.
            timeout: Per-request timeout in seconds.
            retry_attempts: Attempts for idempotent requests, including the first.
            backoff_min: Minimum wait between attempts in seconds.
            backoff_max: Maximum wait between attempts in seconds.
            client: Preconfigured httpx client (tests pass one with a mock transport).
        """
        if not session_token:
            raise ConfigurationError("HttpTransport requires a session token")
        self.raw_host = raw_host.rstrip("/")
        self.timeout = timeout
        self.retry_attempts = retry_attempts
        self.backoff_min = backoff_min
        self.backoff_max = backoff_max
        self._session_token = session_token
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> HttpTransport:
        """Build a transport from settings.

        Raises:
            ConfigurationError: If RM_SESSION_TOKEN is not set.
        """
        settings = settings or get_settings()
        if settings.session_token is None:
            raise ConfigurationError(
                "RM_SESSION_TOKEN is not set",
                context={"raw_host": settings.RM_RAW_HOST},
            )
        return cls(
            session_token=settings.session_token,
            raw_host=settings.RM_RAW_HOST,
            timeout=settings.REQUEST_TIMEOUT_SECONDS,
            retry_attempts=settings.TRANSPORT_RETRY_ATTEMPTS,
            backoff_min=settings.RETRY_BACKOFF_MIN_SECONDS,
            backoff_max=settings.RETRY_BACKOFF_MAX_SECONDS,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.raw_host,
                timeout=self.timeout,
                follow_redirects=True,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> HttpTransport:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            retry=retry_if_exception_type(TransientTransportError),
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(
                multiplier=self.backoff_min, min=self.backoff_min, max=self.backoff_max
            ),
            before_sleep=_log_retry,
            reraise=True,
        )

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Send one request and map failures onto the transport error taxonomy.

        Raises:
            TransportTimeoutError: On timeouts.
            TransportConnectionError: On connection failures and resets.
            ServiceUnavailableError: On 429 and retryable 5xx statuses.
            NotFoundError: On 404.
            ResponseError: On other error statuses.
            TransportError: On any other httpx failure.
        """
        client = await self._get_client()
        headers = {"Authorization": f"Bearer {self._session_token}", **kwargs.pop("headers", {})}
        context = {"method": method, "path": path}

        try:
            response = await client.request(method, path, headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            raise TransportTimeoutError(f"{method} {path} timed out", context=context) from e
        except (httpx.NetworkError, httpx.RemoteProtocolError) as e:
            raise TransportConnectionError(
                f"{method} {path} connection failed", context={**context, "error": str(e)}
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(
                f"{method} {path} failed", context={**context, "error": str(e)}
            ) from e

        status = response.status_code
        if status in RETRYABLE_STATUSES:
            raise ServiceUnavailableError(f"{method} {path} unavailable", status, context=context)
        if status == 404:
            raise NotFoundError(f"{method} {path} not found", status, context=context)
        if response.is_error:
            raise ResponseError(
                f"{method} {path} failed with {status}",
                status,
                context={**context, "response": response.text[:500] if response.text else None},
            )
        return response

    async def _send_idempotent(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        return await self._retrying()(self._send, method, path, **kwargs)

    async def get_root(self) -> bytes:
        """Fetch the root pointer JSON."""
        response = await self._send_idempotent("GET", ROOT_READ_PATH)
        return response.content

    async def put_root(self, hash: str, generation: int, broadcast: bool = True) -> bytes:
        """Compare-and-swap the root pointer. Not retried.

        Raises:
            ConflictError: If the service reports a generation mismatch (412).
        """
        body = {"hash": hash, "generation": generation, "broadcast": broadcast}
        try:
            response = await self._send(
                "PUT",
                ROOT_WRITE_PATH,
                content=orjson.dumps(body),
                headers={"Content-Type": "application/json"},
            )
        except ResponseError as e:
            if e.status_code == PRECONDITION_FAILED:
                raise ConflictError(
                    "Root generation changed since it was read",
                    context={"hash": short_hash(hash), "expected_generation": generation},
                ) from e
            raise
        return response.content

    async def get_file(self, hash: str) -> bytes:
        """Fetch the bytes stored under a hash."""
        response = await self._send_idempotent("GET", f"{FILES_PATH}/{hash}")
        return response.content

    async def put_file(self, hash: str, filename: str, data: bytes) -> None:
        """Upload bytes under their hash."""
        await self._send_idempotent(
            "PUT",
            f"{FILES_PATH}/{hash}",
            content=data,
            headers={"rm-filename": filename, "Content-Type": "application/octet-stream"},
        )
        logger.debug("Uploaded file", hash=short_hash(hash), filename=filename, size=len(data))
