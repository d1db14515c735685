"""HTTP client for the Bluesky AppView.

This module provides the BlueskyClient class that performs the two XRPC
queries the thread reader needs:

- ``com.atproto.identity.resolveHandle`` to turn a handle into a DID
- ``app.bsky.feed.getPostThread`` to fetch a post with its context

HTTP and transport failures are translated into the fetch error taxonomy in
``threadline.services.errors``. The client never retries; retry policy
belongs to callers.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import defaultdict
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import httpx
from pydantic import ValidationError

from threadline.core.settings import settings
from threadline.schemas.bsky import XrpcErrorBody
from threadline.services.errors import (
    BlockedError,
    FetchError,
    MalformedResponseError,
    NotFoundError,
    RateLimitedError,
    TransientError,
)

# Configure logger for this module
logger = logging.getLogger(__name__)

# HTTP status codes
HTTP_OK = 200
HTTP_NOT_FOUND = 404
HTTP_TOO_MANY_REQUESTS = 429
HTTP_INTERNAL_SERVER_ERROR = 500

RESOLVE_HANDLE = "com.atproto.identity.resolveHandle"
GET_POST_THREAD = "app.bsky.feed.getPostThread"

_NOT_FOUND_ERRORS = frozenset({"NotFound", "ProfileNotFound", "RecordNotFound"})
_BLOCKED_ERRORS = frozenset({"BlockedActor", "BlockedByActor"})


@dataclass
class BlueskyMetrics:
    """Metrics collection for AppView requests."""

    request_count: int = 0
    success_count: int = 0
    error_count: int = 0
    total_response_time: float = 0.0
    max_response_time: float = 0.0
    error_counts_by_type: dict[str, int] = field(default_factory=lambda: defaultdict(int))
    endpoint_counts: dict[str, int] = field(default_factory=lambda: defaultdict(int))

    def record_request(
        self, endpoint: str, response_time: float, success: bool, error_type: str | None = None
    ) -> None:
        """Record a request metric."""
        self.request_count += 1
        self.total_response_time += response_time
        self.max_response_time = max(self.max_response_time, response_time)
        self.endpoint_counts[endpoint] += 1

        if success:
            self.success_count += 1
        else:
            self.error_count += 1
            if error_type:
                self.error_counts_by_type[error_type] += 1

    def get_average_response_time(self) -> float:
        """Get average response time."""
        return self.total_response_time / self.request_count if self.request_count > 0 else 0.0

    def snapshot(self) -> dict[str, Any]:
        return {
            "request_count": self.request_count,
            "success_count": self.success_count,
            "error_count": self.error_count,
            "average_response_time": self.get_average_response_time(),
            "max_response_time": self.max_response_time,
            "error_counts_by_type": dict(self.error_counts_by_type),
            "endpoint_counts": dict(self.endpoint_counts),
        }


@dataclass(frozen=True)
class BlueskyConfig:
    """Immutable configuration for AppView access."""

    base_url: str
    timeout_seconds: float
    user_agent: str


def load_bluesky_config() -> BlueskyConfig:
    """Build configuration object from global settings."""

    return BlueskyConfig(
        base_url=settings.bluesky_api_url.rstrip("/"),
        timeout_seconds=float(settings.request_timeout_seconds),
        user_agent=settings.user_agent,
    )


def _error_for_response(response: httpx.Response) -> FetchError:
    """Map a non-200 XRPC response onto the fetch error taxonomy."""
    status_code = response.status_code
    if status_code == HTTP_TOO_MANY_REQUESTS:
        return RateLimitedError()
    if status_code >= HTTP_INTERNAL_SERVER_ERROR:
        return TransientError(f"Bluesky responded with {status_code}")

    try:
        body = XrpcErrorBody.model_validate(response.json())
    except (ValueError, ValidationError):
        body = XrpcErrorBody()

    error = body.error or ""
    message = body.message or ""
    if error in _BLOCKED_ERRORS:
        return BlockedError()
    if (
        status_code == HTTP_NOT_FOUND
        or error in _NOT_FOUND_ERRORS
        or "not found" in message.lower()
        or "unable to resolve handle" in message.lower()
    ):
        return NotFoundError()
    return MalformedResponseError(
        f"Bluesky rejected the request ({status_code} {error or 'error'}): {message}".rstrip(": ")
    )


class BlueskyClient:
    """HTTP client wrapper for AppView interactions.

    The underlying ``httpx.AsyncClient`` is created lazily and shared by all
    concurrent requests; it holds no per-call state.
    """

    def __init__(
        self,
        config: BlueskyConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or load_bluesky_config()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()
        self._metrics = BlueskyMetrics()

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.config.base_url,
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                    headers={"User-Agent": self.config.user_agent},
                    transport=self._transport,
                )

        return self._client

    @dataclass
    class RequestParams:
        """Parameters for an XRPC query."""
        method: str
        params: Mapping[str, Any] | None = None

    async def _request(self, params: RequestParams) -> dict[str, Any]:
        client = await self._ensure_client()

        start_time = time.monotonic()
        endpoint = params.method
        success = False
        error_type = None

        try:
            try:
                response = await client.get(f"/xrpc/{params.method}", params=params.params)
            except httpx.TimeoutException as exc:
                error_type = "timeout"
                raise TransientError(f"Bluesky request timed out: {exc}") from exc
            except httpx.HTTPError as exc:
                error_type = "network_error"
                raise TransientError(f"Bluesky request failed: {exc}") from exc

            if response.status_code != HTTP_OK:
                error_type = f"http_{response.status_code}"
                raise _error_for_response(response)

            try:
                payload = response.json()
            except ValueError as exc:
                error_type = "invalid_json"
                raise MalformedResponseError("Bluesky returned invalid JSON") from exc
            if not isinstance(payload, dict):
                error_type = "invalid_json"
                raise MalformedResponseError("Bluesky returned an unexpected JSON document")

            success = True
            return payload
        finally:
            response_time = time.monotonic() - start_time
            self._metrics.record_request(endpoint, response_time, success, error_type)
            if not success:
                logger.warning(
                    "AppView %s failed after %.3fs (%s)", endpoint, response_time, error_type
                )
            else:
                logger.debug("AppView %s ok in %.3fs", endpoint, response_time)

    async def resolve_handle(self, handle: str) -> dict[str, Any]:
        """Resolve a handle; returns the raw ``resolveHandle`` body."""

        return await self._request(
            self.RequestParams(method=RESOLVE_HANDLE, params={"handle": handle})
        )

    async def get_post_thread(
        self, uri: str, *, depth: int, parent_height: int
    ) -> dict[str, Any]:
        """Fetch a post with context; returns the raw ``getPostThread`` body."""

        return await self._request(
            self.RequestParams(
                method=GET_POST_THREAD,
                params={"uri": uri, "depth": depth, "parentHeight": parent_height},
            )
        )

    def get_metrics(self) -> dict[str, Any]:
        """Get AppView request metrics."""
        return self._metrics.snapshot()

    async def close(self) -> None:
        """Clean up underlying HTTP client resources."""

        async with self._client_lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None


class _BlueskyClientSingleton:
    """Singleton wrapper for BlueskyClient."""

    _instance: BlueskyClient | None = None

    @classmethod
    def get_instance(cls) -> BlueskyClient:
        """Get or create the singleton BlueskyClient instance."""
        if cls._instance is None:
            cls._instance = BlueskyClient()
        return cls._instance


def get_bluesky_client() -> BlueskyClient:
    """Return a singleton AppView client instance."""
    return _BlueskyClientSingleton.get_instance()
