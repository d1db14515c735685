"""Tests for the AppView HTTP client."""

from unittest.mock import AsyncMock

import httpx
import pytest

from threadline.services.bluesky import (
    GET_POST_THREAD,
    RESOLVE_HANDLE,
    BlueskyClient,
    BlueskyConfig,
    get_bluesky_client,
    load_bluesky_config,
)
from threadline.services.errors import (
    BlockedError,
    MalformedResponseError,
    NotFoundError,
    RateLimitedError,
    TransientError,
)

CONFIG = BlueskyConfig(base_url="https://appview.test", timeout_seconds=5.0, user_agent="test")


def make_client(response: httpx.Response) -> BlueskyClient:
    return BlueskyClient(CONFIG, transport=httpx.MockTransport(lambda request: response))


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("response", "error"),
    [
        (httpx.Response(429, json={"error": "RateLimitExceeded"}), RateLimitedError),
        (httpx.Response(502, text="bad gateway"), TransientError),
        (httpx.Response(400, json={"error": "NotFound", "message": "Post not found"}), NotFoundError),
        (httpx.Response(400, json={"error": "InvalidRequest", "message": "Unable to resolve handle"}), NotFoundError),
        (httpx.Response(404, text="missing"), NotFoundError),
        (httpx.Response(400, json={"error": "BlockedByActor"}), BlockedError),
        (httpx.Response(400, json={"error": "InvalidRequest", "message": "bad uri"}), MalformedResponseError),
        (httpx.Response(200, text="not json"), MalformedResponseError),
        (httpx.Response(200, json=["a", "list"]), MalformedResponseError),
    ],
)
async def test_responses_map_to_fetch_errors(response: httpx.Response, error: type[Exception]) -> None:
    client = make_client(response)

    with pytest.raises(error):
        await client.get_post_thread("at://did:plc:a/app.bsky.feed.post/1", depth=1, parent_height=1)

    metrics = client.get_metrics()
    assert metrics["error_count"] == 1
    assert metrics["endpoint_counts"] == {GET_POST_THREAD: 1}


@pytest.mark.asyncio
async def test_network_failure_is_transient() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = BlueskyClient(CONFIG, transport=httpx.MockTransport(handler))

    with pytest.raises(TransientError):
        await client.resolve_handle("alice.test")

    assert client.get_metrics()["error_counts_by_type"] == {"network_error": 1}


@pytest.mark.asyncio
async def test_timeout_is_transient() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    client = BlueskyClient(CONFIG, transport=httpx.MockTransport(handler))

    with pytest.raises(TransientError):
        await client.resolve_handle("alice.test")

    assert client.get_metrics()["error_counts_by_type"] == {"timeout": 1}


@pytest.mark.asyncio
async def test_success_records_metrics() -> None:
    client = make_client(httpx.Response(200, json={"did": "did:plc:alice"}))

    payload = await client.resolve_handle("alice.test")

    assert payload == {"did": "did:plc:alice"}
    metrics = client.get_metrics()
    assert metrics["success_count"] == 1
    assert metrics["endpoint_counts"] == {RESOLVE_HANDLE: 1}
    await client.close()


@pytest.mark.asyncio
async def test_close_releases_client() -> None:
    client = make_client(httpx.Response(200, json={"did": "did:plc:alice"}))
    await client.resolve_handle("alice.test")
    inner = client._client
    assert inner is not None
    inner.aclose = AsyncMock()  # type: ignore[method-assign]

    await client.close()

    inner.aclose.assert_awaited_once()
    assert client._client is None


def test_config_from_settings(mocker) -> None:
    mocker.patch("threadline.services.bluesky.settings.bluesky_api_url", "https://appview.example/")

    config = load_bluesky_config()

    assert config.base_url == "https://appview.example"


def test_singleton() -> None:
    assert get_bluesky_client() is get_bluesky_client()
