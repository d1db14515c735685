"""Tests for the terminal thread follower."""

from __future__ import annotations

from typing import Any

import httpx
import pytest

from tests.factories import HANDLE
from threadline.models.thread import NewPosts, NoChange, PollCursor, Stale, ThreadPost
from threadline.services.errors import RateLimitedError
from threadline.services.follower import ThreadFollower
from threadline.services.polling import PollConfig

CURSOR = PollCursor(HANDLE, "p0", "cid-p0")
CONFIG = PollConfig(initial_interval=30.0, max_interval=120.0, disable_after=1800.0)


def post_json(key: str) -> dict[str, Any]:
    return {
        "uri": f"at://did:plc:alice/app.bsky.feed.post/{key}",
        "cid": f"cid-{key}",
        "post_id": key,
        "text": f"post {key}",
        "created_at": "2024-01-01T12:00:00Z",
        "langs": ["en"],
    }


class FakeClock:
    """Time that only moves when the follower sleeps."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.now += delay


def make_follower(responses: list[httpx.Response], clock: FakeClock, received: list[ThreadPost]) -> ThreadFollower:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return responses.pop(0)

    follower = ThreadFollower(
        "http://threadline.test/",
        config=CONFIG,
        on_posts=received.extend,
        transport=httpx.MockTransport(handler),
        clock=clock,
        sleep=clock.sleep,
    )
    follower.requests = requests  # type: ignore[attr-defined]
    return follower


@pytest.mark.asyncio
async def test_poll_once_interprets_responses() -> None:
    clock = FakeClock()
    responses = [
        httpx.Response(204),
        httpx.Response(204, headers={"X-Thread-Stale": "true"}),
        httpx.Response(
            200,
            json={"posts": [post_json("p1")], "last_cid": "cid-p1", "html": "<article></article>"},
            headers={"X-Last-CID": "cid-p1"},
        ),
    ]
    follower = make_follower(responses, clock, [])

    assert await follower.poll_once(CURSOR) == NoChange()
    assert await follower.poll_once(CURSOR) == Stale()
    result = await follower.poll_once(CURSOR)
    await follower.close()

    assert isinstance(result, NewPosts)
    assert result.last_cid == "cid-p1"
    assert result.posts[0].text == "post p1"
    request = follower.requests[0]  # type: ignore[attr-defined]
    assert request.url.path == "/api/thread/updates"
    assert request.url.params["since_cid"] == "cid-p0"
    assert request.headers["Accept"] == "application/json"


@pytest.mark.asyncio
async def test_poll_once_maps_errors() -> None:
    follower = make_follower(
        [httpx.Response(429, json={"error": "RateLimited", "title": "x", "message": "slow down"})],
        FakeClock(),
        [],
    )

    with pytest.raises(RateLimitedError, match="slow down"):
        await follower.poll_once(CURSOR)
    await follower.close()


@pytest.mark.asyncio
async def test_run_backs_off_reports_posts_and_stops_when_stale() -> None:
    clock = FakeClock()
    received: list[ThreadPost] = []
    responses = [
        httpx.Response(204),
        httpx.Response(503, json={"error": "Transient", "title": "x", "message": "down"}),
        httpx.Response(
            200,
            json={"posts": [post_json("p1")], "last_cid": "cid-p1", "html": ""},
            headers={"X-Last-CID": "cid-p1"},
        ),
        httpx.Response(204, headers={"X-Thread-Stale": "true"}),
    ]

    async with make_follower(responses, clock, received) as follower:
        state = await follower.run(CURSOR)

    assert clock.sleeps == [30.0, 45.0, 90.0, 30.0]
    assert [post.cid for post in received] == ["cid-p1"]
    assert state.stopped
    assert state.cursor.last_cid == "cid-p1"
    assert responses == []


@pytest.mark.asyncio
async def test_fetch_thread() -> None:
    body = {
        "author": {"did": "did:plc:alice", "handle": HANDLE},
        "posts": [post_json("p0"), post_json("p1")],
        "original_url": "https://bsky.app/profile/alice.test/post/p0",
    }
    follower = make_follower([httpx.Response(200, json=body)], FakeClock(), [])

    thread = await follower.fetch_thread(HANDLE, "p1")
    await follower.close()

    assert [post.cid for post in thread.posts] == ["cid-p0", "cid-p1"]
