"""Follow a thread from a terminal by polling a running Threadline server.

``ThreadFollower`` is the second driver of the scheduling policy in
``threadline.services.polling`` (the browser script is the first). It owns
the timer and the HTTP calls; every decision comes from ``step``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
from pydantic import ValidationError

from threadline.models.thread import NewPosts, NoChange, PollCursor, PollResult, Stale, ThreadPost
from threadline.schemas.thread import ErrorResponse, PostResponse, ThreadResponse, UpdatesResponse
from threadline.services.errors import (
    MalformedResponseError,
    RateLimitedError,
    ThreadError,
    TransientError,
)
from threadline.services.polling import (
    CancelTimer,
    InsertPosts,
    Poll,
    PollAction,
    PollConfig,
    PollEvent,
    PollFailed,
    PollState,
    PollSucceeded,
    Schedule,
    Started,
    Stop,
    TimerFired,
    initial_state,
    step,
)

logger = logging.getLogger(__name__)

HTTP_OK = 200
HTTP_NO_CONTENT = 204
HTTP_TOO_MANY_REQUESTS = 429
HTTP_INTERNAL_SERVER_ERROR = 500

PostsCallback = Callable[[tuple[ThreadPost, ...]], None]


def to_thread_post(post: PostResponse) -> ThreadPost:
    return ThreadPost(
        uri=post.uri,
        cid=post.cid,
        text=post.text,
        created_at=post.created_at,
        reply_count=post.reply_count,
        repost_count=post.repost_count,
        like_count=post.like_count,
        quote_count=post.quote_count,
        langs=tuple(post.langs),
    )


def _error_for_status(response: httpx.Response) -> ThreadError:
    try:
        body = ErrorResponse.model_validate(response.json())
        message = body.message
    except (ValueError, ValidationError):
        message = f"server responded with {response.status_code}"
    if response.status_code == HTTP_TOO_MANY_REQUESTS:
        return RateLimitedError(message)
    if response.status_code >= HTTP_INTERNAL_SERVER_ERROR:
        return TransientError(message)
    return MalformedResponseError(message)


class ThreadFollower:
    """Poll ``/api/thread/updates`` and report new posts as they appear."""

    def __init__(
        self,
        base_url: str,
        *,
        config: PollConfig | None = None,
        on_posts: PostsCallback | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout_seconds: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.config = config or PollConfig()
        self._on_posts = on_posts or (lambda posts: None)
        self._clock = clock
        self._sleep = sleep
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
        )
        self._stopping = asyncio.Event()
        self.state: PollState | None = None

    async def __aenter__(self) -> ThreadFollower:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    def stop(self) -> None:
        """Ask ``run`` to return before its next action."""
        self._stopping.set()

    async def _get(self, path: str, params: dict[str, Any]) -> httpx.Response:
        try:
            response = await self._client.get(
                path, params=params, headers={"Accept": "application/json"}
            )
        except httpx.HTTPError as exc:
            raise TransientError(f"request to {path} failed: {exc}") from exc
        if response.status_code not in (HTTP_OK, HTTP_NO_CONTENT):
            raise _error_for_status(response)
        return response

    async def fetch_thread(self, handle: str, post_id: str) -> ThreadResponse:
        """Fetch the whole thread once."""
        response = await self._get("/api/thread", {"handle": handle, "post_id": post_id})
        try:
            return ThreadResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise MalformedResponseError("server returned an unexpected thread document") from exc

    async def poll_once(self, cursor: PollCursor) -> PollResult:
        """Ask the server for posts after ``cursor.last_cid``."""
        response = await self._get(
            "/api/thread/updates",
            {"handle": cursor.handle, "post_id": cursor.post_id, "since_cid": cursor.last_cid},
        )
        if response.status_code == HTTP_NO_CONTENT:
            if response.headers.get("X-Thread-Stale") == "true":
                return Stale()
            return NoChange()

        try:
            updates = UpdatesResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise MalformedResponseError("server returned an unexpected update document") from exc
        if not updates.posts:
            return NoChange()
        return NewPosts(
            posts=tuple(to_thread_post(post) for post in updates.posts),
            last_cid=response.headers.get("X-Last-CID") or updates.last_cid,
        )

    def _apply(self, event: PollEvent) -> tuple[PollAction, ...]:
        if self.state is None:
            raise RuntimeError("follower has not started")
        self.state, actions = step(self.state, event, self.config)
        return actions

    async def run(self, cursor: PollCursor) -> PollState:
        """Poll until the thread goes stale, the window closes, or ``stop``.

        Returns:
            The scheduler state at the time the loop ended
        """
        self._stopping.clear()
        self.state = initial_state(cursor, self.config, self._clock())
        pending = list(self._apply(Started(self._clock())))

        while pending and not self._stopping.is_set():
            action = pending.pop(0)
            if isinstance(action, Schedule):
                logger.debug("Next poll in %.1fs", action.delay)
                await self._sleep(action.delay)
                pending.extend(self._apply(TimerFired(self._clock())))
            elif isinstance(action, Poll):
                event: PollEvent
                try:
                    result = await self.poll_once(action.cursor)
                except ThreadError as exc:
                    logger.warning("Poll failed (%s): %s", exc.kind, exc.message)
                    event = PollFailed(self._clock())
                else:
                    event = PollSucceeded(self._clock(), result)
                pending.extend(self._apply(event))
            elif isinstance(action, InsertPosts):
                self._on_posts(action.posts)
            elif isinstance(action, Stop):
                logger.info("Stopped following %s/%s", cursor.handle, cursor.post_id)
                break
            elif isinstance(action, CancelTimer):
                continue
            else:
                raise TypeError(f"unexpected poll action {action!r}")

        return self.state
