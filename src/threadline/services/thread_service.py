"""Self-reply thread reconstruction.

A thread is the chain of posts in which an author replies to their own
previous post. The AppView only answers shallow questions ("this post, its
parent, its direct replies"), so the chain is rebuilt with explicit loops:

1. Locate the root by walking parent links one fetch at a time while the
   parent has the same author.
2. Walk forward from the root, following the first same-author reply in the
   order the AppView returns them.

Both walks keep their position in a local variable; nothing recurses over
response structures. Streaming is an async generator, so no fetch happens
unless the consumer pulls and closing the generator stops the walk.
"""

from __future__ import annotations

import logging
import re
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum

from threadline.core.settings import settings
from threadline.models.thread import (
    Author,
    Done,
    Header,
    NewPosts,
    NoChange,
    PollCursor,
    PollResult,
    PostContext,
    PostEvent,
    Stale,
    StreamEvent,
    Thread,
    ThreadPost,
    build_post_uri,
)
from threadline.services.context_fetcher import ContextSource, get_context_fetcher
from threadline.services.errors import InvalidInputError, MalformedResponseError, ThreadError

logger = logging.getLogger(__name__)

DEFAULT_MAX_ROOT_HOPS = 1000

_HANDLE_PATTERN = re.compile(
    r"^(did:[a-z]+:[A-Za-z0-9._:%-]+|[A-Za-z0-9]([A-Za-z0-9-]{0,61}[A-Za-z0-9])?"
    r"(\.[A-Za-z0-9]([A-Za-z0-9-]{0,61}[A-Za-z0-9])?)+)$"
)
_RECORD_KEY_PATTERN = re.compile(r"^[A-Za-z0-9._:~-]{1,512}$")


class WalkPhase(Enum):
    """Phases of a single thread walk."""

    RESOLVING_HANDLE = "resolving_handle"
    LOCATING_ROOT = "locating_root"
    WALKING_FORWARD = "walking_forward"
    COMPLETE = "complete"
    FAILED = "failed"


_TRANSITIONS: dict[WalkPhase, frozenset[WalkPhase]] = {
    WalkPhase.RESOLVING_HANDLE: frozenset({WalkPhase.LOCATING_ROOT, WalkPhase.FAILED}),
    WalkPhase.LOCATING_ROOT: frozenset({WalkPhase.WALKING_FORWARD, WalkPhase.FAILED}),
    WalkPhase.WALKING_FORWARD: frozenset(
        {WalkPhase.WALKING_FORWARD, WalkPhase.COMPLETE, WalkPhase.FAILED}
    ),
    WalkPhase.COMPLETE: frozenset(),
    WalkPhase.FAILED: frozenset(),
}


class InvalidTransitionError(RuntimeError):
    """Raised when a walk is moved to a phase it cannot reach."""


@dataclass
class ThreadWalk:
    """Mutable state owned by one assembly; never shared between requests."""

    handle: str
    post_id: str
    phase: WalkPhase = WalkPhase.RESOLVING_HANDLE
    history: list[WalkPhase] = field(default_factory=list)
    posts_emitted: int = 0

    @property
    def finished(self) -> bool:
        return self.phase in (WalkPhase.COMPLETE, WalkPhase.FAILED)

    def advance(self, phase: WalkPhase) -> None:
        if phase not in _TRANSITIONS[self.phase]:
            raise InvalidTransitionError(f"cannot move from {self.phase.value} to {phase.value}")
        self.history.append(self.phase)
        self.phase = phase


def validate_thread_request(handle: str, post_id: str) -> None:
    """Reject malformed handles and record keys before any fetch.

    Raises:
        InvalidInputError: If either value cannot address a post
    """
    if not handle or not _HANDLE_PATTERN.match(handle):
        raise InvalidInputError(f"Invalid handle: {handle!r}")
    if not post_id or not _RECORD_KEY_PATTERN.match(post_id):
        raise InvalidInputError(f"Invalid post id: {post_id!r}")


def diff_since(
    thread: Thread,
    last_cid: str,
    *,
    now: datetime,
    stale_after: timedelta | None,
) -> PollResult:
    """Compare a freshly assembled thread against a client watermark.

    Posts after the one whose CID is ``last_cid`` are new. An unknown
    watermark yields ``NoChange`` rather than replaying the whole chain.
    """
    cids = [post.cid for post in thread.posts]
    new_posts: tuple[ThreadPost, ...] = ()
    if last_cid in cids:
        new_posts = thread.posts[cids.index(last_cid) + 1 :]

    if new_posts:
        return NewPosts(posts=new_posts, last_cid=new_posts[-1].cid)
    if stale_after is not None and now - thread.last.created_at > stale_after:
        return Stale()
    return NoChange()


class ThreadAssembler:
    """Rebuild self-reply threads from shallow post contexts."""

    def __init__(
        self,
        source: ContextSource,
        *,
        max_root_hops: int = DEFAULT_MAX_ROOT_HOPS,
        stale_after: timedelta | None = None,
    ) -> None:
        self._source = source
        self._max_root_hops = max_root_hops
        self._stale_after = stale_after

    async def _locate_root_context(self, start: str) -> PostContext:
        current = start
        visited: set[str] = set()
        hops = 0
        while True:
            context = await self._source.fetch(current)
            visited.add(current)
            visited.add(context.post.uri)

            parent = context.same_author_parent()
            if parent is None:
                if hops:
                    logger.debug("Root of %s is %s (%d hops)", start, context.post.uri, hops)
                return context

            if parent.post.uri in visited:
                raise MalformedResponseError(f"parent chain of {start} loops back on itself")
            if hops >= self._max_root_hops:
                raise MalformedResponseError(
                    f"gave up locating the root of {start} after {hops} hops"
                )
            hops += 1
            current = parent.post.uri

    async def locate_root(self, start: str) -> str:
        """Return the URI of the first post of the chain containing ``start``."""
        context = await self._locate_root_context(start)
        return context.post.uri

    async def _walk_from(
        self, root: PostContext, walk: ThreadWalk | None = None
    ) -> AsyncIterator[ThreadPost]:
        author_did = root.author.did
        context = root
        visited: set[str] = set()
        while True:
            visited.add(context.post.uri)
            yield context.post

            reply = context.first_reply_by(author_did)
            if reply is None:
                return
            if reply.post.uri in visited:
                raise MalformedResponseError(f"reply chain loops back to {reply.post.uri}")

            if walk is not None:
                walk.advance(WalkPhase.WALKING_FORWARD)
            context = await self._source.fetch(reply.post.uri)

    async def walk_forward(self, root: str) -> AsyncIterator[ThreadPost]:
        """Yield the chain starting at ``root``, one fetch per post."""
        context = await self._source.fetch(root)
        async for post in self._walk_from(context):
            yield post

    async def stream_thread(
        self, handle: str, post_id: str, *, walk: ThreadWalk | None = None
    ) -> AsyncIterator[StreamEvent]:
        """Yield ``Header``, then each post in chain order, then ``Done``.

        A failure raises out of the iterator and ``Done`` is never produced,
        so consumers must treat an iterator that ends without ``Done`` as a
        failed assembly.
        """
        walk = walk or ThreadWalk(handle=handle, post_id=post_id)
        try:
            validate_thread_request(handle, post_id)
            did = await self._source.resolve_handle(handle)

            walk.advance(WalkPhase.LOCATING_ROOT)
            root = await self._locate_root_context(build_post_uri(did, post_id))

            walk.advance(WalkPhase.WALKING_FORWARD)
            yield Header(author=root.author)

            async for post in self._walk_from(root, walk):
                walk.posts_emitted += 1
                yield PostEvent(post=post)

            walk.advance(WalkPhase.COMPLETE)
        except ThreadError as exc:
            walk.advance(WalkPhase.FAILED)
            logger.warning(
                "Thread %s/%s failed after %d posts: %s (%s)",
                handle,
                post_id,
                walk.posts_emitted,
                exc.message,
                exc.kind,
            )
            raise

        yield Done()

    async def assemble_thread(self, handle: str, post_id: str) -> Thread:
        """Collect the whole chain; any fetch error aborts the assembly."""
        author: Author | None = None
        posts: list[ThreadPost] = []
        done = False

        async for event in self.stream_thread(handle, post_id):
            if isinstance(event, Header):
                author = event.author
            elif isinstance(event, PostEvent):
                posts.append(event.post)
            elif isinstance(event, Done):
                done = True
            else:
                raise TypeError(f"unexpected stream event {event!r}")

        if author is None or not done:
            raise MalformedResponseError("thread stream ended without completing")

        thread = Thread(posts=tuple(posts), author=author)
        logger.info(
            "Assembled thread by %s with %d posts", thread.author.handle, len(thread.posts)
        )
        return thread

    async def poll_updates(self, cursor: PollCursor, *, now: datetime | None = None) -> PollResult:
        """Report posts appended to the chain after ``cursor.last_cid``."""
        thread = await self.assemble_thread(cursor.handle, cursor.post_id)
        result = diff_since(
            thread,
            cursor.last_cid,
            now=now or datetime.now(UTC),
            stale_after=self._stale_after,
        )
        logger.debug("Poll for %s/%s: %s", cursor.handle, cursor.post_id, type(result).__name__)
        return result


def get_thread_assembler() -> ThreadAssembler:
    """Return an assembler bound to the shared AppView client."""
    disable_after = settings.poll_disable_after_seconds
    return ThreadAssembler(
        get_context_fetcher(),
        max_root_hops=settings.max_root_hops,
        stale_after=timedelta(seconds=disable_after) if disable_after > 0 else None,
    )
