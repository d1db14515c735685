"""Shallow post-context fetching.

``ContextFetcher`` is the only I/O boundary of thread reconstruction. Every
fetch asks the AppView for exactly one parent hop and one level of replies,
whatever the caller wants, so responses stay small and never nest deeply.
The wire payload is validated against the schemas in
``threadline.schemas.bsky`` and projected onto the immutable types in
``threadline.models.thread``.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any, Protocol

from pydantic import ValidationError

from threadline.models.thread import (
    AspectRatio,
    Author,
    Embed,
    EmbedExternal,
    EmbedImage,
    EmbedImages,
    EmbedRecord,
    EmbedRecordWithMedia,
    EmbedVideo,
    PostContext,
    PostView,
    ThreadPost,
)
from threadline.schemas.bsky import (
    BlockedPost,
    GetPostThreadResponse,
    NotFoundPost,
    PostViewSchema,
    ProfileViewBasic,
    ResolveHandleResponse,
    ThreadViewPost,
)
from threadline.services.bluesky import BlueskyClient, get_bluesky_client
from threadline.services.errors import BlockedError, MalformedResponseError, NotFoundError

logger = logging.getLogger(__name__)

# One parent hop and one page of direct replies, never more.
CONTEXT_DEPTH = 1
CONTEXT_PARENT_HEIGHT = 1

EMBED_IMAGES = "app.bsky.embed.images#view"
EMBED_VIDEO = "app.bsky.embed.video#view"
EMBED_EXTERNAL = "app.bsky.embed.external#view"
EMBED_RECORD = "app.bsky.embed.record#view"
EMBED_RECORD_WITH_MEDIA = "app.bsky.embed.recordWithMedia#view"
EMBED_VIEW_RECORD = "app.bsky.embed.record#viewRecord"


class ContextSource(Protocol):
    """What thread assembly needs from the outside world."""

    async def resolve_handle(self, handle: str) -> str: ...

    async def fetch(self, uri: str) -> PostContext: ...


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an RFC 3339 timestamp into an aware UTC datetime."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def _aspect_ratio(data: Any) -> AspectRatio | None:
    if not isinstance(data, dict):
        return None
    width, height = data.get("width"), data.get("height")
    if isinstance(width, int) and isinstance(height, int) and width > 0 and height > 0:
        return AspectRatio(width=width, height=height)
    return None


def _author_from_dict(data: Any) -> Author | None:
    if not isinstance(data, dict) or not data.get("did") or not data.get("handle"):
        return None
    return Author(
        did=data["did"],
        handle=data["handle"],
        display_name=data.get("displayName") or None,
        avatar_url=data.get("avatar"),
    )


def _record_embed(data: Any) -> EmbedRecord | None:
    # Quoted posts can be missing, blocked or non-post records; only posts render.
    if not isinstance(data, dict) or data.get("$type") != EMBED_VIEW_RECORD:
        return None
    author = _author_from_dict(data.get("author"))
    value = data.get("value") if isinstance(data.get("value"), dict) else {}
    if author is None or not data.get("uri"):
        return None
    nested = None
    for candidate in data.get("embeds") or []:
        nested = parse_embed(candidate)
        if nested is not None:
            break
    return EmbedRecord(
        uri=data["uri"],
        author=author,
        text=str(value.get("text", "")),
        created_at=parse_timestamp(value.get("createdAt"))
        or parse_timestamp(data.get("indexedAt"))
        or datetime.now(UTC),
        embed=nested,
    )


def parse_embed(data: Any) -> Embed | None:
    """Project an embed view onto the embed types; unknown kinds are dropped."""
    if not isinstance(data, dict):
        return None

    kind = data.get("$type")
    if kind == EMBED_IMAGES:
        images = tuple(
            EmbedImage(
                thumb_url=item["thumb"],
                fullsize_url=item.get("fullsize") or item["thumb"],
                alt=item.get("alt") or "",
                aspect_ratio=_aspect_ratio(item.get("aspectRatio")),
            )
            for item in data.get("images") or []
            if isinstance(item, dict) and item.get("thumb")
        )
        return EmbedImages(images=images) if images else None
    if kind == EMBED_VIDEO:
        if not data.get("playlist"):
            return None
        return EmbedVideo(
            playlist_url=data["playlist"],
            thumbnail_url=data.get("thumbnail"),
            alt=data.get("alt"),
            aspect_ratio=_aspect_ratio(data.get("aspectRatio")),
        )
    if kind == EMBED_EXTERNAL:
        external = data.get("external")
        if not isinstance(external, dict) or not external.get("uri"):
            return None
        return EmbedExternal(
            uri=external["uri"],
            title=external.get("title") or "",
            description=external.get("description") or "",
            thumb_url=external.get("thumb"),
        )
    if kind == EMBED_RECORD:
        return _record_embed(data.get("record"))
    if kind == EMBED_RECORD_WITH_MEDIA:
        record_view = data.get("record")
        record = _record_embed(record_view.get("record")) if isinstance(record_view, dict) else None
        media = parse_embed(data.get("media"))
        if record is None:
            return media
        if media is None:
            return record
        return EmbedRecordWithMedia(record=record, media=media)
    return None


def to_author(profile: ProfileViewBasic) -> Author:
    return Author(
        did=profile.did,
        handle=profile.handle,
        display_name=profile.display_name or None,
        avatar_url=profile.avatar,
    )


def to_thread_post(view: PostViewSchema) -> ThreadPost:
    """Project a post view onto a ``ThreadPost``."""
    created_at = (
        parse_timestamp(view.record.created_at)
        or parse_timestamp(view.indexed_at)
        or datetime.now(UTC)
    )
    return ThreadPost(
        uri=view.uri,
        cid=view.cid,
        text=view.record.text,
        created_at=created_at,
        indexed_at=parse_timestamp(view.indexed_at),
        reply_count=view.reply_count,
        repost_count=view.repost_count,
        like_count=view.like_count,
        quote_count=view.quote_count,
        embed=parse_embed(view.embed),
        langs=tuple(view.record.langs),
    )


def to_post_view(view: PostViewSchema) -> PostView:
    return PostView(post=to_thread_post(view), author=to_author(view.author))


def to_post_context(node: ThreadViewPost | NotFoundPost | BlockedPost) -> PostContext:
    """Convert the root node of a ``getPostThread`` response.

    Raises:
        NotFoundError: The requested post no longer exists
        BlockedError: A block prevents viewing the post
    """
    if isinstance(node, NotFoundPost):
        raise NotFoundError()
    if isinstance(node, BlockedPost):
        raise BlockedError()

    parent = None
    if isinstance(node.parent, ThreadViewPost):
        parent = to_post_view(node.parent.post)

    # Only full post views can continue a chain; deleted or blocked replies are skipped.
    replies = tuple(
        to_post_view(reply.post) for reply in node.replies if isinstance(reply, ThreadViewPost)
    )
    view = to_post_view(node.post)
    return PostContext(post=view.post, author=view.author, parent=parent, replies=replies)


class ContextFetcher:
    """Fetch shallow post contexts from the AppView."""

    def __init__(self, client: BlueskyClient | None = None) -> None:
        self._client = client or get_bluesky_client()

    async def resolve_handle(self, handle: str) -> str:
        """Return the DID for ``handle``; DIDs are passed through unchanged."""
        if handle.startswith("did:"):
            return handle

        payload = await self._client.resolve_handle(handle)
        try:
            did = ResolveHandleResponse.model_validate(payload).did
        except ValidationError as exc:
            raise MalformedResponseError("resolveHandle response had no DID") from exc
        logger.debug("Resolved handle %s to %s", handle, did)
        return did

    async def fetch(self, uri: str) -> PostContext:
        """Fetch one post with at most one parent and one reply page."""
        payload = await self._client.get_post_thread(
            uri, depth=CONTEXT_DEPTH, parent_height=CONTEXT_PARENT_HEIGHT
        )
        try:
            response = GetPostThreadResponse.model_validate(payload)
        except ValidationError as exc:
            raise MalformedResponseError("getPostThread response had an unexpected shape") from exc

        context = to_post_context(response.thread)
        logger.debug(
            "Fetched %s (parent=%s, replies=%d)",
            uri,
            context.parent.post.uri if context.parent else None,
            len(context.replies),
        )
        return context


def get_context_fetcher() -> ContextFetcher:
    """Return a fetcher bound to the shared AppView client."""
    return ContextFetcher()
