"""Pydantic schemas for the Bluesky AppView responses we consume.

Only the fields the thread reader needs are modelled; everything else is
ignored. Thread nodes are a closed union discriminated by ``$type``.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

THREAD_VIEW_POST = "app.bsky.feed.defs#threadViewPost"
NOT_FOUND_POST = "app.bsky.feed.defs#notFoundPost"
BLOCKED_POST = "app.bsky.feed.defs#blockedPost"


class _AppViewModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ProfileViewBasic(_AppViewModel):
    """Author summary embedded in post views."""

    did: str
    handle: str
    display_name: str | None = Field(default=None, alias="displayName")
    avatar: str | None = None


class PostRecord(_AppViewModel):
    """The subset of an ``app.bsky.feed.post`` record we render."""

    text: str = ""
    created_at: str | None = Field(default=None, alias="createdAt")
    langs: list[str] = Field(default_factory=list)


class PostViewSchema(_AppViewModel):
    """``app.bsky.feed.defs#postView``."""

    uri: str
    cid: str
    author: ProfileViewBasic
    record: PostRecord
    embed: dict[str, Any] | None = None
    reply_count: int | None = Field(default=None, alias="replyCount")
    repost_count: int | None = Field(default=None, alias="repostCount")
    like_count: int | None = Field(default=None, alias="likeCount")
    quote_count: int | None = Field(default=None, alias="quoteCount")
    indexed_at: str | None = Field(default=None, alias="indexedAt")


class NotFoundPost(_AppViewModel):
    type: Literal["app.bsky.feed.defs#notFoundPost"] = Field(alias="$type")
    uri: str


class BlockedPost(_AppViewModel):
    type: Literal["app.bsky.feed.defs#blockedPost"] = Field(alias="$type")
    uri: str


class ThreadViewPost(_AppViewModel):
    type: Literal["app.bsky.feed.defs#threadViewPost"] = Field(alias="$type")
    post: PostViewSchema
    parent: ThreadNode | None = None
    replies: list[ThreadNode] = Field(default_factory=list)


ThreadNode = Annotated[
    ThreadViewPost | NotFoundPost | BlockedPost,
    Field(discriminator="type"),
]

ThreadViewPost.model_rebuild()


class GetPostThreadResponse(_AppViewModel):
    """Response body of ``app.bsky.feed.getPostThread``."""

    thread: ThreadNode


class ResolveHandleResponse(_AppViewModel):
    """Response body of ``com.atproto.identity.resolveHandle``."""

    did: str


class XrpcErrorBody(_AppViewModel):
    """Error body returned by XRPC endpoints."""

    error: str | None = None
    message: str | None = None
