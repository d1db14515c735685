# src/threadline/models/__init__.py
"""Immutable value types for the Threadline service."""

from .thread import (
    AspectRatio,
    Author,
    Done,
    Embed,
    EmbedExternal,
    EmbedImage,
    EmbedImages,
    EmbedRecord,
    EmbedRecordWithMedia,
    EmbedVideo,
    Header,
    NewPosts,
    NoChange,
    PollCursor,
    PollResult,
    PostContext,
    PostEvent,
    PostView,
    Stale,
    StreamEvent,
    Thread,
    ThreadPost,
    build_post_uri,
    record_key,
)

__all__ = [
    "AspectRatio", "Author",
    "Embed", "EmbedExternal", "EmbedImage", "EmbedImages",
    "EmbedRecord", "EmbedRecordWithMedia", "EmbedVideo",
    "Header", "PostEvent", "Done", "StreamEvent",
    "PollCursor", "PollResult", "NoChange", "NewPosts", "Stale",
    "PostContext", "PostView",
    "Thread", "ThreadPost",
    "build_post_uri", "record_key",
]
