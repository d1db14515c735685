"""Thread-related Pydantic schemas for the JSON API."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class AuthorResponse(BaseModel):
    """Schema for the author of a thread."""

    did: str
    handle: str
    display_name: str | None = None
    avatar_url: str | None = None

    model_config = ConfigDict(from_attributes=True)


class PostResponse(BaseModel):
    """Schema for one post of a thread."""

    uri: str
    cid: str
    post_id: str
    text: str
    created_at: datetime
    reply_count: int | None = None
    repost_count: int | None = None
    like_count: int | None = None
    quote_count: int | None = None
    langs: list[str] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class ThreadResponse(BaseModel):
    """Schema for a complete thread, root first."""

    author: AuthorResponse
    posts: list[PostResponse]
    original_url: str
    lang: str | None = None


class UpdatesResponse(BaseModel):
    """Schema for posts appended since a client's watermark."""

    posts: list[PostResponse]
    last_cid: str
    html: str = Field(..., description="Ready-to-insert markup for the new posts")


class ErrorResponse(BaseModel):
    """Schema for JSON error bodies."""

    error: str
    title: str
    message: str
    retryable: bool = False
