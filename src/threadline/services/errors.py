"""Error taxonomy for thread reconstruction.

Every failure that can surface to a reader is one of the classes below.
Fetch failures come from the Bluesky AppView; ``InvalidInputError`` is raised
before any fetch when a URL, handle or post id is malformed.
"""

from __future__ import annotations

from typing import ClassVar


class ThreadError(Exception):
    """Base exception for all thread reconstruction failures."""

    status_code: ClassVar[int] = 500
    title: ClassVar[str] = "Internal Server Error"
    default_message: ClassVar[str] = "An unexpected error occurred."
    retryable: ClassVar[bool] = False

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def kind(self) -> str:
        """Stable short name used in logs and JSON error bodies."""
        return type(self).__name__.removesuffix("Error")


class FetchError(ThreadError):
    """Base exception for failures talking to the AppView."""


class NotFoundError(FetchError):
    """The post was deleted or the identifier does not exist."""

    status_code = 404
    title = "Not Found"
    default_message = "That post could not be found. It may have been deleted."


class BlockedError(FetchError):
    """The viewer is blocked by the author, or the other way round."""

    status_code = 403
    title = "Blocked"
    default_message = "This post is not available because of a block."


class RateLimitedError(FetchError):
    """The AppView asked us to slow down."""

    status_code = 429
    title = "Too Many Requests"
    default_message = "Rate limit exceeded. Please try again later."
    retryable = True


class TransientError(FetchError):
    """Network failure, timeout or upstream outage; safe to retry."""

    status_code = 503
    title = "Service Unavailable"
    default_message = "Bluesky is not responding right now. Please try again shortly."
    retryable = True


class MalformedResponseError(FetchError):
    """The AppView answered with something we cannot interpret."""

    status_code = 502
    title = "Bad Gateway"
    default_message = "Bluesky returned a response that could not be understood."


class InvalidInputError(ThreadError):
    """A URL, handle or post id was rejected before any fetch."""

    status_code = 400
    title = "Bad Request"
    default_message = "That does not look like a Bluesky post link."


class InvalidUrlError(InvalidInputError):
    """The input could not be parsed as a URL."""

    default_message = "Invalid URL."


class NotBlueskyUrlError(InvalidInputError):
    """The URL does not point at bsky.app."""

    default_message = "URL must be a bsky.app link."


class NotPostUrlError(InvalidInputError):
    """The URL points at bsky.app but not at a post."""

    default_message = "URL must be a post link (e.g., bsky.app/profile/user/post/id)."
