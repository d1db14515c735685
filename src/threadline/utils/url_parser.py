"""Parsing of bsky.app post links."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import unquote, urlsplit

from threadline.services.errors import InvalidUrlError, NotBlueskyUrlError, NotPostUrlError

BSKY_HOST = "bsky.app"


@dataclass(frozen=True)
class BlueskyUrlParts:
    handle: str
    post_id: str


def parse_bluesky_url(url: str) -> BlueskyUrlParts:
    """Extract the handle and post id from a ``bsky.app`` post URL.

    Args:
        url: A link such as ``https://bsky.app/profile/alice.bsky.social/post/3k2a``

    Returns:
        The handle (or DID) and record key named by the link

    Raises:
        InvalidUrlError: The input is not an absolute http(s) URL
        NotBlueskyUrlError: The URL points somewhere other than bsky.app
        NotPostUrlError: The URL is on bsky.app but does not name a post
    """
    try:
        parts = urlsplit(url.strip())
    except ValueError as exc:
        raise InvalidUrlError(f"Invalid URL: {exc}") from exc

    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise InvalidUrlError()
    if (parts.hostname or "").lower() != BSKY_HOST:
        raise NotBlueskyUrlError()

    segments = [unquote(segment) for segment in parts.path.split("/")[1:]]
    if len(segments) < 4 or segments[0] != "profile" or segments[2] != "post":
        raise NotPostUrlError()

    handle, post_id = segments[1], segments[3]
    if not handle or not post_id:
        raise NotPostUrlError()
    return BlueskyUrlParts(handle=handle, post_id=post_id)
