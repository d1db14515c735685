"""Tests for bsky.app URL parsing."""

import pytest

from threadline.services.errors import (
    InvalidInputError,
    InvalidUrlError,
    NotBlueskyUrlError,
    NotPostUrlError,
)
from threadline.utils.url_parser import BlueskyUrlParts, parse_bluesky_url


@pytest.mark.parametrize(
    "url",
    [
        "https://bsky.app/profile/jay.bsky.team/post/3jwdwj2ctlk26",
        "http://bsky.app/profile/jay.bsky.team/post/3jwdwj2ctlk26",
        "https://bsky.app/profile/jay.bsky.team/post/3jwdwj2ctlk26/liked-by",
        "  https://BSKY.app/profile/jay.bsky.team/post/3jwdwj2ctlk26?ref=x  ",
    ],
)
def test_parse_valid_urls(url: str) -> None:
    assert parse_bluesky_url(url) == BlueskyUrlParts(handle="jay.bsky.team", post_id="3jwdwj2ctlk26")


def test_parse_did_profile() -> None:
    parts = parse_bluesky_url("https://bsky.app/profile/did:plc:abc123/post/3k2a")

    assert parts.handle == "did:plc:abc123"


@pytest.mark.parametrize(
    ("url", "error"),
    [
        ("not a url", InvalidUrlError),
        ("ftp://bsky.app/profile/a.test/post/1", InvalidUrlError),
        ("https://twitter.com/user/status/123", NotBlueskyUrlError),
        ("https://bsky.app.evil.test/profile/a.test/post/1", NotBlueskyUrlError),
        ("https://bsky.app/profile/user.bsky.social", NotPostUrlError),
        ("https://bsky.app/profile/user.bsky.social/lists/1", NotPostUrlError),
        ("https://bsky.app/profile//post/1", NotPostUrlError),
    ],
)
def test_parse_rejects(url: str, error: type[InvalidInputError]) -> None:
    with pytest.raises(error) as exc_info:
        parse_bluesky_url(url)

    assert exc_info.value.status_code == 400
