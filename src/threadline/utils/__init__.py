"""Small helpers shared by the web and terminal front ends."""

from .url_parser import BlueskyUrlParts, parse_bluesky_url

__all__ = ["BlueskyUrlParts", "parse_bluesky_url"]
