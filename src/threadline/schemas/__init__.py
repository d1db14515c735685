"""
Pydantic schemas for AppView payloads and API responses.

``bsky`` validates what the AppView sends us; ``thread`` shapes what the
JSON API sends back.
"""

from .bsky import GetPostThreadResponse, ResolveHandleResponse, ThreadViewPost
from .thread import AuthorResponse, ErrorResponse, PostResponse, ThreadResponse, UpdatesResponse

__all__ = [
    "AuthorResponse",
    "ErrorResponse",
    "GetPostThreadResponse",
    "PostResponse",
    "ResolveHandleResponse",
    "ThreadResponse",
    "ThreadViewPost",
    "UpdatesResponse",
]
