"""Thread reconstruction services for the Threadline application."""

from .bluesky import BlueskyClient, get_bluesky_client
from .context_fetcher import ContextFetcher, ContextSource, get_context_fetcher
from .thread_service import ThreadAssembler, get_thread_assembler

__all__ = [
    "BlueskyClient",
    "ContextFetcher",
    "ContextSource",
    "ThreadAssembler",
    "get_bluesky_client",
    "get_context_fetcher",
    "get_thread_assembler",
]
