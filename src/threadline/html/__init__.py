"""HTML output for thread pages."""

from .renderer import (
    PollSettings,
    render_post,
    render_posts_fragment,
    render_thread,
    render_thread_stream,
)
from .templates import error_page, landing_page

__all__ = [
    "PollSettings",
    "error_page",
    "landing_page",
    "render_post",
    "render_posts_fragment",
    "render_thread",
    "render_thread_stream",
]
