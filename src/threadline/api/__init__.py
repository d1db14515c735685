"""HTTP endpoints."""

from .health import router as health_router
from .pages import router as pages_router
from .thread import router as thread_router

__all__ = ["health_router", "pages_router", "thread_router"]
