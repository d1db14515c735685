"""Main entry point for the Threadline application."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, Response

from threadline.api import health_router, pages_router, thread_router
from threadline.core.logging_config import configure_logging, resolve_level
from threadline.core.settings import settings
from threadline.html import error_page
from threadline.schemas.thread import ErrorResponse
from threadline.services.bluesky import get_bluesky_client
from threadline.services.errors import ThreadError

logger = logging.getLogger(__name__)


async def thread_error_handler(request: Request, exc: Exception) -> Response:
    """Render a thread failure as JSON under ``/api/`` and as a page elsewhere."""
    if not isinstance(exc, ThreadError):
        raise exc

    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    if request.url.path.startswith("/api/"):
        body = ErrorResponse(
            error=exc.kind,
            title=exc.title,
            message=exc.message,
            retryable=exc.retryable,
        )
        return JSONResponse(body.model_dump(), status_code=exc.status_code)
    return HTMLResponse(
        error_page(exc.status_code, exc.title, exc.message),
        status_code=exc.status_code,
    )


def create_app() -> FastAPI:
    """Build the FastAPI application with routers and error handling."""
    app = FastAPI(
        title=settings.app_name,
        description="Read Bluesky self-reply threads as a single page",
        version=settings.app_version,
        debug=settings.debug,
    )

    app.include_router(health_router)
    app.include_router(thread_router)
    app.include_router(pages_router)
    app.add_exception_handler(ThreadError, thread_error_handler)

    @app.on_event("startup")
    async def on_startup() -> None:
        configure_logging(settings.log_level)
        logger.info(
            "%s %s reading from %s",
            settings.app_name,
            settings.app_version,
            settings.bluesky_api_url,
        )

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        await get_bluesky_client().close()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "threadline.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=logging.getLevelName(resolve_level(settings.log_level)).lower(),
    )
