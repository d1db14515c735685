"""HTML pages: the landing form and progressively streamed threads."""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import APIRouter, Query
from fastapi.responses import HTMLResponse, StreamingResponse

from threadline.api.dependencies import AssemblerDep, PollSettingsDep
from threadline.core.settings import settings
from threadline.html import PollSettings, landing_page, render_thread_stream
from threadline.services.errors import MalformedResponseError
from threadline.services.thread_service import ThreadAssembler
from threadline.utils.url_parser import parse_bluesky_url

router = APIRouter(tags=["pages"])

HTML_MEDIA_TYPE = "text/html; charset=utf-8"
STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Content-Type-Options": "nosniff",
}


async def stream_thread_page(
    assembler: ThreadAssembler,
    handle: str,
    post_id: str,
    polling: PollSettings | None,
) -> StreamingResponse:
    """Start rendering a thread and hand the rest to a streaming response.

    The first chunk (document head, author header and first post) is
    produced before the response exists, so a failure that happens before
    any output surfaces as a regular error status.
    """
    thread_url = f"{settings.public_base_url}/profile/{handle}/post/{post_id}"
    chunks = render_thread_stream(
        assembler.stream_thread(handle, post_id),
        handle=handle,
        post_id=post_id,
        thread_url=thread_url,
        polling=polling,
    )
    try:
        first_chunk = await anext(chunks)
    except StopAsyncIteration as exc:
        raise MalformedResponseError("thread stream produced no output") from exc

    async def body() -> AsyncIterator[str]:
        try:
            yield first_chunk
            async for chunk in chunks:
                yield chunk
        finally:
            # Runs on client disconnect too; closing stops further fetches.
            await chunks.aclose()

    return StreamingResponse(body(), media_type=HTML_MEDIA_TYPE, headers=STREAM_HEADERS)


@router.get("/", response_class=HTMLResponse, response_model=None)
async def index(
    assembler: AssemblerDep,
    polling: PollSettingsDep,
    url: str | None = Query(None, description="A bsky.app post URL"),
) -> HTMLResponse | StreamingResponse:
    """Show the landing form, or stream the thread named by ``url``."""
    if not url:
        return HTMLResponse(landing_page())
    parts = parse_bluesky_url(url)
    return await stream_thread_page(assembler, parts.handle, parts.post_id, polling)


@router.get("/thread", response_class=HTMLResponse)
async def thread_from_url(
    assembler: AssemblerDep,
    polling: PollSettingsDep,
    url: str = Query(..., description="A bsky.app post URL"),
) -> StreamingResponse:
    """Stream the thread named by a pasted bsky.app link."""
    parts = parse_bluesky_url(url)
    return await stream_thread_page(assembler, parts.handle, parts.post_id, polling)


@router.get("/profile/{handle}/post/{post_id}", response_class=HTMLResponse)
async def thread_page(
    handle: str,
    post_id: str,
    assembler: AssemblerDep,
    polling: PollSettingsDep,
) -> StreamingResponse:
    """Stream a thread at the same path bsky.app uses for the post."""
    return await stream_thread_page(assembler, handle, post_id, polling)
