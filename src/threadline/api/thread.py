"""JSON thread endpoints and the polling surface."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Query, Request, Response, status
from fastapi.responses import HTMLResponse, JSONResponse

from threadline.api.dependencies import AssemblerDep
from threadline.html import render_posts_fragment
from threadline.models.thread import NewPosts, PollCursor, Stale
from threadline.schemas.thread import (
    AuthorResponse,
    PostResponse,
    ThreadResponse,
    UpdatesResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["thread"])

LAST_CID_HEADER = "X-Last-CID"
STALE_HEADER = "X-Thread-Stale"


def _wants_json(request: Request) -> bool:
    return "application/json" in request.headers.get("accept", "")


@router.get("/thread", response_model=ThreadResponse)
async def get_thread(
    assembler: AssemblerDep,
    handle: str = Query(..., description="Author handle or DID"),
    post_id: str = Query(..., description="Record key of any post in the thread"),
) -> ThreadResponse:
    """Return the whole thread containing ``post_id``, root first."""
    thread = await assembler.assemble_thread(handle, post_id)
    return ThreadResponse(
        author=AuthorResponse.model_validate(thread.author),
        posts=[PostResponse.model_validate(post) for post in thread.posts],
        original_url=thread.original_post_url(),
        lang=thread.primary_language(),
    )


@router.get(
    "/thread/updates",
    responses={
        status.HTTP_200_OK: {"description": "New posts as HTML fragments or JSON"},
        status.HTTP_204_NO_CONTENT: {"description": "Nothing new; may carry X-Thread-Stale"},
    },
)
async def get_thread_updates(
    request: Request,
    assembler: AssemblerDep,
    handle: str = Query(..., description="Author handle or DID"),
    post_id: str = Query(..., description="Record key of any post in the thread"),
    since_cid: str = Query(..., min_length=1, description="CID of the newest post already shown"),
) -> Response:
    """Report posts appended to a thread after ``since_cid``.

    Responds ``204`` when there is nothing new, with ``X-Thread-Stale: true``
    once the thread has gone quiet for good. New posts come back as
    ready-to-insert HTML, or as JSON when the client asks for it, and the
    new watermark travels in ``X-Last-CID``.
    """
    result = await assembler.poll_updates(PollCursor(handle, post_id, since_cid))

    if isinstance(result, NewPosts):
        headers = {LAST_CID_HEADER: result.last_cid, "Cache-Control": "no-store"}
        logger.info(
            "Thread %s/%s has %d new posts since %s",
            handle,
            post_id,
            len(result.posts),
            since_cid,
        )
        fragment = render_posts_fragment(result.posts, handle)
        if _wants_json(request):
            payload = UpdatesResponse(
                posts=[PostResponse.model_validate(post) for post in result.posts],
                last_cid=result.last_cid,
                html=fragment,
            )
            return JSONResponse(payload.model_dump(mode="json"), headers=headers)
        return HTMLResponse(fragment, headers=headers)

    headers = {"Cache-Control": "no-store"}
    if isinstance(result, Stale):
        headers[STALE_HEADER] = "true"
    return Response(status_code=status.HTTP_204_NO_CONTENT, headers=headers)
