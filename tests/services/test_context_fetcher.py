"""Tests for AppView payload projection and the context fetcher."""

from __future__ import annotations

from typing import Any

import httpx
import pytest

from threadline.models.thread import (
    EmbedExternal,
    EmbedImages,
    EmbedRecord,
    EmbedRecordWithMedia,
    EmbedVideo,
)
from threadline.services.bluesky import BlueskyClient, BlueskyConfig
from threadline.services.context_fetcher import (
    CONTEXT_DEPTH,
    CONTEXT_PARENT_HEIGHT,
    ContextFetcher,
    parse_embed,
    parse_timestamp,
)
from threadline.services.errors import BlockedError, MalformedResponseError, NotFoundError

ALICE_DID = "did:plc:alice"
BOB_DID = "did:plc:bob"


def post_view(key: str, did: str = ALICE_DID, **extra: Any) -> dict[str, Any]:
    view = {
        "uri": f"at://{did}/app.bsky.feed.post/{key}",
        "cid": f"cid-{key}",
        "author": {"did": did, "handle": f"{did.rsplit(':', 1)[-1]}.test", "displayName": ""},
        "record": {
            "$type": "app.bsky.feed.post",
            "text": f"post {key}",
            "createdAt": "2024-01-01T12:00:00.000Z",
            "langs": ["en"],
        },
        "replyCount": 1,
        "repostCount": 2,
        "likeCount": 3,
        "indexedAt": "2024-01-01T12:00:01.000Z",
    }
    view.update(extra)
    return view


def thread_view(post: dict[str, Any], parent: Any = None, replies: list[Any] | None = None) -> dict[str, Any]:
    node: dict[str, Any] = {"$type": "app.bsky.feed.defs#threadViewPost", "post": post}
    if parent is not None:
        node["parent"] = parent
    if replies is not None:
        node["replies"] = replies
    return node


def make_fetcher(handler: Any) -> ContextFetcher:
    config = BlueskyConfig(base_url="https://appview.test", timeout_seconds=5.0, user_agent="test")
    return ContextFetcher(BlueskyClient(config, transport=httpx.MockTransport(handler)))


@pytest.mark.asyncio
async def test_fetch_requests_one_hop_each_way() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"thread": thread_view(post_view("p1"))})

    fetcher = make_fetcher(handler)
    await fetcher.fetch("at://did:plc:alice/app.bsky.feed.post/p1")

    (request,) = seen
    assert request.url.path == "/xrpc/app.bsky.feed.getPostThread"
    assert request.url.params["depth"] == str(CONTEXT_DEPTH)
    assert request.url.params["parentHeight"] == str(CONTEXT_PARENT_HEIGHT)
    assert request.headers["User-Agent"] == "test"


@pytest.mark.asyncio
async def test_fetch_projects_post_parent_and_replies() -> None:
    payload = {
        "thread": thread_view(
            post_view("p1"),
            parent=thread_view(post_view("p0")),
            replies=[
                thread_view(post_view("b1", did=BOB_DID)),
                {"$type": "app.bsky.feed.defs#notFoundPost", "uri": "at://x/app.bsky.feed.post/gone", "notFound": True},
                thread_view(post_view("p2")),
            ],
        )
    }
    fetcher = make_fetcher(lambda request: httpx.Response(200, json=payload))

    context = await fetcher.fetch("at://did:plc:alice/app.bsky.feed.post/p1")

    assert context.post.cid == "cid-p1"
    assert context.post.like_count == 3
    assert context.post.langs == ("en",)
    assert context.author.display_name is None
    assert context.same_author_parent() is not None
    assert [reply.post.post_id for reply in context.replies] == ["b1", "p2"]
    assert context.first_reply_by(ALICE_DID).post.post_id == "p2"


@pytest.mark.asyncio
async def test_missing_parent_is_treated_as_root() -> None:
    payload = {
        "thread": thread_view(
            post_view("p1"),
            parent={"$type": "app.bsky.feed.defs#blockedPost", "uri": "at://x/app.bsky.feed.post/b", "blocked": True},
        )
    }
    fetcher = make_fetcher(lambda request: httpx.Response(200, json=payload))

    context = await fetcher.fetch("at://did:plc:alice/app.bsky.feed.post/p1")

    assert context.parent is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("node_type", "error"),
    [
        ("app.bsky.feed.defs#notFoundPost", NotFoundError),
        ("app.bsky.feed.defs#blockedPost", BlockedError),
    ],
)
async def test_unavailable_root(node_type: str, error: type[Exception]) -> None:
    payload = {"thread": {"$type": node_type, "uri": "at://did:plc:alice/app.bsky.feed.post/p1"}}
    fetcher = make_fetcher(lambda request: httpx.Response(200, json=payload))

    with pytest.raises(error):
        await fetcher.fetch("at://did:plc:alice/app.bsky.feed.post/p1")


@pytest.mark.asyncio
async def test_unexpected_shape_is_malformed() -> None:
    fetcher = make_fetcher(lambda request: httpx.Response(200, json={"thread": {"$type": "nope"}}))

    with pytest.raises(MalformedResponseError):
        await fetcher.fetch("at://did:plc:alice/app.bsky.feed.post/p1")


@pytest.mark.asyncio
async def test_resolve_handle() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["handle"] == "alice.test"
        return httpx.Response(200, json={"did": ALICE_DID})

    fetcher = make_fetcher(handler)

    assert await fetcher.resolve_handle("alice.test") == ALICE_DID


@pytest.mark.asyncio
async def test_resolve_handle_passes_dids_through() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    fetcher = make_fetcher(handler)

    assert await fetcher.resolve_handle(ALICE_DID) == ALICE_DID


@pytest.mark.asyncio
async def test_resolve_handle_without_did_is_malformed() -> None:
    fetcher = make_fetcher(lambda request: httpx.Response(200, json={}))

    with pytest.raises(MalformedResponseError):
        await fetcher.resolve_handle("alice.test")


def test_parse_timestamp() -> None:
    parsed = parse_timestamp("2024-01-01T12:00:00.000Z")

    assert parsed is not None
    assert parsed.tzinfo is not None
    assert (parsed.hour, parsed.minute) == (12, 0)
    assert parse_timestamp("yesterday") is None
    assert parse_timestamp(None) is None


def test_parse_images_embed() -> None:
    embed = parse_embed(
        {
            "$type": "app.bsky.embed.images#view",
            "images": [
                {"thumb": "https://cdn.test/t1", "fullsize": "https://cdn.test/f1", "alt": "cat",
                 "aspectRatio": {"width": 4, "height": 3}},
                {"thumb": "https://cdn.test/t2"},
            ],
        }
    )

    assert isinstance(embed, EmbedImages)
    assert [image.alt for image in embed.images] == ["cat", ""]
    assert embed.images[0].aspect_ratio is not None
    assert embed.images[1].fullsize_url == "https://cdn.test/t2"


def test_parse_video_and_external_embeds() -> None:
    video = parse_embed({"$type": "app.bsky.embed.video#view", "playlist": "https://video.test/p.m3u8"})
    external = parse_embed(
        {"$type": "app.bsky.embed.external#view",
         "external": {"uri": "https://example.com", "title": "Example", "description": "d"}}
    )

    assert isinstance(video, EmbedVideo)
    assert isinstance(external, EmbedExternal)
    assert external.title == "Example"


def test_parse_record_with_media() -> None:
    quoted = {
        "$type": "app.bsky.embed.record#viewRecord",
        "uri": "at://did:plc:bob/app.bsky.feed.post/q1",
        "author": {"did": BOB_DID, "handle": "bob.test"},
        "value": {"text": "quoted", "createdAt": "2024-01-01T00:00:00Z"},
    }
    embed = parse_embed(
        {
            "$type": "app.bsky.embed.recordWithMedia#view",
            "record": {"record": quoted},
            "media": {"$type": "app.bsky.embed.images#view", "images": [{"thumb": "https://cdn.test/t"}]},
        }
    )

    assert isinstance(embed, EmbedRecordWithMedia)
    assert isinstance(embed.record, EmbedRecord)
    assert embed.record.text == "quoted"
    assert isinstance(embed.media, EmbedImages)


def test_unknown_or_unavailable_embeds_are_dropped() -> None:
    assert parse_embed({"$type": "app.bsky.embed.somethingNew#view"}) is None
    assert parse_embed(
        {"$type": "app.bsky.embed.record#view",
         "record": {"$type": "app.bsky.embed.record#viewNotFound", "uri": "at://x"}}
    ) is None
    assert parse_embed(None) is None
