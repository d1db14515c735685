"""HTML rendering for threads, both buffered and progressive."""

from __future__ import annotations

import logging
import re
from collections.abc import AsyncGenerator, AsyncIterator, Iterable
from dataclasses import dataclass
from html import escape, unescape

from threadline.html.templates import (
    PollingConfig,
    SocialMeta,
    author_header,
    base_page,
    document_footer,
    document_head,
    loading_indicator,
    post_before_indicator,
    render_avatar_html,
    stream_error,
)
from threadline.models.thread import (
    Author,
    Done,
    Embed,
    EmbedExternal,
    EmbedImage,
    EmbedImages,
    EmbedRecord,
    EmbedRecordWithMedia,
    EmbedVideo,
    Header,
    PostEvent,
    StreamEvent,
    Thread,
    ThreadPost,
    record_key,
)
from threadline.services.errors import ThreadError

logger = logging.getLogger(__name__)

_URL_PATTERN = re.compile(r"https?://(?:(?!&quot;|&#x27;)[^\s<>])+")
MAX_LINK_TEXT = 40
MAX_QUOTE_TEXT = 300


@dataclass(frozen=True)
class PollSettings:
    """Polling parameters for a rendered page (seconds)."""

    initial_interval: float
    max_interval: float
    disable_after: float


def linkify_text(escaped: str) -> str:
    """Turn bare URLs in already-escaped text into links."""

    def _link(match: re.Match[str]) -> str:
        href = match.group(0)
        display = unescape(href)
        if len(display) > MAX_LINK_TEXT:
            display = f"{display[: MAX_LINK_TEXT - 3]}..."
        return f'<a href="{href}" target="_blank" rel="noopener">{escape(display)}</a>'

    return _URL_PATTERN.sub(_link, escaped)


def _aspect_style(width: int | None, height: int | None, default: str = "") -> str:
    if width and height:
        return f"aspect-ratio: {width} / {height};"
    return default


def _render_image(image: EmbedImage) -> str:
    ratio = image.aspect_ratio
    style = _aspect_style(ratio.width, ratio.height) if ratio else ""
    return (
        f'<a href="{escape(image.fullsize_url)}" target="_blank" rel="noopener" '
        f'class="embed-image-link">'
        f'<img src="{escape(image.thumb_url)}" alt="{escape(image.alt)}" class="embed-image" '
        f'style="{style}" loading="lazy"></a>'
    )


def _render_images(embed: EmbedImages) -> str:
    if not embed.images:
        return ""
    layout = {1: "single", 2: "double"}.get(len(embed.images), "grid")
    images = "".join(_render_image(image) for image in embed.images)
    return f'<div class="embed-images {layout}">{images}</div>'


def _render_video(embed: EmbedVideo) -> str:
    ratio = embed.aspect_ratio
    style = (
        _aspect_style(ratio.width, ratio.height) if ratio else "aspect-ratio: 16 / 9;"
    )
    poster = f' poster="{escape(embed.thumbnail_url)}"' if embed.thumbnail_url else ""
    return (
        f'<div class="embed-video" style="{style}">'
        f'<video controls playsinline preload="metadata"{poster} '
        f'aria-label="{escape(embed.alt or "Video")}">'
        f'<source src="{escape(embed.playlist_url)}" type="application/x-mpegURL">'
        "Your browser does not support HLS video.</video></div>"
    )


def _render_external(embed: EmbedExternal) -> str:
    thumb = (
        f'<img src="{escape(embed.thumb_url)}" alt="" class="external-thumb" loading="lazy">'
        if embed.thumb_url
        else ""
    )
    return (
        f'<a href="{escape(embed.uri)}" target="_blank" rel="noopener" class="embed-external">'
        f"{thumb}<div class=\"external-info\">"
        f'<div class="external-title">{escape(embed.title)}</div>'
        f'<div class="external-description">{escape(embed.description)}</div>'
        "</div></a>"
    )


def _render_record(embed: EmbedRecord) -> str:
    author = embed.author
    post_url = f"https://bsky.app/profile/{author.handle}/post/{record_key(embed.uri)}"
    text = embed.text
    if len(text) > MAX_QUOTE_TEXT:
        text = f"{text[: MAX_QUOTE_TEXT - 3]}..."
    nested = render_embed(embed.embed) if embed.embed else ""
    return (
        f'<a href="{escape(post_url)}" target="_blank" rel="noopener" class="embed-record">'
        f'<div class="record-header">{render_avatar_html(author.avatar_url, author.name)}'
        f'<div class="record-author-info">'
        f'<span class="record-author-name">{escape(author.name)}</span> '
        f'<span class="record-author-handle">@{escape(author.handle)}</span></div></div>'
        f'<div class="record-text">{escape(text)}</div>{nested}'
        f'<div class="record-meta">{embed.created_at.strftime("%b %d, %Y")}</div></a>'
    )


def render_embed(embed: Embed) -> str:
    if isinstance(embed, EmbedImages):
        return _render_images(embed)
    if isinstance(embed, EmbedVideo):
        return _render_video(embed)
    if isinstance(embed, EmbedExternal):
        return _render_external(embed)
    if isinstance(embed, EmbedRecord):
        return _render_record(embed)
    if isinstance(embed, EmbedRecordWithMedia):
        return _render_record(embed.record) + render_embed(embed.media)
    raise TypeError(f"unexpected embed {embed!r}")


def render_post(post: ThreadPost, author_handle: str) -> str:
    """Render a single post as an ``<article>`` element."""
    text = linkify_text(escape(post.text))
    embed_html = render_embed(post.embed) if post.embed else ""
    timestamp = post.created_at.strftime("%b %d, %Y at %H:%M UTC")

    meta_parts = [f'<time datetime="{post.created_at.isoformat()}">{timestamp}</time>']
    if post.like_count:
        meta_parts.append(f"{post.like_count} likes")
    if post.repost_count:
        meta_parts.append(f"{post.repost_count} reposts")

    return f"""<article class="post" data-cid="{escape(post.cid)}">
    <div class="post-text">{text}</div>
    {embed_html}
    <a href="{escape(post.web_url(author_handle))}" target="_blank" rel="noopener" class="post-meta">{" &middot; ".join(meta_parts)}</a>
</article>
"""


def render_posts_fragment(posts: Iterable[ThreadPost], author_handle: str) -> str:
    """Ready-to-insert markup for posts appended to an open page."""
    return "".join(render_post(post, author_handle) for post in posts)


def _page_title(author: Author) -> str:
    return f"Thread by @{author.handle} - threadline"


def _thread_head(
    author: Author,
    first_post: ThreadPost,
    thread_url: str,
    *,
    refresh: bool,
) -> str:
    social = SocialMeta(
        title=f"Thread by @{author.handle}",
        description=first_post.text or f"A thread by {author.name} on Bluesky",
        url=thread_url,
        image_url=author.avatar_url,
        og_type="article",
    )
    head = document_head(
        _page_title(author),
        lang=first_post.langs[0] if first_post.langs else None,
        favicon_url=author.avatar_url,
        social=social,
    )
    header = author_header(
        author.name, author.handle, author.avatar_url, author.profile_url(), refresh=refresh
    )
    return f'{head}{header}<main class="thread">\n'


def render_thread(thread: Thread, thread_url: str) -> str:
    """Render a complete thread as a standalone page."""
    author = thread.author
    posts = render_posts_fragment(thread.posts, author.handle)
    content = (
        author_header(
            author.name, author.handle, author.avatar_url, author.profile_url(), refresh=False
        )
        + f'<main class="thread">\n{posts}</main>\n'
        + f'<footer><a href="{escape(thread.original_post_url())}" target="_blank" '
        'rel="noopener">View original on Bluesky</a></footer>'
    )
    social = SocialMeta(
        title=f"Thread by @{author.handle}",
        description=thread.root.text,
        url=thread_url,
        image_url=author.avatar_url,
        og_type="article",
    )
    return base_page(
        _page_title(author),
        content,
        lang=thread.primary_language(),
        favicon_url=author.avatar_url,
        social=social,
    )


async def render_thread_stream(
    events: AsyncGenerator[StreamEvent, None] | AsyncIterator[StreamEvent],
    *,
    handle: str,
    post_id: str,
    thread_url: str,
    polling: PollSettings | None = None,
) -> AsyncIterator[str]:
    """Translate thread events into HTML chunks as they arrive.

    The document head is held back until the first post arrives so the page
    description can quote it. Failures before that point propagate, letting
    the caller answer with a proper error status. Later failures close the
    page with an inline error and never emit the footer.
    """
    author: Author | None = None
    last_post: ThreadPost | None = None
    started = False
    try:
        async for event in events:
            if isinstance(event, Header):
                author = event.author
            elif isinstance(event, PostEvent):
                if author is None:
                    raise TypeError("post event before header")
                post_html = render_post(event.post, author.handle)
                if not started:
                    started = True
                    head = _thread_head(author, event.post, thread_url, refresh=polling is not None)
                    yield f"{head}{post_html}{loading_indicator()}"
                else:
                    yield post_before_indicator(post_html)
                last_post = event.post
            elif isinstance(event, Done):
                if author is None or last_post is None:
                    raise TypeError("stream finished without posts")
                poll_config = None
                if polling is not None:
                    poll_config = PollingConfig(
                        handle=handle,
                        post_id=post_id,
                        last_cid=last_post.cid,
                        initial_interval=polling.initial_interval,
                        max_interval=polling.max_interval,
                        disable_after=polling.disable_after,
                    )
                original_url = f"https://bsky.app/profile/{handle}/post/{post_id}"
                yield document_footer(original_url, poll_config)
            else:
                raise TypeError(f"unexpected stream event {event!r}")
    except ThreadError as exc:
        if not started:
            raise
        logger.warning("Thread stream for %s/%s aborted: %s", handle, post_id, exc.message)
        yield stream_error(exc.message)
    finally:
        aclose = getattr(events, "aclose", None)
        if aclose is not None:
            await aclose()


__all__ = [
    "PollSettings",
    "linkify_text",
    "render_embed",
    "render_post",
    "render_posts_fragment",
    "render_thread",
    "render_thread_stream",
]
