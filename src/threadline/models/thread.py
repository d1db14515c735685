"""Value types for reconstructed self-reply threads.

All types here are immutable. A ``PostContext`` is the result of exactly one
shallow fetch: the post, its author, at most one parent and at most one page
of direct replies. Parents and replies are plain ``PostView`` values and never
carry context of their own, so nothing here nests deeper than one hop.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime

BSKY_WEB_URL = "https://bsky.app"
POST_COLLECTION = "app.bsky.feed.post"


def build_post_uri(did: str, post_id: str) -> str:
    """Return the AT-URI for a post record key owned by ``did``."""
    return f"at://{did}/{POST_COLLECTION}/{post_id}"


def record_key(uri: str) -> str:
    """Extract the record key (last path segment) from an AT-URI."""
    return uri.rsplit("/", 1)[-1]


@dataclass(frozen=True)
class AspectRatio:
    width: int
    height: int


@dataclass(frozen=True)
class EmbedImage:
    thumb_url: str
    fullsize_url: str
    alt: str = ""
    aspect_ratio: AspectRatio | None = None


@dataclass(frozen=True)
class EmbedImages:
    images: tuple[EmbedImage, ...]


@dataclass(frozen=True)
class EmbedVideo:
    playlist_url: str
    thumbnail_url: str | None = None
    alt: str | None = None
    aspect_ratio: AspectRatio | None = None


@dataclass(frozen=True)
class EmbedExternal:
    uri: str
    title: str = ""
    description: str = ""
    thumb_url: str | None = None


@dataclass(frozen=True)
class EmbedRecord:
    """A quoted post."""

    uri: str
    author: Author
    text: str
    created_at: datetime
    embed: Embed | None = None


@dataclass(frozen=True)
class EmbedRecordWithMedia:
    record: EmbedRecord
    media: Embed


Embed = EmbedImages | EmbedVideo | EmbedExternal | EmbedRecord | EmbedRecordWithMedia


@dataclass(frozen=True)
class Author:
    """A post author. Two authors are equal when their DIDs are equal."""

    did: str
    handle: str = field(compare=False)
    display_name: str | None = field(default=None, compare=False)
    avatar_url: str | None = field(default=None, compare=False)

    @property
    def name(self) -> str:
        return self.display_name or self.handle

    def profile_url(self) -> str:
        return f"{BSKY_WEB_URL}/profile/{self.handle}"


@dataclass(frozen=True)
class ThreadPost:
    """Projection of a single post used while assembling a thread."""

    uri: str
    cid: str
    text: str
    created_at: datetime
    indexed_at: datetime | None = None
    reply_count: int | None = None
    repost_count: int | None = None
    like_count: int | None = None
    quote_count: int | None = None
    embed: Embed | None = None
    langs: tuple[str, ...] = ()

    @property
    def post_id(self) -> str:
        return record_key(self.uri)

    def web_url(self, handle: str) -> str:
        return f"{BSKY_WEB_URL}/profile/{handle}/post/{self.post_id}"


@dataclass(frozen=True)
class PostView:
    """A post together with its author, without any surrounding context."""

    post: ThreadPost
    author: Author


@dataclass(frozen=True)
class PostContext:
    """One shallow fetch: a post, its author, one parent and one reply page."""

    post: ThreadPost
    author: Author
    parent: PostView | None = None
    replies: tuple[PostView, ...] = ()

    def same_author_parent(self) -> PostView | None:
        """Return the parent when it was written by this post's author."""
        if self.parent is not None and self.parent.author.did == self.author.did:
            return self.parent
        return None

    def first_reply_by(self, did: str) -> PostView | None:
        """Return the first reply, in API order, written by ``did``."""
        for reply in self.replies:
            if reply.author.did == did:
                return reply
        return None


@dataclass(frozen=True)
class Thread:
    """A complete self-reply chain, root first."""

    posts: tuple[ThreadPost, ...]
    author: Author

    def __post_init__(self) -> None:
        if not self.posts:
            raise ValueError("a thread contains at least one post")

    @property
    def root(self) -> ThreadPost:
        return self.posts[0]

    @property
    def last(self) -> ThreadPost:
        return self.posts[-1]

    def original_post_url(self) -> str:
        return self.root.web_url(self.author.handle)

    def primary_language(self) -> str | None:
        """Most common language tag across the thread, ties going to the earliest."""
        counts = Counter(post.langs[0] for post in self.posts if post.langs)
        if not counts:
            return None
        return counts.most_common(1)[0][0]


@dataclass(frozen=True)
class Header:
    """First stream event: who wrote the thread."""

    author: Author


@dataclass(frozen=True)
class PostEvent:
    """One post of the chain, emitted in chain order."""

    post: ThreadPost


@dataclass(frozen=True)
class Done:
    """Final stream event; no posts follow it."""


StreamEvent = Header | PostEvent | Done


@dataclass(frozen=True)
class PollCursor:
    """Client-held watermark for detecting newly appended posts."""

    handle: str
    post_id: str
    last_cid: str

    def advance(self, last_cid: str) -> PollCursor:
        return PollCursor(handle=self.handle, post_id=self.post_id, last_cid=last_cid)


@dataclass(frozen=True)
class NoChange:
    """No posts were appended after the watermark."""


@dataclass(frozen=True)
class NewPosts:
    """Posts appended after the watermark, oldest first."""

    posts: tuple[ThreadPost, ...]
    last_cid: str


@dataclass(frozen=True)
class Stale:
    """Nothing new, and the chain has been quiet past the staleness window."""


PollResult = NoChange | NewPosts | Stale
