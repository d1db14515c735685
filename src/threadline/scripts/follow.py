"""
Print a Bluesky thread in the terminal and keep printing new posts.

Talks to a running Threadline server, so the same backoff and staleness
rules apply as in the browser.

Usage:
    python -m threadline.scripts.follow https://bsky.app/profile/alice.bsky.social/post/3k2a
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Iterable, Sequence

from threadline.core.logging_config import configure_logging
from threadline.core.settings import settings
from threadline.models.thread import PollCursor, ThreadPost
from threadline.services.errors import ThreadError
from threadline.services.follower import ThreadFollower, to_thread_post
from threadline.services.polling import PollConfig
from threadline.utils.url_parser import parse_bluesky_url


def format_post(post: ThreadPost) -> str:
    stamp = post.created_at.strftime("%Y-%m-%d %H:%M UTC")
    return f"[{stamp}] {post.text}"


def print_posts(posts: Iterable[ThreadPost]) -> None:
    for post in posts:
        print(format_post(post))
        print()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Follow a Bluesky thread from the terminal")
    parser.add_argument("url", help="bsky.app post URL")
    parser.add_argument(
        "--base-url",
        default=settings.public_base_url,
        help="Threadline server to poll (default: %(default)s)",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=float(settings.poll_initial_interval_seconds),
        help="initial seconds between polls",
    )
    parser.add_argument(
        "--max-interval",
        type=float,
        default=float(settings.poll_max_interval_seconds),
        help="upper bound on the backoff interval",
    )
    parser.add_argument(
        "--disable-after",
        type=float,
        default=float(settings.poll_disable_after_seconds),
        help="stop after this many seconds without new posts",
    )
    parser.add_argument("--once", action="store_true", help="print the thread and exit")
    parser.add_argument("--log-level", default="warning")
    return parser


async def follow(args: argparse.Namespace) -> None:
    parts = parse_bluesky_url(args.url)
    config = PollConfig(
        initial_interval=args.interval,
        max_interval=max(args.max_interval, args.interval),
        disable_after=args.disable_after,
    )
    async with ThreadFollower(
        args.base_url,
        config=config,
        on_posts=print_posts,
        timeout_seconds=settings.request_timeout_seconds,
    ) as follower:
        thread = await follower.fetch_thread(parts.handle, parts.post_id)
        name = thread.author.display_name or thread.author.handle
        print(f"{name} (@{thread.author.handle})\n")
        print_posts(to_thread_post(post) for post in thread.posts)
        if args.once or not thread.posts:
            return

        cursor = PollCursor(parts.handle, parts.post_id, thread.posts[-1].cid)
        await follower.run(cursor)
        print("No new posts for a while; stopped following.")


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    try:
        asyncio.run(follow(args))
    except ThreadError as exc:
        print(f"error: {exc.message}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
