# ABOUTME: CLI entry point for the feed_pulse ingester.
# ABOUTME: Provides subcommands: init-db, addfeed, follow, feeds, deletefeed, browse, fetch, agg.

import argparse
import asyncio
import logging
import signal
import sys
from collections.abc import Awaitable, Callable

import httpx
import structlog
from sqlalchemy.exc import IntegrityError

from feed_pulse.config import get_settings
from feed_pulse.errors import FeedError, UsageError
from feed_pulse.utils.duration import InvalidDurationError, format_duration, parse_duration


def configure_logging() -> None:
    """Configure structlog for console or JSON output."""
    settings = get_settings()

    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.log_format == "json":
        structlog.configure(
            processors=[
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.add_log_level,
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(log_level),
        )
    else:
        structlog.configure(
            processors=[
                structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
                structlog.processors.add_log_level,
                structlog.dev.ConsoleRenderer(colors=True),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(log_level),
        )


def _run_with_db(command: Callable[[], Awaitable[int]]) -> int:
    """Run an async command and dispose of the database engine afterwards."""
    from feed_pulse.db.session import close_db

    async def runner() -> int:
        try:
            return await command()
        finally:
            await close_db()

    return asyncio.run(runner())


def parse_interval(text: str) -> int:
    """Validate the agg interval argument, returning milliseconds."""
    try:
        interval_ms = parse_duration(text)
    except InvalidDurationError as e:
        raise UsageError(f"agg <time_between_reqs>: {e}") from e
    if interval_ms == 0:
        raise UsageError("agg <time_between_reqs>: interval must be greater than zero")
    return interval_ms


def feed_name_from_url(url: str) -> str:
    """Derive a feed name from its URL host, dropping a leading "www."."""
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as e:
        raise UsageError(f"invalid URL: {url}") from e
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise UsageError(f"invalid URL: {url}")
    host = parsed.host
    return host[4:] if host.startswith("www.") else host


def cmd_init_db(_args: argparse.Namespace) -> int:
    """Create database tables."""
    from feed_pulse.db.session import init_db

    log = structlog.get_logger()

    async def run() -> int:
        await init_db()
        log.info("database_initialized")
        return 0

    return _run_with_db(run)


def cmd_addfeed(args: argparse.Namespace) -> int:
    """Register a feed under an explicit name."""
    return _run_with_db(lambda: _add_feed(args.name, args.url))


def cmd_follow(args: argparse.Namespace) -> int:
    """Register a feed by URL, naming it after the host."""
    from feed_pulse.db.repository import FeedRepository
    from feed_pulse.db.session import get_session

    name = feed_name_from_url(args.url)

    async def run() -> int:
        async with get_session() as session:
            existing = await FeedRepository(session).get_by_url(args.url)
        if existing is not None:
            print(f"Feed already registered: {existing.name}")
            return 0
        return await _add_feed(name, args.url)

    return _run_with_db(run)


async def _add_feed(name: str, url: str) -> int:
    from feed_pulse.db.repository import FeedRepository
    from feed_pulse.db.session import get_session

    log = structlog.get_logger()

    try:
        async with get_session() as session:
            feed = await FeedRepository(session).create(name, url)
    except IntegrityError:
        log.error("feed_create_failed", name=name, url=url, reason="name_or_url_taken")
        print(f"A feed named {name!r} or with URL {url} already exists.")
        return 1

    log.info("feed_created", feed_id=feed.id, name=feed.name, url=feed.url)
    print(f"Feed created: {feed.name} ({feed.url})")
    return 0


def cmd_feeds(_args: argparse.Namespace) -> int:
    """List registered feeds with their post counts."""
    from feed_pulse.db.repository import FeedRepository, PostRepository
    from feed_pulse.db.session import get_session

    async def run() -> int:
        async with get_session() as session:
            feeds = await FeedRepository(session).list_all()
            post_repo = PostRepository(session)
            counts = {feed.id: await post_repo.count_by_feed(feed.id) for feed in feeds}

        if not feeds:
            print("No feeds registered.")
            return 0

        for feed in feeds:
            fetched = feed.last_fetched_at.isoformat() if feed.last_fetched_at else "never"
            print(
                f"* {feed.name}\n  URL: {feed.url}\n  Last fetched: {fetched}\n"
                f"  Posts: {counts[feed.id]}"
            )
        return 0

    return _run_with_db(run)


def cmd_deletefeed(args: argparse.Namespace) -> int:
    """Delete a feed and its posts."""
    from feed_pulse.db.repository import FeedRepository
    from feed_pulse.db.session import get_session

    log = structlog.get_logger()

    async def run() -> int:
        async with get_session() as session:
            deleted = await FeedRepository(session).delete_by_name(args.name)

        if not deleted:
            print(f"No feed named {args.name!r}.")
            return 1
        log.info("feed_deleted", name=args.name)
        print(f"Feed deleted: {args.name}")
        return 0

    return _run_with_db(run)


def cmd_browse(args: argparse.Namespace) -> int:
    """Show the most recent posts."""
    from feed_pulse.db.repository import PostRepository
    from feed_pulse.db.session import get_session

    if args.limit is None:
        limit = get_settings().browse_default_limit
    else:
        try:
            limit = int(args.limit)
        except ValueError:
            limit = 0
        if limit <= 0:
            raise UsageError("browse [limit]: limit must be a positive number")

    async def run() -> int:
        async with get_session() as session:
            posts = await PostRepository(session).list_recent(limit=limit, feed_name=args.feed)

        if not posts:
            print("No posts found. Add some feeds and run agg first!")
            return 0

        print(f"Found {len(posts)} posts:")
        for post, feed_name in posts:
            published = post.published_at.isoformat() if post.published_at else "Unknown date"
            print(f"{published} from {feed_name}")
            print(f"--- {post.title} ---")
            if post.description:
                print(f"     {post.description}")
            print(f"Link: {post.url}")
        return 0

    return _run_with_db(run)


def cmd_fetch(args: argparse.Namespace) -> int:
    """Fetch a feed once and print the validated document as JSON."""
    from feed_pulse.feeds.fetcher import FeedFetcher

    log = structlog.get_logger()

    async def run() -> int:
        async with FeedFetcher() as fetcher:
            document = await fetcher.fetch(args.url)
        print(document.model_dump_json(indent=2))
        return 0

    try:
        return asyncio.run(run())
    except FeedError as e:
        log.error("cmd_fetch_failed", url=args.url, error=str(e))
        return 1


def cmd_agg(args: argparse.Namespace) -> int:
    """Poll feeds every interval until SIGINT or SIGTERM."""
    interval_ms = parse_interval(args.interval)
    print(f"Collecting feeds every {format_duration(interval_ms)}")
    return _run_with_db(lambda: aggregate(interval_ms))


async def aggregate(interval_ms: int) -> int:
    """Run the scheduler until a termination signal has been handled."""
    from feed_pulse.db.storage import FeedStorage
    from feed_pulse.feeds.fetcher import FeedFetcher
    from feed_pulse.ingest.pipeline import IngestionPipeline
    from feed_pulse.ingest.scheduler import Scheduler

    log = structlog.get_logger()
    loop = asyncio.get_running_loop()
    signals = (signal.SIGINT, signal.SIGTERM)

    async with FeedFetcher() as fetcher:
        scheduler = Scheduler(IngestionPipeline(FeedStorage(), fetcher), interval_ms)
        for sig in signals:
            loop.add_signal_handler(sig, scheduler.request_shutdown)
        try:
            await scheduler.run()
        finally:
            for sig in signals:
                loop.remove_signal_handler(sig)

    log.info("cmd_agg_complete", cycles=scheduler.cycles_started)
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="feed_pulse",
        description="feed_pulse - scheduled RSS feed ingester",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("init-db", help="Create database tables")

    addfeed_parser = subparsers.add_parser("addfeed", help="Register a feed")
    addfeed_parser.add_argument("name", help="Unique feed name")
    addfeed_parser.add_argument("url", help="Feed URL")

    follow_parser = subparsers.add_parser(
        "follow",
        help="Register a feed by URL, named after its host",
    )
    follow_parser.add_argument("url", help="Feed URL")

    subparsers.add_parser("feeds", help="List registered feeds")

    deletefeed_parser = subparsers.add_parser("deletefeed", help="Delete a feed and its posts")
    deletefeed_parser.add_argument("name", help="Feed name")

    browse_parser = subparsers.add_parser("browse", help="Show recent posts")
    browse_parser.add_argument(
        "limit",
        nargs="?",
        default=None,
        help="Number of posts to show (default from settings)",
    )
    browse_parser.add_argument("--feed", type=str, help="Only show posts from this feed")

    fetch_parser = subparsers.add_parser("fetch", help="Fetch one feed URL and print it")
    fetch_parser.add_argument("url", help="Feed URL")

    agg_parser = subparsers.add_parser("agg", help="Poll feeds on an interval")
    agg_parser.add_argument(
        "interval",
        help="Time between requests: <integer><unit>, unit one of ms, s, m, h (e.g. 30s)",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    configure_logging()

    parser = create_parser()
    args = parser.parse_args(argv)

    commands = {
        "init-db": cmd_init_db,
        "addfeed": cmd_addfeed,
        "follow": cmd_follow,
        "feeds": cmd_feeds,
        "deletefeed": cmd_deletefeed,
        "browse": cmd_browse,
        "fetch": cmd_fetch,
        "agg": cmd_agg,
    }

    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    try:
        return handler(args)
    except UsageError as e:
        print(f"usage: {parser.prog} {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
