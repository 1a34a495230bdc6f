# ABOUTME: Pytest fixtures and configuration for feed_pulse tests.
# ABOUTME: Provides settings, a temporary SQLite database, an RSS builder, and a mock HTTP fetcher.

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import datetime
from pathlib import Path
from xml.sax.saxutils import escape

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from feed_pulse.config import Settings
from feed_pulse.db.models import Feed
from feed_pulse.db.repository import FeedRepository
from feed_pulse.db.session import init_db, make_session_factory, session_scope
from feed_pulse.db.storage import FeedStorage
from feed_pulse.feeds.fetcher import FeedFetcher


@pytest.fixture
def mock_settings() -> Settings:
    """Create mock settings for testing."""
    return Settings(
        db_url="sqlite+aiosqlite:///:memory:",
        feed_timeout=5,
        feed_user_agent="feed-pulse-test",
        feed_fetch_attempts=2,
        feed_retry_wait_max=0,
        log_level="DEBUG",
    )


@pytest.fixture
async def session_factory(tmp_path: Path) -> AsyncGenerator[async_sessionmaker[AsyncSession]]:
    """Session factory over a fresh SQLite database with all tables created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'feed_pulse.db'}")
    await init_db(engine)
    yield make_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def storage(session_factory: async_sessionmaker[AsyncSession]) -> FeedStorage:
    """FeedStorage backed by the temporary database."""
    return FeedStorage(session_factory)


@pytest.fixture
def add_feed(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[..., Awaitable[Feed]]:
    """Insert a feed row, optionally with a last_fetched_at value."""

    async def _add(name: str, url: str, last_fetched_at: datetime | None = None) -> Feed:
        async with session_scope(session_factory) as session:
            feed = await FeedRepository(session).create(name, url)
            feed.last_fetched_at = last_fetched_at
        return feed

    return _add


@pytest.fixture
def load_feed(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[[str], Awaitable[Feed]]:
    """Re-read a feed row by name."""

    async def _load(name: str) -> Feed:
        async with session_scope(session_factory) as session:
            feed = await FeedRepository(session).get_by_name(name)
        assert feed is not None
        return feed

    return _load


def _element(tag: str, value: str | None) -> str:
    return "" if value is None else f"<{tag}>{escape(value)}</{tag}>"


@pytest.fixture
def build_rss() -> Callable[..., bytes]:
    """Build an RSS 2.0 document; a field set to None is omitted."""

    def _build(
        items: list[dict[str, str | None]],
        title: str | None = "Example Feed",
        link: str | None = "https://example.com/",
        description: str | None = "An example feed",
    ) -> bytes:
        item_xml = "".join(
            "<item>"
            + "".join(
                _element(tag, item.get(tag)) for tag in ("title", "link", "description", "pubDate")
            )
            + "</item>"
            for item in items
        )
        channel = (
            _element("title", title)
            + _element("link", link)
            + _element("description", description)
            + item_xml
        )
        return (
            '<?xml version="1.0" encoding="UTF-8"?>'
            f'<rss version="2.0"><channel>{channel}</channel></rss>'
        ).encode()

    return _build


@pytest.fixture
def sample_items() -> list[dict[str, str | None]]:
    """Two valid feed items."""
    return [
        {
            "title": "First post",
            "link": "https://example.com/posts/1",
            "description": "The first post",
            "pubDate": "Mon, 06 Jan 2025 10:00:00 GMT",
        },
        {
            "title": "Second post",
            "link": "https://example.com/posts/2",
            "description": "The second post",
            "pubDate": "Tue, 07 Jan 2025 10:00:00 GMT",
        },
    ]


@pytest.fixture
def make_fetcher(
    mock_settings: Settings,
) -> Callable[[Callable[[httpx.Request], httpx.Response]], FeedFetcher]:
    """Build a FeedFetcher whose HTTP client is served by handler."""

    def _make(handler: Callable[[httpx.Request], httpx.Response]) -> FeedFetcher:
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(handler),
            headers={
                "User-Agent": mock_settings.feed_user_agent,
                "Accept": mock_settings.feed_accept,
            },
        )
        return FeedFetcher(mock_settings, client=client)

    return _make
