# ABOUTME: Repository classes for feed management and browsing.
# ABOUTME: Provides FeedRepository and PostRepository CRUD operations used by CLI commands.

from collections.abc import Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from feed_pulse.db.models import Feed, Post


class FeedRepository:
    """Repository for Feed CRUD operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, name: str, url: str) -> Feed:
        """Create a feed. Raises IntegrityError if name or url is taken."""
        feed = Feed(name=name, url=url)
        self.session.add(feed)
        await self.session.flush()
        return feed

    async def get_by_url(self, url: str) -> Feed | None:
        """Get feed by URL."""
        result = await self.session.execute(select(Feed).where(Feed.url == url))
        return result.scalar_one_or_none()

    async def get_by_name(self, name: str) -> Feed | None:
        """Get feed by name."""
        result = await self.session.execute(select(Feed).where(Feed.name == name))
        return result.scalar_one_or_none()

    async def list_all(self) -> Sequence[Feed]:
        """List all feeds ordered by name."""
        result = await self.session.execute(select(Feed).order_by(Feed.name))
        return result.scalars().all()

    async def delete_by_name(self, name: str) -> bool:
        """Delete a feed and its posts. Returns True if deleted."""
        feed = await self.get_by_name(name)
        if feed is None:
            return False
        await self.session.execute(delete(Post).where(Post.feed_id == feed.id))
        result = await self.session.execute(delete(Feed).where(Feed.id == feed.id))
        return result.rowcount > 0


class PostRepository:
    """Repository for reading ingested posts."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_recent(
        self, limit: int = 10, feed_name: str | None = None
    ) -> Sequence[tuple[Post, str]]:
        """List recent posts with their feed name, newest first and undated last."""
        query = (
            select(Post, Feed.name)
            .join(Feed, Post.feed_id == Feed.id)
            .order_by(Post.published_at.desc().nulls_last(), Post.created_at.desc())
        )
        if feed_name:
            query = query.where(Feed.name == feed_name)
        result = await self.session.execute(query.limit(limit))
        return [(row.Post, row.name) for row in result.all()]

    async def count_by_feed(self, feed_id: str) -> int:
        """Count posts ingested from a feed."""
        result = await self.session.execute(
            select(func.count(Post.id)).where(Post.feed_id == feed_id)
        )
        return result.scalar_one()
