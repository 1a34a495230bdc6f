# ABOUTME: Storage collaborator consumed by the ingestion pipeline.
# ABOUTME: Selects the next feed due, advances last_fetched_at, and inserts posts with typed outcomes.

from dataclasses import dataclass
from datetime import datetime

import structlog
from sqlalchemy import or_, select, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from feed_pulse.db.models import Feed, Post
from feed_pulse.db.session import get_session_factory, session_scope
from feed_pulse.errors import StorageError
from feed_pulse.models import NewPost

log = structlog.get_logger()

_UPSERT_INSERTS = {
    "postgresql": postgresql_insert,
    "sqlite": sqlite_insert,
}


@dataclass(frozen=True)
class Inserted:
    """The post was stored."""

    post: Post


@dataclass(frozen=True)
class Duplicate:
    """A post with the same URL already exists."""

    url: str


@dataclass(frozen=True)
class StorageFailure:
    """The insert failed for a reason other than a duplicate URL."""

    error: StorageError


InsertOutcome = Inserted | Duplicate | StorageFailure


class FeedStorage:
    """Persistence operations the ingestion core depends on.

    Each operation runs in its own transaction, so a failed insert never
    prevents the feed's last_fetched_at from being advanced afterwards.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self.session_factory = session_factory or get_session_factory()

    async def next_feed_due(self) -> Feed | None:
        """Feed with the oldest last_fetched_at, never-fetched feeds first.

        Raises:
            StorageError: The feeds table could not be queried.
        """
        try:
            async with session_scope(self.session_factory) as session:
                result = await session.execute(
                    select(Feed)
                    .order_by(Feed.last_fetched_at.asc().nulls_first(), Feed.id)
                    .limit(1)
                )
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            log.error("next_feed_query_failed", error=str(e))
            raise StorageError(f"failed to select next feed: {e}") from e

    async def mark_fetched(self, feed_id: str, fetched_at: datetime) -> None:
        """Advance last_fetched_at to fetched_at; older timestamps are ignored.

        Raises:
            StorageError: The update could not be written.
        """
        try:
            async with session_scope(self.session_factory) as session:
                await session.execute(
                    update(Feed)
                    .where(Feed.id == feed_id)
                    .where(
                        or_(Feed.last_fetched_at.is_(None), Feed.last_fetched_at < fetched_at)
                    )
                    .values(last_fetched_at=fetched_at, updated_at=fetched_at)
                )
        except SQLAlchemyError as e:
            log.error("mark_fetched_failed", feed_id=feed_id, error=str(e))
            raise StorageError(f"failed to mark feed {feed_id} as fetched: {e}") from e

    async def insert_post(self, post: NewPost) -> InsertOutcome:
        """Insert a post unless its URL is already stored.

        Uses INSERT ... ON CONFLICT (url) DO NOTHING RETURNING, so a duplicate is
        recognised by the absence of a returned row rather than by an exception.
        """
        try:
            async with session_scope(self.session_factory) as session:
                insert = _UPSERT_INSERTS.get(session.get_bind().dialect.name)
                if insert is None:
                    return StorageFailure(
                        StorageError(
                            f"unsupported database dialect: {session.get_bind().dialect.name}"
                        )
                    )
                stmt = (
                    insert(Post)
                    .values(**post.model_dump())
                    .on_conflict_do_nothing(index_elements=[Post.url])
                    .returning(Post)
                )
                stored = (await session.scalars(stmt)).first()
        except SQLAlchemyError as e:
            log.error("post_insert_failed", url=post.url, error=str(e))
            return StorageFailure(StorageError(f"failed to insert post {post.url}: {e}"))

        if stored is None:
            return Duplicate(post.url)
        return Inserted(stored)
