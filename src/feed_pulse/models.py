# ABOUTME: Pydantic models for fetched feed documents and ingestion results.
# ABOUTME: Defines FeedItem, FeedDocument, NewPost, and CycleResult schemas.

from datetime import datetime

from pydantic import BaseModel


class FeedItem(BaseModel):
    """A validated item from a fetched feed."""

    title: str
    link: str
    description: str
    published_at: datetime | None = None


class FeedDocument(BaseModel):
    """Normalized feed as fetched; discarded once its items are ingested."""

    channel_title: str
    channel_link: str
    channel_description: str
    items: list[FeedItem]


class NewPost(BaseModel):
    """Values for a post about to be inserted."""

    url: str
    feed_id: str
    title: str
    description: str | None = None
    published_at: datetime | None = None

    @classmethod
    def from_item(cls, item: FeedItem, feed_id: str) -> "NewPost":
        return cls(
            url=item.link,
            feed_id=feed_id,
            title=item.title,
            description=item.description,
            published_at=item.published_at,
        )


class CycleResult(BaseModel):
    """Outcome of one ingestion cycle."""

    feed_name: str | None = None
    new_count: int = 0
    duplicate_count: int = 0
