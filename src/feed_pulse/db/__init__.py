# ABOUTME: Database module initialization.
# ABOUTME: Exports ORM models, session helpers, and the ingestion storage collaborator.

from feed_pulse.db.models import Base, Feed, Post
from feed_pulse.db.session import get_session, init_db
from feed_pulse.db.storage import Duplicate, FeedStorage, Inserted, StorageFailure

__all__ = [
    "Base",
    "Duplicate",
    "Feed",
    "FeedStorage",
    "Inserted",
    "Post",
    "StorageFailure",
    "get_session",
    "init_db",
]
