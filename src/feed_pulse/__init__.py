# ABOUTME: Main package for the feed_pulse scheduled feed ingester.
# ABOUTME: Exports configuration and the core feed document models.

from feed_pulse.config import get_settings
from feed_pulse.models import CycleResult, FeedDocument, FeedItem, NewPost

__all__ = [
    "get_settings",
    "CycleResult",
    "FeedDocument",
    "FeedItem",
    "NewPost",
]
