# ABOUTME: Exception hierarchy for feed ingestion and the command line.
# ABOUTME: Per-cycle failures derive from IngestError; UsageError is fatal to one invocation.


class FeedPulseError(Exception):
    """Base class for all feed_pulse errors."""


class UsageError(FeedPulseError):
    """A command line argument is missing or malformed."""


class IngestError(FeedPulseError):
    """A failure scoped to a single ingestion cycle."""


class FeedError(IngestError):
    """The feed could not be turned into a usable document."""


class FetchError(FeedError):
    """The feed request failed at the transport or HTTP level."""

    def __init__(self, status: int | None, status_text: str) -> None:
        self.status = status
        self.status_text = status_text
        if status is None:
            super().__init__(f"failed to fetch feed: {status_text}")
        else:
            super().__init__(f"failed to fetch feed: {status} {status_text}")


class ParseError(FeedError):
    """The response body is not a feed, or lacks required channel fields."""


class ValidationError(FeedError):
    """No item in the feed passed per-item validation."""


class StorageError(IngestError):
    """Unexpected persistence failure (anything other than a duplicate post)."""
