# ABOUTME: One ingestion cycle: pick the feed due, fetch it, and store its new posts.
# ABOUTME: Duplicate URLs are counted, other storage failures abort the feed; last_fetched_at always advances.

from collections.abc import Callable
from datetime import UTC, datetime

import structlog

from feed_pulse.db.models import Feed
from feed_pulse.db.storage import Duplicate, FeedStorage, StorageFailure
from feed_pulse.errors import FeedError, StorageError
from feed_pulse.feeds.fetcher import FeedFetcher
from feed_pulse.models import CycleResult, NewPost

log = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(UTC)


class IngestionPipeline:
    """Runs ingestion cycles against the feed that has waited longest."""

    def __init__(
        self,
        storage: FeedStorage,
        fetcher: FeedFetcher,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.storage = storage
        self.fetcher = fetcher
        self._clock = clock

    async def run_cycle(self) -> CycleResult:
        """Ingest the next feed due.

        The feed's last_fetched_at is advanced to the start-of-fetch time even
        when fetching or storing fails, so a broken feed cannot be selected on
        every cycle ahead of healthy ones.

        Returns:
            Counts of new and duplicate posts; zero counts when no feed exists.

        Raises:
            FeedError: The feed could not be fetched, parsed, or had no valid items.
            StorageError: Selecting or marking the feed failed, or a post insert
                failed for a reason other than a duplicate URL. A marker failure
                after a failed cycle is logged and the cycle's error is raised.
        """
        feed = await self.storage.next_feed_due()
        if feed is None:
            log.info("nothing_to_fetch")
            return CycleResult()

        started_at = self._clock()
        log.info("feed_fetch_started", feed=feed.name, url=feed.url)
        try:
            result = await self._ingest(feed)
        except BaseException:
            await self._mark_fetched(feed, started_at, cycle_failed=True)
            raise
        await self._mark_fetched(feed, started_at, cycle_failed=False)

        log.info(
            "feed_ingested",
            feed=result.feed_name,
            new=result.new_count,
            duplicates=result.duplicate_count,
        )
        return result

    async def _ingest(self, feed: Feed) -> CycleResult:
        try:
            document = await self.fetcher.fetch(feed.url)
        except FeedError as e:
            log.error("feed_fetch_failed", feed=feed.name, url=feed.url, error=str(e))
            raise

        result = CycleResult(feed_name=feed.name)
        for item in document.items:
            outcome = await self.storage.insert_post(NewPost.from_item(item, feed.id))
            if isinstance(outcome, Duplicate):
                result.duplicate_count += 1
            elif isinstance(outcome, StorageFailure):
                log.error(
                    "feed_ingest_aborted",
                    feed=feed.name,
                    new=result.new_count,
                    duplicates=result.duplicate_count,
                    error=str(outcome.error),
                )
                raise outcome.error
            else:
                result.new_count += 1

        return result

    async def _mark_fetched(
        self, feed: Feed, started_at: datetime, *, cycle_failed: bool
    ) -> None:
        """Advance the feed's marker; a failed cycle keeps its own error over a marker error."""
        try:
            await self.storage.mark_fetched(feed.id, started_at)
        except StorageError as e:
            log.error("feed_mark_failed", feed=feed.name, error=str(e))
            if not cycle_failed:
                raise
