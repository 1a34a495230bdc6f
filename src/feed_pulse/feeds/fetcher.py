# ABOUTME: RSS feed fetcher and item validator.
# ABOUTME: Uses httpx for retrieval, feedparser for parsing, tenacity for transport retries.

import contextlib
from datetime import UTC, datetime
from typing import Any

import feedparser
import httpx
import structlog
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from feed_pulse.config import Settings, get_settings
from feed_pulse.errors import FetchError, ParseError, ValidationError
from feed_pulse.models import FeedDocument, FeedItem

log = structlog.get_logger()

REQUIRED_ITEM_FIELDS = ("title", "link", "description")


class FeedFetcher:
    """Fetches a feed over HTTP and normalizes it into a FeedDocument."""

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-initialized HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.settings.feed_timeout,
                headers={
                    "User-Agent": self.settings.feed_user_agent,
                    "Accept": self.settings.feed_accept,
                },
                follow_redirects=True,
            )
            self._owns_client = True
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client if this fetcher created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "FeedFetcher":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def fetch(self, url: str) -> FeedDocument:
        """Fetch and validate the feed at url.

        Args:
            url: The feed URL.

        Returns:
            The normalized feed with every item that passed validation.

        Raises:
            FetchError: Transport failure or non-2xx response.
            ParseError: The body has no channel or lacks required channel fields.
            ValidationError: No item survived validation.
        """
        log.debug("fetching_feed", url=url)
        response = await self._get(url)
        return parse_feed(
            response.content,
            url=url,
            content_type=response.headers.get("content-type"),
        )

    async def _get(self, url: str) -> httpx.Response:
        """GET url, retrying transport errors with exponential backoff."""
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(httpx.TransportError),
                stop=stop_after_attempt(self.settings.feed_fetch_attempts),
                wait=wait_exponential(multiplier=1, max=self.settings.feed_retry_wait_max),
                before_sleep=lambda retry_state: log.warning(
                    "feed_fetch_retry",
                    url=url,
                    attempt=retry_state.attempt_number,
                    wait=retry_state.next_action.sleep,
                ),
                reraise=True,
            ):
                with attempt:
                    response = await self.client.get(url)
        except httpx.TransportError as e:
            raise FetchError(None, str(e) or type(e).__name__) from e

        if not response.is_success:
            raise FetchError(response.status_code, response.reason_phrase)
        return response


def parse_feed(
    content: bytes | str,
    url: str = "",
    content_type: str | None = None,
) -> FeedDocument:
    """Parse an RSS body and keep only the items carrying title, link and description.

    Only RSS channels are accepted; Atom and other formats raise ParseError.
    feedparser always exposes entries as a list, so a channel holding a single
    bare item yields a one-element list.
    """
    response_headers = {"content-type": content_type} if content_type else None
    parsed = feedparser.parse(content, response_headers=response_headers)

    channel = parsed.get("feed")
    if not channel or not parsed.get("version", "").startswith("rss"):
        if parsed.get("bozo"):
            log.warning("feed_not_well_formed", url=url, error=str(parsed.get("bozo_exception")))
        raise ParseError("no channel")

    title = channel.get("title")
    link = channel.get("link")
    description = channel.get("subtitle")
    if not (title and link and description):
        raise ParseError("missing channel fields")

    items = [
        item for item in (_normalize_entry(entry, url) for entry in parsed.entries) if item
    ]
    if not items:
        raise ValidationError("no valid items")

    return FeedDocument(
        channel_title=title,
        channel_link=link,
        channel_description=description,
        items=items,
    )


def _normalize_entry(entry: Any, url: str) -> FeedItem | None:
    values = {
        "title": entry.get("title"),
        "link": _item_link(entry),
        "description": _item_description(entry),
    }
    missing = [name for name in REQUIRED_ITEM_FIELDS if not values[name]]
    if missing:
        log.warning("item_skipped", url=url, link=values["link"], missing=missing)
        return None

    return FeedItem(**values, published_at=_published_at(entry, url))


def _item_link(entry: Any) -> str | None:
    """The item's own <link>, ignoring the guid feedparser promotes to entry.link."""
    for link in entry.get("links", []):
        if link.get("rel") == "alternate" and link.get("href"):
            return link["href"]
    return None


def _item_description(entry: Any) -> str | None:
    """The item's own <description>, ignoring text copied from content:encoded."""
    if "summary_detail" not in entry:
        return None
    return entry.get("summary")


def _published_at(entry: Any, url: str) -> datetime | None:
    """Publication time of an entry, or None when absent or unparseable."""
    raw = entry.get("published")
    if not raw:
        return None

    published_parsed = entry.get("published_parsed")
    if published_parsed:
        with contextlib.suppress(ValueError, TypeError):
            return datetime(*published_parsed[:6], tzinfo=UTC)

    # Item is kept with no date
    log.warning("item_date_unparseable", url=url, link=_item_link(entry), published=raw)
    return None
