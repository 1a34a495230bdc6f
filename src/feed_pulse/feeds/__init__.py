# ABOUTME: Feed processing module for RSS fetching and validation.
# ABOUTME: Handles downloading, parsing, and per-item filtering of feeds.

from feed_pulse.feeds.fetcher import FeedFetcher, parse_feed

__all__ = ["FeedFetcher", "parse_feed"]
