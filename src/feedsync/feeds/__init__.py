"""Feed fetching, parsing and caching for feedsync."""

from feedsync.feeds.errors import (
    CacheError,
    FeedError,
    FeedParseError,
    NetworkError,
    NotModified,
    SyncInProgressError,
)
from feedsync.feeds.atom import AtomParser
from feedsync.feeds.detect import FeedFormat, FeedParsers, detect_format
from feedsync.feeds.fetcher import FeedFetcher, RetryPolicy
from feedsync.feeds.identity import item_id, source_id
from feedsync.feeds.parser import FeedParser
from feedsync.feeds.rss import RSSParser
from feedsync.feeds.service import FeedService

__all__ = [
    "AtomParser",
    "CacheError",
    "FeedError",
    "FeedFetcher",
    "FeedFormat",
    "FeedParseError",
    "FeedParser",
    "FeedParsers",
    "FeedService",
    "NetworkError",
    "NotModified",
    "RSSParser",
    "RetryPolicy",
    "SyncInProgressError",
    "detect_format",
    "item_id",
    "source_id",
]
