"""Data models for feedsync."""

from feedsync.models.cache import CacheEntry, CacheStats, RevalidationMetadata
from feedsync.models.feed import (
    NO_DESCRIPTION,
    UNKNOWN_AUTHOR,
    UNTITLED_ITEM,
    UNTITLED_SOURCE,
    EpisodeType,
    Item,
    Source,
)
from feedsync.models.sync import (
    BatchSyncResult,
    FeedResult,
    FeedUpdate,
    FetchOptions,
    FetchResult,
    SourceSyncResult,
)

__all__ = [
    "NO_DESCRIPTION",
    "UNKNOWN_AUTHOR",
    "UNTITLED_ITEM",
    "UNTITLED_SOURCE",
    "BatchSyncResult",
    "CacheEntry",
    "CacheStats",
    "EpisodeType",
    "FeedResult",
    "FeedUpdate",
    "FetchOptions",
    "FetchResult",
    "Item",
    "RevalidationMetadata",
    "Source",
    "SourceSyncResult",
]
