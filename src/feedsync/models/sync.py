"""Fetch options and sync result models for feedsync."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import NamedTuple

from pydantic import BaseModel, ConfigDict, Field

from feedsync.models.feed import Item, Source


class FetchOptions(BaseModel):
    """Options recognized by FeedService.fetch_feed."""

    model_config = ConfigDict(frozen=True)

    use_cache: bool = Field(
        default=True, description="Skip the network when a fresh cache entry exists"
    )
    cache_ttl: timedelta = Field(
        default=timedelta(hours=1), description="Time-to-live for the written entry"
    )
    timeout: float | None = Field(
        default=None, gt=0, description="Request timeout in seconds (None: fetcher's)"
    )
    user_agent: str | None = Field(
        default=None, description="User-Agent header (None: fetcher's)"
    )
    etag: str | None = Field(default=None, description="Caller-supplied ETag hint")
    last_modified: str | None = Field(
        default=None, description="Caller-supplied Last-Modified hint"
    )


class FetchResult(NamedTuple):
    """Body and validators returned by a successful fetch."""

    text: str
    etag: str | None = None
    last_modified: str | None = None
    status_code: int = 200


class FeedResult(NamedTuple):
    """A parsed feed."""

    source: Source
    items: list[Item]


class FeedUpdate(NamedTuple):
    """A refreshed feed and the items not previously known."""

    source: Source
    items: list[Item]
    new_items: list[Item]


class SourceSyncResult(BaseModel):
    """Outcome of syncing one source."""

    model_config = ConfigDict(frozen=True)

    source_id: str
    success: bool
    new_items_count: int = 0
    error: str | None = None
    updated_at: datetime


class BatchSyncResult(BaseModel):
    """Aggregated outcome of a bulk sync."""

    model_config = ConfigDict(frozen=True)

    results: list[SourceSyncResult] = Field(default_factory=list)
    started_at: datetime
    completed_at: datetime

    @property
    def total_sources(self) -> int:
        """Number of sources attempted."""
        return len(self.results)

    @property
    def success_count(self) -> int:
        """Number of sources synced successfully."""
        return sum(1 for r in self.results if r.success)

    @property
    def failure_count(self) -> int:
        """Number of sources that failed to sync."""
        return sum(1 for r in self.results if not r.success)

    @property
    def total_new_items(self) -> int:
        """New items found across all sources."""
        return sum(r.new_items_count for r in self.results)
