"""Bulk and periodic synchronization of subscribed sources."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta  # noqa: TC003 - used at runtime in NamedTuple
from typing import TYPE_CHECKING, NamedTuple

from feedsync.cache.base import utc_now
from feedsync.feeds.errors import FeedError, SyncInProgressError
from feedsync.logging import get_logger
from feedsync.models import BatchSyncResult, SourceSyncResult

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from feedsync.config import SyncConfig
    from feedsync.feeds.service import FeedService
    from feedsync.models import Item, Source
    from feedsync.repository import SubscriptionRepository

_log = get_logger("sync")

DEFAULT_INTERVAL = timedelta(hours=1)
DEFAULT_CONCURRENCY = 3


class SyncStatus(NamedTuple):
    """Snapshot of the sync manager's state."""

    is_syncing: bool
    auto_sync_enabled: bool
    last_sync_time: datetime | None
    interval: timedelta


def merge_items(new_items: Iterable[Item], known_items: Iterable[Item]) -> list[Item]:
    """Combine new and known items, one per id, newest first.

    Args:
        new_items: Items found by the latest refresh.
        known_items: Items already stored for the source.

    Returns:
        The merged list sorted by publication date, descending.
    """
    unique: dict[str, Item] = {}
    for item in (*new_items, *known_items):
        unique.setdefault(item.id, item)
    return sorted(unique.values(), key=lambda i: i.published_at, reverse=True)


class FeedSyncManager:
    """Refreshes subscribed sources with bounded concurrency.

    A failure on one source is recorded in its SourceSyncResult and never
    stops the rest of the batch. Only one bulk sync runs at a time.
    """

    def __init__(
        self,
        service: FeedService,
        repository: SubscriptionRepository,
        interval: timedelta = DEFAULT_INTERVAL,
        concurrency: int = DEFAULT_CONCURRENCY,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the sync manager.

        Args:
            service: Service used to refresh feeds.
            repository: Source of subscriptions and destination of updates.
            interval: Minimum age before a source is refreshed, and the
                auto sync period.
            concurrency: Default number of sources refreshed at once.
            clock: Returns the current time.
        """
        self.service = service
        self.repository = repository
        self.interval = interval
        self.concurrency = concurrency
        self._clock = clock or utc_now
        self._syncing = False
        self._last_sync_time: datetime | None = None
        self._auto_task: asyncio.Task[None] | None = None

    @classmethod
    def from_config(
        cls,
        service: FeedService,
        repository: SubscriptionRepository,
        config: SyncConfig,
        clock: Callable[[], datetime] | None = None,
    ) -> FeedSyncManager:
        """Create a manager using the [sync] interval and concurrency."""
        return cls(
            service,
            repository,
            interval=timedelta(seconds=config.interval_seconds),
            concurrency=config.concurrency,
            clock=clock,
        )

    @property
    def is_syncing(self) -> bool:
        """Whether a bulk sync is running."""
        return self._syncing

    def status(self) -> SyncStatus:
        """Report the current sync state."""
        return SyncStatus(
            is_syncing=self._syncing,
            auto_sync_enabled=self._auto_task is not None,
            last_sync_time=self._last_sync_time,
            interval=self.interval,
        )

    def should_update(self, source: Source, now: datetime | None = None) -> bool:
        """Check whether a source is due for a refresh."""
        if source.last_fetched_at is None:
            return True
        now = now or self._clock()
        return now - source.last_fetched_at >= self.interval

    async def sync_all(
        self, force: bool = False, concurrency: int | None = None
    ) -> BatchSyncResult:
        """Refresh every source that is due.

        Args:
            force: Refresh all sources regardless of when they were fetched.
            concurrency: Override for the number of concurrent refreshes.

        Returns:
            Per-source results for the batch.

        Raises:
            SyncInProgressError: If another bulk sync is running.
        """
        async with self._exclusive():
            sources = await self.repository.get_all()
            now = self._clock()
            due = sources if force else [s for s in sources if self.should_update(s, now)]
            _log.info("Syncing %d of %d sources", len(due), len(sources))

            result = await self._run_batch(due, concurrency)
            self._last_sync_time = result.completed_at
            return result

    async def sync_sources(
        self, source_ids: Iterable[str], concurrency: int | None = None
    ) -> BatchSyncResult:
        """Refresh specific sources. Unknown ids are skipped.

        Raises:
            SyncInProgressError: If another bulk sync is running.
        """
        async with self._exclusive():
            sources: list[Source] = []
            for source_id in source_ids:
                source = await self.repository.get(source_id)
                if source is None:
                    _log.warning("Skipping unknown source %s", source_id)
                    continue
                sources.append(source)

            _log.info("Syncing %d specific sources", len(sources))
            return await self._run_batch(sources, concurrency)

    async def sync_source(self, source_id: str) -> SourceSyncResult:
        """Refresh a single source.

        Args:
            source_id: Id of a subscribed source.

        Returns:
            The outcome for that source.

        Raises:
            KeyError: If no source has that id.
        """
        source = await self.repository.get(source_id)
        if source is None:
            raise KeyError(source_id)
        return await self._update_source(source)

    def start_auto_sync(self) -> None:
        """Sync now and then every interval, in a background task."""
        if self._auto_task is not None:
            _log.warning("Auto sync already running")
            return
        self._auto_task = asyncio.create_task(self._auto_sync_loop())
        _log.info("Auto sync started (interval: %s)", self.interval)

    async def stop_auto_sync(self) -> None:
        """Cancel the background sync task and wait for it to finish."""
        task, self._auto_task = self._auto_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        _log.info("Auto sync stopped")

    async def _auto_sync_loop(self) -> None:
        while True:
            try:
                await self.sync_all()
            except SyncInProgressError:
                _log.debug("Skipping auto sync, a sync is already running")
            except Exception:
                _log.exception("Auto sync failed")
            await asyncio.sleep(self.interval.total_seconds())

    @asynccontextmanager
    async def _exclusive(self) -> AsyncIterator[None]:
        if self._syncing:
            _log.warning("Sync already in progress")
            raise SyncInProgressError("Sync already in progress")
        self._syncing = True
        try:
            yield
        finally:
            self._syncing = False

    async def _run_batch(
        self, sources: list[Source], concurrency: int | None
    ) -> BatchSyncResult:
        started_at = self._clock()
        limit = max(1, concurrency or self.concurrency)
        semaphore = asyncio.Semaphore(limit)

        async def bounded(source: Source) -> SourceSyncResult:
            async with semaphore:
                return await self._update_source(source)

        results = await asyncio.gather(*(bounded(s) for s in sources))
        batch = BatchSyncResult(
            results=list(results),
            started_at=started_at,
            completed_at=self._clock(),
        )
        _log.info(
            "Sync completed: %d succeeded, %d failed, %d new items",
            batch.success_count,
            batch.failure_count,
            batch.total_new_items,
        )
        return batch

    async def _update_source(self, source: Source) -> SourceSyncResult:
        _log.debug("Updating %s", source.title)
        try:
            update = await self.service.update_feed(source)
            merged = update.source.with_items(merge_items(update.new_items, source.items))
            await self.repository.update(merged)
        except (FeedError, ValueError, KeyError) as e:
            _log.error("Failed to update %s: %s", source.feed_url, e)
            return self._failure(source, e)
        except Exception as e:
            _log.exception("Unexpected error updating %s", source.feed_url)
            return self._failure(source, e)

        return SourceSyncResult(
            source_id=source.id,
            success=True,
            new_items_count=len(update.new_items),
            updated_at=self._clock(),
        )

    def _failure(self, source: Source, error: Exception) -> SourceSyncResult:
        return SourceSyncResult(
            source_id=source.id,
            success=False,
            error=str(error) or type(error).__name__,
            updated_at=self._clock(),
        )

