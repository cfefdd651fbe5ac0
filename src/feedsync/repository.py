"""Subscription storage port consumed by the sync engine."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from feedsync.logging import get_logger

if TYPE_CHECKING:
    from feedsync.feeds.service import FeedService
    from feedsync.models import Source

_log = get_logger("repository")


class SubscriptionRepository(Protocol):
    """Lookup and storage of subscribed sources.

    Implementations own persistence. The engine only reads snapshots and
    writes back updated sources.
    """

    async def get_by_url(self, url: str) -> Source | None:
        """Return the source subscribed at url, if any."""
        ...

    async def get(self, source_id: str) -> Source | None:
        """Return the source with the given id, if any."""
        ...

    async def get_all(self) -> list[Source]:
        """Return every subscribed source."""
        ...

    async def add(self, source: Source) -> Source:
        """Store a new source."""
        ...

    async def update(self, source: Source) -> Source:
        """Replace a stored source with the given snapshot."""
        ...


class InMemorySubscriptionRepository:
    """Repository holding sources in a dict keyed by id."""

    def __init__(self, sources: list[Source] | None = None) -> None:
        self._sources: dict[str, Source] = {s.id: s for s in sources or []}

    def __len__(self) -> int:
        return len(self._sources)

    async def get_by_url(self, url: str) -> Source | None:
        for source in self._sources.values():
            if source.feed_url == url:
                return source
        return None

    async def get(self, source_id: str) -> Source | None:
        return self._sources.get(source_id)

    async def get_all(self) -> list[Source]:
        return list(self._sources.values())

    async def add(self, source: Source) -> Source:
        if source.id in self._sources:
            raise ValueError(f"Source already exists: {source.id}")
        self._sources[source.id] = source
        return source

    async def update(self, source: Source) -> Source:
        if source.id not in self._sources:
            raise KeyError(source.id)
        self._sources[source.id] = source
        return source


async def subscribe(
    service: FeedService, repository: SubscriptionRepository, url: str
) -> Source:
    """Subscribe to a feed, or refresh it if already subscribed.

    Args:
        service: Service used to fetch the feed.
        repository: Where the subscription is stored.
        url: Feed URL.

    Returns:
        The stored source with its items.
    """
    existing = await repository.get_by_url(url)
    if existing is not None:
        update = await service.update_feed(existing)
        _log.info("Already subscribed to %s, refreshed", url)
        return await repository.update(update.source)

    result = await service.fetch_feed(url)
    source = result.source.with_items(result.items)
    _log.info("Subscribed to %s (%s)", url, source.title)
    return await repository.add(source)
