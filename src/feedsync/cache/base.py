"""Abstract TTL cache for raw feed payloads."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Self

from feedsync.logging import get_logger
from feedsync.models import CacheEntry, CacheStats, RevalidationMetadata

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

_log = get_logger("cache")


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


class CacheStore(ABC):
    """Key/value store of raw feed payloads with time-to-live.

    Keys are feed URLs. Writes are last-write-wins. An expired entry is not
    deleted on read; it is simply no longer returned by get(), while peek()
    and get_metadata() still expose it so that a caller can revalidate.
    Subclasses must tolerate concurrent calls for distinct keys.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        """Initialize the store.

        Args:
            clock: Returns the current time; defaults to utc_now.
        """
        self._clock = clock or utc_now

    def now(self) -> datetime:
        """Current time according to the store's clock."""
        return self._clock()

    @abstractmethod
    async def peek(self, key: str) -> CacheEntry | None:
        """Return the entry for key whether or not it has expired."""

    @abstractmethod
    async def _store(self, entry: CacheEntry) -> None:
        """Persist an entry, replacing any previous one for its key."""

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Delete the entry for key, if present."""

    @abstractmethod
    async def clear(self) -> None:
        """Delete every entry."""

    @abstractmethod
    async def entries(self) -> list[CacheEntry]:
        """All stored entries, fresh or expired."""

    async def get(self, key: str) -> CacheEntry | None:
        """Return the entry for key if present and unexpired.

        Args:
            key: Feed URL.

        Returns:
            The fresh entry, or None on a miss or when expired.
        """
        entry = await self.peek(key)
        if entry is None:
            return None
        if entry.is_expired(self.now()):
            _log.debug("Cache entry expired for %s", key)
            return None
        return entry

    async def get_metadata(self, key: str) -> RevalidationMetadata | None:
        """Return stored validators for key regardless of freshness.

        Args:
            key: Feed URL.

        Returns:
            Validators, or None when there is no entry or it has none.
        """
        entry = await self.peek(key)
        if entry is None or entry.metadata.is_empty:
            return None
        return entry.metadata

    async def set(
        self,
        key: str,
        payload: str,
        ttl: timedelta,
        metadata: RevalidationMetadata | None = None,
        *,
        fetched_at: datetime | None = None,
    ) -> CacheEntry:
        """Store a payload.

        Args:
            key: Feed URL.
            payload: Raw feed document.
            ttl: How long the entry stays fresh from now.
            metadata: Validators returned by the server.
            fetched_at: When the payload was fetched; defaults to now. A
                revalidated payload keeps its original fetch time.

        Returns:
            The stored entry.
        """
        now = self.now()
        metadata = metadata or RevalidationMetadata()
        entry = CacheEntry(
            key=key,
            payload=payload,
            fetched_at=fetched_at or now,
            expires_at=now + ttl,
            etag=metadata.etag,
            last_modified=metadata.last_modified,
        )
        await self._store(entry)
        _log.debug("Cached %s until %s", key, entry.expires_at.isoformat())
        return entry

    async def cleanup_expired(self) -> int:
        """Delete expired entries.

        Returns:
            Number of entries removed.
        """
        now = self.now()
        removed = 0
        for entry in await self.entries():
            if entry.is_expired(now):
                await self.remove(entry.key)
                removed += 1
        _log.info("Cleaned up %d expired cache entries", removed)
        return removed

    async def stats(self) -> CacheStats:
        """Summarize the store's contents."""
        now = self.now()
        entries = await self.entries()
        return CacheStats(
            total_entries=len(entries),
            expired_entries=sum(1 for e in entries if e.is_expired(now)),
            total_size=sum(len(e.payload) for e in entries),
        )

    async def close(self) -> None:  # noqa: B027 - optional hook
        """Release any resources held by the store."""

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
