"""In-memory cache backend."""

from __future__ import annotations

from typing import TYPE_CHECKING

from feedsync.cache.base import CacheStore

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from feedsync.models import CacheEntry


class MemoryCacheStore(CacheStore):
    """Dict-backed cache. Contents are lost when the process exits."""

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        super().__init__(clock)
        self._entries: dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    async def peek(self, key: str) -> CacheEntry | None:
        return self._entries.get(key)

    async def _store(self, entry: CacheEntry) -> None:
        self._entries[entry.key] = entry

    async def remove(self, key: str) -> None:
        self._entries.pop(key, None)

    async def clear(self) -> None:
        self._entries.clear()

    async def entries(self) -> list[CacheEntry]:
        return list(self._entries.values())
