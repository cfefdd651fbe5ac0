"""TTL caches for raw feed payloads."""

from __future__ import annotations

from typing import TYPE_CHECKING

from feedsync.cache.base import CacheStore, utc_now
from feedsync.cache.file import FileCacheStore
from feedsync.cache.memory import MemoryCacheStore
from feedsync.cache.sqlite import SQLiteCacheStore
from feedsync.config import get_cache_path

if TYPE_CHECKING:
    from feedsync.config import CacheConfig


async def open_cache_store(config: CacheConfig) -> CacheStore:
    """Create and open the cache backend named in the configuration.

    Args:
        config: The [cache] configuration section.

    Returns:
        A ready-to-use cache store. Close it when done.
    """
    if config.backend == "memory":
        return MemoryCacheStore()
    if config.backend == "file":
        return FileCacheStore(get_cache_path(config))

    store = SQLiteCacheStore(get_cache_path(config))
    await store.connect()
    return store


__all__ = [
    "CacheStore",
    "FileCacheStore",
    "MemoryCacheStore",
    "SQLiteCacheStore",
    "open_cache_store",
    "utc_now",
]
