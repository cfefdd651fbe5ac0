"""JSON file cache backend: one document per feed URL."""

from __future__ import annotations

import asyncio
import os
import tempfile
from typing import TYPE_CHECKING

from pydantic import ValidationError

from feedsync.cache.base import CacheStore
from feedsync.feeds.errors import CacheError
from feedsync.feeds.identity import hash_id
from feedsync.logging import get_logger
from feedsync.models import CacheEntry

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime
    from pathlib import Path

_log = get_logger("cache.file")


class FileCacheStore(CacheStore):
    """Cache stored as JSON files under a directory.

    Files are named from a hash of the feed URL. Writes go to a temporary
    file that is then renamed over the target, so a reader never sees a
    partially written entry. Files that cannot be read or validated are
    reported as misses.
    """

    def __init__(
        self, directory: Path, clock: Callable[[], datetime] | None = None
    ) -> None:
        """Initialize the store.

        Args:
            directory: Directory holding the cache files (created if missing).
            clock: Returns the current time.
        """
        super().__init__(clock)
        self.directory = directory
        self.directory.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        """File that holds the entry for key."""
        return self.directory / f"{hash_id('feed', key)}.json"

    def _read(self, path: Path) -> CacheEntry | None:
        try:
            data = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            _log.warning("Cannot read cache file %s: %s", path, e)
            return None

        try:
            return CacheEntry.model_validate_json(data)
        except ValidationError as e:
            _log.warning("Ignoring invalid cache file %s: %s", path, e)
            return None

    def _write(self, entry: CacheEntry) -> None:
        target = self.path_for(entry.key)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.directory, prefix=".tmp-", suffix=".json"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(entry.model_dump_json())
            os.replace(tmp_name, target)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    async def peek(self, key: str) -> CacheEntry | None:
        entry = await asyncio.to_thread(self._read, self.path_for(key))
        if entry is not None and entry.key != key:
            # Hash collision with another URL
            _log.debug("Cache file for %s holds %s", key, entry.key)
            return None
        return entry

    async def _store(self, entry: CacheEntry) -> None:
        try:
            await asyncio.to_thread(self._write, entry)
        except OSError as e:
            raise CacheError(entry.key, str(e)) from e

    async def remove(self, key: str) -> None:
        try:
            await asyncio.to_thread(self.path_for(key).unlink, missing_ok=True)
        except OSError as e:
            raise CacheError(key, str(e)) from e

    async def clear(self) -> None:
        for path in self.directory.glob("feed-*.json"):
            try:
                await asyncio.to_thread(path.unlink, missing_ok=True)
            except OSError as e:
                raise CacheError(str(path), str(e)) from e

    async def entries(self) -> list[CacheEntry]:
        paths = sorted(self.directory.glob("feed-*.json"))
        entries: list[CacheEntry] = []
        for path in paths:
            entry = await asyncio.to_thread(self._read, path)
            if entry is not None:
                entries.append(entry)
        return entries
