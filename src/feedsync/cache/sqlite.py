"""Async SQLite cache backend."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import aiosqlite

from feedsync.cache.base import CacheStore
from feedsync.feeds.errors import CacheError
from feedsync.logging import get_logger
from feedsync.models import CacheEntry

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

_log = get_logger("cache.sqlite")

SCHEMA = """
CREATE TABLE IF NOT EXISTS feed_cache (
    key TEXT PRIMARY KEY,
    payload TEXT NOT NULL,
    fetched_at TEXT NOT NULL,
    expires_at TEXT NOT NULL,
    etag TEXT,
    last_modified TEXT
);

CREATE INDEX IF NOT EXISTS idx_feed_cache_expires_at ON feed_cache(expires_at);
"""


def _iso(value: datetime) -> str:
    """Timestamps are stored as UTC ISO 8601 so that they sort as text."""
    return value.astimezone(UTC).isoformat()


class SQLiteCacheStore(CacheStore):
    """Cache persisted to a SQLite database file."""

    def __init__(
        self, path: Path, clock: Callable[[], datetime] | None = None
    ) -> None:
        """Initialize the store.

        Args:
            path: Path to the SQLite database file.
            clock: Returns the current time.
        """
        super().__init__(clock)
        self.path = path
        self._conn: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

    async def connect(self) -> None:
        """Connect to the database and ensure the schema exists."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(self.path)
        self._conn.row_factory = aiosqlite.Row
        await self._conn.executescript(SCHEMA)
        await self._conn.commit()
        _log.debug("Opened cache database %s", self.path)

    async def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    async def __aenter__(self) -> SQLiteCacheStore:
        if self._conn is None:
            await self.connect()
        return self

    def _require_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Cache database not connected")
        return self._conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Context manager for write transactions."""
        conn = self._require_conn()
        async with self._lock:
            try:
                yield conn
                await conn.commit()
            except Exception:
                await conn.rollback()
                raise

    async def peek(self, key: str) -> CacheEntry | None:
        conn = self._require_conn()
        try:
            async with conn.execute(
                "SELECT * FROM feed_cache WHERE key = ?", (key,)
            ) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise CacheError(key, str(e)) from e

        return self._row_to_entry(row) if row else None

    async def _store(self, entry: CacheEntry) -> None:
        try:
            async with self.transaction() as conn:
                await conn.execute(
                    """
                    INSERT OR REPLACE INTO feed_cache (key, payload, fetched_at, expires_at,
                                                      etag, last_modified)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        entry.key,
                        entry.payload,
                        _iso(entry.fetched_at),
                        _iso(entry.expires_at),
                        entry.etag,
                        entry.last_modified,
                    ),
                )
        except aiosqlite.Error as e:
            raise CacheError(entry.key, str(e)) from e

    async def remove(self, key: str) -> None:
        try:
            async with self.transaction() as conn:
                await conn.execute("DELETE FROM feed_cache WHERE key = ?", (key,))
        except aiosqlite.Error as e:
            raise CacheError(key, str(e)) from e

    async def clear(self) -> None:
        try:
            async with self.transaction() as conn:
                await conn.execute("DELETE FROM feed_cache")
        except aiosqlite.Error as e:
            raise CacheError("*", str(e)) from e

    async def entries(self) -> list[CacheEntry]:
        conn = self._require_conn()
        async with conn.execute("SELECT * FROM feed_cache ORDER BY key") as cursor:
            rows = await cursor.fetchall()
        return [self._row_to_entry(row) for row in rows]

    async def cleanup_expired(self) -> int:
        """Delete expired entries in a single statement."""
        now = _iso(self.now())
        async with self.transaction() as conn:
            cursor = await conn.execute(
                "DELETE FROM feed_cache WHERE expires_at <= ?", (now,)
            )
            removed = cursor.rowcount
        _log.info("Cleaned up %d expired cache entries", removed)
        return removed

    @staticmethod
    def _row_to_entry(row: aiosqlite.Row) -> CacheEntry:
        return CacheEntry(
            key=row["key"],
            payload=row["payload"],
            fetched_at=datetime.fromisoformat(row["fetched_at"]),
            expires_at=datetime.fromisoformat(row["expires_at"]),
            etag=row["etag"],
            last_modified=row["last_modified"],
        )
