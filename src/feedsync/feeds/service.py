"""Cache-first feed retrieval and new-item detection."""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from feedsync.cache.base import utc_now
from feedsync.feeds.detect import FeedParsers
from feedsync.feeds.errors import CacheError, FeedParseError, NetworkError, NotModified
from feedsync.feeds.fetcher import FeedFetcher, RetryPolicy
from feedsync.logging import get_logger
from feedsync.models import (
    CacheEntry,
    FeedResult,
    FeedUpdate,
    FetchOptions,
    RevalidationMetadata,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from feedsync.cache.base import CacheStore
    from feedsync.config import Config
    from feedsync.models import Source

_log = get_logger("feeds.service")


class FeedService:
    """Fetches, parses and caches feeds.

    fetch_feed() serves fresh cache entries without touching the network and
    otherwise performs a conditional fetch. update_feed() always goes to the
    network and reports the items a source did not know about yet.
    """

    def __init__(
        self,
        cache: CacheStore | None = None,
        fetcher: FeedFetcher | None = None,
        parsers: FeedParsers | None = None,
        clock: Callable[[], datetime] | None = None,
        default_options: FetchOptions | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            cache: Payload cache. When None, nothing is cached.
            fetcher: Network client (a default FeedFetcher when None).
            parsers: Format parsers (unlimited items when None).
            clock: Returns the current time.
            default_options: Options used when a call passes none, and the
                base for update_feed (cache TTL in particular).
        """
        self.cache = cache
        self.fetcher = fetcher or FeedFetcher()
        self.parsers = parsers or FeedParsers()
        self._clock = clock or utc_now
        self.default_options = default_options or FetchOptions()

    @classmethod
    def from_config(
        cls, config: Config, cache: CacheStore | None = None
    ) -> FeedService:
        """Create a service from the [network], [retry] and [cache] settings.

        Args:
            config: Application configuration.
            cache: Opened cache store, or None to disable caching.

        Returns:
            A configured FeedService.
        """
        fetcher = FeedFetcher(
            timeout=config.network.timeout,
            user_agent=config.network.user_agent,
            retry=RetryPolicy.from_config(config.retry),
        )
        return cls(
            cache=cache,
            fetcher=fetcher,
            parsers=FeedParsers(max_items=config.network.max_items),
            default_options=FetchOptions(
                cache_ttl=timedelta(seconds=config.cache.ttl_seconds)
            ),
        )

    @staticmethod
    def validate_feed_url(url: str) -> bool:
        """Check that url is an absolute http(s) URL with a host."""
        if not url or not isinstance(url, str):
            return False
        try:
            parts = urlsplit(url.strip())
        except ValueError:
            return False
        return parts.scheme in ("http", "https") and bool(parts.netloc)

    async def fetch_feed(
        self, url: str, options: FetchOptions | None = None
    ) -> FeedResult:
        """Fetch and parse a feed, serving it from cache when fresh.

        Args:
            url: Feed URL.
            options: Fetch options (default_options when None).

        Returns:
            The parsed source and items.

        Raises:
            ValueError: If url is not an http(s) URL.
            NetworkError: If the feed could not be retrieved.
            FeedParseError: If the document is not a readable feed.
        """
        if not self.validate_feed_url(url):
            raise ValueError(f"Invalid feed URL: {url!r}")

        options = options or self.default_options

        if options.use_cache:
            cached = await self._cached_result(url)
            if cached is not None:
                return cached

        return await self._refresh(url, options)

    async def update_feed(self, source: Source) -> FeedUpdate:
        """Refresh a known source and find items it has not seen.

        The cache is bypassed on read but still written. Items whose id is
        not among source.items are reported as new.

        Args:
            source: Snapshot of the subscribed source and its known items.

        Returns:
            The refreshed source, its items and the new items.
        """
        options = self.default_options.model_copy(update={"use_cache": False})
        result = await self.fetch_feed(source.feed_url, options)

        known = source.item_ids
        new_items = [item for item in result.items if item.id not in known]

        updated = result.source.model_copy(
            update={
                "subscribed_at": source.subscribed_at,
                "last_fetched_at": self._clock(),
            }
        ).with_items(result.items)

        _log.info(
            "Updated %s: %d items, %d new", source.feed_url, len(result.items), len(new_items)
        )
        return FeedUpdate(source=updated, items=result.items, new_items=new_items)

    async def clear_cache(self, url: str | None = None) -> None:
        """Invalidate the cache entry for url, or every entry when None."""
        if self.cache is None:
            return
        if url is None:
            await self.cache.clear()
            _log.info("Cleared feed cache")
        else:
            await self.cache.remove(url)
            _log.info("Cleared cache for %s", url)

    async def cached_feed(self, url: str) -> FeedResult | None:
        """Parse whatever copy of url the cache holds, fresh or expired.

        Never touches the network. Callers that want stale data after a
        failed refresh, or a baseline to diff a refresh against, use this.

        Returns:
            The parsed cached copy, or None when there is no usable copy.
        """
        entry = await self._peek(url)
        if entry is None:
            return None
        return self._parse_entry(url, entry)

    async def _peek(self, url: str) -> CacheEntry | None:
        if self.cache is None:
            return None
        try:
            return await self.cache.peek(url)
        except CacheError as e:
            _log.warning("Cache read failed: %s", e)
            return None

    async def _cached_result(self, url: str) -> FeedResult | None:
        if self.cache is None:
            return None
        try:
            entry = await self.cache.get(url)
        except CacheError as e:
            _log.warning("Cache read failed: %s", e)
            return None
        if entry is None:
            return None

        result = self._parse_entry(url, entry)
        if result is not None:
            _log.debug("Cache hit for %s", url)
        return result

    def _parse_entry(self, url: str, entry: CacheEntry) -> FeedResult | None:
        try:
            return self.parsers.parse(entry.payload, url, entry.fetched_at)
        except FeedParseError as e:
            _log.warning("Ignoring unparseable cache entry for %s: %s", url, e)
            return None

    async def _refresh(self, url: str, options: FetchOptions) -> FeedResult:
        previous = await self._peek(url)
        etag = options.etag or (previous.etag if previous else None)
        last_modified = options.last_modified or (
            previous.last_modified if previous else None
        )

        try:
            fetched = await self.fetcher.fetch(
                url,
                etag=etag,
                last_modified=last_modified,
                timeout=options.timeout,
                user_agent=options.user_agent,
            )
        except NotModified:
            if previous is None:
                raise NetworkError(
                    url, "Not modified but no cached copy", status_code=304
                ) from None
            _log.info("%s not modified, reusing cached payload", url)
            result = self.parsers.parse(previous.payload, url, previous.fetched_at)
            await self._write_cache(
                url,
                previous.payload,
                options.cache_ttl,
                previous.metadata,
                previous.fetched_at,
            )
            return result

        fetched_at = self._clock()
        result = self.parsers.parse(fetched.text, url, fetched_at)
        await self._write_cache(
            url,
            fetched.text,
            options.cache_ttl,
            RevalidationMetadata(etag=fetched.etag, last_modified=fetched.last_modified),
            fetched_at,
        )
        return result

    async def _write_cache(
        self,
        url: str,
        payload: str,
        ttl: timedelta,
        metadata: RevalidationMetadata,
        fetched_at: datetime,
    ) -> None:
        if self.cache is None:
            return
        try:
            await self.cache.set(url, payload, ttl, metadata, fetched_at=fetched_at)
        except CacheError as e:
            _log.warning("Cache write failed: %s", e)
