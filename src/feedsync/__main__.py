"""Entry point for the feedsync command line."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from feedsync.cache import CacheStore
    from feedsync.config import Config


def main(argv: list[str] | None = None) -> int:
    """Run feedsync CLI commands."""
    parser = argparse.ArgumentParser(
        prog="feedsync",
        description="Fetch, cache and sync RSS and Atom feeds",
    )
    parser.add_argument(
        "--version", "-V", action="store_true", help="Show version and exit"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Log debug output to the console"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Fetch command
    fetch_parser = subparsers.add_parser("fetch", help="Fetch a feed and list its items")
    fetch_parser.add_argument("url", help="Feed URL")
    fetch_parser.add_argument(
        "--no-cache", action="store_true", help="Ignore any cached copy"
    )
    fetch_parser.add_argument(
        "--timeout", type=float, default=None, help="Request timeout in seconds"
    )

    # Update command
    update_parser = subparsers.add_parser(
        "update", help="Refresh a feed and report items missing from the cached copy"
    )
    update_parser.add_argument("url", help="Feed URL")

    # Sync command
    sync_parser = subparsers.add_parser(
        "sync", help="Sync several feeds concurrently and summarize the results"
    )
    sync_parser.add_argument("urls", nargs="+", metavar="url", help="Feed URLs")
    sync_parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Feeds synced at once (default: [sync] concurrency)",
    )

    # Clear cache command
    clear_parser = subparsers.add_parser("clear-cache", help="Clear cached feeds")
    clear_parser.add_argument(
        "url", nargs="?", default=None, help="Only clear this feed"
    )

    args = parser.parse_args(argv)

    if args.version:
        from feedsync import __version__

        print(f"feedsync {__version__}")
        return 0

    from feedsync.logging import setup_logging

    setup_logging(
        level=logging.DEBUG if args.verbose else logging.INFO,
        log_to_console=args.verbose,
    )

    if args.command == "fetch":
        return asyncio.run(
            cmd_fetch(args.url, use_cache=not args.no_cache, timeout=args.timeout)
        )
    elif args.command == "update":
        return asyncio.run(cmd_update(args.url))
    elif args.command == "sync":
        return asyncio.run(cmd_sync(args.urls, concurrency=args.concurrency))
    elif args.command == "clear-cache":
        return asyncio.run(cmd_clear_cache(args.url))
    else:
        parser.print_help()
        return 1


async def _open_cache(config: Config) -> CacheStore | None:
    from feedsync.cache import open_cache_store

    if not config.cache.enabled:
        return None
    return await open_cache_store(config.cache)


async def cmd_fetch(
    url: str, *, use_cache: bool = True, timeout: float | None = None
) -> int:
    """Fetch a feed and print its items.

    Args:
        url: Feed URL.
        use_cache: Whether a fresh cached copy may be used.
        timeout: Request timeout override in seconds.

    Returns:
        Exit code (0 for success, 1 for error).
    """
    from feedsync.config import get_config
    from feedsync.feeds import FeedError, FeedService

    config = get_config()
    cache = await _open_cache(config)
    service = FeedService.from_config(config, cache)
    options = service.default_options.model_copy(
        update={"use_cache": use_cache, "timeout": timeout}
    )

    try:
        source, items = await service.fetch_feed(url, options)
    except (FeedError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        if cache is not None:
            await cache.close()

    print(f"{source.title} ({source.author})")
    print(f"  id: {source.id}")
    print(f"  items: {len(items)}")
    print()
    for item in items:
        print(f"  {item.published_at:%Y-%m-%d}  {item.title}")
        print(f"      {item.media_url}")
    return 0


async def cmd_update(url: str) -> int:
    """Refresh a feed and report items the cached copy did not have.

    Without a cached copy there is nothing to compare against; the feed is
    fetched once (which caches it) and its item count reported.

    Returns:
        Exit code (0 for success, 1 for error).
    """
    from feedsync.config import get_config
    from feedsync.feeds import FeedError, FeedService

    config = get_config()
    cache = await _open_cache(config)
    service = FeedService.from_config(config, cache)

    try:
        if not service.validate_feed_url(url):
            raise ValueError(f"Invalid feed URL: {url!r}")
        previous = await service.cached_feed(url)
        if previous is None:
            source, items = await service.fetch_feed(url)
            print(f"{source.title}: {len(items)} items (no cached copy to compare)")
            return 0
        update = await service.update_feed(previous.source.with_items(previous.items))
    except (FeedError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        if cache is not None:
            await cache.close()

    print(f"{update.source.title}: {len(update.items)} items, {len(update.new_items)} new")
    for item in update.new_items:
        print(f"  + {item.title}")
    return 0


async def cmd_sync(urls: list[str], *, concurrency: int | None = None) -> int:
    """Sync a set of feeds with the [sync] concurrency limit.

    Each URL is registered in an in-memory repository and refreshed by a
    FeedSyncManager. A failing feed is reported without stopping the others.

    Returns:
        Exit code (0 when every feed synced, 1 otherwise).
    """
    from feedsync.cache import utc_now
    from feedsync.config import get_config
    from feedsync.feeds import FeedService, source_id
    from feedsync.models import Source
    from feedsync.repository import InMemorySubscriptionRepository
    from feedsync.sync import FeedSyncManager

    config = get_config()
    cache = await _open_cache(config)
    service = FeedService.from_config(config, cache)

    now = utc_now()
    repository = InMemorySubscriptionRepository(
        [
            Source(id=source_id(url), feed_url=url, subscribed_at=now)
            for url in dict.fromkeys(urls)
        ]
    )
    manager = FeedSyncManager.from_config(service, repository, config.sync)

    try:
        result = await manager.sync_all(concurrency=concurrency)
    finally:
        if cache is not None:
            await cache.close()

    for outcome in result.results:
        source = await repository.get(outcome.source_id)
        url = source.feed_url if source else outcome.source_id
        if outcome.success:
            print(f"  ok    {url}: {outcome.new_items_count} new")
        else:
            print(f"  FAIL  {url}: {outcome.error}")
    print(
        f"Synced {result.success_count}/{result.total_sources} feeds, "
        f"{result.total_new_items} new items"
    )
    return 0 if result.failure_count == 0 else 1


async def cmd_clear_cache(url: str | None = None) -> int:
    """Clear one cached feed, or all of them.

    Returns:
        Exit code (0 for success, 1 for error).
    """
    from feedsync.config import get_config
    from feedsync.feeds import CacheError, FeedService

    config = get_config()
    cache = await _open_cache(config)
    if cache is None:
        print("Cache is disabled.")
        return 0

    service = FeedService.from_config(config, cache)
    try:
        await service.clear_cache(url)
    except CacheError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        await cache.close()

    print(f"Cleared cache for {url}" if url else "Cleared cache")
    return 0


if __name__ == "__main__":
    sys.exit(main())
