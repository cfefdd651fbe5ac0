"""Tests for bulk sync and the subscription repository."""

import asyncio
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
import respx

from feedsync.config import SyncConfig
from feedsync.feeds import FeedFetcher, FeedService, SyncInProgressError
from feedsync.models import Item, Source
from feedsync.repository import InMemorySubscriptionRepository, subscribe
from feedsync.sync import FeedSyncManager, merge_items

FIXTURES_DIR = Path(__file__).parent.parent / "fixtures" / "feeds"
RSS_URL = "https://example.com/feed.xml"
ATOM_URL = "https://example.org/atom.xml"
BROKEN_URL = "https://broken.example.com/feed.xml"


def _fixture(name: str) -> str:
    return (FIXTURES_DIR / name).read_text(encoding="utf-8")


async def _no_sleep(delay: float) -> None:
    return None


def _item(item_id: str, day: int) -> Item:
    return Item(
        id=item_id,
        source_id="source-1",
        media_url=f"https://example.com/{item_id}.mp3",
        published_at=datetime(2024, 1, day, tzinfo=UTC),
    )


def _source(url: str, last_fetched_at: datetime | None = None) -> Source:
    from feedsync.feeds.identity import source_id

    return Source(
        id=source_id(url),
        feed_url=url,
        subscribed_at=datetime(2023, 1, 1, tzinfo=UTC),
        last_fetched_at=last_fetched_at,
    )


@pytest.fixture
def service(clock) -> FeedService:
    """A cacheless service driven by the frozen clock."""
    return FeedService(fetcher=FeedFetcher(sleep=_no_sleep), clock=clock)


@pytest.fixture
def repository() -> InMemorySubscriptionRepository:
    """Repository with an RSS, an Atom and an unreachable source."""
    return InMemorySubscriptionRepository(
        [_source(RSS_URL), _source(ATOM_URL), _source(BROKEN_URL)]
    )


@pytest.fixture
def manager(
    service: FeedService, repository: InMemorySubscriptionRepository, clock
) -> FeedSyncManager:
    """A sync manager over the sample repository."""
    return FeedSyncManager(service, repository, clock=clock)


@pytest.fixture
def mocked_feeds():
    """Serve the sample feeds; the broken source returns 404."""
    with respx.mock(assert_all_called=False) as router:
        router.get(RSS_URL).respond(200, text=_fixture("valid_rss.xml"))
        router.get(ATOM_URL).respond(200, text=_fixture("valid_atom.xml"))
        router.get(BROKEN_URL).respond(404)
        yield router


class TestMergeItems:
    """Tests for merge_items."""

    def test_dedupes_and_sorts_newest_first(self) -> None:
        """Test merging keeps one item per id, newest first."""
        merged = merge_items([_item("c", 3), _item("a", 1)], [_item("a", 9), _item("b", 2)])

        assert [i.id for i in merged] == ["c", "b", "a"]
        assert merged[2].published_at.day == 1


class TestSyncAll:
    """Tests for FeedSyncManager.sync_all."""

    @pytest.mark.asyncio
    async def test_partial_failure(
        self,
        manager: FeedSyncManager,
        repository: InMemorySubscriptionRepository,
        mocked_feeds,
    ) -> None:
        """Test that one failing source does not stop the batch."""
        result = await manager.sync_all()

        assert result.total_sources == 3
        assert result.success_count == 2
        assert result.failure_count == 1
        assert result.total_new_items == 4

        failed = next(r for r in result.results if not r.success)
        assert failed.source_id == _source(BROKEN_URL).id
        assert "HTTP 404" in failed.error

        stored = await repository.get_by_url(RSS_URL)
        assert stored is not None
        assert stored.title == "Test Podcast"
        assert len(stored.items) == 2

    @pytest.mark.asyncio
    async def test_second_sync_finds_nothing_new(
        self, manager: FeedSyncManager, mocked_feeds
    ) -> None:
        """Test that re-syncing an unchanged feed reports no new items."""
        await manager.sync_all()
        result = await manager.sync_all(force=True)

        assert result.total_new_items == 0

    @pytest.mark.asyncio
    async def test_skips_recently_fetched(
        self,
        service: FeedService,
        clock,
        mocked_feeds,
    ) -> None:
        """Test that sources fetched within the interval are skipped."""
        repository = InMemorySubscriptionRepository(
            [
                _source(RSS_URL, last_fetched_at=clock.now - timedelta(minutes=10)),
                _source(ATOM_URL, last_fetched_at=clock.now - timedelta(hours=2)),
            ]
        )
        manager = FeedSyncManager(service, repository, clock=clock)

        result = await manager.sync_all()

        assert [r.source_id for r in result.results] == [_source(ATOM_URL).id]

    @pytest.mark.asyncio
    async def test_force_syncs_everything(
        self, service: FeedService, clock, mocked_feeds
    ) -> None:
        """Test that force ignores last_fetched_at."""
        repository = InMemorySubscriptionRepository(
            [_source(RSS_URL, last_fetched_at=clock.now)]
        )
        manager = FeedSyncManager(service, repository, clock=clock)

        result = await manager.sync_all(force=True)

        assert result.total_sources == 1

    @pytest.mark.asyncio
    async def test_keeps_known_items(
        self, service: FeedService, clock, mocked_feeds
    ) -> None:
        """Test that items no longer in the feed are kept in the repository."""
        old = _item("item-old", 1).model_copy(update={"source_id": _source(RSS_URL).id})
        repository = InMemorySubscriptionRepository([_source(RSS_URL).with_items([old])])
        manager = FeedSyncManager(service, repository, clock=clock)

        await manager.sync_all()

        stored = await repository.get_by_url(RSS_URL)
        assert stored is not None
        assert [i.id for i in stored.items][-1] == "item-old"
        assert len(stored.items) == 3

    @pytest.mark.asyncio
    async def test_concurrency_bound(
        self, repository: InMemorySubscriptionRepository, clock
    ) -> None:
        """Test that no more than `concurrency` updates run at once."""
        active = 0
        peak = 0

        class SlowService:
            async def update_feed(self, source: Source):
                nonlocal active, peak
                active += 1
                peak = max(peak, active)
                await asyncio.sleep(0.01)
                active -= 1
                raise ValueError("offline")

        manager = FeedSyncManager(SlowService(), repository, clock=clock)

        result = await manager.sync_all(concurrency=2)

        assert peak == 2
        assert result.failure_count == 3

    @pytest.mark.asyncio
    async def test_rejects_overlapping_sync(
        self, repository: InMemorySubscriptionRepository, clock
    ) -> None:
        """Test that a second bulk sync while one runs is refused."""
        started = asyncio.Event()
        release = asyncio.Event()

        class BlockingService:
            async def update_feed(self, source: Source):
                started.set()
                await release.wait()
                raise ValueError("offline")

        manager = FeedSyncManager(BlockingService(), repository, clock=clock)
        first = asyncio.create_task(manager.sync_all())
        await started.wait()

        assert manager.is_syncing
        with pytest.raises(SyncInProgressError):
            await manager.sync_all()

        release.set()
        await first
        assert not manager.is_syncing

    @pytest.mark.asyncio
    async def test_records_last_sync_time(
        self, manager: FeedSyncManager, clock, mocked_feeds
    ) -> None:
        """Test that status reports the last completed sync."""
        assert manager.status().last_sync_time is None

        await manager.sync_all()

        status = manager.status()
        assert status.last_sync_time == clock.now
        assert not status.is_syncing
        assert not status.auto_sync_enabled


    @pytest.mark.asyncio
    async def test_malformed_url_is_a_failure(
        self, service: FeedService, clock, mocked_feeds
    ) -> None:
        """Test that a URL httpx rejects fails that source only."""
        bad = _source("http://exa\x01mple.com/feed.xml")
        repository = InMemorySubscriptionRepository([_source(RSS_URL), bad])
        manager = FeedSyncManager(service, repository, clock=clock)

        result = await manager.sync_all(force=True)

        assert result.success_count == 1
        assert result.failure_count == 1
        failed = next(r for r in result.results if not r.success)
        assert failed.source_id == bad.id
        assert not manager.is_syncing

    @pytest.mark.asyncio
    async def test_unexpected_error_is_a_failure(self, clock) -> None:
        """Test that an unexpected exception is recorded rather than raised."""

        class BrokenService(FeedService):
            async def update_feed(self, source):
                raise RuntimeError("parser crashed")

        repository = InMemorySubscriptionRepository([_source(RSS_URL)])
        manager = FeedSyncManager(BrokenService(), repository, clock=clock)

        result = await manager.sync_all()

        assert result.failure_count == 1
        assert result.results[0].error == "parser crashed"
        assert not manager.is_syncing


class TestFromConfig:
    """Tests for FeedSyncManager.from_config."""

    def test_sync_settings_applied(self, service: FeedService) -> None:
        """Test that [sync] interval and concurrency are used."""
        repository = InMemorySubscriptionRepository()
        config = SyncConfig(interval_seconds=600, concurrency=5)

        manager = FeedSyncManager.from_config(service, repository, config)

        assert manager.interval == timedelta(seconds=600)
        assert manager.concurrency == 5


class TestSyncSources:
    """Tests for syncing specific sources."""

    @pytest.mark.asyncio
    async def test_sync_sources_skips_unknown(
        self, manager: FeedSyncManager, mocked_feeds
    ) -> None:
        """Test syncing a subset; unknown ids are ignored."""
        result = await manager.sync_sources([_source(RSS_URL).id, "source-missing"])

        assert result.total_sources == 1
        assert result.success_count == 1

    @pytest.mark.asyncio
    async def test_sync_source(self, manager: FeedSyncManager, mocked_feeds) -> None:
        """Test syncing one source."""
        result = await manager.sync_source(_source(ATOM_URL).id)

        assert result.success
        assert result.new_items_count == 2

    @pytest.mark.asyncio
    async def test_sync_source_unknown(self, manager: FeedSyncManager) -> None:
        """Test that an unknown id raises KeyError."""
        with pytest.raises(KeyError):
            await manager.sync_source("source-missing")


class TestAutoSync:
    """Tests for periodic syncing."""

    @pytest.mark.asyncio
    async def test_start_and_stop(self, manager: FeedSyncManager, mocked_feeds) -> None:
        """Test that auto sync runs immediately and can be stopped."""
        manager.start_auto_sync()
        assert manager.status().auto_sync_enabled

        for _ in range(100):
            if manager.status().last_sync_time is not None:
                break
            await asyncio.sleep(0.01)

        await manager.stop_auto_sync()

        status = manager.status()
        assert status.last_sync_time is not None
        assert not status.auto_sync_enabled

    @pytest.mark.asyncio
    async def test_stop_when_not_started(self, manager: FeedSyncManager) -> None:
        """Test that stopping without starting is a no-op."""
        await manager.stop_auto_sync()


class TestRepository:
    """Tests for InMemorySubscriptionRepository and subscribe()."""

    @pytest.mark.asyncio
    async def test_add_and_lookup(self) -> None:
        """Test adding and looking up sources."""
        repository = InMemorySubscriptionRepository()
        source = _source(RSS_URL)

        await repository.add(source)

        assert await repository.get(source.id) == source
        assert await repository.get_by_url(RSS_URL) == source
        assert await repository.get_by_url(ATOM_URL) is None
        assert await repository.get_all() == [source]

    @pytest.mark.asyncio
    async def test_add_duplicate(self) -> None:
        """Test that adding the same source twice fails."""
        repository = InMemorySubscriptionRepository([_source(RSS_URL)])
        with pytest.raises(ValueError, match="already exists"):
            await repository.add(_source(RSS_URL))

    @pytest.mark.asyncio
    async def test_update_unknown(self) -> None:
        """Test that updating an unknown source fails."""
        with pytest.raises(KeyError):
            await InMemorySubscriptionRepository().update(_source(RSS_URL))

    @pytest.mark.asyncio
    async def test_subscribe_new_and_existing(
        self, service: FeedService, mocked_feeds
    ) -> None:
        """Test that subscribing twice keeps a single source."""
        repository = InMemorySubscriptionRepository()

        first = await subscribe(service, repository, RSS_URL)
        second = await subscribe(service, repository, RSS_URL)

        assert first.id == second.id
        assert len(repository) == 1
        assert len(second.items) == 2
