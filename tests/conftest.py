"""Pytest configuration and fixtures for feedsync tests."""

import tempfile
from collections.abc import Callable, Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from feedsync.cache import MemoryCacheStore
from feedsync.config import Config

FIXTURES_DIR = Path(__file__).parent / "fixtures" / "feeds"

FEED_URL = "https://example.com/feed.xml"
FIXED_NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=UTC)


class FrozenClock:
    """Controllable clock for cache expiry and sync interval tests."""

    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


def load_fixture(name: str) -> str:
    """Read a feed fixture as text."""
    return (FIXTURES_DIR / name).read_text(encoding="utf-8")


@pytest.fixture
def temp_dir() -> Iterator[Path]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_config_path(temp_dir: Path) -> Path:
    """Path for a temporary config file."""
    return temp_dir / "config.toml"


@pytest.fixture
def default_config() -> Config:
    """Create a default configuration."""
    return Config()


@pytest.fixture
def clock() -> FrozenClock:
    """A clock fixed at FIXED_NOW that tests can advance."""
    return FrozenClock()


@pytest.fixture
def memory_cache(clock: Callable[[], datetime]) -> MemoryCacheStore:
    """An empty in-memory cache driven by the frozen clock."""
    return MemoryCacheStore(clock=clock)


@pytest.fixture
def feed_url() -> str:
    """URL used for the sample feeds."""
    return FEED_URL


@pytest.fixture
def sample_rss_feed() -> str:
    """Podcast RSS feed with iTunes extensions and one entry without media."""
    return load_fixture("valid_rss.xml")


@pytest.fixture
def minimal_rss_feed() -> str:
    """RSS feed with a single bare entry."""
    return load_fixture("minimal_rss.xml")


@pytest.fixture
def sample_atom_feed() -> str:
    """Namespaced Atom feed with enclosure links."""
    return load_fixture("valid_atom.xml")
