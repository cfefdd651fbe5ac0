"""Feedsync - Feed synchronization and caching engine for podcast clients."""

__title__ = "feedsync"
__description__ = "Feed synchronization and caching engine for podcast clients"
__version__ = "0.1.0"
__author__ = "Michelle Pellon"
__license__ = "MIT"

__all__ = [
    "__author__",
    "__description__",
    "__license__",
    "__title__",
    "__version__",
]
