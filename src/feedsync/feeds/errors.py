"""Exceptions raised by the feed synchronization engine."""

from __future__ import annotations


class FeedError(Exception):
    """Base exception for feed errors."""


class NetworkError(FeedError):
    """Transport or HTTP failure while fetching a feed."""

    def __init__(
        self,
        url: str,
        message: str,
        status_code: int | None = None,
        *,
        transient: bool | None = None,
    ) -> None:
        self.url = url
        self.status_code = status_code
        self._transient = transient
        super().__init__(f"Failed to fetch {url}: {message}")

    @property
    def is_transient(self) -> bool:
        """Whether retrying the request could succeed.

        Transport failures without a status are transient unless marked
        otherwise; HTTP 5xx and 429 are transient, other statuses are not.
        """
        if self._transient is not None:
            return self._transient
        if self.status_code is None:
            return True
        return self.status_code >= 500 or self.status_code == 429


class NotModified(FeedError):
    """The server reported that the feed has not changed (HTTP 304)."""

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(f"Not modified: {url}")


class FeedParseError(FeedError):
    """The feed document could not be parsed."""

    def __init__(self, url: str, message: str) -> None:
        self.url = url
        super().__init__(f"Failed to parse {url}: {message}")


class CacheError(FeedError):
    """A cache backend failed to read or write an entry."""

    def __init__(self, key: str, message: str) -> None:
        self.key = key
        super().__init__(f"Cache error for {key}: {message}")


class SyncInProgressError(FeedError):
    """A bulk sync was requested while another is still running."""
