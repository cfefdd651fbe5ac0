"""Async HTTP client for feed documents with conditional requests and retry."""

from __future__ import annotations

import asyncio
from collections.abc import (
    Awaitable,  # noqa: TC003 - used at runtime in type alias
    Callable,  # noqa: TC003 - used at runtime in type alias
)
from typing import TYPE_CHECKING

import httpx
from pydantic import BaseModel, ConfigDict, Field

from feedsync.config import DEFAULT_USER_AGENT
from feedsync.feeds.errors import NetworkError, NotModified
from feedsync.feeds.xml import decode_document
from feedsync.logging import get_logger
from feedsync.models import FetchResult

if TYPE_CHECKING:
    from feedsync.config import RetryConfig

_log = get_logger("feeds.fetcher")

ACCEPT_HEADER = "application/rss+xml, application/atom+xml, application/xml, text/xml"

SleepFunc = Callable[[float], Awaitable[None]]


class RetryPolicy(BaseModel):
    """Exponential backoff schedule for transient fetch failures."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=3, ge=1, description="Total attempts")
    initial_delay: float = Field(default=1.0, ge=0.0, description="First delay (s)")
    max_delay: float = Field(default=10.0, ge=0.0, description="Delay cap (s)")
    multiplier: float = Field(default=2.0, ge=1.0, description="Growth factor")

    @classmethod
    def from_config(cls, config: RetryConfig) -> RetryPolicy:
        """Build a policy from the [retry] config section."""
        return cls(**config.model_dump())

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given failed attempt (1-indexed).

        Args:
            attempt: Number of the attempt that just failed.

        Returns:
            Delay in seconds, capped at max_delay.
        """
        delay = self.initial_delay * self.multiplier ** (attempt - 1)
        return min(delay, self.max_delay)


class FeedFetcher:
    """Async fetcher for raw feed documents.

    A failed attempt is retried when the failure is transient (timeouts,
    connection errors, HTTP 5xx and 429). HTTP 304 raises NotModified and
    other 4xx responses raise NetworkError immediately. Cancelling the
    calling task stops the retry loop, including during a backoff sleep.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        user_agent: str = DEFAULT_USER_AGENT,
        retry: RetryPolicy | None = None,
        client: httpx.AsyncClient | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        """Initialize the feed fetcher.

        Args:
            timeout: Default request timeout in seconds.
            user_agent: Default User-Agent header.
            retry: Backoff schedule (defaults to 3 attempts, 1s doubling to 10s).
            client: Shared HTTP client. When None, a client is opened per fetch.
            sleep: Coroutine used to wait between attempts.
        """
        self.timeout = timeout
        self.user_agent = user_agent
        self.retry = retry or RetryPolicy()
        self._client = client
        self._sleep = sleep

    async def fetch(
        self,
        url: str,
        *,
        etag: str | None = None,
        last_modified: str | None = None,
        timeout: float | None = None,
        user_agent: str | None = None,
    ) -> FetchResult:
        """Fetch a feed document.

        Args:
            url: Feed URL.
            etag: Validator from a previous response, sent as If-None-Match.
            last_modified: Validator from a previous response, sent as
                If-Modified-Since.
            timeout: Request timeout override in seconds.
            user_agent: User-Agent override.

        Returns:
            Body text and any validators the server returned.

        Raises:
            NotModified: If the server answered 304.
            NetworkError: On an HTTP error or once retries are exhausted.
        """
        headers = self._build_headers(user_agent, etag, last_modified)
        request_timeout = timeout if timeout is not None else self.timeout

        if self._client is not None:
            return await self._fetch_with_retry(
                self._client, url, headers, request_timeout
            )

        async with httpx.AsyncClient(follow_redirects=True) as client:
            return await self._fetch_with_retry(client, url, headers, request_timeout)

    def _build_headers(
        self,
        user_agent: str | None,
        etag: str | None,
        last_modified: str | None,
    ) -> dict[str, str]:
        headers = {
            "User-Agent": user_agent or self.user_agent,
            "Accept": ACCEPT_HEADER,
        }
        if etag:
            headers["If-None-Match"] = etag
        if last_modified:
            headers["If-Modified-Since"] = last_modified
        return headers

    async def _fetch_with_retry(
        self,
        client: httpx.AsyncClient,
        url: str,
        headers: dict[str, str],
        timeout: float,
    ) -> FetchResult:
        attempts = self.retry.max_attempts
        for attempt in range(1, attempts + 1):
            try:
                return await self._fetch_once(client, url, headers, timeout)
            except NetworkError as e:
                if not e.is_transient:
                    _log.error("Fetch of %s failed: %s", url, e)
                    raise
                if attempt == attempts:
                    _log.error("Fetch of %s failed after %d attempts: %s", url, attempt, e)
                    raise

                delay = self.retry.delay_for(attempt)
                _log.warning(
                    "Attempt %d/%d for %s failed (%s), retrying in %.1fs",
                    attempt,
                    attempts,
                    url,
                    e,
                    delay,
                )
                await self._sleep(delay)

        # max_attempts >= 1, so the loop always returns or raises
        raise AssertionError("unreachable")

    async def _fetch_once(
        self,
        client: httpx.AsyncClient,
        url: str,
        headers: dict[str, str],
        timeout: float,
    ) -> FetchResult:
        """Perform a single request.

        Raises:
            NotModified: On HTTP 304.
            NetworkError: On transport failure, an invalid URL, HTTP status
                >= 400 or a redirect that could not be followed.
        """
        try:
            response = await client.get(
                url, headers=headers, timeout=timeout, follow_redirects=True
            )
        except httpx.TimeoutException as e:
            raise NetworkError(url, "Request timed out") from e
        except httpx.TooManyRedirects as e:
            raise NetworkError(url, "Too many redirects", transient=False) from e
        except httpx.TransportError as e:
            raise NetworkError(url, str(e) or type(e).__name__) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise NetworkError(url, str(e) or type(e).__name__, transient=False) from e

        if response.status_code == httpx.codes.NOT_MODIFIED:
            raise NotModified(url)

        if response.status_code >= 400:
            raise NetworkError(
                url, f"HTTP {response.status_code}", status_code=response.status_code
            )

        # Redirects are followed, so a 3xx left here has no usable Location
        if response.status_code >= 300:
            raise NetworkError(
                url,
                f"HTTP {response.status_code} (unfollowed redirect)",
                status_code=response.status_code,
                transient=False,
            )

        _log.debug("Fetched %s (%d bytes)", url, len(response.content))
        return FetchResult(
            text=decode_document(response.content, response.charset_encoding),
            etag=response.headers.get("etag"),
            last_modified=response.headers.get("last-modified"),
            status_code=response.status_code,
        )
