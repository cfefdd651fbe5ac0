"""Cache entry models for feedsync."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class RevalidationMetadata(BaseModel):
    """Validators returned by a server, echoed back on the next request."""

    model_config = ConfigDict(frozen=True)

    etag: str | None = Field(default=None, description="Opaque freshness token")
    last_modified: str | None = Field(
        default=None, description="Last-Modified header value"
    )

    @property
    def is_empty(self) -> bool:
        """Check whether neither validator is present."""
        return not self.etag and not self.last_modified


class CacheEntry(BaseModel):
    """A cached raw feed payload keyed by feed URL."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(description="Feed URL")
    payload: str = Field(description="Raw feed document")
    fetched_at: datetime = Field(description="When the payload was fetched")
    expires_at: datetime = Field(description="When the entry stops being fresh")
    etag: str | None = Field(default=None, description="ETag from the server")
    last_modified: str | None = Field(
        default=None, description="Last-Modified from the server"
    )

    def is_expired(self, now: datetime) -> bool:
        """Check whether the entry is no longer eligible for reuse."""
        return now >= self.expires_at

    @property
    def metadata(self) -> RevalidationMetadata:
        """Revalidation metadata stored with this entry."""
        return RevalidationMetadata(etag=self.etag, last_modified=self.last_modified)


class CacheStats(BaseModel):
    """Summary of a cache store's contents."""

    model_config = ConfigDict(frozen=True)

    total_entries: int = 0
    expired_entries: int = 0
    total_size: int = 0
