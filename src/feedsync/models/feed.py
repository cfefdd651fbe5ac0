"""Source and Item models for feedsync."""

from collections.abc import Iterable
from datetime import datetime
from typing import Annotated, Literal
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator

EpisodeType = Literal["full", "trailer", "bonus"]

UNKNOWN_AUTHOR = "Unknown Author"
NO_DESCRIPTION = "No description available"
UNTITLED_SOURCE = "Untitled Podcast"
UNTITLED_ITEM = "Untitled Episode"


class Item(BaseModel):
    """A single entry (episode) within a source."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1, description="Identifier derived from GUID or media URL")
    source_id: str = Field(description="Parent source identifier")
    title: str = Field(default=UNTITLED_ITEM, description="Episode title")
    description: str = Field(default=NO_DESCRIPTION, description="Show notes")
    media_url: str = Field(min_length=1, description="Playable media URL")
    duration: Annotated[int, Field(ge=0)] = Field(
        default=0, description="Duration in seconds (0 when unknown)"
    )
    published_at: datetime = Field(description="Publication timestamp")
    episode_number: int | None = Field(default=None, description="Episode number")
    season_number: int | None = Field(default=None, description="Season number")
    episode_type: EpisodeType | None = Field(default=None, description="Episode type")
    image_url: str | None = Field(default=None, description="Episode artwork URL")
    file_size: int | None = Field(default=None, description="Media size in bytes")
    mime_type: str | None = Field(default=None, description="Media MIME type")
    guid: str | None = Field(default=None, description="Feed-native unique identifier")
    link: str | None = Field(default=None, description="Episode webpage link")

    @field_validator("media_url")
    @classmethod
    def _require_absolute_url(cls, value: str) -> str:
        parts = urlsplit(value)
        if not parts.scheme or not parts.netloc:
            raise ValueError(f"media URL must be absolute: {value!r}")
        return value

    def __str__(self) -> str:
        """Return the item title."""
        return self.title


class Source(BaseModel):
    """A subscribed feed (RSS/Atom source)."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1, description="Identifier derived from the feed URL")
    title: str = Field(default=UNTITLED_SOURCE, description="Display title")
    author: str = Field(default=UNKNOWN_AUTHOR, description="Author or owner")
    description: str = Field(default=NO_DESCRIPTION, description="Feed description")
    feed_url: str = Field(description="RSS/Atom feed URL")
    image_url: str | None = Field(default=None, description="Artwork URL")
    website_url: str | None = Field(default=None, description="Website link")
    categories: tuple[str, ...] = Field(default=(), description="Categories")
    language: str | None = Field(default=None, description="Language code")
    subscribed_at: datetime = Field(description="When the source was subscribed")
    last_fetched_at: datetime | None = Field(
        default=None, description="Last successful fetch"
    )
    items: tuple[Item, ...] = Field(
        default=(), description="Known items (snapshot owned by the repository)"
    )

    def __str__(self) -> str:
        """Return the source title."""
        return self.title

    @property
    def item_ids(self) -> frozenset[str]:
        """Identifiers of the known items."""
        return frozenset(item.id for item in self.items)

    def with_items(self, items: Iterable[Item]) -> "Source":
        """Return a copy holding the given items, keeping the first of each id.

        Args:
            items: Items to attach to the copy.

        Returns:
            A new Source instance.
        """
        unique: dict[str, Item] = {}
        for item in items:
            unique.setdefault(item.id, item)
        return self.model_copy(update={"items": tuple(unique.values())})
