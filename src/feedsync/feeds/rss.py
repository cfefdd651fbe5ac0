"""RSS 2.0 parser with iTunes podcast extensions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

from feedsync.feeds import identity
from feedsync.feeds.errors import FeedParseError
from feedsync.feeds.parser import FeedParser
from feedsync.feeds.xml import (
    Namespaces,
    get_attr,
    get_text,
    local_name,
    optional,
    parse_date,
    parse_duration,
    parse_int,
)
from feedsync.models import (
    NO_DESCRIPTION,
    UNKNOWN_AUTHOR,
    UNTITLED_ITEM,
    UNTITLED_SOURCE,
    EpisodeType,
    Item,
    Source,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from lxml import etree  # type: ignore[import-untyped]

EPISODE_TYPES: dict[str, EpisodeType] = {
    "full": "full",
    "trailer": "trailer",
    "bonus": "bonus",
}


@dataclass(frozen=True)
class RSSChannel:
    """Fields read from an RSS <channel>. Absent fields are None."""

    title: str | None = None
    link: str | None = None
    description: str | None = None
    language: str | None = None
    image_url: str | None = None
    itunes_author: str | None = None
    itunes_owner_name: str | None = None
    itunes_summary: str | None = None
    itunes_image: str | None = None
    categories: tuple[str, ...] = ()


@dataclass(frozen=True)
class RSSEntry:
    """Fields read from an RSS <item>. Absent fields are None."""

    title: str | None = None
    link: str | None = None
    description: str | None = None
    content_encoded: str | None = None
    pub_date: str | None = None
    guid: str | None = None
    enclosure_url: str | None = None
    enclosure_length: str | None = None
    enclosure_type: str | None = None
    itunes_duration: str | None = None
    itunes_episode: str | None = None
    itunes_season: str | None = None
    itunes_episode_type: str | None = None
    itunes_summary: str | None = None
    itunes_image: str | None = None


def _itunes(tag: str) -> str:
    return f"{{{Namespaces.ITUNES}}}{tag}"


def _text(element: etree._Element, path: str) -> str | None:
    return optional(get_text(element.find(path, Namespaces.MAP)))


def _categories(channel: etree._Element) -> tuple[str, ...]:
    """Collect itunes:category names, nested sub-categories included."""
    names: list[str] = []
    for category in channel.iter(_itunes("category")):
        name = get_attr(category, "text").strip()
        if name and name not in names:
            names.append(name)
    return tuple(names)


def read_channel(channel: etree._Element) -> RSSChannel:
    """Read the typed channel fields from a <channel> element."""
    itunes_image = channel.find("itunes:image", Namespaces.MAP)
    return RSSChannel(
        title=_text(channel, "title"),
        link=_text(channel, "link"),
        description=_text(channel, "description"),
        language=_text(channel, "language"),
        image_url=_text(channel, "image/url"),
        itunes_author=_text(channel, "itunes:author"),
        itunes_owner_name=_text(channel, "itunes:owner/itunes:name"),
        itunes_summary=_text(channel, "itunes:summary"),
        itunes_image=optional(get_attr(itunes_image, "href")),
        categories=_categories(channel),
    )


def read_entry(item: etree._Element) -> RSSEntry:
    """Read the typed entry fields from an <item> element."""
    enclosure = item.find("enclosure")
    itunes_image = item.find("itunes:image", Namespaces.MAP)
    return RSSEntry(
        title=_text(item, "title"),
        link=_text(item, "link"),
        description=_text(item, "description"),
        content_encoded=_text(item, "content:encoded"),
        pub_date=_text(item, "pubDate"),
        guid=_text(item, "guid"),
        enclosure_url=optional(get_attr(enclosure, "url")),
        enclosure_length=optional(get_attr(enclosure, "length")),
        enclosure_type=optional(get_attr(enclosure, "type")),
        itunes_duration=_text(item, "itunes:duration"),
        itunes_episode=_text(item, "itunes:episode"),
        itunes_season=_text(item, "itunes:season"),
        itunes_episode_type=_text(item, "itunes:episodeType"),
        itunes_summary=_text(item, "itunes:summary"),
        itunes_image=optional(get_attr(itunes_image, "href")),
    )


class RSSParser(FeedParser):
    """Parser for RSS 2.0 podcast feeds."""

    format_name: ClassVar[str] = "RSS"

    @staticmethod
    def validate(content: object) -> bool:
        """Check that text looks like an RSS document.

        Only the opening of the document is inspected; no XML parsing is done.

        Args:
            content: Candidate feed text.

        Returns:
            True if the text starts like XML and contains an <rss> tag.
        """
        if not content or not isinstance(content, str):
            return False

        trimmed = content.strip().lower()
        if not trimmed.startswith(("<?xml", "<rss")):
            return False

        return "<rss" in trimmed

    def accepts(self, root: etree._Element) -> bool:
        """Check for an <rss> root element."""
        return local_name(root) == "rss"

    def _entries(self, root: etree._Element) -> Sequence[etree._Element]:
        channel = root.find("channel")
        if channel is None:
            return []
        return channel.findall("item")  # type: ignore[no-any-return]

    def _parse_source(
        self, root: etree._Element, url: str, fetched_at: datetime
    ) -> Source:
        channel_el = root.find("channel")
        if channel_el is None:
            raise FeedParseError(url, "Missing <channel> element")

        channel = read_channel(channel_el)
        return Source(
            id=identity.source_id(url),
            title=channel.title or UNTITLED_SOURCE,
            author=channel.itunes_author or channel.itunes_owner_name or UNKNOWN_AUTHOR,
            description=channel.itunes_summary or channel.description or NO_DESCRIPTION,
            feed_url=url,
            image_url=channel.itunes_image or channel.image_url,
            website_url=channel.link,
            categories=channel.categories,
            language=channel.language,
            subscribed_at=fetched_at,
            last_fetched_at=fetched_at,
        )

    def _parse_item(
        self, entry: etree._Element, source_id: str, fetched_at: datetime
    ) -> Item | None:
        fields = read_entry(entry)
        if not fields.enclosure_url:
            return None

        media_url = fields.enclosure_url
        episode_type = None
        if fields.itunes_episode_type:
            episode_type = EPISODE_TYPES.get(fields.itunes_episode_type.lower())

        return Item(
            id=identity.item_id(fields.guid or media_url),
            source_id=source_id,
            title=fields.title or UNTITLED_ITEM,
            description=(
                fields.content_encoded
                or fields.itunes_summary
                or fields.description
                or NO_DESCRIPTION
            ),
            media_url=media_url,
            duration=parse_duration(fields.itunes_duration),
            published_at=parse_date(fields.pub_date) or fetched_at,
            episode_number=parse_int(fields.itunes_episode),
            season_number=parse_int(fields.itunes_season),
            episode_type=episode_type,
            image_url=fields.itunes_image,
            file_size=parse_int(fields.enclosure_length),
            mime_type=fields.enclosure_type,
            guid=fields.guid,
            link=fields.link,
        )
