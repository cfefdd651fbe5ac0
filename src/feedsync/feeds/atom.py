"""Atom 1.0 parser, including media RSS and YouTube video feeds."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

from lxml import etree  # type: ignore[import-untyped]

from feedsync.feeds import identity
from feedsync.feeds.parser import FeedParser
from feedsync.feeds.xml import (
    Namespaces,
    get_attr,
    get_text,
    local_name,
    optional,
    parse_date,
    parse_int,
)
from feedsync.models import (
    NO_DESCRIPTION,
    UNKNOWN_AUTHOR,
    UNTITLED_ITEM,
    UNTITLED_SOURCE,
    Item,
    Source,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

YOUTUBE_WATCH_URL = "https://www.youtube.com/watch?v={video_id}"


@dataclass(frozen=True)
class AtomFeedFields:
    """Fields read from an Atom <feed>. Absent fields are None."""

    title: str | None = None
    subtitle: str | None = None
    author_name: str | None = None
    link: str | None = None
    logo: str | None = None
    icon: str | None = None
    language: str | None = None
    categories: tuple[str, ...] = ()


@dataclass(frozen=True)
class AtomEntryFields:
    """Fields read from an Atom <entry>. Absent fields are None."""

    id: str | None = None
    title: str | None = None
    summary: str | None = None
    content: str | None = None
    published: str | None = None
    updated: str | None = None
    link: str | None = None
    enclosure_url: str | None = None
    enclosure_length: str | None = None
    enclosure_type: str | None = None
    media_url: str | None = None
    media_type: str | None = None
    media_description: str | None = None
    media_thumbnail: str | None = None
    video_id: str | None = None


def _prefix(root: etree._Element) -> str:
    """Clark-notation prefix for Atom tags in this document ("" if un-namespaced)."""
    if etree.QName(root).namespace == Namespaces.ATOM:
        return f"{{{Namespaces.ATOM}}}"
    return ""


def _links(element: etree._Element, ns: str) -> list[tuple[str, etree._Element]]:
    """(rel, element) pairs for every <link>; rel defaults to "alternate"."""
    return [
        (link.get("rel", "alternate"), link) for link in element.findall(f"{ns}link")
    ]


def _feed_link(root: etree._Element, ns: str) -> str | None:
    """Prefer the alternate link, fall back to self."""
    link = ""
    for rel, link_el in _links(root, ns):
        if rel == "alternate":
            return optional(link_el.get("href", ""))
        if rel == "self" and not link:
            link = link_el.get("href", "")
    return optional(link)


def read_feed(root: etree._Element) -> AtomFeedFields:
    """Read the typed feed-level fields from a <feed> element."""
    ns = _prefix(root)
    language = root.get(f"{{{Namespaces.XML}}}lang") or root.get("lang") or ""
    categories: list[str] = []
    for category in root.findall(f"{ns}category"):
        term = (category.get("term") or category.get("label") or "").strip()
        if term and term not in categories:
            categories.append(term)

    return AtomFeedFields(
        title=optional(get_text(root.find(f"{ns}title"))),
        subtitle=optional(get_text(root.find(f"{ns}subtitle"))),
        author_name=optional(get_text(root.find(f"{ns}author/{ns}name"))),
        link=_feed_link(root, ns),
        logo=optional(get_text(root.find(f"{ns}logo"))),
        icon=optional(get_text(root.find(f"{ns}icon"))),
        language=optional(language),
        categories=tuple(categories),
    )


def read_entry(entry: etree._Element, ns: str) -> AtomEntryFields:
    """Read the typed entry fields from an <entry> element."""
    link = ""
    enclosure: etree._Element | None = None
    for rel, link_el in _links(entry, ns):
        if rel == "enclosure" and enclosure is None:
            enclosure = link_el
        elif rel == "alternate" and not link:
            link = link_el.get("href", "")

    media = entry.find("media:group", Namespaces.MAP)
    if media is None:
        media = entry
    media_content = media.find("media:content", Namespaces.MAP)

    return AtomEntryFields(
        id=optional(get_text(entry.find(f"{ns}id"))),
        title=optional(get_text(entry.find(f"{ns}title"))),
        summary=optional(get_text(entry.find(f"{ns}summary"))),
        content=optional(get_text(entry.find(f"{ns}content"))),
        published=optional(get_text(entry.find(f"{ns}published"))),
        updated=optional(get_text(entry.find(f"{ns}updated"))),
        link=optional(link),
        enclosure_url=optional(get_attr(enclosure, "href")),
        enclosure_length=optional(get_attr(enclosure, "length")),
        enclosure_type=optional(get_attr(enclosure, "type")),
        media_url=optional(get_attr(media_content, "url")),
        media_type=optional(get_attr(media_content, "type")),
        media_description=optional(
            get_text(media.find("media:description", Namespaces.MAP))
        ),
        media_thumbnail=optional(
            get_attr(media.find("media:thumbnail", Namespaces.MAP), "url")
        ),
        video_id=optional(get_text(entry.find("yt:videoId", Namespaces.MAP))),
    )


class AtomParser(FeedParser):
    """Parser for Atom 1.0 feeds."""

    format_name: ClassVar[str] = "Atom"

    @staticmethod
    def validate(content: object) -> bool:
        """Check that text looks like an Atom document.

        Args:
            content: Candidate feed text.

        Returns:
            True if the text starts like XML and declares the Atom namespace
            alongside a <feed> tag.
        """
        if not content or not isinstance(content, str):
            return False

        trimmed = content.strip().lower()
        if not trimmed.startswith(("<?xml", "<feed")):
            return False

        return "<feed" in trimmed and Namespaces.ATOM.lower() in trimmed

    def accepts(self, root: etree._Element) -> bool:
        """Check for a <feed> root in the Atom namespace or in no namespace."""
        if local_name(root) != "feed":
            return False
        return etree.QName(root).namespace in (None, Namespaces.ATOM)

    def _entries(self, root: etree._Element) -> Sequence[etree._Element]:
        return root.findall(f"{_prefix(root)}entry")  # type: ignore[no-any-return]

    def _parse_source(
        self, root: etree._Element, url: str, fetched_at: datetime
    ) -> Source:
        feed = read_feed(root)
        return Source(
            id=identity.source_id(url),
            title=feed.title or UNTITLED_SOURCE,
            author=feed.author_name or UNKNOWN_AUTHOR,
            description=feed.subtitle or NO_DESCRIPTION,
            feed_url=url,
            image_url=feed.logo or feed.icon,
            website_url=feed.link,
            categories=feed.categories,
            language=feed.language,
            subscribed_at=fetched_at,
            last_fetched_at=fetched_at,
        )

    def _parse_item(
        self, entry: etree._Element, source_id: str, fetched_at: datetime
    ) -> Item | None:
        root = entry.getparent()
        ns = _prefix(root) if root is not None else ""
        fields = read_entry(entry, ns)

        media_url = fields.enclosure_url or fields.media_url
        link = fields.link
        if not media_url and fields.video_id:
            media_url = YOUTUBE_WATCH_URL.format(video_id=fields.video_id)
            link = link or media_url
        if not media_url:
            return None

        if fields.enclosure_url:
            file_size = parse_int(fields.enclosure_length)
            mime_type = fields.enclosure_type
        else:
            file_size = None
            mime_type = fields.media_type

        return Item(
            id=identity.item_id(fields.id or media_url),
            source_id=source_id,
            title=fields.title or UNTITLED_ITEM,
            description=(
                fields.content
                or fields.summary
                or fields.media_description
                or NO_DESCRIPTION
            ),
            media_url=media_url,
            # Atom carries no duration
            duration=0,
            published_at=(
                parse_date(fields.published) or parse_date(fields.updated) or fetched_at
            ),
            image_url=fields.media_thumbnail,
            file_size=file_size,
            mime_type=mime_type,
            guid=fields.id,
            link=link,
        )
