"""Common behaviour for the format-specific feed parsers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import TYPE_CHECKING, ClassVar

from lxml import etree  # type: ignore[import-untyped]

from feedsync.feeds.errors import FeedParseError
from feedsync.feeds.xml import local_name, parse_document
from feedsync.logging import get_logger
from feedsync.models import FeedResult, Item, Source

if TYPE_CHECKING:
    from collections.abc import Sequence

_log = get_logger("feeds.parser")


class FeedParser(ABC):
    """Translate one feed dialect into Source and Item models.

    Parsers hold no per-document state; a single instance can be shared
    freely between concurrent syncs. Errors raised while reading one entry
    are logged and that entry is skipped. Only a document that is not
    well-formed XML (or not of this dialect at all) raises FeedParseError.
    """

    format_name: ClassVar[str]

    def __init__(self, max_items: int = -1) -> None:
        """Initialize the parser.

        Args:
            max_items: Maximum entries read per feed (-1 for unlimited).
        """
        self.max_items = max_items

    @staticmethod
    @abstractmethod
    def validate(content: object) -> bool:
        """Cheap structural check on raw text. Never raises."""

    @abstractmethod
    def accepts(self, root: etree._Element) -> bool:
        """Whether an already-parsed root element belongs to this dialect."""

    @abstractmethod
    def _parse_source(
        self, root: etree._Element, url: str, fetched_at: datetime
    ) -> Source:
        """Build the Source from the document root."""

    @abstractmethod
    def _entries(self, root: etree._Element) -> Sequence[etree._Element]:
        """Entry elements in document order."""

    @abstractmethod
    def _parse_item(
        self, entry: etree._Element, source_id: str, fetched_at: datetime
    ) -> Item | None:
        """Build an Item, or return None when the entry has no media."""

    def parse(
        self,
        content: str | bytes,
        url: str,
        fetched_at: datetime | None = None,
    ) -> FeedResult:
        """Parse a raw feed document.

        Args:
            content: Raw XML.
            url: Feed URL; seeds the Source identifier.
            fetched_at: When the payload was fetched. Used as the
                subscription time and as the publish date of entries
                that carry none. Defaults to now.

        Returns:
            The Source and its valid Items.

        Raises:
            FeedParseError: If the document cannot be parsed.
        """
        root = parse_document(content, url)
        return self.parse_root(root, url, fetched_at)

    def parse_root(
        self,
        root: etree._Element,
        url: str,
        fetched_at: datetime | None = None,
    ) -> FeedResult:
        """Parse a document that has already been read into an element tree."""
        if not self.accepts(root):
            raise FeedParseError(
                url, f"Not an {self.format_name} document: <{local_name(root)}>"
            )

        if fetched_at is None:
            fetched_at = datetime.now(UTC)

        source = self._parse_source(root, url, fetched_at)

        entries = list(self._entries(root))
        if self.max_items > 0:
            entries = entries[: self.max_items]

        items: list[Item] = []
        seen: set[str] = set()
        for index, entry in enumerate(entries):
            try:
                item = self._parse_item(entry, source.id, fetched_at)
            except (ValueError, TypeError, etree.LxmlError) as e:
                _log.warning(
                    "Skipping malformed %s entry #%d in %s: %s",
                    self.format_name,
                    index,
                    url,
                    e,
                )
                continue

            if item is None:
                _log.debug(
                    "Skipping %s entry #%d in %s: no media URL",
                    self.format_name,
                    index,
                    url,
                )
                continue

            if item.id in seen:
                _log.debug("Skipping duplicate item %s in %s", item.id, url)
                continue

            seen.add(item.id)
            items.append(item)

        if not items:
            _log.warning("No playable items found in %s feed %s", self.format_name, url)

        _log.info(
            "Parsed %s feed %r: %d items", self.format_name, source.title, len(items)
        )
        return FeedResult(source=source, items=items)
