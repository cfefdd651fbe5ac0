"""Feed format detection and dispatch to the matching parser."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from feedsync.feeds.atom import AtomParser
from feedsync.feeds.errors import FeedParseError
from feedsync.feeds.rss import RSSParser
from feedsync.feeds.xml import Namespaces, local_name, parse_document
from feedsync.logging import get_logger

if TYPE_CHECKING:
    from datetime import datetime

    from feedsync.feeds.parser import FeedParser
    from feedsync.models import FeedResult

_log = get_logger("feeds.detect")


class FeedFormat(Enum):
    """Wire formats understood by the engine."""

    RSS = "rss"
    ATOM = "atom"
    UNKNOWN = "unknown"


def detect_format(content: object) -> FeedFormat:
    """Classify raw feed text as RSS, Atom or unknown.

    Direct tag inspection is tried first, then each parser's structural
    validator. Unknown is returned rather than raised; the caller decides
    what to do with it.

    Args:
        content: Raw feed text.

    Returns:
        The detected format.
    """
    if not content or not isinstance(content, str):
        return FeedFormat.UNKNOWN

    lowered = content.lower()
    if "<rss" in lowered:
        return FeedFormat.RSS
    if "<feed" in lowered and Namespaces.ATOM.lower() in lowered:
        return FeedFormat.ATOM

    if RSSParser.validate(content):
        return FeedFormat.RSS
    if AtomParser.validate(content):
        return FeedFormat.ATOM

    return FeedFormat.UNKNOWN


class FeedParsers:
    """The RSS and Atom parsers, plus the fallback order for unknown input."""

    def __init__(self, max_items: int = -1) -> None:
        """Initialize both parsers.

        Args:
            max_items: Maximum entries read per feed (-1 for unlimited).
        """
        self.rss = RSSParser(max_items=max_items)
        self.atom = AtomParser(max_items=max_items)

    @property
    def fallback_order(self) -> tuple[FeedParser, ...]:
        """Parsers tried in order when detection returns UNKNOWN."""
        return (self.rss, self.atom)

    def for_format(self, feed_format: FeedFormat) -> FeedParser | None:
        """Parser for a detected format, or None when unknown."""
        if feed_format is FeedFormat.RSS:
            return self.rss
        if feed_format is FeedFormat.ATOM:
            return self.atom
        return None

    def parse(
        self,
        content: str,
        url: str,
        fetched_at: datetime | None = None,
    ) -> FeedResult:
        """Detect the format of content and parse it.

        The document is read once. If detection is inconclusive, or the
        detected parser rejects the root element (text detection can be
        misled by markup quoted inside CDATA), each parser in fallback_order
        is asked whether it accepts the root; the first that does parses it.

        Args:
            content: Raw feed text.
            url: Feed URL.
            fetched_at: When the payload was fetched.

        Returns:
            Parsed source and items.

        Raises:
            FeedParseError: If the document is malformed or of neither dialect.
        """
        root = parse_document(content, url)
        parser = self.for_format(detect_format(content))
        if parser is not None and parser.accepts(root):
            return parser.parse_root(root, url, fetched_at)

        for candidate in self.fallback_order:
            if candidate.accepts(root):
                _log.debug(
                    "Format of %s not detected, falling back to %s",
                    url,
                    candidate.format_name,
                )
                return candidate.parse_root(root, url, fetched_at)

        raise FeedParseError(url, f"Unknown feed format: <{local_name(root)}>")
