"""XML and value helpers shared by the RSS and Atom parsers."""

from __future__ import annotations

import codecs
import re
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import ClassVar

from lxml import etree  # type: ignore[import-untyped]

from feedsync.feeds.errors import FeedParseError


class Namespaces:
    """XML namespaces used in feeds."""

    ATOM = "http://www.w3.org/2005/Atom"
    ITUNES = "http://www.itunes.com/dtds/podcast-1.0.dtd"
    CONTENT = "http://purl.org/rss/1.0/modules/content/"
    MEDIA = "http://search.yahoo.com/mrss/"
    YOUTUBE = "http://www.youtube.com/xml/schemas/2015"
    XML = "http://www.w3.org/XML/1998/namespace"

    MAP: ClassVar[dict[str, str]] = {
        "atom": ATOM,
        "itunes": ITUNES,
        "content": CONTENT,
        "media": MEDIA,
        "yt": YOUTUBE,
    }


# Common date formats used in RSS/Atom feeds
DATE_FORMATS = [
    "%a, %d %b %Y %H:%M:%S %z",  # RFC 822 (RSS)
    "%a, %d %b %Y %H:%M:%S %Z",  # RFC 822 with timezone name
    "%a, %d %b %Y %H:%M %z",  # RFC 822 without seconds
    "%d %b %Y %H:%M:%S %z",  # RFC 822 without weekday
    "%Y-%m-%dT%H:%M:%S%z",  # ISO 8601 (Atom)
    "%Y-%m-%dT%H:%M:%SZ",  # ISO 8601 UTC
    "%Y-%m-%d %H:%M:%S",  # Simple datetime
    "%Y-%m-%d",  # Date only
]


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def parse_date(date_str: str | None) -> datetime | None:
    """Parse a date string using common feed date formats.

    Naive results are assumed to be UTC.

    Args:
        date_str: Date string to parse.

    Returns:
        Timezone-aware datetime or None if parsing fails.
    """
    if not date_str:
        return None

    date_str = date_str.strip()
    if not date_str:
        return None

    for fmt in DATE_FORMATS:
        try:
            return _as_utc(datetime.strptime(date_str, fmt))
        except ValueError:
            continue

    # ISO 8601 with fractional seconds or "+HH:MM" offsets
    try:
        return _as_utc(datetime.fromisoformat(date_str))
    except ValueError:
        pass

    # RFC 822 with obsolete zone names (EST, PDT, ...)
    try:
        return _as_utc(parsedate_to_datetime(date_str))
    except (TypeError, ValueError, IndexError):
        return None


def parse_duration(duration_str: str | None) -> int:
    """Parse an iTunes duration string to seconds.

    Supports "SS", "MM:SS" and "HH:MM:SS". Anything else yields 0.

    Args:
        duration_str: Duration string from the feed.

    Returns:
        Duration in seconds.
    """
    if not duration_str:
        return 0

    parts = duration_str.strip().split(":")
    if len(parts) > 3:
        return 0

    try:
        values = [int(p) for p in parts]
    except ValueError:
        # Some feeds write fractional seconds ("3600.5")
        if len(parts) == 1:
            try:
                return max(0, int(float(parts[0])))
            except ValueError:
                return 0
        return 0

    if any(v < 0 for v in values):
        return 0

    seconds = 0
    for value in values:
        seconds = seconds * 60 + value
    return seconds


def parse_int(value: str | None) -> int | None:
    """Parse a non-negative integer, returning None when absent or invalid."""
    if value is None:
        return None
    try:
        number = int(value.strip())
    except ValueError:
        return None
    return number if number >= 0 else None


def get_text(element: etree._Element | None, default: str = "") -> str:
    """Get text content from an element safely.

    Args:
        element: XML element or None.
        default: Default value if element is None or empty.

    Returns:
        Text content or default.
    """
    if element is None:
        return default
    return (element.text or default).strip()


def get_attr(element: etree._Element | None, attr: str, default: str = "") -> str:
    """Get attribute value from an element safely.

    Args:
        element: XML element or None.
        attr: Attribute name.
        default: Default value if not found.

    Returns:
        Attribute value or default.
    """
    if element is None:
        return default
    return element.get(attr, default)  # type: ignore[no-any-return]


def optional(value: str) -> str | None:
    """Map an empty string to None."""
    value = value.strip()
    return value or None


def local_name(element: etree._Element) -> str:
    """Tag name without its namespace."""
    tag = element.tag
    if not isinstance(tag, str):
        return ""
    return etree.QName(tag).localname  # type: ignore[no-any-return]


# Encoding named in an <?xml ...?> declaration
_XML_ENCODING_RE = re.compile(
    rb"""^\s*<\?xml[^>]*?\bencoding\s*=\s*["']([A-Za-z0-9._:-]+)["']"""
)


def decode_document(content: bytes, charset: str | None = None) -> str:
    """Decode a raw feed body to text.

    The charset from the HTTP Content-Type wins. Without one, a byte order
    mark is honoured, then the encoding in the XML declaration, then UTF-8.
    Undecodable bytes are replaced rather than raising.

    Args:
        content: Response body.
        charset: Charset parameter of the Content-Type header, if any.

    Returns:
        The document text.
    """
    encoding = charset
    if not encoding:
        if content.startswith(codecs.BOM_UTF8):
            encoding = "utf-8-sig"
        elif content.startswith((codecs.BOM_UTF16_LE, codecs.BOM_UTF16_BE)):
            encoding = "utf-16"
        else:
            match = _XML_ENCODING_RE.match(content)
            encoding = match.group(1).decode("ascii") if match else "utf-8"

    try:
        text = content.decode(encoding, errors="replace")
    except LookupError:
        text = content.decode("utf-8", errors="replace")
    return text.removeprefix("\ufeff")


def parse_document(content: str | bytes, url: str) -> etree._Element:
    """Parse a complete XML document.

    Args:
        content: Raw document text or bytes.
        url: Feed URL, for error reporting.

    Returns:
        Root element.

    Raises:
        FeedParseError: If the document is not well-formed XML.
    """
    if isinstance(content, str):
        # Text is already decoded; ignore any encoding declaration.
        data = content.lstrip().encode("utf-8")
        parser = etree.XMLParser(
            encoding="utf-8", resolve_entities=False, no_network=True
        )
    else:
        data = content.lstrip()
        parser = etree.XMLParser(resolve_entities=False, no_network=True)

    try:
        root = etree.fromstring(data, parser=parser)
    except etree.XMLSyntaxError as e:
        raise FeedParseError(url, f"Invalid XML: {e}") from e

    if root is None:
        raise FeedParseError(url, "Empty document")
    return root
