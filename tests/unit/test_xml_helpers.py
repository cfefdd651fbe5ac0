"""Tests for shared XML and value helpers."""

from datetime import UTC, datetime, timedelta, timezone

import pytest
from lxml import etree

from feedsync.feeds.errors import FeedParseError
from feedsync.feeds.xml import (
    decode_document,
    get_attr,
    get_text,
    local_name,
    optional,
    parse_date,
    parse_document,
    parse_duration,
    parse_int,
)


class TestParseDate:
    """Tests for parse_date."""

    def test_parse_rfc822(self) -> None:
        """Test parsing RFC 822 date format."""
        result = parse_date("Mon, 01 Jan 2024 12:00:00 +0000")
        assert result == datetime(2024, 1, 1, 12, 0, tzinfo=UTC)

    def test_parse_rfc822_zone_name(self) -> None:
        """Test parsing RFC 822 with an obsolete zone name."""
        result = parse_date("Mon, 01 Jan 2024 12:00:00 EST")
        assert result is not None
        assert result.utcoffset() == timedelta(hours=-5)

    def test_parse_iso8601_utc(self) -> None:
        """Test parsing ISO 8601 with a Z suffix."""
        result = parse_date("2024-01-01T12:00:00Z")
        assert result == datetime(2024, 1, 1, 12, 0, tzinfo=UTC)

    def test_parse_iso8601_offset_with_colon(self) -> None:
        """Test parsing ISO 8601 with a +HH:MM offset."""
        result = parse_date("2024-01-15T10:30:00+02:00")
        assert result is not None
        assert result.utcoffset() == timedelta(hours=2)
        assert result == datetime(2024, 1, 15, 8, 30, tzinfo=UTC)

    def test_parse_fractional_seconds(self) -> None:
        """Test parsing ISO 8601 with fractional seconds."""
        result = parse_date("2024-01-20T08:00:00.123Z")
        assert result is not None
        assert result.microsecond == 123000

    def test_parse_date_only_is_utc(self) -> None:
        """Test that naive results are treated as UTC."""
        result = parse_date("2024-01-15")
        assert result == datetime(2024, 1, 15, tzinfo=UTC)

    def test_parse_keeps_offset(self) -> None:
        """Test that an explicit offset is preserved."""
        result = parse_date("Mon, 01 Jan 2024 12:00:00 -0800")
        assert result is not None
        assert result.tzinfo == timezone(timedelta(hours=-8))

    @pytest.mark.parametrize("value", [None, "", "   ", "not a date"])
    def test_parse_invalid(self, value: str | None) -> None:
        """Test that missing or invalid input returns None."""
        assert parse_date(value) is None

    def test_parse_strips_whitespace(self) -> None:
        """Test that whitespace is stripped."""
        assert parse_date("  2024-01-01  ") is not None


class TestParseDuration:
    """Tests for parse_duration."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("3600", 3600),
            ("45:30", 2730),
            ("01:02:03", 3723),
            ("3600.7", 3600),
            (None, 0),
            ("", 0),
            ("abc", 0),
            ("1:2:3:4", 0),
            ("-5", 0),
            ("10:xx", 0),
        ],
    )
    def test_parse_duration(self, value: str | None, expected: int) -> None:
        """Test supported and invalid duration strings."""
        assert parse_duration(value) == expected


class TestParseInt:
    """Tests for parse_int."""

    def test_valid(self) -> None:
        """Test parsing a plain integer."""
        assert parse_int(" 42 ") == 42

    def test_negative_is_none(self) -> None:
        """Test that negative numbers are rejected."""
        assert parse_int("-1") is None

    def test_invalid_is_none(self) -> None:
        """Test that non-integers are rejected."""
        assert parse_int("1.5") is None
        assert parse_int(None) is None


class TestElementHelpers:
    """Tests for element access helpers."""

    def test_get_text_with_content(self) -> None:
        """Test getting text from element with content."""
        elem = etree.fromstring("<title>  Hello World </title>")
        assert get_text(elem) == "Hello World"

    def test_get_text_none_element(self) -> None:
        """Test getting text from None returns default."""
        assert get_text(None) == ""
        assert get_text(None, "default") == "default"

    def test_get_attr(self) -> None:
        """Test getting an attribute value."""
        elem = etree.fromstring('<enclosure url="https://example.com/a.mp3"/>')
        assert get_attr(elem, "url") == "https://example.com/a.mp3"
        assert get_attr(elem, "length") == ""
        assert get_attr(None, "url", "x") == "x"

    def test_optional(self) -> None:
        """Test mapping blank strings to None."""
        assert optional("  ") is None
        assert optional(" a ") == "a"

    def test_local_name(self) -> None:
        """Test stripping the namespace from a tag."""
        elem = etree.fromstring('<feed xmlns="http://www.w3.org/2005/Atom"/>')
        assert local_name(elem) == "feed"


class TestParseDocument:
    """Tests for parse_document."""

    def test_ignores_encoding_declaration_for_text(self) -> None:
        """Test that decoded text with an encoding declaration parses."""
        root = parse_document(
            '<?xml version="1.0" encoding="ISO-8859-1"?><rss><channel/></rss>',
            "https://example.com/feed.xml",
        )
        assert root.tag == "rss"

    def test_leading_whitespace(self) -> None:
        """Test that leading whitespace before the declaration is tolerated."""
        root = parse_document('\n  <?xml version="1.0"?><rss/>', "u")
        assert root.tag == "rss"

    def test_invalid_xml(self) -> None:
        """Test that malformed XML raises FeedParseError with the URL."""
        with pytest.raises(FeedParseError, match="https://example.com/bad.xml"):
            parse_document("<rss><channel>", "https://example.com/bad.xml")


class TestDecodeDocument:
    """Tests for decode_document."""

    def test_declared_encoding(self) -> None:
        """Test that the XML declaration is used when no charset is given."""
        content = '<?xml version="1.0" encoding="ISO-8859-1"?><rss>Café</rss>'.encode(
            "iso-8859-1"
        )
        assert decode_document(content).endswith("<rss>Café</rss>")

    def test_charset_wins(self) -> None:
        """Test that the header charset overrides the declaration."""
        content = '<?xml version="1.0" encoding="ISO-8859-1"?><rss>Café</rss>'.encode()
        assert decode_document(content, "utf-8").endswith("<rss>Café</rss>")

    def test_utf8_bom_stripped(self) -> None:
        """Test that a UTF-8 byte order mark is removed."""
        assert decode_document(b"\xef\xbb\xbf<rss/>") == "<rss/>"

    def test_utf16_bom(self) -> None:
        """Test that UTF-16 is detected from its byte order mark."""
        assert decode_document("<rss>é</rss>".encode("utf-16")) == "<rss>é</rss>"

    def test_unknown_encoding_falls_back_to_utf8(self) -> None:
        """Test that an unknown encoding name decodes as UTF-8."""
        content = '<?xml version="1.0" encoding="no-such-codec"?><rss>é</rss>'.encode()
        assert decode_document(content).endswith("<rss>é</rss>")

    def test_invalid_bytes_replaced(self) -> None:
        """Test that undecodable bytes do not raise."""
        assert decode_document(b"<rss>\xff</rss>") == "<rss>�</rss>"
