"""Stable identifiers for sources and items.

Identifiers are short base-36 strings produced by a 32-bit polynomial hash
over the UTF-16 code units of the seed text. The hash is fast and
reproducible but not collision resistant against crafted input.
"""

from __future__ import annotations

import string

_DIGITS = string.digits + string.ascii_lowercase


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits: list[str] = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_DIGITS[rem])
    return "".join(reversed(digits))


def string_hash(text: str) -> int:
    """Hash text to a non-negative integer below 2**31 + 1.

    Args:
        text: Seed text.

    Returns:
        Absolute value of the signed 32-bit hash.
    """
    h = 0
    data = text.encode("utf-16-le")
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = (h * 31 + unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


def hash_id(prefix: str, text: str) -> str:
    """Build a prefixed identifier from seed text."""
    return f"{prefix}-{_to_base36(string_hash(text))}"


def source_id(feed_url: str) -> str:
    """Identifier for the source at feed_url."""
    return hash_id("source", feed_url)


def item_id(native_id: str) -> str:
    """Identifier for an item from its GUID/ID, or its media URL."""
    return hash_id("item", native_id)
