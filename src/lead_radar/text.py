"""Text normalization for raw feed and markup content."""

import html
import re

# Non-greedy tag pattern; an unterminated tag runs to the end of the string
_TAG_PATTERN = re.compile(r"</?[^>]+(>|$)")
_WHITESPACE_PATTERN = re.compile(r"\s+")


def strip_tags(value: str) -> str:
    """Remove HTML tags from a string."""
    return _TAG_PATTERN.sub("", value)


def normalize(raw: str) -> str:
    """Decode entities, drop tags, collapse whitespace and trim.

    Decoding and tag removal are repeated until the text stops changing,
    so double-escaped markup is cleaned and the function is idempotent.
    Never raises; ``None`` yields an empty string.
    """
    if not raw:
        return ""

    text = str(raw)
    while True:
        cleaned = strip_tags(html.unescape(text))
        if cleaned == text:
            break
        text = cleaned

    return _WHITESPACE_PATTERN.sub(" ", text).strip()
