"""
Text normalization helpers shared by extraction and search.
"""

import html
import re
from typing import Optional

_WS = re.compile(r"\s+")
_YEAR = re.compile(r"\b(?:19|20)\d{2}\b")

ELLIPSIS = "…"


def normalize_whitespace(text: str) -> str:
    """Collapse every whitespace run to a single space and trim."""
    return _WS.sub(" ", text or "").strip()


def decode_entities(text: str) -> str:
    """Decode HTML/XML character references."""
    return html.unescape(text or "")


def clean_value(text: Optional[str]) -> str:
    """Entity-decode and whitespace-collapse a metadata value."""
    return normalize_whitespace(decode_entities(text or ""))


def clip_text(text: str, max_chars: int) -> str:
    """
    Cap ``text`` at ``max_chars`` characters.

    Clipped text keeps ``max_chars - 1`` characters and ends with an ellipsis,
    so the result never exceeds the budget.
    """
    if len(text) <= max_chars:
        return text
    return f"{text[:max_chars - 1]}{ELLIPSIS}"


def clip_snippet(text: str, max_chars: int = 320) -> str:
    return clip_text(normalize_whitespace(text), max_chars)


def parse_year(value: Optional[str]) -> Optional[int]:
    """Return the first plausible four-digit year (1900-2099) in ``value``."""
    if not value:
        return None
    match = _YEAR.search(value)
    if not match:
        return None
    return int(match.group(0))
