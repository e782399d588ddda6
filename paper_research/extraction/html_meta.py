"""HTML head metadata and body text extraction.

Reads the fields scholarly landing pages expose in their ``<head>``:
``<title>``, Open Graph, Highwire ``citation_*`` and Dublin Core tags.
"""

from bs4 import BeautifulSoup, FeatureNotFound
from typing import List, Optional

from ..text.normalize import clean_value, normalize_whitespace, parse_year

# Checked in order; first tag that yields a year wins
YEAR_META_KEYS = ("citation_publication_date", "article:published_time", "dc.date")
ABSTRACT_META_KEYS = ("citation_abstract", "description", "og:description")


def parse_html(html: str) -> BeautifulSoup:
    try:
        return BeautifulSoup(html or "", "lxml")
    except FeatureNotFound:
        # Fallback to html.parser if lxml not available
        return BeautifulSoup(html or "", "html.parser")


def _meta_tags(soup: BeautifulSoup, key: str):
    key = key.lower()
    for tag in soup.find_all("meta"):
        name = tag.get("name") or tag.get("property") or ""
        if name.strip().lower() == key:
            yield tag


def meta_content(soup: BeautifulSoup, key: str) -> Optional[str]:
    """First non-empty ``content`` of a ``name``/``property`` meta tag."""
    for tag in _meta_tags(soup, key):
        value = clean_value(tag.get("content"))
        if value:
            return value
    return None


def meta_values(soup: BeautifulSoup, key: str) -> List[str]:
    """All distinct non-empty values of a repeated meta tag, in document order."""
    values: List[str] = []
    for tag in _meta_tags(soup, key):
        value = clean_value(tag.get("content"))
        if value and value not in values:
            values.append(value)
    return values


def html_title(soup: BeautifulSoup) -> Optional[str]:
    if soup.title is None:
        return None
    return clean_value(soup.title.get_text()) or None


def meta_year(soup: BeautifulSoup) -> Optional[int]:
    for key in YEAR_META_KEYS:
        year = parse_year(meta_content(soup, key))
        if year:
            return year
    return None


def meta_abstract(soup: BeautifulSoup) -> Optional[str]:
    for key in ABSTRACT_META_KEYS:
        value = meta_content(soup, key)
        if value:
            return value
    return None


def html_to_text(soup: BeautifulSoup) -> str:
    """
    Strip scripts, styles and tags, returning one whitespace-collapsed string.

    Args:
        soup: Parsed document

    Returns:
        Plain text
    """
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    return normalize_whitespace(soup.get_text(" "))
