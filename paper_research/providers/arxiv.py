"""arXiv provider: Atom record lookup by id and keyword search."""

from __future__ import annotations
from typing import List, Optional
from dataclasses import dataclass, field
from urllib.parse import urlparse
import re
import xml.etree.ElementTree as ET
import httpx
import logging

from ..cancel import CancelToken
from ..config import Settings, get_settings
from ..exceptions import FetchError, RecordNotFoundError, RecordUnparseableError
from ..models import SearchResult
from ..net.http import http_get
from ..text.normalize import clean_value, clip_snippet, parse_year

logger = logging.getLogger(__name__)

PROVIDER = "arxiv"
_BASE = "https://export.arxiv.org/api/query"
_NS = {"a": "http://www.w3.org/2005/Atom"}

_ABS_PATH = re.compile(r"^/abs/([^/?#]+)")
_PDF_PATH = re.compile(r"^/pdf/([^/?#]+?)(?:\.pdf)?$")


def is_arxiv_host(hostname: Optional[str]) -> bool:
    return (hostname or "").lower().endswith("arxiv.org")


def parse_arxiv_id(url: str) -> Optional[str]:
    """Extract the arXiv id from ``/abs/<id>`` or ``/pdf/<id>[.pdf]`` URLs."""
    parsed = urlparse(url)
    if not is_arxiv_host(parsed.hostname):
        return None
    match = _ABS_PATH.match(parsed.path) or _PDF_PATH.match(parsed.path)
    return match.group(1) if match else None


def abs_url(arxiv_id: str) -> str:
    return f"https://arxiv.org/abs/{arxiv_id}"


@dataclass
class ArxivRecord:
    arxiv_id: str
    title: str
    summary: str = ""
    published: str = ""
    authors: List[str] = field(default_factory=list)

    @property
    def year(self) -> Optional[int]:
        return parse_year(self.published)

    @property
    def canonical_url(self) -> str:
        return abs_url(self.arxiv_id)


def _parse_feed(xml_text: str) -> ET.Element:
    try:
        return ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise RecordUnparseableError(f"arXiv feed could not be parsed: {e}", provider=PROVIDER)


def _text(entry: ET.Element, tag: str) -> str:
    return clean_value(entry.findtext(f"a:{tag}", default="", namespaces=_NS))


def parse_record(xml_text: str, arxiv_id: str) -> ArxivRecord:
    """Parse the single entry of an ``id_list`` query response."""
    root = _parse_feed(xml_text)
    entry = root.find("a:entry", _NS)
    if entry is None:
        raise RecordNotFoundError("No arXiv entry found for that URL.", provider=PROVIDER)

    authors = [
        name for name in (
            clean_value(a.findtext("a:name", default="", namespaces=_NS))
            for a in entry.findall("a:author", _NS)
        ) if name
    ]
    return ArxivRecord(
        arxiv_id=arxiv_id,
        title=_text(entry, "title") or f"arXiv:{arxiv_id}",
        summary=_text(entry, "summary"),
        published=_text(entry, "published"),
        authors=authors,
    )


async def fetch_record(client: httpx.AsyncClient, arxiv_id: str,
                       cancel: Optional[CancelToken] = None,
                       settings: Optional[Settings] = None) -> ArxivRecord:
    """Look up one paper through the arXiv export API."""
    r = await http_get(client, _BASE, provider=PROVIDER, params={"id_list": arxiv_id},
                       cancel=cancel, settings=settings)
    if not r.is_success:
        raise FetchError(
            f"arXiv extraction failed: {r.status_code} {r.reason_phrase}",
            provider=PROVIDER, status_code=r.status_code,
        )
    return parse_record(r.text, arxiv_id)


def parse_search_feed(xml_text: str, snippet_chars: int = 320) -> List[SearchResult]:
    root = _parse_feed(xml_text)
    out: List[SearchResult] = []
    for entry in root.findall("a:entry", _NS):
        paper_url = _text(entry, "id")
        if not paper_url:
            continue
        out.append(SearchResult(
            title=_text(entry, "title") or "Untitled arXiv paper",
            url=paper_url,
            snippet=clip_snippet(_text(entry, "summary") or "No abstract available.", snippet_chars),
            source=PROVIDER,
        ))
    return out


async def arxiv_search(client: httpx.AsyncClient, query: str, limit: int,
                       cancel: Optional[CancelToken] = None,
                       settings: Optional[Settings] = None) -> List[SearchResult]:
    """Search arXiv for papers. Raises on HTTP failure so the caller can record it."""
    s = settings or get_settings()
    params = {
        "search_query": f"all:{query}",
        "start": 0,
        "max_results": limit,
    }
    r = await http_get(client, _BASE, provider=PROVIDER, params=params, cancel=cancel, settings=s)
    if not r.is_success:
        raise FetchError(f"arXiv returned {r.status_code} {r.reason_phrase}",
                         provider=PROVIDER, status_code=r.status_code)
    return parse_search_feed(r.text, s.SNIPPET_MAX_CHARS)[:limit]
