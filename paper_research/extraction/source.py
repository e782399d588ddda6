"""Source extraction pipeline.

Turns any source URL into ``ExtractedMetadata``:

1. arXiv ``abs``/``pdf`` URLs go through the arXiv record API; the
   response content type is never consulted on this path.
2. Everything else is fetched directly (redirects followed) and classified
   by content type, falling back to the path extension, into
   ``pdf``, ``html`` or ``other``.

HTML-ish documents are mined for head metadata and stripped body text.
PDFs, and documents that produced no text, fall back to the readability
mirror, which is allowed to fail silently.
"""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import unquote, urlparse

import httpx

from ..cancel import CancelToken
from ..config import Settings, get_settings
from ..exceptions import FetchError, InvalidUrlError
from ..models import ExtractedMetadata, SourceType
from ..net.http import create_client, http_get
from ..providers import arxiv
from ..text.normalize import clip_text
from . import html_meta
from .mirror import fetch_readable_text

logger = logging.getLogger(__name__)

_HTML_TYPES = ("text/html", "application/xhtml+xml")


def parse_source_url(raw: str) -> str:
    """Validate and trim an input URL.

    Raises:
        InvalidUrlError: If empty or not an absolute http(s) URL
    """
    value = (raw or "").strip()
    if not value:
        raise InvalidUrlError("URL must not be empty.")
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidUrlError(f"Invalid URL: {value}")
    return value


def classify_source_type(url: str, content_type: Optional[str]) -> SourceType:
    """Classify a fetched document.

    >>> classify_source_type("https://example.com/paper.pdf", None)
    'pdf'
    """
    ct = (content_type or "").lower()
    parsed = urlparse(url)
    path = parsed.path.lower()

    if arxiv.is_arxiv_host(parsed.hostname):
        return "arxiv"
    if path.endswith(".pdf") or "application/pdf" in ct:
        return "pdf"
    if path.endswith((".html", ".htm")) or any(t in ct for t in _HTML_TYPES):
        return "html"
    return "other"


def guess_title_from_url(url: str) -> str:
    parsed = urlparse(url)
    segments = [s for s in parsed.path.split("/") if s]
    if not segments:
        return parsed.hostname or url
    return unquote(segments[-1]).replace("-", " ").replace("_", " ")


async def _extract_arxiv(client: httpx.AsyncClient, arxiv_id: str,
                         cancel: Optional[CancelToken], s: Settings) -> ExtractedMetadata:
    record = await arxiv.fetch_record(client, arxiv_id, cancel=cancel, settings=s)
    full_text = await fetch_readable_text(client, record.canonical_url, cancel=cancel, settings=s)
    abstract = clip_text(record.summary, s.MAX_ABSTRACT_CHARS) if record.summary else None

    return ExtractedMetadata(
        title=record.title,
        authors=record.authors or None,
        year=record.year,
        abstract=abstract,
        full_text=full_text,
        source_type="arxiv",
        canonical_url=record.canonical_url,
    ).finalize()


async def _extract_generic(client: httpx.AsyncClient, url: str,
                           cancel: Optional[CancelToken], s: Settings) -> ExtractedMetadata:
    r = await http_get(client, url, provider="web", cancel=cancel, settings=s)
    if not r.is_success:
        raise FetchError(f"Source extraction failed: {r.status_code} {r.reason_phrase}",
                         provider="web", status_code=r.status_code)

    canonical_url = str(r.url)
    source_type = classify_source_type(canonical_url, r.headers.get("content-type"))

    title = guess_title_from_url(canonical_url)
    authors = None
    year = None
    abstract = None
    full_text = None

    if source_type in ("html", "other"):
        soup = html_meta.parse_html(r.text)
        title = html_meta.html_title(soup) or html_meta.meta_content(soup, "og:title") or title
        authors = html_meta.meta_values(soup, "citation_author") or None
        year = html_meta.meta_year(soup)
        abstract = html_meta.meta_abstract(soup)
        if abstract:
            abstract = clip_text(abstract, s.MAX_ABSTRACT_CHARS)
        stripped = html_meta.html_to_text(soup)
        full_text = clip_text(stripped, s.MAX_FULL_TEXT_CHARS) if stripped else None
    elif source_type == "pdf":
        full_text = await fetch_readable_text(client, canonical_url, cancel=cancel, settings=s)

    if not full_text and source_type != "pdf":
        full_text = await fetch_readable_text(client, canonical_url, cancel=cancel, settings=s)

    if not abstract and full_text:
        abstract = clip_text(full_text, s.MAX_ABSTRACT_CHARS)

    return ExtractedMetadata(
        title=title,
        authors=authors,
        year=year,
        abstract=abstract,
        full_text=full_text,
        source_type=source_type,
        canonical_url=canonical_url,
    ).finalize()


async def extract_source(url: str, cancel: Optional[CancelToken] = None,
                         client: Optional[httpx.AsyncClient] = None,
                         settings: Optional[Settings] = None) -> ExtractedMetadata:
    """
    Extract normalized metadata from a source URL.

    Args:
        url: arXiv, PDF, HTML or other document URL
        cancel: Run cancel token
        client: Shared async client; a private one is opened and closed when omitted
        settings: Settings override

    Returns:
        ExtractedMetadata with missing_fields populated

    Raises:
        InvalidUrlError: Empty or malformed URL
        FetchError: Remote server rejected the request (carries status_code)
        RecordNotFoundError: arXiv lookup returned no entry
        RecordUnparseableError: arXiv feed could not be parsed
        OperationCancelledError: ``cancel`` tripped while working
    """
    s = settings or get_settings()
    target = parse_source_url(url)
    arxiv_id = arxiv.parse_arxiv_id(target)

    owns_client = client is None
    client = client or create_client(s)
    try:
        if arxiv_id:
            logger.info(f"Extracting arXiv record {arxiv_id}")
            details = await _extract_arxiv(client, arxiv_id, cancel, s)
        else:
            logger.info(f"Extracting generic source {target}")
            details = await _extract_generic(client, target, cancel, s)
    finally:
        if owns_client:
            await client.aclose()

    if details.missing_fields:
        logger.debug(f"{details.canonical_url} missing fields: {', '.join(details.missing_fields)}")
    return details


def format_extracted_source(details: ExtractedMetadata) -> str:
    """Render extraction output as the text block handed to the model."""
    blocks = [
        f"Title: {details.title}",
        f"Canonical URL: {details.canonical_url}",
        f"Source type: {details.source_type}",
    ]
    if details.authors:
        blocks.append(f"Authors: {', '.join(details.authors)}")
    if details.year:
        blocks.append(f"Year: {details.year}")
    if details.abstract:
        blocks.append(f"Abstract:\n{details.abstract}")
    if details.full_text:
        blocks.append(f"Full text:\n{details.full_text}")
    if details.missing_fields:
        blocks.append(f"Missing fields: {', '.join(details.missing_fields)}")
    return "\n\n".join(blocks)
