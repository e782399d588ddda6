"""Semantic Scholar graph search, the primary related-work provider."""

import httpx
import logging
from typing import Any, Dict, List, Optional

from ..cancel import CancelToken
from ..config import Settings, get_settings
from ..exceptions import FetchError
from ..models import SearchResult
from ..net.http import http_get
from ..text.normalize import clip_snippet
from .arxiv import abs_url

logger = logging.getLogger(__name__)

PROVIDER = "semantic-scholar"
_SEARCH = "https://api.semanticscholar.org/graph/v1/paper/search"
_FIELDS = "title,url,abstract,year,venue,externalIds"


def paper_to_result(paper: Dict[str, Any], snippet_chars: int = 320) -> Optional[SearchResult]:
    """
    Map one graph record onto the common result shape.

    Args:
        paper: Record from the ``data`` array
        snippet_chars: Snippet budget

    Returns:
        SearchResult, or None when the record has no usable URL
    """
    external_ids = paper.get("externalIds") or {}
    fallback_url = abs_url(external_ids["ArXiv"]) if external_ids.get("ArXiv") else None
    url = (paper.get("url") or "").strip() or fallback_url
    if not url:
        return None

    abstract = (paper.get("abstract") or "").strip()
    venue_year = ", ".join(str(v) for v in (paper.get("venue"), paper.get("year")) if v)
    snippet = abstract or venue_year or "No abstract available."

    return SearchResult(
        title=(paper.get("title") or "").strip() or "Untitled paper",
        url=url,
        snippet=clip_snippet(snippet, snippet_chars),
        source=PROVIDER,
    )


async def s2_search(client: httpx.AsyncClient, query: str, limit: int,
                    cancel: Optional[CancelToken] = None,
                    settings: Optional[Settings] = None) -> List[SearchResult]:
    """Search Semantic Scholar. Raises on HTTP failure so the caller can record it."""
    s = settings or get_settings()
    params = {"query": query, "limit": limit, "fields": _FIELDS}
    r = await http_get(client, _SEARCH, provider=PROVIDER, params=params, cancel=cancel, settings=s)
    if not r.is_success:
        raise FetchError(f"Semantic Scholar returned {r.status_code} {r.reason_phrase}",
                         provider=PROVIDER, status_code=r.status_code)

    payload = r.json()
    papers = (payload.get("data") or []) if isinstance(payload, dict) else []
    results = [res for res in (paper_to_result(p, s.SNIPPET_MAX_CHARS) for p in papers
                               if isinstance(p, dict)) if res is not None]
    return results[:limit]
