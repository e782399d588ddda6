"""Scholarly web search with ranked provider fallback.

Semantic Scholar is queried first. When it yields fewer than ``limit``
results (including when it fails outright) arXiv fills the gap. Results are
merged primary-first, deduplicated by URL and truncated to ``limit``.
Provider failures are recorded as labeled strings, never raised, unless
nothing usable came back at all.
"""

import logging
from typing import Awaitable, Callable, Iterable, List, Optional, Tuple

import httpx

from ..cancel import CancelToken
from ..config import Settings, get_settings
from ..exceptions import InvalidQueryError, OperationCancelledError, SearchUnavailableError
from ..models import SearchResponse, SearchResult
from ..net.http import create_client
from ..providers import arxiv, semantic_scholar

logger = logging.getLogger(__name__)

ProviderFn = Callable[..., Awaitable[List[SearchResult]]]

# Ranked: primary first
PROVIDERS: List[Tuple[str, ProviderFn]] = [
    (semantic_scholar.PROVIDER, semantic_scholar.s2_search),
    (arxiv.PROVIDER, arxiv.arxiv_search),
]


async def _attempt(tag: str, fn: ProviderFn, client: httpx.AsyncClient, query: str, limit: int,
                   cancel: Optional[CancelToken], s: Settings) -> Tuple[List[SearchResult], Optional[str]]:
    """Run one provider; return (results, None) or ([], "tag: message")."""
    try:
        results = await fn(client, query, limit, cancel=cancel, settings=s)
        logger.info(f"{tag} returned {len(results)} results for query: {query}")
        return results, None
    except OperationCancelledError:
        raise
    except Exception as e:
        logger.warning(f"{tag} search failed for query '{query}': {e}")
        return [], f"{tag}: {e}"


def dedupe_results(results: Iterable[SearchResult]) -> List[SearchResult]:
    """Drop repeated URLs, keeping the first occurrence."""
    seen = set()
    deduped: List[SearchResult] = []
    for result in results:
        if result.url in seen:
            continue
        seen.add(result.url)
        deduped.append(result)
    return deduped


async def search_papers(query: str, limit: Optional[int] = None,
                        cancel: Optional[CancelToken] = None,
                        client: Optional[httpx.AsyncClient] = None,
                        settings: Optional[Settings] = None,
                        providers: Optional[List[Tuple[str, ProviderFn]]] = None) -> SearchResponse:
    """
    Search scholarly providers for related work.

    Args:
        query: Free-text query
        limit: Maximum number of results (defaults to DEFAULT_SEARCH_LIMIT)
        cancel: Run cancel token
        client: Shared async client; a private one is opened and closed when omitted
        settings: Settings override
        providers: Ranked provider chain override

    Returns:
        SearchResponse with provider_errors set when any provider failed

    Raises:
        InvalidQueryError: Empty query
        SearchUnavailableError: No provider produced a usable result
        OperationCancelledError: ``cancel`` tripped while searching
    """
    s = settings or get_settings()
    q = (query or "").strip()
    if not q:
        raise InvalidQueryError("Query must not be empty.")
    limit = limit or s.DEFAULT_SEARCH_LIMIT
    chain = providers if providers is not None else PROVIDERS

    provider_errors: List[str] = []
    results: List[SearchResult] = []

    owns_client = client is None
    client = client or create_client(s)
    try:
        for tag, fn in chain:
            if len(results) >= limit:
                break
            found, error = await _attempt(tag, fn, client, q, limit, cancel, s)
            if error:
                provider_errors.append(error)
            results = dedupe_results([*results, *found])[:limit]
    finally:
        if owns_client:
            await client.aclose()

    if not results:
        raise SearchUnavailableError(provider_errors)

    return SearchResponse(
        query=q,
        results=results,
        provider_errors=provider_errors or None,
    )


def format_results(results: List[SearchResult]) -> str:
    if not results:
        return "No results found."
    return "\n\n".join(
        f"{i}. {r.title}\nURL: {r.url}\nSnippet: {r.snippet}\nSource: {r.source}"
        for i, r in enumerate(results, 1)
    )
