"""``web_search`` and ``extract_source`` tools."""

from typing import Callable, Optional

import httpx
from pydantic import BaseModel, Field

from ..cancel import CancelToken
from ..config import Settings, get_settings
from ..extraction.source import extract_source, format_extracted_source
from ..search.aggregator import format_results, search_papers
from .registry import ToolResult, ToolSpec

WEB_SEARCH = "web_search"
EXTRACT_SOURCE = "extract_source"

CancelSource = Callable[[], Optional[CancelToken]]


class WebSearchInput(BaseModel):
    query: str = Field(min_length=1, description="Search query for papers, methods, or related work")
    limit: Optional[int] = Field(None, ge=1, le=10, description="Maximum number of results (default: 5)")


class ExtractSourceInput(BaseModel):
    url: str = Field(min_length=1, description="Source URL to extract from (arXiv, PDF, HTML, or other)")


def _pick_token(cancel: Optional[CancelToken], cancel_source: Optional[CancelSource]) -> Optional[CancelToken]:
    run_token = cancel_source() if cancel_source else None
    return run_token or cancel


def create_web_search_tool(client: Optional[httpx.AsyncClient] = None,
                           cancel_source: Optional[CancelSource] = None,
                           settings: Optional[Settings] = None) -> ToolSpec:
    s = settings or get_settings()

    async def execute(call_id: str, params: WebSearchInput, cancel: Optional[CancelToken] = None) -> ToolResult:
        response = await search_papers(
            params.query,
            params.limit or s.DEFAULT_SEARCH_LIMIT,
            cancel=_pick_token(cancel, cancel_source),
            client=client,
            settings=s,
        )
        return ToolResult(
            content=format_results(response.results),
            details=response.model_dump(by_alias=True, exclude_none=True),
        )

    return ToolSpec(
        name=WEB_SEARCH,
        description=(
            "Search scholarly sources for related work. "
            "Returns ranked results with title, URL, snippet, and source."
        ),
        input_model=WebSearchInput,
        execute=execute,
    )


def create_extract_source_tool(client: Optional[httpx.AsyncClient] = None,
                               cancel_source: Optional[CancelSource] = None,
                               settings: Optional[Settings] = None) -> ToolSpec:
    s = settings or get_settings()

    async def execute(call_id: str, params: ExtractSourceInput, cancel: Optional[CancelToken] = None) -> ToolResult:
        details = await extract_source(
            params.url,
            cancel=_pick_token(cancel, cancel_source),
            client=client,
            settings=s,
        )
        return ToolResult(
            content=format_extracted_source(details),
            details=details.model_dump(by_alias=True, exclude_none=True),
        )

    return ToolSpec(
        name=EXTRACT_SOURCE,
        description=(
            "Extract normalized metadata and text from a source URL. "
            "Supports arXiv metadata path and generic HTML/PDF extraction."
        ),
        input_model=ExtractSourceInput,
        execute=execute,
    )
