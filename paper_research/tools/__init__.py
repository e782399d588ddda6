"""Tools exposed to the reasoning engine."""

from pathlib import Path
from typing import Optional

import httpx

from ..config import Settings, get_settings
from .files import create_read_tool, create_write_tool
from .registry import ToolRegistry, ToolResult, ToolSpec
from .research import (
    EXTRACT_SOURCE,
    WEB_SEARCH,
    CancelSource,
    create_extract_source_tool,
    create_web_search_tool,
)
from .sandbox import resolve_path_within_root, to_prompt_path


def create_research_tools(root_dir: Path,
                          client: Optional[httpx.AsyncClient] = None,
                          cancel_source: Optional[CancelSource] = None,
                          settings: Optional[Settings] = None) -> ToolRegistry:
    """The four tools a research run hands to the engine."""
    s = settings or get_settings()
    return ToolRegistry([
        create_web_search_tool(client, cancel_source, s),
        create_extract_source_tool(client, cancel_source, s),
        create_read_tool(root_dir, s.READ_MAX_OUTPUT_CHARS),
        create_write_tool(root_dir),
    ])


__all__ = [
    "EXTRACT_SOURCE",
    "WEB_SEARCH",
    "ToolRegistry",
    "ToolResult",
    "ToolSpec",
    "create_research_tools",
    "resolve_path_within_root",
    "to_prompt_path",
]
