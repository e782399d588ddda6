"""Sandboxed ``read`` and ``write`` tools."""

import asyncio
import logging
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from ..cancel import CancelToken
from .registry import ToolResult, ToolSpec
from .sandbox import resolve_path_within_root

logger = logging.getLogger(__name__)

MAX_OUTPUT_CHARS = 60_000


class ReadInput(BaseModel):
    path: str = Field(description="Path to the file to read (relative to project root or absolute)")
    offset: Optional[int] = Field(None, ge=1, description="Line number to start at (1-indexed)")
    limit: Optional[int] = Field(None, ge=1, description="Maximum number of lines to read")


class WriteInput(BaseModel):
    path: str = Field(description="Path to the file to write (relative to project root or absolute)")
    content: str = Field(description="Text content to write")


def read_window(raw: str, path: str, offset: Optional[int] = None, limit: Optional[int] = None,
                max_chars: int = MAX_OUTPUT_CHARS) -> ToolResult:
    """Slice ``raw`` into a 1-indexed line window with output notices."""
    lines = raw.split("\n") if raw else []
    total = len(lines)
    if total == 0:
        return ToolResult(content="", details={
            "path": path, "bytes": 0, "totalLines": 0,
            "startLine": 0, "endLine": 0, "truncated": False,
        })

    start = max(1, offset or 1)
    if start > total:
        raise ValueError(f"Offset {start} is beyond end of file ({total} lines).")
    end = min(total, start + limit - 1) if limit else total

    selected = "\n".join(lines[start - 1:end])
    truncated = len(selected) > max_chars
    text = selected[:max_chars]
    if truncated:
        text += f"\n\n[Output truncated to {max_chars} characters.]"
    if end < total:
        text += f"\n\n[More content available. Continue with offset={end + 1}.]"

    return ToolResult(content=text, details={
        "path": path,
        "bytes": len(raw.encode("utf-8")),
        "totalLines": total,
        "startLine": start,
        "endLine": end,
        "truncated": truncated,
    })


def create_read_tool(root_dir: Path, max_chars: int = MAX_OUTPUT_CHARS) -> ToolSpec:
    async def execute(call_id: str, params: ReadInput, cancel: Optional[CancelToken] = None) -> ToolResult:
        target = resolve_path_within_root(params.path, root_dir)
        raw = await asyncio.to_thread(target.read_text, encoding="utf-8")
        return read_window(raw, params.path, params.offset, params.limit, max_chars)

    return ToolSpec(
        name="read",
        description=(
            "Read file content from disk. Returns text content and metadata. "
            "Supports optional offset/limit for line ranges."
        ),
        input_model=ReadInput,
        execute=execute,
    )


def create_write_tool(root_dir: Path) -> ToolSpec:
    def _write(target: Path, content: str) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")

    async def execute(call_id: str, params: WriteInput, cancel: Optional[CancelToken] = None) -> ToolResult:
        target = resolve_path_within_root(params.path, root_dir)
        await asyncio.to_thread(_write, target, params.content)
        logger.debug(f"write tool wrote {len(params.content)} chars to {target}")
        return ToolResult(
            content=f"Wrote {len(params.content)} characters to {params.path}",
            details={"path": params.path, "bytesWritten": len(params.content.encode("utf-8"))},
        )

    return ToolSpec(
        name="write",
        description=(
            "Create or overwrite a file. Parent directories are created automatically. "
            "Use this for iterative report updates."
        ),
        input_model=WriteInput,
        execute=execute,
    )
