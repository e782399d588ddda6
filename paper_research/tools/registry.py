"""
Tool registry for the tools exposed to the reasoning engine
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional, Type
from dataclasses import dataclass
import logging

from pydantic import BaseModel, ValidationError

from ..cancel import CancelToken

logger = logging.getLogger(__name__)


@dataclass
class ToolResult:
    """Outcome of one tool call.

    ``content`` is the text shown to the model; ``details`` is the structured
    payload (plain JSON-compatible data) observers may inspect.
    """
    content: str
    details: Any = None
    is_error: bool = False


ToolFn = Callable[[str, BaseModel, Optional[CancelToken]], Awaitable[ToolResult]]


@dataclass
class ToolSpec:
    """Metadata and entry point for a registered tool"""
    name: str
    description: str
    input_model: Type[BaseModel]
    execute: ToolFn

    def json_schema(self) -> Dict[str, Any]:
        return self.input_model.model_json_schema()

    def parse_arguments(self, arguments: Dict[str, Any]) -> BaseModel:
        return self.input_model.model_validate(arguments or {})

    async def run(self, call_id: str, arguments: Dict[str, Any],
                  cancel: Optional[CancelToken] = None) -> ToolResult:
        """Validate arguments and execute.

        Raises:
            pydantic.ValidationError: Arguments do not match the input model
        """
        params = self.parse_arguments(arguments)
        return await self.execute(call_id, params, cancel)


class ToolRegistry:
    """Name-indexed collection of tools"""

    def __init__(self, tools: Optional[List[ToolSpec]] = None):
        self._tools: Dict[str, ToolSpec] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: ToolSpec) -> None:
        """Register a new tool

        Raises:
            ValueError: If the name is already registered
        """
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")
        self._tools[tool.name] = tool
        logger.debug(f"Registered tool: {tool.name}")

    def get_tool(self, name: str) -> Optional[ToolSpec]:
        return self._tools.get(name)

    def list_tools(self) -> List[str]:
        return list(self._tools.keys())

    def __iter__(self):
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)

    async def execute_tool(self, name: str, call_id: str, arguments: Dict[str, Any],
                           cancel: Optional[CancelToken] = None) -> ToolResult:
        """Execute a tool by name

        Raises:
            ValueError: If tool not found or arguments are invalid
        """
        tool = self.get_tool(name)
        if not tool:
            raise ValueError(f"Tool not found: {name}")
        try:
            return await tool.run(call_id, arguments, cancel)
        except ValidationError as e:
            raise ValueError(f"Invalid parameters for tool {name}: {e}") from e
