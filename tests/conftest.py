"""Shared fixtures: isolated settings, a scripted engine and report fixtures."""

from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
import pytest

from paper_research.config import Settings
from paper_research.llm.engine import ReasoningEngine
from paper_research.llm.events import (
    AgentEndEvent,
    AgentStartEvent,
    ToolExecutionEndEvent,
    ToolExecutionStartEvent,
    TurnEndEvent,
    TurnStartEvent,
)

Script = Callable[["FakeEngine"], Awaitable[None]]


class FakeEngine(ReasoningEngine):
    """In-memory engine driven by an async script instead of a model."""

    def __init__(self, script: Optional[Script] = None):
        super().__init__()
        self.script = script
        self.prompts = []
        self.abort_calls = 0
        self.aborted = False

    async def prompt(self, text: str) -> None:
        self.prompts.append(text)
        self.append_message({"role": "user", "content": text})
        self.aborted = False
        self.emit(AgentStartEvent())
        try:
            if self.script is not None:
                await self.script(self)
        finally:
            self.emit(AgentEndEvent())

    def abort(self, reason: Optional[str] = None) -> None:
        self.abort_calls += 1
        self.aborted = True

    def turn(self) -> None:
        self.emit(TurnStartEvent())
        self.emit(TurnEndEvent())

    def tool_end(self, tool_name: str, details: Any, is_error: bool = False, call_id: str = "call-1") -> None:
        self.emit(ToolExecutionStartEvent(tool_call_id=call_id, tool_name=tool_name))
        self.emit(ToolExecutionEndEvent(
            tool_call_id=call_id,
            tool_name=tool_name,
            result={"content": "", "details": details},
            is_error=is_error,
        ))

    async def call_tool(self, name: str, arguments: Dict[str, Any]):
        return await self.tools.execute_tool(name, "call-x", arguments)


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        RETRY_MAX_TRIES=1,
        RETRY_BACKOFF_BASE_SECONDS=0.0,
        CONTACT_EMAIL="tests@example.com",
    )


@pytest.fixture
def mock_client():
    """Factory for an AsyncClient backed by ``httpx.MockTransport``."""
    def _make(handler):
        return httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)
    return _make


def _body(topic: str) -> str:
    return (
        f"This section discusses {topic} in enough depth to pass the length floor. "
        "It covers the motivating setting, the assumptions made by the authors, "
        "and the evidence they provide for each claim in the evaluation."
    )


COMPLETE_REPORT = f"""# Paper
## 1. Key Problems and Challenges
{_body("the key problems")}

## 2. How This Paper Solves Them
{_body("the proposed solution")}

## 3. Related Work and Key Differences
{_body("related work")} In contrast to recurrent models [1], attention-only
architectures differ in how they parallelize training [2].

## 4. Future Directions
{_body("future directions")}

## References
[1] https://arxiv.org/abs/1409.0473
[2] https://arxiv.org/abs/1706.03762
"""


@pytest.fixture
def complete_report():
    return COMPLETE_REPORT
