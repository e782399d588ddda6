"""Reasoning-engine contract, events and the Anthropic implementation."""

from .engine import ReasoningEngine
from .events import (
    AgentEndEvent,
    AgentStartEvent,
    EngineEvent,
    MessageEndEvent,
    ReportFinalizedEvent,
    SessionEvent,
    ToolExecutionEndEvent,
    ToolExecutionStartEvent,
    TurnEndEvent,
    TurnStartEvent,
)
from .messages import ResearchStatusMessage, convert_to_llm, create_research_status_message


def __getattr__(name):
    if name == "AnthropicEngine":
        from .anthropic_engine import AnthropicEngine
        return AnthropicEngine
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "AgentEndEvent",
    "AgentStartEvent",
    "AnthropicEngine",
    "EngineEvent",
    "MessageEndEvent",
    "ReasoningEngine",
    "ReportFinalizedEvent",
    "ResearchStatusMessage",
    "SessionEvent",
    "ToolExecutionEndEvent",
    "ToolExecutionStartEvent",
    "TurnEndEvent",
    "TurnStartEvent",
    "convert_to_llm",
    "create_research_status_message",
]
