"""Typed events emitted by reasoning engines and the research session."""

from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field

from ..models import ReportValidation


class AgentStartEvent(BaseModel):
    type: Literal["agent_start"] = "agent_start"


class AgentEndEvent(BaseModel):
    type: Literal["agent_end"] = "agent_end"
    error: Optional[str] = None


class TurnStartEvent(BaseModel):
    type: Literal["turn_start"] = "turn_start"


class TurnEndEvent(BaseModel):
    type: Literal["turn_end"] = "turn_end"


class MessageEndEvent(BaseModel):
    type: Literal["message_end"] = "message_end"
    message: Dict[str, Any]


class ToolExecutionStartEvent(BaseModel):
    type: Literal["tool_execution_start"] = "tool_execution_start"
    tool_call_id: str
    tool_name: str
    args: Dict[str, Any] = Field(default_factory=dict)


class ToolExecutionEndEvent(BaseModel):
    type: Literal["tool_execution_end"] = "tool_execution_end"
    tool_call_id: str
    tool_name: str
    # Untyped on purpose: shape is checked by whoever consumes it
    result: Any = None
    is_error: bool = False


class ReportFinalizedEvent(BaseModel):
    type: Literal["report_finalized"] = "report_finalized"
    report_path: str
    report_html_path: str
    sources_path: str
    validation: ReportValidation


EngineEvent = Union[
    AgentStartEvent,
    AgentEndEvent,
    TurnStartEvent,
    TurnEndEvent,
    MessageEndEvent,
    ToolExecutionStartEvent,
    ToolExecutionEndEvent,
]

SessionEvent = Union[EngineEvent, ReportFinalizedEvent]
