"""Research status messages and conversion to model-facing messages."""

import time
from typing import Any, Dict, List, Literal, Union

from pydantic import BaseModel, Field

StatusKind = Literal["initialized", "updated", "finalized"]


class ResearchStatusMessage(BaseModel):
    """Controller note kept in the conversation history."""
    role: Literal["researchStatus"] = "researchStatus"
    status: StatusKind = "updated"
    note: str
    timestamp: float = Field(default_factory=time.time)

    def to_llm(self) -> Dict[str, Any]:
        return {
            "role": "user",
            "content": f"Research status ({self.status}): {self.note}",
        }


def create_research_status_message(note: str, status: StatusKind = "updated") -> ResearchStatusMessage:
    return ResearchStatusMessage(note=note, status=status)


Message = Union[ResearchStatusMessage, Dict[str, Any]]


def convert_to_llm(messages: List[Message]) -> List[Dict[str, Any]]:
    """Map history entries onto ``{"role", "content"}`` chat messages.

    Raises:
        ValueError: On an entry with an unknown role
    """
    out: List[Dict[str, Any]] = []
    for message in messages:
        if isinstance(message, ResearchStatusMessage):
            out.append(message.to_llm())
            continue
        role = message.get("role")
        if role not in ("user", "assistant"):
            raise ValueError(f"Unknown message role: {role!r}")
        out.append({"role": role, "content": message["content"]})
    return out
