"""Reasoning-engine contract.

The research session depends only on this interface: an engine accepts a
system prompt, a tool registry and a user prompt, emits a typed event stream
and honors cooperative cancellation through ``abort()``.
"""

from abc import ABC, abstractmethod
import logging
from typing import Callable, List, Optional

from ..tools.registry import ToolRegistry
from .events import EngineEvent
from .messages import Message

logger = logging.getLogger(__name__)

Listener = Callable[[EngineEvent], None]


class ReasoningEngine(ABC):
    """Base class with listener and history plumbing shared by engines."""

    def __init__(self):
        self.system_prompt: str = ""
        self.tools: ToolRegistry = ToolRegistry()
        self._messages: List[Message] = []
        self._listeners: List[Listener] = []

    @property
    def messages(self) -> List[Message]:
        return list(self._messages)

    def set_system_prompt(self, prompt: str) -> None:
        self.system_prompt = prompt

    def set_tools(self, tools: ToolRegistry) -> None:
        self.tools = tools

    def append_message(self, message: Message) -> None:
        self._messages.append(message)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: EngineEvent) -> None:
        """Deliver ``event`` synchronously to every listener, in order."""
        for listener in list(self._listeners):
            listener(event)

    @abstractmethod
    async def prompt(self, text: str) -> None:
        """Run the conversation loop until natural termination or abort.

        Returns normally when aborted; raises on engine failures.
        """

    @abstractmethod
    def abort(self, reason: Optional[str] = None) -> None:
        """Ask the loop to stop at its next safe point. Safe to call any time."""
