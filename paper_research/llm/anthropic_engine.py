"""
Reasoning engine backed by the Anthropic Messages API with tool use
"""

import logging
from typing import Any, Dict, List, Optional

import anthropic

from ..cancel import CancelToken
from ..config import Settings, get_settings
from ..exceptions import APIError, ConfigurationError, OperationCancelledError
from ..tools.registry import ToolResult
from .engine import ReasoningEngine
from .events import (
    AgentEndEvent,
    AgentStartEvent,
    MessageEndEvent,
    ToolExecutionEndEvent,
    ToolExecutionStartEvent,
    TurnEndEvent,
    TurnStartEvent,
)
from .messages import convert_to_llm

logger = logging.getLogger(__name__)


def _tool_result(tool_use_id: str, content: str, is_error: bool) -> Dict[str, Any]:
    return {"type": "tool_result", "tool_use_id": tool_use_id, "content": content, "is_error": is_error}


class AnthropicEngine(ReasoningEngine):
    """Turn loop: call the model, run requested tools in order, repeat.

    The loop ends when the model answers without tool calls or when
    ``abort()`` is called. Tool failures are returned to the model as error
    results rather than ending the run.
    """

    def __init__(self, settings: Optional[Settings] = None,
                 client: Optional[anthropic.AsyncAnthropic] = None):
        super().__init__()
        self.settings = settings or get_settings()
        if client is None:
            if not self.settings.ANTHROPIC_API_KEY:
                raise ConfigurationError("ANTHROPIC_API_KEY is required for the anthropic engine")
            client = anthropic.AsyncAnthropic(api_key=self.settings.ANTHROPIC_API_KEY)
        self._client = client
        self._cancel: Optional[CancelToken] = None

    def abort(self, reason: Optional[str] = None) -> None:
        if self._cancel is not None:
            self._cancel.cancel(reason or "aborted")

    def _tool_definitions(self) -> List[Dict[str, Any]]:
        return [
            {
                "name": tool.name,
                "description": tool.description,
                "input_schema": tool.json_schema(),
            }
            for tool in self.tools
        ]

    @staticmethod
    def _assistant_message(response) -> Dict[str, Any]:
        content: List[Dict[str, Any]] = []
        for block in response.content:
            if block.type == "text":
                content.append({"type": "text", "text": block.text})
            elif block.type == "tool_use":
                content.append({
                    "type": "tool_use",
                    "id": block.id,
                    "name": block.name,
                    "input": block.input,
                })
        message: Dict[str, Any] = {"role": "assistant", "content": content}
        usage = getattr(response, "usage", None)
        if usage is not None:
            message["usage"] = {
                "input_tokens": usage.input_tokens,
                "output_tokens": usage.output_tokens,
            }
        message["stop_reason"] = getattr(response, "stop_reason", None)
        return message

    async def _complete(self, cancel: CancelToken):
        try:
            return await cancel.guard(self._client.messages.create(
                model=self.settings.ANTHROPIC_MODEL,
                max_tokens=self.settings.ANTHROPIC_MAX_TOKENS,
                system=self.system_prompt,
                tools=self._tool_definitions(),
                messages=convert_to_llm(self._messages),
            ))
        except anthropic.APIStatusError as e:
            logger.error(f"Anthropic request failed: {e}")
            raise APIError(f"Anthropic request failed: {e}", provider="anthropic",
                           status_code=e.status_code) from e
        except anthropic.APIError as e:
            logger.error(f"Anthropic request failed: {e}")
            raise APIError(f"Anthropic request failed: {e}", provider="anthropic") from e

    async def _run_tool(self, call: Dict[str, Any], cancel: CancelToken) -> ToolResult:
        self.emit(ToolExecutionStartEvent(
            tool_call_id=call["id"], tool_name=call["name"], args=call["input"] or {},
        ))
        try:
            result = await self.tools.execute_tool(call["name"], call["id"], call["input"] or {}, cancel)
        except OperationCancelledError as e:
            self.emit(ToolExecutionEndEvent(
                tool_call_id=call["id"],
                tool_name=call["name"],
                result={"content": str(e), "details": None},
                is_error=True,
            ))
            raise
        except Exception as e:
            logger.warning(f"Tool {call['name']} failed: {e}")
            result = ToolResult(content=str(e), is_error=True)
        self.emit(ToolExecutionEndEvent(
            tool_call_id=call["id"],
            tool_name=call["name"],
            result={"content": result.content, "details": result.details},
            is_error=result.is_error,
        ))
        return result

    async def prompt(self, text: str) -> None:
        if self._cancel is not None:
            raise RuntimeError("Engine is already processing a prompt")
        cancel = CancelToken()
        self._cancel = cancel
        self.append_message({"role": "user", "content": text})
        self.emit(AgentStartEvent())
        error: Optional[str] = None
        try:
            while not cancel.cancelled:
                self.emit(TurnStartEvent())
                response = await self._complete(cancel)
                message = self._assistant_message(response)
                self.append_message(message)
                self.emit(MessageEndEvent(message=message))

                calls = [b for b in message["content"] if b["type"] == "tool_use"]
                results: List[Dict[str, Any]] = []
                for index, call in enumerate(calls):
                    try:
                        result = await self._run_tool(call, cancel)
                    except OperationCancelledError as e:
                        # Every tool_use needs a tool_result or the history is unusable
                        results.extend(
                            _tool_result(pending["id"], f"Tool call not completed: {e}", True)
                            for pending in calls[index:]
                        )
                        self.append_message({"role": "user", "content": results})
                        raise
                    results.append(_tool_result(call["id"], result.content, result.is_error))
                if results:
                    self.append_message({"role": "user", "content": results})
                self.emit(TurnEndEvent())
                if not calls:
                    break
        except OperationCancelledError:
            logger.info(f"Prompt aborted: {cancel.reason}")
        except Exception as e:
            error = str(e)
            raise
        finally:
            self._cancel = None
            self.emit(AgentEndEvent(error=error))
