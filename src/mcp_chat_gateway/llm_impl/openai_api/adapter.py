import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from openai.types.chat import ChatCompletionChunk

from mcp_chat_gateway.llm_core import (
    AssistantMessage,
    BaseMessage,
    SystemMessage,
    ToolCall,
    ToolMessage,
    UserMessage,
    get_logger,
)

logger = get_logger(__name__)


@dataclass
class _PendingCall:
    call_id: Optional[str] = None
    name: str = ""
    arguments: str = ""


class OpenAIToolAdapter:
    """Translates between the gateway's models and OpenAI streaming payloads.

    One adapter instance consumes one streamed response. Tool-call arguments
    arrive in fragments keyed by index; they are reassembled and released as
    complete calls, in index order, once the stream ends.
    """

    def __init__(self) -> None:
        self._pending: Dict[int, _PendingCall] = {}

    def feed(self, chunk: ChatCompletionChunk) -> Optional[str]:
        """Consume one chunk.

        Args:
            chunk: A streamed chat completion chunk.

        Returns:
            The text delta carried by the chunk, if any.
        """
        if not chunk.choices:
            return None

        delta = chunk.choices[0].delta
        if delta is None:
            return None

        for fragment in delta.tool_calls or []:
            pending = self._pending.setdefault(fragment.index, _PendingCall())
            if fragment.id:
                pending.call_id = fragment.id
            if fragment.function is not None:
                if fragment.function.name:
                    pending.name += fragment.function.name
                if fragment.function.arguments:
                    pending.arguments += fragment.function.arguments

        return delta.content or None

    def tool_calls(self) -> List[ToolCall]:
        """Return the reassembled tool calls in index order."""
        calls = []
        for index in sorted(self._pending):
            pending = self._pending[index]
            if not pending.name:
                logger.warning("Dropping streamed tool call #%d without a function name.", index)
                continue
            if pending.call_id:
                calls.append(ToolCall(name=pending.name, arguments=pending.arguments, call_id=pending.call_id))
            else:
                calls.append(ToolCall(name=pending.name, arguments=pending.arguments))
        return calls

    @staticmethod
    def convert_history(history: Sequence[BaseMessage], sys_instruction: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Converts generic BaseMessage history to OpenAI specific dictionary history.

        The system instruction is prepended unless the history already starts with a system message.

        Args:
            history: List of BaseMessage objects.
            sys_instruction: Optional system instruction of the model.

        Returns:
            List of OpenAI message dictionaries.
        """
        openai_history: List[Dict[str, Any]] = []
        if sys_instruction and not (history and isinstance(history[0], SystemMessage)):
            openai_history.append({"role": "system", "content": sys_instruction})

        for msg in history:
            if isinstance(msg, UserMessage):
                openai_history.append({"role": "user", "content": msg.content})
            elif isinstance(msg, AssistantMessage):
                openai_msg: Dict[str, Any] = {"role": "assistant", "content": msg.content or None}
                if msg.tool_calls:
                    openai_msg["tool_calls"] = [OpenAIToolAdapter.tool_call_param(tc) for tc in msg.tool_calls]
                openai_history.append(openai_msg)
            elif isinstance(msg, SystemMessage):
                openai_history.append({"role": "system", "content": msg.content})
            elif isinstance(msg, ToolMessage):
                openai_history.append(
                    {"role": "tool", "content": msg.content, "tool_call_id": msg.tool_call_id, "name": msg.name}
                )
        return openai_history

    @staticmethod
    def tool_call_param(call: ToolCall) -> Dict[str, Any]:
        """Render a tool call the way the assistant message of the Chat Completions API lists it."""
        if isinstance(call.arguments, str):
            arguments = call.arguments
        else:
            arguments = json.dumps(call.arguments or {}, ensure_ascii=False)
        return {
            "id": call.call_id,
            "type": "function",
            "function": {"name": call.name, "arguments": arguments},
        }
