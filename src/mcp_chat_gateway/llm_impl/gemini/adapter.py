"""Translate between the gateway's message models and Gemini content payloads."""

import json
from typing import Any, Dict, List, Optional, Sequence, Tuple

from google.genai import types

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


class GeminiToolAdapter:
    """Adapter for Gemini history and tool-call payloads."""

    @staticmethod
    def convert_history(
        history: Sequence[BaseMessage], sys_instruction: Optional[str] = None
    ) -> Tuple[List[types.Content], Optional[str]]:
        """
        Converts generic BaseMessage history to Gemini Content history.

        Gemini has no system role in the conversation; system messages are folded
        into the system instruction instead. Consecutive tool results are merged
        into one user turn, as Gemini expects all responses of a step together.

        Args:
            history: List of BaseMessage objects.
            sys_instruction: The configured system instruction, if any.

        Returns:
            The Gemini contents and the effective system instruction.
        """
        contents: List[types.Content] = []
        system_parts = [msg.content for msg in history if isinstance(msg, SystemMessage) and msg.content]
        instruction = "\n\n".join(system_parts) if system_parts else sys_instruction

        for msg in history:
            if isinstance(msg, UserMessage):
                contents.append(types.Content(role="user", parts=[types.Part(text=msg.content)]))
            elif isinstance(msg, AssistantMessage):
                parts: List[types.Part] = []
                if msg.content:
                    parts.append(types.Part(text=msg.content))
                for call in msg.tool_calls or []:
                    parts.append(types.Part(function_call=GeminiToolAdapter.function_call(call)))
                if parts:
                    contents.append(types.Content(role="model", parts=parts))
            elif isinstance(msg, ToolMessage):
                part = GeminiToolAdapter.function_response(msg)
                previous = contents[-1] if contents else None
                if previous is not None and previous.parts and all(p.function_response for p in previous.parts):
                    previous.parts.append(part)
                else:
                    contents.append(types.Content(role="user", parts=[part]))
        return contents, instruction

    @staticmethod
    def function_call(call: ToolCall) -> types.FunctionCall:
        return types.FunctionCall(id=call.call_id, name=call.name, args=GeminiToolAdapter._arguments_dict(call.arguments))

    @staticmethod
    def function_response(msg: ToolMessage) -> types.Part:
        """Build a function response part from a tool message."""
        try:
            payload = json.loads(msg.content) if msg.content else {}
        except ValueError:
            payload = {"result": msg.content}
        if not isinstance(payload, dict):
            payload = {"result": payload}
        return types.Part(
            function_response=types.FunctionResponse(id=msg.tool_call_id, name=msg.name, response=payload)
        )

    @staticmethod
    def parse_chunk(chunk: types.GenerateContentResponse) -> Tuple[List[str], List[ToolCall]]:
        """Extract text deltas and function calls from one streamed response chunk.

        Thought parts are not part of the answer and are skipped.
        """
        texts: List[str] = []
        calls: List[ToolCall] = []
        if not chunk.candidates:
            return texts, calls

        content = chunk.candidates[0].content
        if content is None or not content.parts:
            return texts, calls

        for part in content.parts:
            if part.function_call is not None and part.function_call.name:
                function_call = part.function_call
                arguments = dict(function_call.args or {})
                if function_call.id:
                    calls.append(ToolCall(name=function_call.name, arguments=arguments, call_id=function_call.id))
                else:
                    calls.append(ToolCall(name=function_call.name, arguments=arguments))
            elif part.text and not part.thought:
                texts.append(part.text)
        return texts, calls

    @staticmethod
    def _arguments_dict(arguments: Any) -> Dict[str, Any]:
        if isinstance(arguments, str):
            try:
                arguments = json.loads(arguments) if arguments.strip() else {}
            except ValueError:
                logger.warning("Tool call arguments are not valid JSON, sending them as a raw string.")
                return {"raw": arguments}
        return dict(arguments) if isinstance(arguments, dict) else {}
