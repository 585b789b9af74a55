"""Provider-agnostic message models for chat history."""

from abc import ABC
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ..tools.models import ToolCall


class Role(str, Enum):
    """Author of a message."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"


class BaseMessage(ABC, BaseModel):
    """Base model for messages exchanged with an LLM. Immutable once created.

    Attributes:
        role: Role associated with the message.
        content: Text payload of the message.
    """

    model_config = ConfigDict(frozen=True)

    role: str
    content: str = ""


class SystemMessage(BaseMessage):
    """Message authored by the system to steer behavior."""

    role: Literal["system"] = "system"


class UserMessage(BaseMessage):
    """Message authored by an end user."""

    role: Literal["user"] = "user"


class AssistantMessage(BaseMessage):
    """Message authored by the assistant, optionally containing tool calls."""

    role: Literal["assistant"] = "assistant"
    tool_calls: Optional[List[ToolCall]] = None


class ToolMessage(BaseMessage):
    """Message carrying the result of a tool invocation."""

    role: Literal["tool"] = "tool"
    tool_call_id: str
    name: str


Message = Annotated[
    Union[UserMessage, AssistantMessage, SystemMessage, ToolMessage],
    Field(discriminator="role"),
]
