"""Expose provider-agnostic message models, conversation history and stream fragments."""

from .models import Role, BaseMessage, UserMessage, AssistantMessage, SystemMessage, ToolMessage, Message
from .history import ConversationHistory
from .fragments import Fragment, FragmentKind, ErrorInfo

__all__ = [
    "Role",
    "BaseMessage",
    "UserMessage",
    "AssistantMessage",
    "SystemMessage",
    "ToolMessage",
    "Message",
    "ConversationHistory",
    "Fragment",
    "FragmentKind",
    "ErrorInfo",
]
