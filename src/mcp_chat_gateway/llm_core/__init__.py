"""Public exports for the core gateway abstractions and utilities."""

from .base import GenericLLM, ModelEvent
from .exceptions import (
    ErrorKind,
    GatewayError,
    ProviderUnavailableError,
    ProviderTimeoutError,
    ProtocolError,
    ProviderDisconnectedError,
    LLMToolError,
    ToolRegistrationError,
    UnknownToolError,
    ToolExecutionError,
    ToolValidationError,
    ToolLoopExceededError,
    TransportDisconnectedError,
    ModelError,
    classify,
)
from .logger import get_logger, setup_logging
from .messages import (
    Role,
    BaseMessage,
    UserMessage,
    AssistantMessage,
    SystemMessage,
    ToolMessage,
    Message,
    ConversationHistory,
    Fragment,
    FragmentKind,
    ErrorInfo,
)
from .orchestrator import TurnOrchestrator, TurnState
from .tools import (
    ToolDescriptor,
    ToolDefinition,
    ToolCall,
    ToolResult,
    ToolProviderSession,
    ToolProviderFactory,
    ToolRegistry,
    SchemaValidator,
    LocalToolProvider,
)

__all__ = [
    "GenericLLM",
    "ModelEvent",
    "ErrorKind",
    "GatewayError",
    "ProviderUnavailableError",
    "ProviderTimeoutError",
    "ProtocolError",
    "ProviderDisconnectedError",
    "LLMToolError",
    "ToolRegistrationError",
    "UnknownToolError",
    "ToolExecutionError",
    "ToolValidationError",
    "ToolLoopExceededError",
    "TransportDisconnectedError",
    "ModelError",
    "classify",
    "get_logger",
    "setup_logging",
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
    "TurnOrchestrator",
    "TurnState",
    "ToolDescriptor",
    "ToolDefinition",
    "ToolCall",
    "ToolResult",
    "ToolProviderSession",
    "ToolProviderFactory",
    "ToolRegistry",
    "SchemaValidator",
    "LocalToolProvider",
]
