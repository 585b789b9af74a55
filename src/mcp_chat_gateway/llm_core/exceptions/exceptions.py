"""
Exception hierarchy for the chat gateway.

Every error raised below the turn orchestrator carries an ``ErrorKind`` so the
orchestrator can decide whether to fold it into the conversation (recoverable)
or to fail the turn (fatal). Transports only ever see the classified kind.
"""

import asyncio
from enum import Enum


class ErrorKind(str, Enum):
    """Classification reported to callers in error fragments."""

    PROVIDER_UNAVAILABLE = "provider_unavailable"
    PROVIDER_TIMEOUT = "provider_timeout"
    PROTOCOL_ERROR = "protocol_error"
    PROVIDER_DISCONNECTED = "provider_disconnected"
    UNKNOWN_TOOL = "unknown_tool"
    TOOL_EXECUTION_ERROR = "tool_execution_error"
    TOOL_LOOP_EXCEEDED = "tool_loop_exceeded"
    TRANSPORT_DISCONNECTED = "transport_disconnected"
    MODEL_ERROR = "model_error"
    INTERNAL = "internal"


class GatewayError(Exception):
    """Base exception for all gateway errors."""

    kind: ErrorKind = ErrorKind.INTERNAL
    recoverable: bool = False


class ProviderError(GatewayError):
    """Base class for failures of the tool-provider session."""

    pass


class ProviderUnavailableError(ProviderError):
    """Raised when the tool-provider process cannot be started or connected."""

    kind = ErrorKind.PROVIDER_UNAVAILABLE


class ProviderTimeoutError(ProviderError):
    """Raised when the tool provider does not answer in time."""

    kind = ErrorKind.PROVIDER_TIMEOUT


class ProtocolError(ProviderError):
    """Raised when the tool listing or a tool payload is malformed."""

    kind = ErrorKind.PROTOCOL_ERROR


class ProviderDisconnectedError(ProviderError):
    """Raised when the channel to the tool provider is closed mid-session."""

    kind = ErrorKind.PROVIDER_DISCONNECTED


class LLMToolError(GatewayError):
    """Base exception for all tool-related errors."""

    kind = ErrorKind.TOOL_EXECUTION_ERROR
    recoverable = True


class ToolRegistrationError(LLMToolError):
    """Raised when the registry cannot be rebuilt from a tool listing."""

    kind = ErrorKind.PROTOCOL_ERROR
    recoverable = False


class UnknownToolError(LLMToolError):
    """Raised when a requested tool is not present in the registry."""

    kind = ErrorKind.UNKNOWN_TOOL


class ToolExecutionError(LLMToolError):
    """Raised when a tool ran but failed."""

    pass


class ToolValidationError(ToolExecutionError):
    """Raised when tool arguments or a tool definition are invalid."""

    pass


class ToolLoopExceededError(GatewayError):
    """Raised when the model keeps requesting tools past the iteration bound."""

    kind = ErrorKind.TOOL_LOOP_EXCEEDED


class TransportDisconnectedError(GatewayError):
    """Raised when the caller's output channel is gone."""

    kind = ErrorKind.TRANSPORT_DISCONNECTED


class ModelError(GatewayError):
    """Raised when the chat-completion service fails."""

    kind = ErrorKind.MODEL_ERROR


def classify(exc: BaseException) -> ErrorKind:
    """Map any exception onto an ``ErrorKind``.

    Args:
        exc: The exception to classify.

    Returns:
        The gateway error kind; unknown exceptions map to ``ErrorKind.INTERNAL``.
    """
    if isinstance(exc, GatewayError):
        return exc.kind
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return ErrorKind.PROVIDER_TIMEOUT
    return ErrorKind.INTERNAL
