"""Export the gateway exception hierarchy and the error classifier."""

from .exceptions import (
    ErrorKind,
    GatewayError,
    ProviderError,
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

__all__ = [
    "ErrorKind",
    "GatewayError",
    "ProviderError",
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
]
