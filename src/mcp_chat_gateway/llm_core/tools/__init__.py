from .models import ToolDescriptor, ToolDefinition, ToolCall, ToolResult
from .provider import ToolProviderSession, ToolProviderFactory
from .registry import ToolRegistry
from .schema import SchemaValidator
from .local_provider import LocalToolProvider

__all__ = [
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
