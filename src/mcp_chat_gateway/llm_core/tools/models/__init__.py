"""Tool-related data models."""

from .models import ToolDescriptor, ToolDefinition
from .tool_call import ToolCall, ToolResult

__all__ = ["ToolDescriptor", "ToolDefinition", "ToolCall", "ToolResult"]
