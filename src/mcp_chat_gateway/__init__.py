"""Streaming, tool-augmented chat gateway for MCP tool providers."""

__version__ = "0.1.0"

from .llm_core import (
    ConversationHistory,
    ErrorKind,
    Fragment,
    FragmentKind,
    GenericLLM,
    LocalToolProvider,
    ToolRegistry,
    TurnOrchestrator,
    get_logger,
    setup_logging,
)
from .llm_impl import GenericGemini, GenericOpenAI, GeminiToolRegistry, OpenAIToolRegistry
from .mcp_wrapper import MCPToolProvider, ProviderConfig

__all__ = [
    "__version__",
    "ConversationHistory",
    "ErrorKind",
    "Fragment",
    "FragmentKind",
    "GenericLLM",
    "LocalToolProvider",
    "ToolRegistry",
    "TurnOrchestrator",
    "get_logger",
    "setup_logging",
    "GenericGemini",
    "GenericOpenAI",
    "GeminiToolRegistry",
    "OpenAIToolRegistry",
    "MCPToolProvider",
    "ProviderConfig",
]
