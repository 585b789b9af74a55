"""Provider-specific streaming LLM implementations."""

from .gemini import GenericGemini, GeminiToolRegistry
from .openai_api import GenericOpenAI, OpenAIToolRegistry

__all__ = ["GenericGemini", "GeminiToolRegistry", "GenericOpenAI", "OpenAIToolRegistry"]
