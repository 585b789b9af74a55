"""Expose the Gemini streaming chat integration and its tool registry."""

from .core import GenericGemini
from .registry import GeminiToolRegistry
from .adapter import GeminiToolAdapter

__all__ = ["GenericGemini", "GeminiToolRegistry", "GeminiToolAdapter"]
