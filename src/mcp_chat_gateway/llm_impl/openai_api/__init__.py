"""Expose the OpenAI streaming chat integration and its tool registry."""

from .core import GenericOpenAI
from .registry import OpenAIToolRegistry
from .adapter import OpenAIToolAdapter

__all__ = ["GenericOpenAI", "OpenAIToolRegistry", "OpenAIToolAdapter"]
