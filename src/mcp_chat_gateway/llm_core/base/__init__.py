"""Re-export the streaming LLM interface shared by all providers."""

from .base import GenericLLM, ModelEvent

__all__ = [
    "GenericLLM",
    "ModelEvent",
]
