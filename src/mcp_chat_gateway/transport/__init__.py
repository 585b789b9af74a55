"""Transports delivering fragment streams to callers."""

from .base import FragmentTransport
from .interactive import ConsoleTransport
from .push import SSETransport

__all__ = ["FragmentTransport", "ConsoleTransport", "SSETransport"]
