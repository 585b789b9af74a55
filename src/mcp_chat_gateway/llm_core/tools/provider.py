"""Lifecycle contract shared by every tool-provider session."""

from __future__ import annotations

from abc import ABC, abstractmethod
from types import TracebackType
from typing import Callable, List, Optional, Type

from .models import ToolCall, ToolDescriptor, ToolResult
from ..logger import get_logger

logger = get_logger(__name__)


class ToolProviderSession(ABC):
    """
    A connection to something that can list and execute tools.

    Sessions are scoped resources: ``open()`` acquires the underlying channel
    (possibly spawning a process) and ``close()`` releases it. ``close()`` may be
    called any number of times; the release itself happens exactly once.
    Use ``async with`` so release is guaranteed on every exit path.
    """

    name: str = "tool-provider"

    def __init__(self) -> None:
        self._opened = False
        self._closed = False

    @property
    def is_open(self) -> bool:
        return self._opened and not self._closed

    async def open(self) -> "ToolProviderSession":
        """Acquire the session.

        Returns:
            The opened session.

        Raises:
            ProviderUnavailableError: If the provider cannot be reached.
            RuntimeError: If the session was already closed.
        """
        if self._closed:
            raise RuntimeError(f"Session '{self.name}' is closed and cannot be reopened.")
        if self._opened:
            return self
        await self._open()
        self._opened = True
        logger.info("Tool provider session '%s' opened.", self.name)
        return self

    async def close(self) -> None:
        """Release the session. Safe to call more than once."""
        if self._closed:
            logger.debug("Tool provider session '%s' already closed.", self.name)
            return
        self._closed = True
        if not self._opened:
            return
        try:
            await self._close()
        finally:
            logger.info("Tool provider session '%s' closed.", self.name)

    async def __aenter__(self) -> "ToolProviderSession":
        return await self.open()

    async def __aexit__(
        self, exc_type: Optional[Type[BaseException]], exc_val: Optional[BaseException], exc_tb: Optional[TracebackType]
    ) -> None:
        await self.close()

    @abstractmethod
    async def _open(self) -> None:
        pass

    @abstractmethod
    async def _close(self) -> None:
        pass

    @abstractmethod
    async def list_tools(self) -> List[ToolDescriptor]:
        """List the tools currently offered by the provider.

        Raises:
            ProviderTimeoutError: If the provider does not answer in time.
            ProtocolError: If the listing is malformed.
        """

    @abstractmethod
    async def invoke(self, call: ToolCall) -> ToolResult:
        """Execute a tool call.

        Raises:
            ToolExecutionError: If the tool ran but failed.
            ProviderDisconnectedError: If the channel to the provider is gone.
        """


ToolProviderFactory = Callable[[], ToolProviderSession]
