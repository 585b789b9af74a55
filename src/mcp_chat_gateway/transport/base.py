"""Delivery of a turn's fragment stream to one caller-facing output channel."""

from abc import ABC, abstractmethod
from typing import AsyncGenerator, Optional

from mcp_chat_gateway.llm_core import Fragment, TransportDisconnectedError, get_logger

logger = get_logger(__name__)


class FragmentTransport(ABC):
    """
    Writes fragments to an output channel as they are produced.

    ``run`` is the only driver: it pulls the next fragment only after the previous
    one was delivered, so a slow reader slows the turn down instead of buffering
    it. When the channel is gone the fragment stream is closed, which cancels the
    turn.
    """

    @abstractmethod
    async def deliver(self, fragment: Fragment) -> None:
        """Write one fragment to the channel and flush it.

        Raises:
            TransportDisconnectedError: If the channel broke while writing.
        """

    @abstractmethod
    async def is_closed(self) -> bool:
        """Whether the reader has gone away."""

    async def ensure_open(self, fragment: Fragment) -> None:
        """Raise ``TransportDisconnectedError`` if ``fragment`` can no longer be delivered."""
        if await self.is_closed():
            raise TransportDisconnectedError(f"Output channel closed before fragment #{fragment.sequence}.")

    async def run(self, fragments: AsyncGenerator[Fragment, None]) -> Optional[Fragment]:
        """
        Drive a fragment stream to completion or until the channel closes.

        A disconnect is not reported to anyone; it only cancels the turn.

        Args:
            fragments: The turn's fragment stream. It is always closed on return.

        Returns:
            The terminal fragment (Done or Error), or None if the reader disconnected first.
        """
        terminal: Optional[Fragment] = None
        try:
            async for fragment in fragments:
                await self.ensure_open(fragment)
                await self.deliver(fragment)
                if fragment.is_terminal:
                    terminal = fragment
                    break
        except TransportDisconnectedError as e:
            logger.info("Cancelling turn (%s): %s", e.kind.value, e)
        finally:
            await fragments.aclose()
        return terminal
