"""Core abstractions for streaming LLM provider implementations."""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Callable, ClassVar, Coroutine, Generic, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel, ConfigDict

from ..exceptions import GatewayError, ModelError
from ..logger import get_logger
from ..messages import BaseMessage
from ..tools.models import ToolCall
from ..tools.registry import ToolRegistry

logger = get_logger(__name__)


StreamT = TypeVar("StreamT")
T = TypeVar("T")


class ModelEvent(BaseModel):
    """One event of a model response stream: either a text delta or a complete tool call."""

    model_config = ConfigDict(frozen=True)

    text: Optional[str] = None
    tool_call: Optional[ToolCall] = None

    @classmethod
    def text_delta(cls, text: str) -> "ModelEvent":
        return cls(text=text)

    @classmethod
    def call(cls, tool_call: ToolCall) -> "ModelEvent":
        return cls(tool_call=tool_call)


class GenericLLM(ABC, Generic[StreamT]):
    """Abstract base class for streaming LLM implementations.

    A model step is one streamed response: text deltas are yielded as they
    arrive, tool calls once their arguments are complete. Implementations open
    the provider stream in ``_open_stream`` (retried with exponential backoff),
    translate it in ``_iter_events`` and release it in ``_close_stream``. Once
    events are flowing nothing is retried.
    """

    registry_class: ClassVar[Type[ToolRegistry]]

    def __init__(self, max_retries: int = 3, base_retry_delay: float = 1.0):
        self.max_retries = max_retries
        self.base_retry_delay = base_retry_delay

    def create_registry(self) -> ToolRegistry:
        """Create an empty tool registry rendering schemas for this provider."""
        return self.registry_class()

    async def _execute_with_retry(self, func: Callable[..., Coroutine[Any, Any, T]], *args: Any, **kwargs: Any) -> T:
        """
        Executes a function with retry logic.

        Args:
            func: The asynchronous function to execute.
            *args: Positional arguments for the function.
            **kwargs: Keyword arguments for the function.

        Returns:
            The result of the function call.

        Raises:
            ModelError: Wrapping the last encountered exception if all retries fail.
        """
        delay = self.base_retry_delay
        for attempt in range(self.max_retries + 1):
            try:
                return await func(*args, **kwargs)
            except GatewayError:
                raise
            except Exception as e:
                if attempt == self.max_retries:
                    logger.error(f"Model request failed after {self.max_retries} retries: {e}")
                    raise ModelError(f"Model request failed: {e}") from e

                logger.warning(f"API Error (Retry: {attempt + 1}/{self.max_retries}): {e}. Waiting {delay}s...")
                await asyncio.sleep(delay)
                delay *= 2  # Exponential backoff

        raise ModelError(f"Failed to get response after {self.max_retries} retries.")

    async def stream(self, history: Sequence[BaseMessage], registry: ToolRegistry) -> AsyncIterator[ModelEvent]:
        """
        Runs one model step over the full history with the registry's tools.

        Args:
            history: The conversation so far, in context-window order.
            registry: The tools the model may call.

        Yields:
            Text deltas as they arrive and complete tool calls in the model's listing order.

        Raises:
            ModelError: If the provider fails to open or breaks off the stream.
        """
        handle = await self._execute_with_retry(self._open_stream, history, registry)
        try:
            async for event in self._iter_events(handle):
                yield event
        except GatewayError:
            raise
        except Exception as e:
            logger.error(f"Model stream failed: {e}", exc_info=True)
            raise ModelError(f"Model stream failed: {e}") from e
        finally:
            await self._close_stream(handle)

    @abstractmethod
    async def _open_stream(self, history: Sequence[BaseMessage], registry: ToolRegistry) -> StreamT:
        pass

    @abstractmethod
    def _iter_events(self, handle: StreamT) -> AsyncIterator[ModelEvent]:
        pass

    async def _close_stream(self, handle: StreamT) -> None:
        close = getattr(handle, "close", None) or getattr(handle, "aclose", None)
        if close is None:
            return
        try:
            result = close()
            if asyncio.iscoroutine(result):
                await result
        except Exception as e:
            logger.debug("Ignoring error while closing model stream: %s", e)
