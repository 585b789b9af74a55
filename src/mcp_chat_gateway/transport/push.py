"""Server-Sent-Event framing of fragment streams for HTTP responses."""

import asyncio
import contextlib
import json
import re
from typing import AsyncGenerator, AsyncIterator, Awaitable, Callable, Optional

from mcp_chat_gateway.llm_core import Fragment, FragmentKind, get_logger
from .base import FragmentTransport

logger = get_logger(__name__)

_LINE_BREAK = re.compile(r"\r\n|\r|\n")


class SSETransport(FragmentTransport):
    """
    Push transport producing ``text/event-stream`` frames.

    Text fragments become ``data:`` frames, one ``data:`` line per line of text.
    Tool fragments become ``tool_call`` / ``tool_result`` events when
    ``emit_tool_events`` is set and are dropped otherwise. An error becomes a
    single ``error`` event with a JSON body. Done writes nothing; the stream just
    ends.

    Frames are handed over through a bounded queue, so the turn only advances
    once the previous frame was taken by the response writer.
    """

    def __init__(
        self,
        is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
        *,
        emit_tool_events: bool = False,
        queue_size: int = 1,
    ):
        """
        Args:
            is_disconnected: Probe for the HTTP client having gone away, e.g. ``request.is_disconnected``.
            emit_tool_events: Whether tool activity is forwarded as named events.
            queue_size: Number of frames that may wait for the writer.
        """
        self._is_disconnected = is_disconnected
        self.emit_tool_events = emit_tool_events
        self._queue: asyncio.Queue[Optional[str]] = asyncio.Queue(maxsize=queue_size)
        self._closed = False

    async def is_closed(self) -> bool:
        if not self._closed and self._is_disconnected is not None and await self._is_disconnected():
            logger.info("SSE client disconnected.")
            self._closed = True
        return self._closed

    async def deliver(self, fragment: Fragment) -> None:
        frame = self.encode(fragment)
        if frame is not None:
            await self._queue.put(frame)

    def encode(self, fragment: Fragment) -> Optional[str]:
        """Render a fragment as an SSE frame, or None if it produces no output."""
        if fragment.kind == FragmentKind.TEXT:
            return self.frame(fragment.text or "")

        if fragment.kind == FragmentKind.TOOL_CALL_REQUESTED and self.emit_tool_events and fragment.tool_call:
            call = fragment.tool_call
            payload = {"call_id": call.call_id, "name": call.name, "arguments": call.arguments}
            return self.frame(json.dumps(payload, default=str, ensure_ascii=False), event="tool_call")

        if fragment.kind == FragmentKind.TOOL_RESULT and self.emit_tool_events and fragment.tool_result:
            result = fragment.tool_result
            payload = {"call_id": result.call_id, "name": result.name, **result.response}
            return self.frame(json.dumps(payload, default=str, ensure_ascii=False), event="tool_result")

        if fragment.kind == FragmentKind.ERROR and fragment.error:
            payload = {"kind": fragment.error.kind.value, "message": fragment.error.message}
            return self.frame(json.dumps(payload, ensure_ascii=False), event="error")

        return None

    @staticmethod
    def frame(data: str, event: Optional[str] = None) -> str:
        lines = [f"event: {event}"] if event else []
        lines.extend(f"data: {line}" for line in _LINE_BREAK.split(data))
        return "\n".join(lines) + "\n\n"

    async def stream(self, fragments: AsyncGenerator[Fragment, None]) -> AsyncIterator[str]:
        """
        Yield the frames of a fragment stream, e.g. as the body of a ``StreamingResponse``.

        The turn runs in a producer task. Closing this iterator early (the response
        was torn down) cancels that task, which closes the turn and its session.
        """
        producer = asyncio.create_task(self._produce(fragments))
        try:
            while True:
                frame = await self._queue.get()
                if frame is None:
                    break
                yield frame
            await producer
        finally:
            self._closed = True
            if not producer.done():
                producer.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await producer

    async def _produce(self, fragments: AsyncGenerator[Fragment, None]) -> None:
        try:
            await self.run(fragments)
        except Exception as exc:
            logger.error("Fragment stream failed outside the turn: %s", exc, exc_info=True)
            await self.deliver(Fragment.failure(exc))
        await self._queue.put(None)
