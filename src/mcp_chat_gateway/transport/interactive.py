import json
import sys
from typing import Optional, TextIO

from mcp_chat_gateway.llm_core import Fragment, FragmentKind, TransportDisconnectedError
from .base import FragmentTransport


class ConsoleTransport(FragmentTransport):
    """Interactive transport writing fragments to a terminal.

    Text is written without delimiters and flushed immediately. Done ends the
    line; an error is printed as one line with its kind.
    """

    def __init__(self, out: Optional[TextIO] = None, *, echo_tools: bool = False):
        self.out = out if out is not None else sys.stdout
        self.echo_tools = echo_tools
        self._mid_line = False

    async def is_closed(self) -> bool:
        return self.out.closed

    async def deliver(self, fragment: Fragment) -> None:
        try:
            self._write(fragment)
        except BrokenPipeError as e:
            raise TransportDisconnectedError("Terminal output was closed by the reader.") from e

    def _write(self, fragment: Fragment) -> None:
        if fragment.kind == FragmentKind.TEXT:
            text = fragment.text or ""
            self.out.write(text)
            if text:
                self._mid_line = not text.endswith("\n")
        elif fragment.kind == FragmentKind.TOOL_CALL_REQUESTED:
            if self.echo_tools and fragment.tool_call:
                arguments = json.dumps(fragment.tool_call.arguments, default=str, ensure_ascii=False)
                self._write_line(f"[tool] {fragment.tool_call.name}({arguments})")
        elif fragment.kind == FragmentKind.TOOL_RESULT:
            if self.echo_tools and fragment.tool_result:
                result = fragment.tool_result
                status = f"error: {result.error}" if result.is_error else str(result.output)
                self._write_line(f"[tool] {result.name} -> {status[:200]}")
        elif fragment.kind == FragmentKind.DONE:
            self.out.write("\n")
            self._mid_line = False
        elif fragment.kind == FragmentKind.ERROR and fragment.error:
            self._write_line(f"Error ({fragment.error.kind.value}): {fragment.error.message}")
        self.out.flush()

    def _write_line(self, line: str) -> None:
        if self._mid_line:
            self.out.write("\n")
        self.out.write(line + "\n")
        self._mid_line = False
