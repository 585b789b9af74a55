"""Interactive terminal chat over one long-lived tool-provider session."""

import argparse
import asyncio
import logging
import sys
import threading
from typing import Awaitable, Callable, List, Optional, TextIO

from mcp_chat_gateway.config import GatewaySettings
from mcp_chat_gateway.demo import weather_provider
from mcp_chat_gateway.gateway import ChatGateway
from mcp_chat_gateway.llm_core import (
    ConversationHistory,
    ErrorKind,
    GatewayError,
    ToolRegistry,
    get_logger,
    setup_logging,
)
from mcp_chat_gateway.transport import ConsoleTransport

logger = get_logger(__name__)

ReadLine = Callable[[], Awaitable[str]]

EXIT_COMMANDS = ("exit", "quit")
STDIN_READER = "stdin-reader"


async def _read_stdin() -> str:
    """Read one line of stdin on a daemon thread so Ctrl-C at the prompt exits at once."""
    loop = asyncio.get_running_loop()
    line: asyncio.Future[str] = loop.create_future()

    def settle(result: str, error: Optional[BaseException]) -> None:
        if line.cancelled():
            return
        if error is not None:
            line.set_exception(error)
        else:
            line.set_result(result)

    def read() -> None:
        try:
            result = sys.stdin.readline()
        except (OSError, ValueError) as e:
            loop.call_soon_threadsafe(settle, "", e)
        else:
            loop.call_soon_threadsafe(settle, result, None)

    threading.Thread(target=read, name=STDIN_READER, daemon=True).start()
    return await line


async def run_console(
    gateway: ChatGateway,
    *,
    read_line: Optional[ReadLine] = None,
    out: Optional[TextIO] = None,
    echo_tools: bool = False,
) -> None:
    """
    Chat on the terminal until the user exits or input ends.

    The session stays open across turns and is reopened once the provider
    disconnects. The conversation survives reconnects.

    Args:
        gateway: The gateway running the turns.
        read_line: Reads one line of user input; ``""`` means end of input.
        out: Where prompts and model output are written.
        echo_tools: Print tool calls and results as they happen.
    """
    read_line = read_line or _read_stdin
    out = out if out is not None else sys.stdout
    history = ConversationHistory()
    transport = ConsoleTransport(out, echo_tools=echo_tools)

    while True:
        async with gateway.open_tools() as registry:
            _print_tools(registry, out)
            reconnect = await _converse(gateway, history, registry, transport, read_line, out)
        if not reconnect:
            return
        out.write("Tool provider disconnected, reconnecting...\n")
        out.flush()


async def _converse(
    gateway: ChatGateway,
    history: ConversationHistory,
    registry: ToolRegistry,
    transport: ConsoleTransport,
    read_line: ReadLine,
    out: TextIO,
) -> bool:
    """Run turns until exit. Returns True if the session has to be reopened."""
    while True:
        out.write("Prompt: ")
        out.flush()
        line = await read_line()
        if not line:
            out.write("\n")
            return False
        prompt = line.strip()
        if prompt.lower() in EXIT_COMMANDS:
            return False
        if not prompt:
            continue

        terminal = await transport.run(gateway.stream_turn(history, prompt, registry))
        if terminal is not None and terminal.error is not None:
            if terminal.error.kind == ErrorKind.PROVIDER_DISCONNECTED:
                return True


def _print_tools(registry: ToolRegistry, out: TextIO) -> None:
    out.write("Available tools:\n")
    for descriptor in registry.descriptors:
        out.write(f"{descriptor.name}: {descriptor.description}\n" if descriptor.description else f"{descriptor.name}\n")
    out.write("\n")
    out.flush()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Chat with a tool-augmented model in the terminal.")
    parser.add_argument("--log-level", default="WARNING", help="Logging level; logs go to stderr.")
    parser.add_argument("--echo-tools", action="store_true", help="Print tool calls and results.")
    parser.add_argument(
        "--demo-tools",
        action="store_true",
        help="Use the built-in weather tool instead of starting the MCP server.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(getattr(logging, args.log_level.upper(), logging.WARNING), stream=sys.stderr)

    settings = GatewaySettings.from_env()
    provider_factory = weather_provider().session_factory() if args.demo_tools else None
    gateway = ChatGateway.from_settings(settings, provider_factory)

    try:
        asyncio.run(run_console(gateway, echo_tools=args.echo_tools))
    except GatewayError as e:
        print(f"Error ({e.kind.value}): {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
