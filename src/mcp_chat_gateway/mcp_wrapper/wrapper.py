"""Expose the tools of an MCP server process as a tool-provider session over async stdio."""

import asyncio
import json
from contextlib import AsyncExitStack
from datetime import timedelta
from typing import Any, Dict, List, Optional, cast

import anyio
from mcp import ClientSession
from mcp.client.stdio import stdio_client, StdioServerParameters
from mcp.shared.exceptions import McpError
from mcp.types import CallToolResult, EmbeddedResource, ImageContent, TextContent, Tool as MCPTool
from pydantic import BaseModel, Field, ValidationError

from mcp_chat_gateway.llm_core import (
    ProtocolError,
    ProviderDisconnectedError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    ToolCall,
    ToolDescriptor,
    ToolExecutionError,
    ToolProviderFactory,
    ToolProviderSession,
    ToolResult,
    get_logger,
)

logger = get_logger(__name__)

__all__ = ["MCPToolProvider", "ProviderConfig"]

# JSON-RPC error codes the MCP client raises for local conditions.
_REQUEST_TIMEOUT = 408
_CONNECTION_CLOSED = -32000

_CHANNEL_ERRORS = (anyio.ClosedResourceError, anyio.BrokenResourceError, anyio.EndOfStream, BrokenPipeError)


class ProviderConfig(BaseModel):
    """Launch parameters of an MCP server process.

    Attributes:
        command: Executable that starts the server.
        args: Arguments passed to the command.
        env: Environment of the server process. ``None`` inherits the MCP SDK's safe default environment.
        name: Name used in logs and tool descriptions.
        startup_timeout: Seconds allowed for spawning the process and the MCP handshake.
        call_timeout: Seconds a single request (tool listing or tool call) may take.
    """

    command: str = "npx"
    args: List[str] = Field(default_factory=lambda: ["-y", "@azure/mcp@latest", "server", "start"])
    env: Optional[Dict[str, str]] = None
    name: str = "mcp"
    startup_timeout: float = Field(default=60.0, gt=0)
    call_timeout: float = Field(default=60.0, gt=0)


class MCPToolProvider(ToolProviderSession):
    """Tool-provider session backed by a Model Context Protocol server spoken to over stdio."""

    def __init__(self, config: Optional[ProviderConfig] = None):
        """Prepares the session without starting the server.

        Args:
            config: Launch parameters; defaults to the Azure MCP server via ``npx``.
        """
        super().__init__()
        self.config = config or ProviderConfig()
        self.name = self.config.name
        self._server_params = StdioServerParameters(
            command=self.config.command, args=list(self.config.args), env=self.config.env
        )
        self._session: Optional[ClientSession] = None
        self._exit_stack = AsyncExitStack()

    @classmethod
    def factory(cls, config: ProviderConfig) -> ToolProviderFactory:
        """Return a factory producing fresh, unopened sessions for ``config``."""

        def create() -> ToolProviderSession:
            return cls(config)

        return create

    async def _open(self) -> None:
        logger.debug("Starting MCP server: %s %s", self.config.command, " ".join(self.config.args))
        try:
            # The stdio transport must be entered and exited in the same task.
            async with asyncio.timeout(self.config.startup_timeout):
                await self._connect()
        except asyncio.TimeoutError as e:
            await self._exit_stack.aclose()
            raise ProviderUnavailableError(
                f"MCP server '{self.name}' did not finish the handshake within {self.config.startup_timeout}s."
            ) from e
        except Exception as e:
            await self._exit_stack.aclose()
            logger.error("Could not start MCP server '%s': %s", self.name, e)
            raise ProviderUnavailableError(f"Could not start MCP server '{self.name}': {e}") from e
        logger.info("MCP client session '%s' initialized successfully.", self.name)

    async def _connect(self) -> None:
        read, write = await self._exit_stack.enter_async_context(stdio_client(self._server_params))
        session = await self._exit_stack.enter_async_context(ClientSession(read, write))
        await session.initialize()
        self._session = session

    async def _close(self) -> None:
        logger.debug("Closing MCP client session '%s'...", self.name)
        self._session = None
        await self._exit_stack.aclose()

    def _require_session(self) -> ClientSession:
        if self._session is None or not self.is_open:
            raise ProviderDisconnectedError(f"MCP session '{self.name}' is not connected.")
        return self._session

    @property
    def _read_timeout(self) -> timedelta:
        return timedelta(seconds=self.config.call_timeout)

    async def list_tools(self) -> List[ToolDescriptor]:
        """Fetches every tool the server offers, following pagination cursors.

        Returns:
            The tool descriptors in the order the server lists them.

        Raises:
            ProviderTimeoutError: If the server does not answer in time.
            ProtocolError: If the listing is malformed or names a tool twice.
            ProviderDisconnectedError: If the channel to the server is gone.
        """
        session = self._require_session()
        logger.debug("Fetching tools from MCP server '%s'...", self.name)

        tools: List[MCPTool] = []
        cursor: Optional[str] = None
        try:
            while True:
                page = await asyncio.wait_for(
                    session.list_tools(cursor) if cursor else session.list_tools(),
                    timeout=self.config.call_timeout,
                )
                tools.extend(page.tools)
                cursor = page.nextCursor
                if not cursor:
                    break
        except asyncio.TimeoutError as e:
            raise ProviderTimeoutError(f"Listing tools of '{self.name}' timed out.") from e
        except McpError as e:
            raise self._map_mcp_error(e, "list tools") from e
        except _CHANNEL_ERRORS as e:
            raise ProviderDisconnectedError(f"MCP server '{self.name}' disconnected while listing tools.") from e

        descriptors: List[ToolDescriptor] = []
        seen = set()
        for tool in tools:
            if tool.name in seen:
                raise ProtocolError(f"MCP server '{self.name}' lists tool '{tool.name}' more than once.")
            seen.add(tool.name)
            try:
                descriptors.append(
                    ToolDescriptor(name=tool.name, description=tool.description or "", input_schema=tool.inputSchema)
                )
            except ValidationError as e:
                raise ProtocolError(f"Malformed tool '{tool.name}' from MCP server '{self.name}': {e}") from e

        logger.info("Found %d tools from MCP server '%s'.", len(descriptors), self.name)
        return descriptors

    async def invoke(self, call: ToolCall) -> ToolResult:
        """Delegates a tool call to the MCP server.

        Args:
            call: The call with arguments already normalized to a dict.

        Returns:
            The flattened tool output.

        Raises:
            ToolExecutionError: If the server reports the call as failed.
            ProviderTimeoutError: If the server does not answer within ``call_timeout``.
            ProviderDisconnectedError: If the channel to the server is gone.
        """
        session = self._require_session()
        arguments = call.arguments if isinstance(call.arguments, dict) else {}

        logger.info("Delegating tool '%s' to MCP server '%s'...", call.name, self.name)
        logger.debug("Tool arguments: %s", arguments)

        try:
            mcp_result = await session.call_tool(call.name, arguments=arguments, read_timeout_seconds=self._read_timeout)
        except McpError as e:
            raise self._map_mcp_error(e, f"call tool '{call.name}'") from e
        except _CHANNEL_ERRORS as e:
            raise ProviderDisconnectedError(
                f"MCP server '{self.name}' disconnected during tool '{call.name}'."
            ) from e

        output = self._flatten(mcp_result)
        if mcp_result.isError:
            message = output if isinstance(output, str) else json.dumps(output, default=str)
            logger.warning("MCP tool '%s' reported an error: %s", call.name, message[:200])
            raise ToolExecutionError(f"Tool '{call.name}' failed: {message}")

        preview = output if isinstance(output, str) else json.dumps(output, default=str)
        logger.debug("Tool '%s' result: %s", call.name, preview[:200] + "..." if len(preview) > 200 else preview)
        return ToolResult(call_id=call.call_id, name=call.name, output=output)

    def _map_mcp_error(self, error: McpError, action: str) -> Exception:
        code = error.error.code
        if code == _REQUEST_TIMEOUT:
            return ProviderTimeoutError(f"MCP server '{self.name}' timed out trying to {action}.")
        if code == _CONNECTION_CLOSED:
            return ProviderDisconnectedError(f"MCP server '{self.name}' closed the connection trying to {action}.")
        if action == "list tools":
            return ProtocolError(f"MCP server '{self.name}' failed to list tools: {error.error.message}")
        return ToolExecutionError(f"MCP server '{self.name}' failed to {action}: {error.error.message}")

    @staticmethod
    def _flatten(result: CallToolResult) -> Any:
        """Normalizes MCP content blocks into a string, or structured content when no text exists."""
        output = []
        has_text = False
        for c in result.content or []:
            if c.type == "text":
                text_content = cast(TextContent, c)
                output.append(text_content.text)
                has_text = True
            elif c.type == "image":
                image_content = cast(ImageContent, c)
                output.append(f"[Image: {image_content.mimeType}]")
            elif c.type == "resource":
                resource_content = cast(EmbeddedResource, c)
                output.append(f"[Resource: {resource_content.resource.uri}]")
            elif c.type == "resource_link":
                output.append(f"[Resource: {getattr(c, 'uri', '')}]")
            else:
                output.append(f"[Unknown content type: {c.type}]")

        if not has_text and result.structuredContent:
            return result.structuredContent
        if not output:
            return "Success"
        return "\n".join(output)
