"""Turn entry point: binds a model, a tool-provider session and a conversation together."""

from contextlib import AsyncExitStack, aclosing, asynccontextmanager
from typing import AsyncIterator, Optional

from google import genai
from openai import AsyncAzureOpenAI, AsyncOpenAI

from mcp_chat_gateway.config import GatewaySettings
from mcp_chat_gateway.llm_core import (
    ConversationHistory,
    Fragment,
    GatewayError,
    GenericLLM,
    ToolProviderFactory,
    ToolRegistry,
    TurnOrchestrator,
    get_logger,
)
from mcp_chat_gateway.llm_impl import GenericGemini, GenericOpenAI
from mcp_chat_gateway.mcp_wrapper import MCPToolProvider

logger = get_logger(__name__)


class ChatGateway:
    """
    Runs conversation turns against one model and one kind of tool provider.

    Each turn holds the conversation's lock, adds the user message, opens a tool
    provider session (unless the caller supplies a live registry), rebuilds the
    registry from its listing and streams the orchestrator's fragments. The
    session is closed on every exit path, including cancellation.
    """

    def __init__(
        self,
        llm: GenericLLM,
        provider_factory: ToolProviderFactory,
        *,
        max_tool_iterations: int = 8,
        tool_timeout: float = 180.0,
        abort_on_tool_timeout: bool = True,
    ):
        """
        Args:
            llm: The streaming model.
            provider_factory: Creates a fresh, unopened tool-provider session.
            max_tool_iterations: Tool rounds allowed per turn.
            tool_timeout: Seconds a single tool invocation may take.
            abort_on_tool_timeout: Fail the turn on a tool timeout instead of telling the model.
        """
        self.llm = llm
        self.provider_factory = provider_factory
        self.max_tool_iterations = max_tool_iterations
        self.tool_timeout = tool_timeout
        self.abort_on_tool_timeout = abort_on_tool_timeout

    @classmethod
    def from_settings(cls, settings: GatewaySettings, provider_factory: Optional[ToolProviderFactory] = None) -> "ChatGateway":
        """
        Build a gateway from settings.

        Args:
            settings: The runtime settings.
            provider_factory: Overrides the MCP server described by the settings.

        Returns:
            The configured gateway.
        """
        return cls(
            build_llm(settings),
            provider_factory or MCPToolProvider.factory(settings.provider_config()),
            max_tool_iterations=settings.max_tool_iterations,
            tool_timeout=settings.tool_timeout,
            abort_on_tool_timeout=settings.abort_on_tool_timeout,
        )

    def create_orchestrator(self) -> TurnOrchestrator:
        return TurnOrchestrator(
            self.llm,
            max_tool_iterations=self.max_tool_iterations,
            tool_timeout=self.tool_timeout,
            abort_on_tool_timeout=self.abort_on_tool_timeout,
        )

    @asynccontextmanager
    async def open_tools(self) -> AsyncIterator[ToolRegistry]:
        """
        Open a tool-provider session and yield a registry built from its tools.

        The registry is cleared and the session closed when the context exits.

        Raises:
            ProviderUnavailableError: If the session cannot be opened.
            ProviderTimeoutError: If listing the tools times out.
            ProtocolError: If the listing cannot be registered.
        """
        async with self.provider_factory() as session:
            registry = self.llm.create_registry()
            registry.register(await session.list_tools(), session)
            try:
                yield registry
            finally:
                registry.clear()

    async def stream_turn(
        self,
        history: ConversationHistory,
        message: Optional[str],
        registry: Optional[ToolRegistry] = None,
    ) -> AsyncIterator[Fragment]:
        """
        Run one turn and stream its fragments.

        Args:
            history: The conversation. A blank message adds nothing to it.
            message: The new user message.
            registry: A registry bound to an already open session. When omitted a
                session is opened for this turn only.

        Yields:
            The turn's fragments. Failures to set up the session become a single Error fragment.
        """
        async with history.lock:
            if message and message.strip():
                history.add_user_message(message)

            async with AsyncExitStack() as stack:
                if registry is None:
                    try:
                        registry = await stack.enter_async_context(self.open_tools())
                    except Exception as exc:
                        if isinstance(exc, GatewayError):
                            logger.error("Tool provider setup failed (%s): %s", exc.kind.value, exc)
                        else:
                            logger.error("Tool provider setup failed: %s", exc, exc_info=True)
                        yield Fragment.failure(exc, 1)
                        return

                orchestrator = self.create_orchestrator()
                fragments = await stack.enter_async_context(aclosing(orchestrator.run(history, registry)))
                async for fragment in fragments:
                    yield fragment


def build_llm(settings: GatewaySettings) -> GenericLLM:
    """Create the streaming model client described by ``settings``."""
    if settings.llm_provider == "gemini":
        client = genai.Client(api_key=settings.api_key)
        return GenericGemini(
            aclient=client.aio,
            model_name=settings.model,
            sys_instruction=settings.system_instruction,
            temp=settings.temperature,
            max_tokens=settings.max_tokens,
            max_retries=settings.max_retries,
        )

    openai_client: AsyncOpenAI
    if settings.llm_provider == "azure":
        if not settings.azure_endpoint:
            raise ValueError("GATEWAY_AZURE_ENDPOINT is required for the azure provider.")
        openai_client = AsyncAzureOpenAI(
            azure_endpoint=settings.azure_endpoint,
            api_version=settings.api_version,
            api_key=settings.api_key,
        )
    else:
        openai_client = AsyncOpenAI(api_key=settings.api_key, base_url=settings.base_url)

    return GenericOpenAI(
        client=openai_client,
        model_name=settings.model,
        sys_instruction=settings.system_instruction,
        temp=settings.temperature,
        max_tokens=settings.max_tokens,
        max_retries=settings.max_retries,
    )
