from typing import Any, AsyncIterator, List, Optional, Sequence

from google.genai import types
from google.genai.client import AsyncClient

from mcp_chat_gateway.llm_core import BaseMessage, GenericLLM, ModelEvent, ToolRegistry, get_logger
from .adapter import GeminiToolAdapter
from .registry import GeminiToolRegistry

logger = get_logger(__name__)


class GenericGemini(GenericLLM[AsyncIterator[types.GenerateContentResponse]]):
    """
    Streaming implementation of GenericLLM for Google's Gemini models.
    """

    registry_class = GeminiToolRegistry

    def __init__(
        self,
        aclient: AsyncClient,
        model_name: str,
        sys_instruction: Optional[str] = None,
        temp: float = 1.0,
        max_tokens: int = 3000,
        max_retries: int = 3,
        base_retry_delay: float = 1.0,
    ):
        """
        Initializes the GenericGemini LLM wrapper.

        Args:
            aclient: The async client of an initialized Google GenAI client (``client.aio``).
            model_name: The identifier for the Gemini model to use (e.g., 'gemini-flash-latest').
            sys_instruction: A system-level instruction or persona for the LLM.
            temp: The temperature for text generation, controlling randomness.
            max_tokens: The maximum number of tokens to generate per model step.
            max_retries: How often opening a stream is retried.
            base_retry_delay: Initial backoff delay in seconds.
        """
        super().__init__(max_retries=max_retries, base_retry_delay=base_retry_delay)
        self.client: AsyncClient = aclient
        self.model: str = model_name
        self.sys_instruction = sys_instruction
        self.temperature = temp
        self.max_tokens = max_tokens
        logger.info(f"Initialized GenericGemini with model='{model_name}', temp={temp}, max_tokens={max_tokens}")

    def _build_config(self, instruction: Optional[str], registry: ToolRegistry) -> types.GenerateContentConfig:
        tools_config: Optional[List[Any]] = None
        tool_obj = registry.tool_object
        if tool_obj:
            tools_config = [tool_obj]
        return types.GenerateContentConfig(
            system_instruction=instruction,
            temperature=self.temperature,
            max_output_tokens=self.max_tokens,
            tools=tools_config,
            # Tool calls are executed by the gateway, never by the SDK.
            automatic_function_calling=types.AutomaticFunctionCallingConfig(disable=True),
        )

    async def _open_stream(
        self, history: Sequence[BaseMessage], registry: ToolRegistry
    ) -> AsyncIterator[types.GenerateContentResponse]:
        contents, instruction = GeminiToolAdapter.convert_history(history, self.sys_instruction)
        config = self._build_config(instruction, registry)
        logger.debug(f"Opening Gemini stream: model={self.model}, contents={len(contents)}")
        return await self.client.models.generate_content_stream(
            model=self.model,
            contents=contents,  # type: ignore[arg-type]
            config=config,
        )

    async def _iter_events(self, handle: AsyncIterator[types.GenerateContentResponse]) -> AsyncIterator[ModelEvent]:
        async for chunk in handle:
            texts, calls = GeminiToolAdapter.parse_chunk(chunk)
            for text in texts:
                yield ModelEvent.text_delta(text)
            for call in calls:
                logger.debug("Model requested tool '%s' (ID: %s).", call.name, call.call_id)
                yield ModelEvent.call(call)
