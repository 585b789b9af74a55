from typing import Any, AsyncIterator, Dict, Iterable, Optional, Sequence, cast

from openai import AsyncOpenAI, AsyncStream
from openai.types.chat import ChatCompletionChunk

from mcp_chat_gateway.llm_core import BaseMessage, GenericLLM, ModelEvent, ToolRegistry, get_logger
from .adapter import OpenAIToolAdapter
from .registry import OpenAIToolRegistry

logger = get_logger(__name__)


class GenericOpenAI(GenericLLM[AsyncStream[ChatCompletionChunk]]):
    """
    Streaming implementation of GenericLLM for OpenAI chat models.

    Works with ``AsyncOpenAI`` and ``AsyncAzureOpenAI``; for Azure the model name is
    the deployment name.
    """

    registry_class = OpenAIToolRegistry

    def __init__(
        self,
        client: AsyncOpenAI,
        model_name: str,
        sys_instruction: Optional[str] = None,
        temp: float = 1.0,
        max_tokens: int = 3000,
        max_retries: int = 3,
        base_retry_delay: float = 1.0,
    ):
        """
        Initializes the GenericOpenAI LLM wrapper.

        Args:
            client: The initialized AsyncOpenAI (or AsyncAzureOpenAI) client.
            model_name: The model identifier, or the deployment name on Azure.
            sys_instruction: A system-level instruction or persona for the LLM.
            temp: The temperature for text generation, controlling randomness.
            max_tokens: The maximum number of tokens to generate per model step.
            max_retries: How often opening a stream is retried.
            base_retry_delay: Initial backoff delay in seconds.
        """
        super().__init__(max_retries=max_retries, base_retry_delay=base_retry_delay)
        self.client: AsyncOpenAI = client
        self.model: str = model_name
        self.sys_instruction = sys_instruction
        self.temperature = temp
        self.max_tokens = max_tokens
        logger.info(f"Initialized GenericOpenAI with model='{model_name}', temp={temp}, max_tokens={max_tokens}")

    async def _open_stream(
        self, history: Sequence[BaseMessage], registry: ToolRegistry
    ) -> AsyncStream[ChatCompletionChunk]:
        messages = OpenAIToolAdapter.convert_history(history, self.sys_instruction)

        request: Dict[str, Any] = {
            "model": self.model,
            # The SDK expects a union of typed message params; plain dicts are structurally compatible.
            "messages": cast(Iterable[Any], messages),
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "stream": True,
        }
        tools = registry.tool_object
        if tools:
            request["tools"] = tools
            request["tool_choice"] = "auto"

        logger.debug(f"Opening OpenAI stream: model={self.model}, messages={len(messages)}, tools={len(tools or [])}")
        return await self.client.chat.completions.create(**request)

    async def _iter_events(self, handle: AsyncStream[ChatCompletionChunk]) -> AsyncIterator[ModelEvent]:
        adapter = OpenAIToolAdapter()
        async for chunk in handle:
            text = adapter.feed(chunk)
            if text:
                yield ModelEvent.text_delta(text)

        for call in adapter.tool_calls():
            logger.debug("Model requested tool '%s' (ID: %s).", call.name, call.call_id)
            yield ModelEvent.call(call)
