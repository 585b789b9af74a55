import asyncio
import os
from typing import Annotated, Any, AsyncIterator, List, Sequence, Union

import pytest
import pytest_asyncio
from dotenv import load_dotenv, find_dotenv
from pydantic import Field

from mcp_chat_gateway.llm_core import (
    BaseMessage,
    GenericLLM,
    LocalToolProvider,
    ModelEvent,
    ToolCall,
    ToolRegistry,
)
from mcp_chat_gateway.llm_impl import OpenAIToolRegistry

env_file = find_dotenv()
if env_file:
    load_dotenv(env_file)

Step = Sequence[Union[ModelEvent, BaseException]]


def text(value: str) -> ModelEvent:
    return ModelEvent.text_delta(value)


def call(name: str, arguments: Any = None, call_id: str | None = None) -> ModelEvent:
    if call_id:
        return ModelEvent.call(ToolCall(name=name, arguments=arguments, call_id=call_id))
    return ModelEvent.call(ToolCall(name=name, arguments=arguments))


class ScriptedLLM(GenericLLM[List[Union[ModelEvent, BaseException]]]):
    """A model replaying prepared steps. Exceptions inside a step are raised mid-stream."""

    registry_class = OpenAIToolRegistry

    def __init__(self, steps: Sequence[Step] = (), repeat_last: bool = False):
        super().__init__(max_retries=0, base_retry_delay=0)
        self.steps = [list(step) for step in steps]
        self.repeat_last = repeat_last
        self.seen: List[List[BaseMessage]] = []
        self.opened = 0
        self.closed = 0

    async def _open_stream(
        self, history: Sequence[BaseMessage], registry: ToolRegistry
    ) -> List[Union[ModelEvent, BaseException]]:
        self.seen.append(list(history))
        self.opened += 1
        if self.steps and (len(self.steps) > 1 or not self.repeat_last):
            return self.steps.pop(0)
        if self.steps:
            return list(self.steps[0])
        return [text("(no more steps)")]

    async def _iter_events(self, handle: List[Union[ModelEvent, BaseException]]) -> AsyncIterator[ModelEvent]:
        for item in handle:
            await asyncio.sleep(0)
            if isinstance(item, BaseException):
                raise item
            yield item

    async def _close_stream(self, handle: List[Union[ModelEvent, BaseException]]) -> None:
        self.closed += 1


def get_weather(location: Annotated[str, Field(description="City name")]) -> str:
    """Get the current weather for a location."""
    return f"{location}: 15°C, cloudy"


async def get_forecast(
    location: Annotated[str, Field(description="City name")],
    days: Annotated[int, Field(description="Number of days", ge=1, le=7)] = 3,
) -> str:
    """Get the weather forecast for the next days."""
    return f"{location}: sunny for {days} days"


def broken_sensor(location: Annotated[str, Field(description="City name")]) -> str:
    """Read a sensor that is out of order."""
    raise RuntimeError("sensor offline")


@pytest.fixture
def weather_tools() -> LocalToolProvider:
    return LocalToolProvider([get_weather, get_forecast, broken_sensor], name="weather")


@pytest_asyncio.fixture
async def weather_registry(weather_tools: LocalToolProvider) -> AsyncIterator[ToolRegistry]:
    registry = OpenAIToolRegistry()
    async with weather_tools:
        registry.register(await weather_tools.list_tools(), weather_tools)
        yield registry


@pytest.fixture(scope="session")
def vcr_config() -> dict[str, Any]:
    return {
        "cassette_library_dir": "tests/cassettes",
        "record_mode": os.getenv("VCR_RECORD_MODE", "once"),
        "match_on": ["method", "path", "query"],
        "filter_headers": [
            "authorization",
            "openai-organization",
            "x-goog-api-key",
            "x-api-key",
            "api-key",
        ],
        "filter_query_parameters": ["key", "api_key", "access_token"],
        "decode_compressed_response": True,
    }
