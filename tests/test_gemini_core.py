from typing import Any, AsyncIterator, List
from unittest.mock import AsyncMock, MagicMock

import pytest
from google.genai import types

from mcp_chat_gateway.llm_core import (
    AssistantMessage,
    SystemMessage,
    ToolCall,
    ToolMessage,
    ToolRegistry,
    UserMessage,
)
from mcp_chat_gateway.llm_impl.gemini import GeminiToolAdapter, GeminiToolRegistry, GenericGemini


def response(*parts: types.Part) -> types.GenerateContentResponse:
    return types.GenerateContentResponse(
        candidates=[types.Candidate(content=types.Content(role="model", parts=list(parts)))]
    )


async def replay(chunks: List[types.GenerateContentResponse]) -> AsyncIterator[types.GenerateContentResponse]:
    for chunk in chunks:
        yield chunk


@pytest.fixture
def mock_genai_client() -> Any:
    client = MagicMock()
    client.models = MagicMock()
    client.models.generate_content_stream = AsyncMock()
    return client


@pytest.mark.asyncio
async def test_generic_gemini_initialization(mock_genai_client: Any) -> None:
    gemini = GenericGemini(aclient=mock_genai_client, model_name="gemini-pro", sys_instruction="You are a helper.")
    assert gemini.model == "gemini-pro"
    assert gemini.client == mock_genai_client
    assert gemini.sys_instruction == "You are a helper."
    assert isinstance(gemini.create_registry(), GeminiToolRegistry)


@pytest.mark.asyncio
async def test_stream_yields_text_then_calls(mock_genai_client: Any) -> None:
    mock_genai_client.models.generate_content_stream.return_value = replay(
        [
            response(types.Part(text="Checking ")),
            response(types.Part(text="the sky.")),
            response(
                types.Part(
                    function_call=types.FunctionCall(id="fc1", name="get_weather", args={"location": "Rome"})
                )
            ),
        ]
    )
    gemini = GenericGemini(aclient=mock_genai_client, model_name="gemini-pro", sys_instruction="You are a helper.")

    events = [e async for e in gemini.stream([UserMessage(content="Weather in Rome?")], GeminiToolRegistry())]

    assert [e.text for e in events[:2]] == ["Checking ", "the sky."]
    call = events[2].tool_call
    assert (call.call_id, call.name, call.arguments) == ("fc1", "get_weather", {"location": "Rome"})

    kwargs = mock_genai_client.models.generate_content_stream.call_args.kwargs
    assert kwargs["model"] == "gemini-pro"
    assert kwargs["contents"][0].role == "user"
    assert kwargs["config"].system_instruction == "You are a helper."
    assert kwargs["config"].tools is None


@pytest.mark.asyncio
async def test_config_carries_tools_and_disables_automatic_calling(
    mock_genai_client: Any, weather_tools: Any
) -> None:
    registry = GeminiToolRegistry()
    registry.register(await weather_tools.list_tools(), weather_tools)
    gemini = GenericGemini(aclient=mock_genai_client, model_name="gemini-pro", temp=0.2, max_tokens=128)

    config = gemini._build_config(None, registry)

    assert config.automatic_function_calling.disable is True
    assert config.temperature == 0.2
    assert config.max_output_tokens == 128
    assert len(config.tools) == 1
    assert [d.name for d in config.tools[0].function_declarations] == ["get_weather", "get_forecast", "broken_sensor"]


def test_parse_chunk_skips_thoughts() -> None:
    chunk = response(types.Part(text="pondering...", thought=True), types.Part(text="Answer."))

    texts, calls = GeminiToolAdapter.parse_chunk(chunk)

    assert texts == ["Answer."]
    assert calls == []


def test_parse_chunk_without_candidates() -> None:
    assert GeminiToolAdapter.parse_chunk(types.GenerateContentResponse()) == ([], [])


def test_convert_history_merges_tool_responses() -> None:
    history = [
        SystemMessage(content="Be brief."),
        UserMessage(content="Weather in Rome and Oslo?"),
        AssistantMessage(
            content="",
            tool_calls=[
                ToolCall(name="get_weather", arguments={"location": "Rome"}, call_id="c1"),
                ToolCall(name="get_weather", arguments='{"location": "Oslo"}', call_id="c2"),
            ],
        ),
        ToolMessage(content='{"result": "Rome: 20°C"}', tool_call_id="c1", name="get_weather"),
        ToolMessage(content="Oslo: 3°C", tool_call_id="c2", name="get_weather"),
    ]

    contents, instruction = GeminiToolAdapter.convert_history(history, "ignored")

    assert instruction == "Be brief."
    assert [c.role for c in contents] == ["user", "model", "user"]
    assert [p.function_call.args for p in contents[1].parts] == [{"location": "Rome"}, {"location": "Oslo"}]
    responses = [p.function_response for p in contents[2].parts]
    assert [(r.id, r.name) for r in responses] == [("c1", "get_weather"), ("c2", "get_weather")]
    assert responses[0].response == {"result": "Rome: 20°C"}
    assert responses[1].response == {"result": "Oslo: 3°C"}


def test_convert_history_uses_configured_instruction_without_system_messages() -> None:
    contents, instruction = GeminiToolAdapter.convert_history([UserMessage(content="Hi")], "Answer briefly.")

    assert instruction == "Answer briefly."
    assert contents[0].parts[0].text == "Hi"


@pytest.mark.asyncio
async def test_registry_renders_single_tool_object(weather_registry: ToolRegistry) -> None:
    # weather_registry is an OpenAI registry; Gemini renders the same descriptors differently.
    registry = GeminiToolRegistry()
    registry.register(weather_registry.descriptors, weather_registry.resolve("get_weather").invoker)

    tool_obj = registry.tool_object

    assert isinstance(tool_obj, types.Tool)
    forecast = tool_obj.function_declarations[1]
    assert forecast.parameters.required == ["location"]
