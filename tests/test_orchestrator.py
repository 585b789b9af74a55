import asyncio
import json
from typing import Annotated, Any, AsyncIterator, List

import pytest
from pydantic import Field

from conftest import ScriptedLLM, call, text
from mcp_chat_gateway.llm_core import (
    AssistantMessage,
    ConversationHistory,
    ErrorKind,
    Fragment,
    FragmentKind,
    LocalToolProvider,
    ProviderDisconnectedError,
    ToolCall,
    ToolDescriptor,
    ToolMessage,
    ToolProviderSession,
    ToolRegistry,
    ToolResult,
    TurnOrchestrator,
    TurnState,
    UserMessage,
)
from mcp_chat_gateway.llm_impl import OpenAIToolRegistry


async def collect(fragments: AsyncIterator[Fragment]) -> List[Fragment]:
    return [fragment async for fragment in fragments]


def kinds(fragments: List[Fragment]) -> List[FragmentKind]:
    return [f.kind for f in fragments]


def user_history(content: str = "What's the weather in Berlin?") -> ConversationHistory:
    return ConversationHistory([UserMessage(content=content)])


async def registry_for(provider: ToolProviderSession) -> ToolRegistry:
    registry = OpenAIToolRegistry()
    await provider.open()
    registry.register(await provider.list_tools(), provider)
    return registry


class ExplodingSession(ToolProviderSession):
    """A session whose single tool fails with a given exception."""

    name = "exploding"

    def __init__(self, error: BaseException):
        super().__init__()
        self.error = error

    async def _open(self) -> None:
        pass

    async def _close(self) -> None:
        pass

    async def list_tools(self) -> List[ToolDescriptor]:
        return [ToolDescriptor(name="explode", description="Always fails.")]

    async def invoke(self, call: ToolCall) -> ToolResult:
        raise self.error


@pytest.mark.asyncio
async def test_text_only_turn_streams_text_then_done(weather_registry: ToolRegistry) -> None:
    llm = ScriptedLLM([[text("It is "), text("sunny.")]])
    history = user_history()

    fragments = await collect(TurnOrchestrator(llm).run(history, weather_registry))

    assert kinds(fragments) == [FragmentKind.TEXT, FragmentKind.TEXT, FragmentKind.DONE]
    assert fragments[-1].text == "It is sunny."
    assert [f.sequence for f in fragments] == [1, 2, 3]
    assert len(history) == 2
    assert history[-1] == AssistantMessage(content="It is sunny.")


@pytest.mark.asyncio
async def test_done_text_equals_concatenated_text_fragments(weather_registry: ToolRegistry) -> None:
    llm = ScriptedLLM(
        [
            [text("Let me check. "), call("get_weather", {"location": "Berlin"})],
            [text("Berlin is "), text("cloudy.")],
        ]
    )
    history = user_history()

    fragments = await collect(TurnOrchestrator(llm).run(history, weather_registry))

    streamed = "".join(f.text or "" for f in fragments if f.kind == FragmentKind.TEXT)
    assert fragments[-1].kind == FragmentKind.DONE
    assert fragments[-1].text == streamed == "Let me check. Berlin is cloudy."
    assert history[-1].content == streamed


@pytest.mark.asyncio
async def test_tool_round_orders_request_before_result(weather_registry: ToolRegistry) -> None:
    llm = ScriptedLLM(
        [
            [call("get_weather", {"location": "Berlin"}, "c1"), call("get_forecast", {"location": "Paris"}, "c2")],
            [text("Done.")],
        ]
    )

    fragments = await collect(TurnOrchestrator(llm).run(user_history(), weather_registry))

    assert kinds(fragments) == [
        FragmentKind.TOOL_CALL_REQUESTED,
        FragmentKind.TOOL_RESULT,
        FragmentKind.TOOL_CALL_REQUESTED,
        FragmentKind.TOOL_RESULT,
        FragmentKind.TEXT,
        FragmentKind.DONE,
    ]
    assert fragments[0].tool_call.call_id == fragments[1].tool_result.call_id == "c1"
    assert fragments[2].tool_call.call_id == fragments[3].tool_result.call_id == "c2"
    assert fragments[1].tool_result.output == "Berlin: 15°C, cloudy"
    assert fragments[3].tool_result.output == "Paris: sunny for 3 days"


@pytest.mark.asyncio
async def test_tool_results_reach_the_model_but_not_the_history(weather_registry: ToolRegistry) -> None:
    llm = ScriptedLLM([[call("get_weather", {"location": "Berlin"}, "c1")], [text("Cloudy.")]])
    history = user_history()

    await collect(TurnOrchestrator(llm).run(history, weather_registry))

    second_step = llm.seen[1]
    assert isinstance(second_step[1], AssistantMessage)
    assert second_step[1].tool_calls[0].call_id == "c1"
    assert isinstance(second_step[2], ToolMessage)
    assert second_step[2].tool_call_id == "c1"
    assert json.loads(second_step[2].content) == {"result": "Berlin: 15°C, cloudy"}

    assert [m.role for m in history] == ["user", "assistant"]
    assert history[-1].content == "Cloudy."


@pytest.mark.asyncio
async def test_json_string_arguments_are_normalized(weather_registry: ToolRegistry) -> None:
    llm = ScriptedLLM([[call("get_weather", '{"location": "Oslo"}')], [text("Ok.")]])

    fragments = await collect(TurnOrchestrator(llm).run(user_history(), weather_registry))

    result = next(f for f in fragments if f.kind == FragmentKind.TOOL_RESULT)
    assert result.tool_result.output == "Oslo: 15°C, cloudy"


@pytest.mark.asyncio
async def test_unknown_tool_is_folded_without_announcement(weather_registry: ToolRegistry) -> None:
    llm = ScriptedLLM([[call("teleport", {"to": "Mars"}, "c9")], [text("I cannot do that.")]])
    history = user_history()

    fragments = await collect(TurnOrchestrator(llm).run(history, weather_registry))

    assert kinds(fragments) == [FragmentKind.TEXT, FragmentKind.DONE]
    tool_message = llm.seen[1][-1]
    assert isinstance(tool_message, ToolMessage)
    assert tool_message.tool_call_id == "c9"
    assert "not found" in json.loads(tool_message.content)["error"]
    assert history[-1].content == "I cannot do that."


@pytest.mark.asyncio
async def test_every_announced_call_is_registered(weather_registry: ToolRegistry) -> None:
    llm = ScriptedLLM(
        [
            [call("teleport", {}), call("get_weather", {"location": "Rome"})],
            [text("Rome is fine.")],
        ]
    )

    fragments = await collect(TurnOrchestrator(llm).run(user_history(), weather_registry))

    announced = [f.tool_call.name for f in fragments if f.kind == FragmentKind.TOOL_CALL_REQUESTED]
    assert announced == ["get_weather"]
    assert all(name in weather_registry.tools for name in announced)


@pytest.mark.asyncio
async def test_failing_tool_is_reported_to_the_model(weather_registry: ToolRegistry) -> None:
    llm = ScriptedLLM([[call("broken_sensor", {"location": "Berlin"})], [text("The sensor is offline.")]])

    fragments = await collect(TurnOrchestrator(llm).run(user_history(), weather_registry))

    result = next(f for f in fragments if f.kind == FragmentKind.TOOL_RESULT).tool_result
    assert result.is_error
    assert "sensor offline" in result.error
    assert fragments[-1].kind == FragmentKind.DONE
    assert "error" in json.loads(llm.seen[1][-1].content)


@pytest.mark.asyncio
async def test_invalid_arguments_are_reported_to_the_model(weather_registry: ToolRegistry) -> None:
    llm = ScriptedLLM([[call("get_forecast", {"location": "Berlin", "days": 30})], [text("Max is 7 days.")]])

    fragments = await collect(TurnOrchestrator(llm).run(user_history(), weather_registry))

    result = next(f for f in fragments if f.kind == FragmentKind.TOOL_RESULT).tool_result
    assert result.is_error
    assert "days" in result.error
    assert fragments[-1].kind == FragmentKind.DONE


@pytest.mark.asyncio
async def test_tool_loop_guard_allows_exactly_max_rounds(weather_registry: ToolRegistry) -> None:
    llm = ScriptedLLM([[call("get_weather", {"location": "Berlin"})]], repeat_last=True)
    history = user_history()
    orchestrator = TurnOrchestrator(llm, max_tool_iterations=8)

    fragments = await collect(orchestrator.run(history, weather_registry))

    assert kinds(fragments).count(FragmentKind.TOOL_RESULT) == 8
    assert fragments[-1].kind == FragmentKind.ERROR
    assert fragments[-1].error.kind == ErrorKind.TOOL_LOOP_EXCEEDED
    assert llm.opened == 9
    assert len(history) == 1
    assert orchestrator.last_turn.state == TurnState.FAILED


@pytest.mark.asyncio
async def test_zero_tool_rounds_fails_on_first_request(weather_registry: ToolRegistry) -> None:
    llm = ScriptedLLM([[call("get_weather", {"location": "Berlin"})]])

    fragments = await collect(TurnOrchestrator(llm, max_tool_iterations=0).run(user_history(), weather_registry))

    assert kinds(fragments) == [FragmentKind.ERROR]
    assert fragments[0].error.kind == ErrorKind.TOOL_LOOP_EXCEEDED


def test_negative_tool_rounds_are_rejected() -> None:
    with pytest.raises(ValueError):
        TurnOrchestrator(ScriptedLLM(), max_tool_iterations=-1)


@pytest.mark.asyncio
async def test_model_failure_mid_stream_fails_the_turn(weather_registry: ToolRegistry) -> None:
    llm = ScriptedLLM([[text("Partial "), RuntimeError("connection reset")]])
    history = user_history()

    fragments = await collect(TurnOrchestrator(llm).run(history, weather_registry))

    assert kinds(fragments) == [FragmentKind.TEXT, FragmentKind.ERROR]
    assert fragments[-1].error.kind == ErrorKind.MODEL_ERROR
    assert "connection reset" in fragments[-1].error.message
    assert len(history) == 1
    assert llm.closed == 1


@pytest.mark.asyncio
async def test_exactly_one_terminal_fragment_is_last(weather_registry: ToolRegistry) -> None:
    llm = ScriptedLLM([[call("broken_sensor", {"location": "X"})], [text("a"), text("b")]])

    fragments = await collect(TurnOrchestrator(llm).run(user_history(), weather_registry))

    terminal = [f for f in fragments if f.is_terminal]
    assert len(terminal) == 1
    assert fragments[-1] is terminal[0]


@pytest.mark.asyncio
async def test_disconnected_provider_fails_the_turn() -> None:
    session = ExplodingSession(ProviderDisconnectedError("pipe closed"))
    registry = await registry_for(session)
    llm = ScriptedLLM([[call("explode", {})], [text("unreachable")]])
    history = user_history()

    fragments = await collect(TurnOrchestrator(llm).run(history, registry))

    assert kinds(fragments) == [FragmentKind.TOOL_CALL_REQUESTED, FragmentKind.ERROR]
    assert fragments[-1].error.kind == ErrorKind.PROVIDER_DISCONNECTED
    assert llm.opened == 1
    assert len(history) == 1


@pytest.mark.asyncio
async def test_unexpected_exception_is_classified_as_internal() -> None:
    session = ExplodingSession(KeyError("missing"))
    registry = await registry_for(session)
    llm = ScriptedLLM([[call("explode", {})]])

    fragments = await collect(TurnOrchestrator(llm).run(user_history(), registry))

    assert fragments[-1].kind == FragmentKind.ERROR
    assert fragments[-1].error.kind == ErrorKind.INTERNAL


def slow_provider(started: asyncio.Event, cancelled: asyncio.Event) -> LocalToolProvider:
    provider = LocalToolProvider(name="slow")

    @provider.tool
    async def slow_lookup(location: Annotated[str, Field(description="City name")]) -> str:
        """Look up the weather very slowly."""
        started.set()
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cancelled.set()
            raise
        return "never"

    return provider


@pytest.mark.asyncio
async def test_tool_timeout_aborts_the_turn_by_default() -> None:
    registry = await registry_for(slow_provider(asyncio.Event(), asyncio.Event()))
    llm = ScriptedLLM([[call("slow_lookup", {"location": "Berlin"})], [text("unreachable")]])

    fragments = await collect(TurnOrchestrator(llm, tool_timeout=0.05).run(user_history(), registry))

    assert fragments[-1].kind == FragmentKind.ERROR
    assert fragments[-1].error.kind == ErrorKind.PROVIDER_TIMEOUT


@pytest.mark.asyncio
async def test_tool_timeout_can_be_reported_to_the_model() -> None:
    registry = await registry_for(slow_provider(asyncio.Event(), asyncio.Event()))
    llm = ScriptedLLM([[call("slow_lookup", {"location": "Berlin"})], [text("The lookup timed out.")]])
    orchestrator = TurnOrchestrator(llm, tool_timeout=0.05, abort_on_tool_timeout=False)

    fragments = await collect(orchestrator.run(user_history(), registry))

    result = next(f for f in fragments if f.kind == FragmentKind.TOOL_RESULT).tool_result
    assert "timed out" in result.error
    assert fragments[-1].kind == FragmentKind.DONE


@pytest.mark.asyncio
async def test_closing_the_stream_stops_the_model_and_keeps_history(weather_registry: ToolRegistry) -> None:
    llm = ScriptedLLM([[text("one "), text("two "), text("three")]])
    history = user_history()
    orchestrator = TurnOrchestrator(llm)

    stream: Any = orchestrator.run(history, weather_registry)
    first = await stream.__anext__()
    await stream.aclose()

    assert first.text == "one "
    assert llm.closed == 1
    assert len(history) == 1
    assert orchestrator.last_turn.state == TurnState.FAILED


@pytest.mark.asyncio
async def test_cancelling_the_turn_cancels_the_running_tool() -> None:
    started, cancelled = asyncio.Event(), asyncio.Event()
    registry = await registry_for(slow_provider(started, cancelled))
    llm = ScriptedLLM([[call("slow_lookup", {"location": "Berlin"})], [text("unreachable")]])
    history = user_history()
    received: List[Fragment] = []

    async def consume() -> None:
        async for fragment in TurnOrchestrator(llm).run(history, registry):
            received.append(fragment)

    task = asyncio.create_task(consume())
    await asyncio.wait_for(started.wait(), timeout=1)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert cancelled.is_set()
    assert kinds(received) == [FragmentKind.TOOL_CALL_REQUESTED]
    assert len(history) == 1
    assert llm.opened == 1
