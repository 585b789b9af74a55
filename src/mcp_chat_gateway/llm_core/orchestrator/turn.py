"""Streaming agent loop: drives the model, runs requested tools and emits fragments."""

from __future__ import annotations

import asyncio
import json
from contextlib import aclosing
from dataclasses import dataclass, field
from enum import Enum
from typing import AsyncIterator, List, Optional

from ..base import GenericLLM
from ..exceptions import (
    GatewayError,
    ProviderTimeoutError,
    ToolLoopExceededError,
    UnknownToolError,
)
from ..logger import get_logger
from ..messages import AssistantMessage, BaseMessage, ConversationHistory, ErrorInfo, Fragment, ToolMessage
from ..tools.models import ToolCall, ToolResult
from ..tools.registry import ToolRegistry

logger = get_logger(__name__)


class TurnState(str, Enum):
    IDLE = "idle"
    AWAITING_MODEL = "awaiting_model"
    EMITTING_TEXT = "emitting_text"
    INVOKING_TOOL = "invoking_tool"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class Turn:
    """Bookkeeping of one turn. ``transcript`` is the turn-local context window."""

    transcript: List[BaseMessage]
    state: TurnState = TurnState.IDLE
    text_parts: List[str] = field(default_factory=list)
    tool_rounds: int = 0
    sequence: int = 0
    error: Optional[ErrorInfo] = None

    @property
    def text(self) -> str:
        return "".join(self.text_parts)

    def next_sequence(self) -> int:
        self.sequence += 1
        return self.sequence

    def transition(self, state: TurnState) -> None:
        if state != self.state:
            logger.debug("Turn state %s -> %s", self.state.value, state.value)
            self.state = state


class TurnOrchestrator:
    """Runs one conversation turn as a lazy stream of fragments.

    The model is queried with the full history and the registry's tools. Text is
    forwarded as soon as it arrives. Tool calls requested in a model step run one
    after another in the order the model listed them, their results go back to
    the model, and the loop repeats until a step requests no tools.

    Recoverable tool errors (unknown tool, failed or invalid call) are handed to
    the model as error results. Anything else fails the turn with a single error
    fragment and leaves the history untouched. On success the assembled text is
    appended to the history as one assistant message.
    """

    def __init__(
        self,
        llm: GenericLLM,
        *,
        max_tool_iterations: int = 8,
        tool_timeout: float = 180.0,
        abort_on_tool_timeout: bool = True,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            llm: The model to drive.
            max_tool_iterations: Maximum number of tool rounds per turn.
            tool_timeout: Timeout in seconds for a single tool invocation.
            abort_on_tool_timeout: Fail the turn when a tool times out instead of
                reporting the timeout to the model.
        """
        if max_tool_iterations < 0:
            raise ValueError("max_tool_iterations must not be negative.")
        self.llm = llm
        self.max_tool_iterations = max_tool_iterations
        self.tool_timeout = tool_timeout
        self.abort_on_tool_timeout = abort_on_tool_timeout
        self.last_turn: Optional[Turn] = None

    async def run(self, history: ConversationHistory, registry: ToolRegistry) -> AsyncIterator[Fragment]:
        """Run a turn over ``history``, whose last message is normally the new user message.

        The caller owns ``history.lock`` for the duration of the turn.

        Yields:
            Fragments in emission order, ending with exactly one Done or Error fragment
            unless the stream is closed or cancelled first.
        """
        turn = Turn(transcript=history.snapshot())
        self.last_turn = turn

        try:
            async with aclosing(self._drive(turn, registry)) as fragments:
                async for fragment in fragments:
                    yield fragment
        except (asyncio.CancelledError, GeneratorExit):
            turn.transition(TurnState.FAILED)
            logger.info("Turn cancelled after %d fragment(s); history left unchanged.", turn.sequence)
            raise
        except Exception as exc:
            turn.transition(TurnState.FAILED)
            turn.error = ErrorInfo.from_exception(exc)
            if isinstance(exc, GatewayError):
                logger.error("Turn failed (%s): %s", turn.error.kind.value, exc)
            else:
                logger.error("Turn failed with an unexpected error: %s", exc, exc_info=True)
            yield Fragment.failure(exc, turn.next_sequence())
            return

        history.append(AssistantMessage(content=turn.text))
        turn.transition(TurnState.COMPLETED)
        logger.info("Turn completed after %d tool round(s).", turn.tool_rounds)
        yield Fragment.done(turn.text, turn.next_sequence())

    async def _drive(self, turn: Turn, registry: ToolRegistry) -> AsyncIterator[Fragment]:
        while True:
            turn.transition(TurnState.AWAITING_MODEL)
            pending: List[ToolCall] = []
            step_text: List[str] = []

            async with aclosing(self.llm.stream(turn.transcript, registry)) as events:
                async for event in events:
                    if event.text:
                        turn.transition(TurnState.EMITTING_TEXT)
                        step_text.append(event.text)
                        turn.text_parts.append(event.text)
                        yield Fragment.text_delta(event.text, turn.next_sequence())
                    elif event.tool_call is not None:
                        pending.append(event.tool_call)

            if not pending:
                logger.debug("No tool calls found in response. Loop finished.")
                return

            if turn.tool_rounds >= self.max_tool_iterations:
                msg = f"Model kept requesting tools after {self.max_tool_iterations} tool round(s)."
                logger.warning(msg)
                raise ToolLoopExceededError(msg)

            turn.tool_rounds += 1
            turn.transition(TurnState.INVOKING_TOOL)
            logger.info(
                f"Loop {turn.tool_rounds}/{self.max_tool_iterations}: Processing {len(pending)} tool call(s)."
            )
            turn.transcript.append(AssistantMessage(content="".join(step_text), tool_calls=pending))

            for call in pending:
                try:
                    registry.resolve(call.name)
                except UnknownToolError as exc:
                    logger.warning(str(exc))
                    turn.transcript.append(self._tool_message(ToolResult.failure(call, exc)))
                    continue

                yield Fragment.tool_call_requested(call, turn.next_sequence())
                result = await self._invoke(registry, call)
                turn.transcript.append(self._tool_message(result))
                yield Fragment.tool_result_ready(result, turn.next_sequence())

    async def _invoke(self, registry: ToolRegistry, call: ToolCall) -> ToolResult:
        """Execute one call, folding recoverable errors into an error result."""
        logger.debug(f"Handling tool call: {call.name} (ID: {call.call_id})")
        try:
            try:
                return await asyncio.wait_for(
                    registry.invoke(call.name, call.arguments, call.call_id),
                    timeout=self.tool_timeout,
                )
            except asyncio.TimeoutError as exc:
                msg = f"Tool '{call.name}' timed out after {self.tool_timeout} seconds."
                raise ProviderTimeoutError(msg) from exc
        except ProviderTimeoutError as exc:
            if self.abort_on_tool_timeout:
                raise
            logger.warning(str(exc))
            return ToolResult.failure(call, exc)
        except GatewayError as exc:
            if not exc.recoverable:
                raise
            logger.warning(f"Recoverable error in '{call.name}': {exc} ({type(exc).__name__})")
            return ToolResult.failure(call, exc)

    @staticmethod
    def _tool_message(result: ToolResult) -> ToolMessage:
        return ToolMessage(
            content=json.dumps(result.response, default=str, ensure_ascii=False),
            tool_call_id=result.call_id,
            name=result.name,
        )
