"""Fragments: the smallest units of streamed turn output."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from ..exceptions import ErrorKind, classify
from ..tools.models import ToolCall, ToolResult


class FragmentKind(str, Enum):
    TEXT = "text"
    TOOL_CALL_REQUESTED = "tool_call_requested"
    TOOL_RESULT = "tool_result"
    DONE = "done"
    ERROR = "error"


class ErrorInfo(BaseModel):
    """A classified error as reported to the caller."""

    model_config = ConfigDict(frozen=True)

    kind: ErrorKind
    message: str

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ErrorInfo":
        return cls(kind=classify(exc), message=str(exc) or type(exc).__name__)


class Fragment(BaseModel):
    """
    One unit of turn output.

    Exactly one payload field is set, matching ``kind``: ``text`` for text and done
    (the assembled assistant message), ``tool_call`` for tool_call_requested,
    ``tool_result`` for tool_result and ``error`` for error. ``sequence`` numbers
    fragments in emission order within a turn.
    """

    model_config = ConfigDict(frozen=True)

    kind: FragmentKind
    sequence: int = 0
    text: Optional[str] = None
    tool_call: Optional[ToolCall] = None
    tool_result: Optional[ToolResult] = None
    error: Optional[ErrorInfo] = None

    @property
    def is_terminal(self) -> bool:
        return self.kind in (FragmentKind.DONE, FragmentKind.ERROR)

    @classmethod
    def text_delta(cls, text: str, sequence: int = 0) -> "Fragment":
        return cls(kind=FragmentKind.TEXT, text=text, sequence=sequence)

    @classmethod
    def tool_call_requested(cls, call: ToolCall, sequence: int = 0) -> "Fragment":
        return cls(kind=FragmentKind.TOOL_CALL_REQUESTED, tool_call=call, sequence=sequence)

    @classmethod
    def tool_result_ready(cls, result: ToolResult, sequence: int = 0) -> "Fragment":
        return cls(kind=FragmentKind.TOOL_RESULT, tool_result=result, sequence=sequence)

    @classmethod
    def done(cls, text: str, sequence: int = 0) -> "Fragment":
        return cls(kind=FragmentKind.DONE, text=text, sequence=sequence)

    @classmethod
    def failure(cls, exc: BaseException, sequence: int = 0) -> "Fragment":
        return cls(kind=FragmentKind.ERROR, error=ErrorInfo.from_exception(exc), sequence=sequence)
