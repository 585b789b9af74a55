"""Data models for tool execution."""

from __future__ import annotations

import uuid
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


def _new_call_id() -> str:
    return f"call_{uuid.uuid4().hex[:24]}"


class ToolCall(BaseModel):
    """Represents a normalized tool call request from a model response."""

    model_config = ConfigDict(frozen=True)

    name: str
    arguments: Any = None
    call_id: str = Field(default_factory=_new_call_id)


class ToolResult(BaseModel):
    """Represents the outcome of executing a tool call."""

    model_config = ConfigDict(frozen=True)

    call_id: str
    name: str
    output: Any = None
    error: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @property
    def response(self) -> Dict[str, Any]:
        """The payload handed back to the model."""
        if self.error is not None:
            return {"error": self.error}
        return {"result": self.output}

    @classmethod
    def failure(cls, call: ToolCall, error: BaseException | str) -> "ToolResult":
        """Synthesize an error result for ``call``."""
        return cls(call_id=call.call_id, name=call.name, error=str(error))
