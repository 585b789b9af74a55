from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class ToolDescriptor(BaseModel):
    """
    A tool as advertised by a tool-provider session.

    Attributes:
        name: The unique name of the tool.
        description: A brief description of what the tool does.
        input_schema: JSON schema of the tool's arguments, as reported by the provider.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    description: str = ""
    input_schema: Dict[str, Any] = Field(default_factory=lambda: {"type": "object", "properties": {}})


class ToolDefinition(BaseModel):
    """
    A registry entry: a descriptor bound to the session that can execute it.

    Attributes:
        name: The unique name of the tool.
        description: Description forwarded to the model.
        input_schema: The provider's schema, used to validate arguments before invocation.
        parameters: The sanitized schema sent to the model (refs inlined, metadata removed).
        invoker: The tool-provider session that owns this tool.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    description: str
    input_schema: Dict[str, Any]
    parameters: Optional[Dict[str, Any]] = None
    invoker: Any = None
