"""Tool registry abstraction: a per-session mapping from tool name to schema and invoke handle."""

import json
from abc import abstractmethod, ABC
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..models import ToolCall, ToolDefinition, ToolDescriptor, ToolResult
from ..provider import ToolProviderSession
from ..schema import SchemaValidator
from ...exceptions import ToolRegistrationError, ToolValidationError, UnknownToolError
from ...logger import get_logger

logger = get_logger(__name__)


class ToolRegistry(ABC):
    """
    A central registry of the tools the model may call during a session.

    The registry holds the schemas to be sent to the LLM and maps tool names to
    the session that executes them. It is rebuilt as a whole from a session's tool
    listing and never patched incrementally.
    """

    def __init__(self) -> None:
        """Initialize an empty ToolRegistry."""
        self.tools: Dict[str, ToolDefinition] = {}

    def register(self, descriptors: Sequence[ToolDescriptor], invoker: ToolProviderSession) -> None:
        """
        Replace the entire registry with the given tool descriptors.

        Registration is transactional: every descriptor is checked and converted
        before the mapping is swapped in. On any error the previous mapping stays
        in place.

        Args:
            descriptors: The tool listing of the session.
            invoker: The session that owns and executes these tools.

        Raises:
            ToolRegistrationError: If a name is duplicated or a schema is unusable.
        """
        staged: Dict[str, ToolDefinition] = {}
        for descriptor in descriptors:
            if descriptor.name in staged:
                msg = f"Tool '{descriptor.name}' is listed more than once."
                logger.error(msg)
                raise ToolRegistrationError(msg)
            staged[descriptor.name] = self._build_definition(descriptor, invoker)

        self.tools = staged
        logger.info("Registry rebuilt with %d tool(s): %s", len(staged), ", ".join(staged) or "<none>")

    def clear(self) -> None:
        """Drop all tools, e.g. once the owning session has closed."""
        self.tools = {}

    def resolve(self, name: str) -> ToolDefinition:
        """Look up a tool by name.

        Args:
            name: The tool name requested by the model.

        Returns:
            The matching tool definition.

        Raises:
            UnknownToolError: If the tool does not exist in the registry.
        """
        try:
            return self.tools[name]
        except KeyError:
            available = ", ".join(sorted(self.tools)) or "<none>"
            raise UnknownToolError(f"Tool '{name}' not found in registry. Available tools: {available}.") from None

    async def invoke(self, name: str, arguments: Any, call_id: Optional[str] = None) -> ToolResult:
        """Execute a tool through its owning session.

        Arguments are normalized and validated against the tool's input schema first.

        Args:
            name: The tool name.
            arguments: Raw arguments (dict, JSON string or None).
            call_id: Correlation token of the originating call.

        Returns:
            The tool result reported by the session.

        Raises:
            UnknownToolError: If the tool does not exist.
            ToolValidationError: If the arguments are malformed or violate the schema.
        """
        tool = self.resolve(name)
        function_args = self._normalize_function_args(name, arguments)
        SchemaValidator.validate_arguments(tool.input_schema, function_args, name)

        if call_id:
            call = ToolCall(name=name, arguments=function_args, call_id=call_id)
        else:
            call = ToolCall(name=name, arguments=function_args)
        logger.debug("Delegating tool '%s' (ID: %s) to session.", name, call.call_id)
        return await tool.invoker.invoke(call)

    @property
    def descriptors(self) -> List[ToolDescriptor]:
        """The registered tools as provider-agnostic descriptors, in listing order."""
        return [
            ToolDescriptor(name=t.name, description=t.description, input_schema=t.input_schema)
            for t in self.tools.values()
        ]

    @property
    @abstractmethod
    def tool_object(self) -> Any:
        """Constructs the final tool object specific to the LLM provider.

        Returns:
            The provider-specific tool representation, or None when empty.
        """
        pass

    @staticmethod
    def _build_definition(descriptor: ToolDescriptor, invoker: ToolProviderSession) -> ToolDefinition:
        schema = descriptor.input_schema
        try:
            SchemaValidator.assert_object_schema(schema, descriptor.name)
            SchemaValidator.assert_no_recursive_refs(schema)
            parameters = SchemaValidator.sanitize_schema(SchemaValidator.resolve_refs(schema))
        except ToolValidationError as e:
            raise ToolRegistrationError(str(e)) from e
        except Exception as e:
            msg = f"Could not process the schema of tool '{descriptor.name}': {e}"
            logger.error(msg)
            raise ToolRegistrationError(msg) from e

        description = descriptor.description or f"Tool {descriptor.name} provided by {invoker.name}."
        return ToolDefinition(
            name=descriptor.name,
            description=description,
            input_schema=schema,
            parameters=parameters,
            invoker=invoker,
        )

    @staticmethod
    def _normalize_function_args(tool_name: str, raw_args: Any) -> Dict[str, Any]:
        """Normalize tool arguments into a dictionary.

        Handles JSON strings, mappings, or None values.

        Raises:
            ToolValidationError: If arguments cannot be parsed or are not an object.
        """
        if raw_args is None or raw_args == "":
            return {}

        if isinstance(raw_args, Mapping):
            return dict(raw_args)

        if isinstance(raw_args, str):
            try:
                parsed = json.loads(raw_args)
            except json.JSONDecodeError as exc:
                raise ToolValidationError(f"Failed to parse arguments for tool '{tool_name}': {exc}") from exc

            if parsed is None:
                return {}

            if not isinstance(parsed, dict):
                raise ToolValidationError(
                    f"Failed to parse arguments for tool '{tool_name}': arguments must decode to a JSON object."
                )
            return parsed

        raise ToolValidationError(
            f"Failed to parse arguments for tool '{tool_name}': unsupported type {type(raw_args).__name__}."
        )
