"""Expose in-process Python functions as a tool-provider session."""

from __future__ import annotations

import asyncio
import inspect
from typing import Annotated, Any, Callable, Dict, Iterable, List, Optional, Tuple, cast, get_args, get_origin

from pydantic import Field, create_model
from pydantic.fields import FieldInfo

from .models import ToolCall, ToolDescriptor, ToolResult
from .provider import ToolProviderFactory, ToolProviderSession
from .schema import SchemaValidator
from ..exceptions import ToolExecutionError, ToolValidationError
from ..logger import get_logger

logger = get_logger(__name__)


class LocalToolProvider(ToolProviderSession):
    """
    A tool provider backed by plain Python functions.

    Every tool needs a docstring and ``Annotated[Type, Field(description=...)]``
    parameters; the input schema is generated with pydantic. Sync functions run in
    a worker thread, coroutine functions are awaited.

    Example:
        provider = LocalToolProvider()

        @provider.tool
        def get_weather(location: Annotated[str, Field(description="City name")]) -> str:
            \"\"\"Get the current weather for a location.\"\"\"
            return "15°C, cloudy"
    """

    def __init__(self, tools: Iterable[Callable] = (), name: str = "local") -> None:
        super().__init__()
        self.name = name
        self._functions: Dict[str, Callable] = {}
        self._descriptors: Dict[str, ToolDescriptor] = {}
        for func in tools:
            self.add(func)

    def tool(self, func: Callable) -> Callable:
        """A decorator to turn a function into a tool of this provider.

        Args:
            func: The function to decorate.

        Returns:
            The original function, after adding it as a tool.
        """
        self.add(func)
        return func

    def add(self, func: Callable, name: Optional[str] = None, description: Optional[str] = None) -> ToolDescriptor:
        """Add a function as a tool.

        Args:
            func: The callable implementing the tool.
            name: Optional name override, defaults to the function name.
            description: Optional description override, defaults to the docstring.

        Returns:
            The generated tool descriptor.

        Raises:
            ToolValidationError: If the function lacks a docstring or parameter descriptions,
                or the name is already taken.
        """
        descriptor = self._generate_descriptor(func, name=name, description=description)
        if descriptor.name in self._descriptors:
            msg = f"Tool '{descriptor.name}' is already defined on provider '{self.name}'."
            logger.error(msg)
            raise ToolValidationError(msg)

        self._functions[descriptor.name] = func
        self._descriptors[descriptor.name] = descriptor
        logger.debug("Local tool '%s' added to provider '%s'.", descriptor.name, self.name)
        return descriptor

    def session_factory(self) -> ToolProviderFactory:
        """Return a factory producing fresh sessions that share this provider's tools."""

        def factory() -> "LocalToolProvider":
            session = LocalToolProvider(name=self.name)
            session._functions = self._functions
            session._descriptors = self._descriptors
            return session

        return factory

    async def _open(self) -> None:
        pass

    async def _close(self) -> None:
        pass

    async def list_tools(self) -> List[ToolDescriptor]:
        return list(self._descriptors.values())

    async def invoke(self, call: ToolCall) -> ToolResult:
        func = self._functions.get(call.name)
        if func is None:
            raise ToolExecutionError(f"Tool '{call.name}' is not provided by '{self.name}'.")

        arguments = call.arguments or {}
        logger.info("Executing local tool '%s'...", call.name)
        try:
            if inspect.iscoroutinefunction(func):
                output = await func(**arguments)
            else:
                output = await asyncio.to_thread(func, **arguments)
        except Exception as e:
            msg = f"Tool '{call.name}' failed: {e}"
            logger.warning("%s (%s)", msg, type(e).__name__)
            raise ToolExecutionError(msg) from e

        logger.info("Local tool '%s' executed successfully.", call.name)
        return ToolResult(call_id=call.call_id, name=call.name, output=output)

    @staticmethod
    def _generate_descriptor(
        func: Callable, name: Optional[str] = None, description: Optional[str] = None
    ) -> ToolDescriptor:
        tool_name = name or func.__name__

        if description is None:
            doc = inspect.getdoc(func)
            if not doc:
                msg = f"Tool '{tool_name}' missing docstring. LLMs need a description of what the tool does."
                logger.error(msg)
                raise ToolValidationError(msg)
            description = doc

        fields: Dict[str, Any] = {}
        for param_name, param in inspect.signature(func, eval_str=True).parameters.items():
            if param_name == "self":
                continue
            fields[param_name] = _parameter_field(param, tool_name)

        params_model = create_model(f"{tool_name}Params", **cast(Dict[str, Any], fields))
        raw_schema = params_model.model_json_schema()
        SchemaValidator.assert_no_recursive_refs(raw_schema)

        return ToolDescriptor(name=tool_name, description=description, input_schema=raw_schema)


def _parameter_field(param: inspect.Parameter, tool_name: str) -> Tuple[Any, FieldInfo]:
    """Build the ``(annotation, Field)`` pair ``create_model`` expects for one parameter.

    Every parameter needs ``Annotated[Type, Field(description=...)]``; constraints
    given in that Field (``ge``, ``le``, ...) are kept.

    Raises:
        ToolValidationError: For ``*args``/``**kwargs`` or a parameter without a description.
    """
    if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
        msg = f"Tool '{tool_name}' cannot take variadic parameter '{param.name}'."
        logger.error(msg)
        raise ToolValidationError(msg)

    description = None
    if get_origin(param.annotation) is Annotated:
        for metadata in get_args(param.annotation):
            if isinstance(metadata, FieldInfo) and metadata.description:
                description = metadata.description

    if not description:
        msg = (
            f"Parameter '{param.name}' in tool '{tool_name}' is missing a description.\n"
            f"Usage: {param.name}: Annotated[Type, Field(description='...')] = ..."
        )
        logger.error(msg)
        raise ToolValidationError(msg)

    default = param.default if param.default is not inspect.Parameter.empty else ...
    return param.annotation, Field(default=default, description=description)
