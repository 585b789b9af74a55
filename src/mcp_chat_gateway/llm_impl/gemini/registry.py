"""Adapt registered tools into Gemini function declarations."""

from google.genai import types

from mcp_chat_gateway.llm_core import ToolRegistry
from .schema_sanitizer import sanitize


class GeminiToolRegistry(ToolRegistry):
    """
    A specialized ToolRegistry for Google Gemini models.

    This class extends the base ToolRegistry to provide Gemini-specific
    tool object generation, which is required for integrating tools
    with the Google GenAI client.
    """

    @property
    def tool_object(self) -> types.Tool | None:
        """
        Generates a `types.Tool` object suitable for the Gemini API
        based on the registered tools.

        Returns:
            A `types.Tool` object containing all registered function declarations,
            or None if no tools are registered.
        """
        if not self.tools:
            return None

        declarations = []
        for tool in self.tools.values():
            if tool.parameters and tool.parameters.get("properties"):
                declarations.append(
                    types.FunctionDeclaration(
                        name=tool.name,
                        description=tool.description,
                        parameters=sanitize(tool.parameters),  # type: ignore[arg-type]
                    )
                )
            else:
                # Gemini rejects object schemas without properties.
                declarations.append(types.FunctionDeclaration(name=tool.name, description=tool.description))

        return types.Tool(function_declarations=declarations)
