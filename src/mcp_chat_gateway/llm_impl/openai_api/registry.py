"""Render registered tools as OpenAI function-calling definitions."""

from typing import Any, Dict, List

from mcp_chat_gateway.llm_core import ToolRegistry


class OpenAIToolRegistry(ToolRegistry):
    """
    A specialized ToolRegistry for OpenAI models (including Azure OpenAI deployments).

    This class extends the base ToolRegistry to provide OpenAI-specific
    tool object generation for the Chat Completions API.
    """

    @property
    def tool_object(self) -> List[Dict[str, Any]] | None:
        """
        Generates a list of tool definitions suitable for the OpenAI API
        based on the registered tools.

        Returns:
            A list of tool dictionaries, or None if no tools are registered.
        """
        if not self.tools:
            return None

        tools_list = []
        for tool in self.tools.values():
            function_def: Dict[str, Any] = {
                "name": tool.name,
                "description": tool.description,
            }

            if tool.parameters:
                function_def["parameters"] = tool.parameters
            else:
                # OpenAI expects a JSON schema even for tools without arguments.
                function_def["parameters"] = {"type": "object", "properties": {}}

            tools_list.append({"type": "function", "function": function_def})

        return tools_list
