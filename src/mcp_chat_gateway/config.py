"""Runtime settings of the gateway's entry points."""

import os
import shlex
from typing import Any, Dict, List, Literal, Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from mcp_chat_gateway.llm_core import get_logger
from mcp_chat_gateway.mcp_wrapper import ProviderConfig

logger = get_logger(__name__)

ENV_PREFIX = "GATEWAY_"

# Provider-specific variables consulted when GATEWAY_API_KEY is unset.
_API_KEY_FALLBACKS: Dict[str, tuple] = {
    "openai": ("OPENAI_API_KEY",),
    "azure": ("AZURE_OPENAI_API_KEY",),
    "gemini": ("GOOGLE_API_KEY", "GEMINI_API_KEY"),
}


class GatewaySettings(BaseModel):
    """
    Settings for building a ChatGateway and serving it.

    The core never reads the environment itself; entry points build settings with
    ``from_env`` and inject them.

    Attributes:
        llm_provider: Chat model backend: ``openai``, ``azure`` (Azure OpenAI) or ``gemini``.
        model: Model name, or the deployment name on Azure.
        api_key: Credential of the model backend.
        base_url: Optional OpenAI-compatible endpoint.
        azure_endpoint: Azure OpenAI resource endpoint.
        api_version: Azure OpenAI API version.
        system_instruction: Persona handed to the model on every turn.
        temperature: Sampling temperature.
        max_tokens: Token limit per model step.
        max_retries: Retries when opening a model stream fails.
        max_tool_iterations: Tool rounds allowed per turn.
        tool_timeout: Seconds a single tool invocation may take.
        abort_on_tool_timeout: Fail the turn on a tool timeout instead of telling the model.
        provider_command: Executable of the MCP server.
        provider_args: Arguments of the MCP server command.
        provider_name: Display name of the MCP server.
        provider_startup_timeout: Seconds allowed for the MCP handshake.
        provider_call_timeout: Seconds a single MCP request may take.
        emit_tool_events: Forward tool activity as SSE events.
        cors_origins: Origins allowed by the HTTP server.
        host: Bind address of the HTTP server.
        port: Port of the HTTP server.
    """

    llm_provider: Literal["openai", "azure", "gemini"] = "openai"
    model: str = "gpt-4o"
    api_key: Optional[str] = Field(default=None, repr=False)
    base_url: Optional[str] = None
    azure_endpoint: Optional[str] = None
    api_version: str = "2024-10-21"
    system_instruction: str = "Answer questions about the weather."
    temperature: float = 1.0
    max_tokens: int = Field(default=3000, gt=0)
    max_retries: int = Field(default=3, ge=0)
    max_tool_iterations: int = Field(default=8, ge=0)
    tool_timeout: float = Field(default=180.0, gt=0)
    abort_on_tool_timeout: bool = True
    provider_command: str = "npx"
    provider_args: List[str] = Field(default_factory=lambda: ["-y", "@azure/mcp@latest", "server", "start"])
    provider_name: str = "Azure MCP"
    provider_startup_timeout: float = Field(default=60.0, gt=0)
    provider_call_timeout: float = Field(default=60.0, gt=0)
    emit_tool_events: bool = False
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    host: str = "0.0.0.0"
    port: int = 8000

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, *, load_env_file: bool = True) -> "GatewaySettings":
        """
        Build settings from ``GATEWAY_*`` environment variables.

        Args:
            environ: Variables to read; defaults to ``os.environ``.
            load_env_file: Load a ``.env`` file into the process environment first.

        Returns:
            The validated settings. Unset or empty variables keep their defaults.

        Raises:
            pydantic.ValidationError: If a variable cannot be converted.
        """
        if load_env_file:
            load_dotenv()
        env = os.environ if environ is None else environ

        values: Dict[str, Any] = {}
        for field_name in cls.model_fields:
            raw = env.get(f"{ENV_PREFIX}{field_name.upper()}")
            if raw is None or not raw.strip():
                continue
            if field_name == "provider_args":
                values[field_name] = shlex.split(raw)
            elif field_name == "cors_origins":
                values[field_name] = [origin.strip() for origin in raw.split(",") if origin.strip()]
            else:
                values[field_name] = raw.strip()

        if "api_key" not in values:
            provider = values.get("llm_provider", cls.model_fields["llm_provider"].default)
            for name in _API_KEY_FALLBACKS.get(provider, ()):
                if env.get(name):
                    values["api_key"] = env[name]
                    break

        settings = cls(**values)
        logger.debug("Loaded settings: %r", settings)
        return settings

    def provider_config(self) -> ProviderConfig:
        """Launch parameters of the MCP server."""
        return ProviderConfig(
            command=self.provider_command,
            args=self.provider_args,
            name=self.provider_name,
            startup_timeout=self.provider_startup_timeout,
            call_timeout=self.provider_call_timeout,
        )
