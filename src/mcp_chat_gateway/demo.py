"""In-process weather tools for trying the gateway without an MCP server."""

from typing import Annotated

from pydantic import Field

from mcp_chat_gateway.llm_core import LocalToolProvider

_CONDITIONS = ("sunny", "cloudy", "light rain", "windy", "overcast")


def get_weather(
    location: Annotated[str, Field(description="City name, e.g. 'Berlin'")],
    unit: Annotated[str, Field(description="Temperature unit, 'celsius' or 'fahrenheit'")] = "celsius",
) -> str:
    """Get the current weather for a location."""
    seed = sum(ord(ch) for ch in location.lower())
    celsius = 5 + seed % 20
    condition = _CONDITIONS[seed % len(_CONDITIONS)]
    if unit.lower().startswith("f"):
        return f"{location}: {round(celsius * 9 / 5 + 32)}°F, {condition}"
    return f"{location}: {celsius}°C, {condition}"


def weather_provider() -> LocalToolProvider:
    """A provider offering the demo weather tool."""
    return LocalToolProvider([get_weather], name="demo-weather")
