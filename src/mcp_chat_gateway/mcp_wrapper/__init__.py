from .wrapper import MCPToolProvider, ProviderConfig

__all__ = ["MCPToolProvider", "ProviderConfig"]
