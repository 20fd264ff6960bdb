"""Base class for tool plugins registered with the MCP server."""

from abc import ABC, abstractmethod
from typing import Any


class Plugin(ABC):
    """A group of tools that registers itself on a FastMCP server."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique plugin name."""

    @property
    def description(self) -> str:
        return ""

    @abstractmethod
    def register(self, mcp_server: Any) -> None:
        """Register the plugin's tools on ``mcp_server``."""
