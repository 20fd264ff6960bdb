"""
Tool definitions for depfinder_mcp.

Each module exposes plain tool functions returning ``ToolResult`` plus a
``Plugin`` subclass that the server discovers and registers.
"""

from depfinder_mcp.tools import dependency_tools

__all__ = ["dependency_tools"]
