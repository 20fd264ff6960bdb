"""
Core utilities for depfinder_mcp.

Configuration, logging, exceptions, path validation and subprocess execution
shared by the engine, the command line and the MCP tools.
"""

from depfinder_mcp.core.decorators import log_execution
from depfinder_mcp.core.exceptions import (
    DepFinderError,
    ExecutionTimeoutError,
    OutputRootUnavailableError,
    SearchRootUnavailableError,
    ToolNotFoundError,
    ValidationError,
)
from depfinder_mcp.core.execution import (
    execute_subprocess_async,
    execute_subprocess_streaming,
)
from depfinder_mcp.core.logging_config import get_logger, setup_logging
from depfinder_mcp.core.security import validate_file_path, validate_search_root

__all__ = [
    "DepFinderError",
    "ToolNotFoundError",
    "ExecutionTimeoutError",
    "OutputRootUnavailableError",
    "SearchRootUnavailableError",
    "ValidationError",
    "execute_subprocess_streaming",
    "execute_subprocess_async",
    "validate_file_path",
    "validate_search_root",
    "get_logger",
    "setup_logging",
    "log_execution",
]
