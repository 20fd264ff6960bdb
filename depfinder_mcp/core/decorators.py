"""
Decorators for common tool execution patterns.

Centralizes start/finish logging and execution time measurement for the
MCP tool functions.
"""

import functools
import time
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

from depfinder_mcp.core.logging_config import get_logger
from depfinder_mcp.core.result import ToolResult, failure

logger = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

_PATH_ARGUMENTS = ("file_path", "root_binary", "search_root", "output_dir")


def _extract_file_name(args: tuple, kwargs: dict) -> Optional[str]:
    for arg_name in _PATH_ARGUMENTS:
        if arg_name in kwargs and kwargs[arg_name]:
            return Path(str(kwargs[arg_name])).name
    if args and isinstance(args[0], (str, Path)):
        return Path(str(args[0])).name
    return None


def _finish(result: Any, log_extra: dict, tool_name: str, start_time: float) -> Any:
    execution_time = int((time.time() - start_time) * 1000)
    if hasattr(result, "metadata"):
        if result.metadata is None:
            result.metadata = {}
        result.metadata["execution_time_ms"] = execution_time
    log_extra["execution_time_ms"] = execution_time
    logger.info(f"{tool_name} completed", extra=log_extra)
    return result


def _fail(exc: Exception, log_extra: dict, tool_name: str, start_time: float) -> ToolResult:
    log_extra["execution_time_ms"] = int((time.time() - start_time) * 1000)
    logger.error(f"{tool_name} failed", extra=log_extra, exc_info=True)
    return failure(
        "INTERNAL_ERROR",
        f"{tool_name} failed: {exc}",
        exception_type=type(exc).__name__,
    )


def log_execution(tool_name: Optional[str] = None) -> Callable[[F], F]:
    """
    Decorator to add logging and execution timing to tool functions.

    This decorator:
    - Logs function start and completion
    - Measures execution time and stores it in the result metadata
    - Converts escaped exceptions into an INTERNAL_ERROR failure
    - Extracts a file name from path-like arguments for the log record

    Args:
        tool_name: Name of the tool (defaults to function name)
    """

    def decorator(func: F) -> F:
        actual_tool_name = tool_name or func.__name__

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> ToolResult:
            start_time = time.time()
            log_extra = {"tool_name": actual_tool_name}
            file_name = _extract_file_name(args, kwargs)
            if file_name:
                log_extra["file_name"] = file_name
            logger.info(f"Starting {actual_tool_name}", extra=log_extra)
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                return _fail(exc, log_extra, actual_tool_name, start_time)
            return _finish(result, log_extra, actual_tool_name, start_time)

        return wrapper  # type: ignore

    return decorator
