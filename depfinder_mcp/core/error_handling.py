"""Shared error handling utilities for tool wrappers."""

from __future__ import annotations

from collections.abc import Callable
from functools import wraps
from typing import TypeVar

from depfinder_mcp.core.exceptions import (
    DepFinderError,
    ExecutionTimeoutError,
    OutputRootUnavailableError,
    SearchRootUnavailableError,
    ToolNotFoundError,
    ValidationError,
)
from depfinder_mcp.core.logging_config import get_logger
from depfinder_mcp.core.result import ToolResult, failure

logger = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., ToolResult])


def _handle_exception(exc: Exception, tool_name: str) -> ToolResult:
    """Convert common exceptions into ToolResult failures.

    Args:
        exc: The exception to handle
        tool_name: Name of the tool that raised the exception

    Returns:
        ToolResult with appropriate error code and message
    """
    if isinstance(exc, ToolNotFoundError):
        hint = "Install with: apt-get install binutils" if exc.tool_name.endswith("objdump") else None
        return failure("TOOL_NOT_FOUND", str(exc), hint=hint)

    if isinstance(exc, ExecutionTimeoutError):
        return failure(
            "TIMEOUT",
            f"Command timed out after {exc.timeout_seconds} seconds",
            timeout_seconds=exc.timeout_seconds,
        )

    if isinstance(exc, ValidationError):
        return failure(
            "VALIDATION_ERROR",
            str(exc),
            hint="Check that the paths exist and point to the right kind of entry",
            details=exc.details,
        )

    if isinstance(exc, SearchRootUnavailableError):
        return failure(
            "SEARCH_ROOT_UNAVAILABLE",
            str(exc),
            hint="Point search_root at the extracted firmware image directory",
            path=str(exc.path),
        )

    if isinstance(exc, OutputRootUnavailableError):
        return failure("OUTPUT_ROOT_UNAVAILABLE", str(exc), path=str(exc.path))

    if isinstance(exc, DepFinderError):
        return failure(exc.error_type, str(exc), error_code_id=exc.error_code)

    logger.exception("Unexpected error in tool '%s'", tool_name)
    return failure(
        "INTERNAL_ERROR",
        f"{tool_name} failed: {exc}",
        exception_type=exc.__class__.__name__,
    )


def handle_tool_errors(func: F) -> F:
    """Wrap a tool function so exceptions are returned as ``ToolError`` results."""
    tool_name = func.__name__

    @wraps(func)
    def sync_wrapper(*args, **kwargs) -> ToolResult:
        try:
            return func(*args, **kwargs)
        except Exception as exc:
            return _handle_exception(exc, tool_name)

    return sync_wrapper  # type: ignore
