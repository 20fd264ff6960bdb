"""
Custom exception classes for depfinder_mcp.

All exceptions inherit from DepFinderError to allow for centralized
exception handling in the CLI and at the MCP server level.
"""

from pathlib import Path
from typing import Optional


class DepFinderError(Exception):
    """Base exception for all depfinder_mcp errors."""

    error_code: str = "DEPF-E000"
    error_type: str = "UNKNOWN_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        error_type: Optional[str] = None,
    ):
        self.message = message
        if error_code:
            self.error_code = error_code
        if error_type:
            self.error_type = error_type
        super().__init__(message)


class ValidationError(DepFinderError):
    """Raised when input validation fails."""

    error_code = "DEPF-E001"
    error_type = "VALIDATION_ERROR"

    def __init__(self, message: str, details: Optional[dict] = None):
        self.details = details or {}
        super().__init__(message, self.error_code, self.error_type)


class ExecutionTimeoutError(DepFinderError):
    """Raised when a subprocess execution exceeds the timeout limit."""

    error_code = "DEPF-E002"
    error_type = "TIMEOUT_ERROR"

    def __init__(self, timeout_seconds: int):
        self.timeout_seconds = timeout_seconds
        message = f"Operation timed out after {timeout_seconds} seconds."
        super().__init__(message, self.error_code, self.error_type)


class ToolNotFoundError(DepFinderError):
    """Raised when a required CLI tool is not found in the system."""

    error_code = "DEPF-E003"
    error_type = "TOOL_ERROR"

    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        message = f"Tool '{tool_name}' not found. Please install it."
        super().__init__(message, self.error_code, self.error_type)


class SearchRootUnavailableError(DepFinderError):
    """Raised when the extracted firmware root cannot be read."""

    error_code = "DEPF-E010"
    error_type = "SEARCH_ROOT_ERROR"

    def __init__(self, path: Path, reason: str = "not a readable directory"):
        self.path = path
        super().__init__(f"Search root {path} is {reason}", self.error_code, self.error_type)


class OutputRootUnavailableError(DepFinderError):
    """Raised when the output directory cannot be created or written."""

    error_code = "DEPF-E011"
    error_type = "OUTPUT_ROOT_ERROR"

    def __init__(self, path: Path, reason: str = "not writable"):
        self.path = path
        super().__init__(f"Output directory {path} is {reason}", self.error_code, self.error_type)


class ApprovalStateError(DepFinderError):
    """Raised when the approval state files cannot be persisted."""

    error_code = "DEPF-E012"
    error_type = "STATE_ERROR"
