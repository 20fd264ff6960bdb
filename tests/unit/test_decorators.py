"""
Unit tests for core.decorators module.
"""

from unittest.mock import patch

from depfinder_mcp.core.decorators import log_execution
from depfinder_mcp.core.exceptions import ValidationError
from depfinder_mcp.core.result import ToolError, ToolResult, success


class TestLogExecutionDecorator:
    """Test cases for log_execution decorator."""

    @patch("depfinder_mcp.core.decorators.logger")
    def test_successful_execution_logging(self, mock_logger):
        """Test that successful execution is logged correctly."""

        @log_execution(tool_name="test_tool")
        def dummy_function(file_path: str) -> ToolResult:
            return success("success")

        result = dummy_function("/tmp/test.bin")

        assert result.status == "success"
        assert result.data == "success"
        assert mock_logger.info.call_count == 2  # Start and completion
        first_call = mock_logger.info.call_args_list[0]
        assert first_call[1]["extra"]["file_name"] == "test.bin"
        assert "execution_time_ms" in result.metadata

    @patch("depfinder_mcp.core.decorators.logger")
    def test_file_name_from_keyword_argument(self, mock_logger):
        @log_execution()
        def find(root_binary: str, search_root: str) -> ToolResult:
            return success({})

        find(root_binary="/image/system/bin/app", search_root="/image")

        first_call = mock_logger.info.call_args_list[0]
        assert first_call[1]["extra"]["file_name"] == "app"
        assert first_call[1]["extra"]["tool_name"] == "find"

    @patch("depfinder_mcp.core.decorators.logger")
    def test_validation_error_handling(self, mock_logger):
        """Escaped exceptions become INTERNAL_ERROR results."""

        @log_execution(tool_name="test_tool")
        def dummy_function(file_path: str) -> str:
            raise ValidationError("Invalid path")

        result = dummy_function("/tmp/test.bin")

        assert isinstance(result, ToolError)
        assert result.error_code == "INTERNAL_ERROR"
        assert "Invalid path" in result.message
        assert mock_logger.error.called

    def test_preserves_function_metadata(self):
        @log_execution()
        def documented(file_path: str) -> ToolResult:
            """Docstring survives."""
            return success("ok")

        assert documented.__name__ == "documented"
        assert documented.__doc__ == "Docstring survives."
