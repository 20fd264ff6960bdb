"""MCP tools over the dependency resolution engine."""

from typing import Any, Optional

from depfinder_mcp.core.config import get_config
from depfinder_mcp.core.decorators import log_execution
from depfinder_mcp.core.error_handling import handle_tool_errors
from depfinder_mcp.core.exceptions import ValidationError
from depfinder_mcp.core.plugin import Plugin
from depfinder_mcp.core.result import ReferenceEntry, ToolResult, success
from depfinder_mcp.core.security import clean_path, validate_file_path
from depfinder_mcp.engine import session
from depfinder_mcp.engine.approval import FileApprovalStore
from depfinder_mcp.engine.decisions import select_decision_provider
from depfinder_mcp.engine.elf_reader import create_reader, looks_like_elf


@log_execution(tool_name="find_dependencies")
@handle_tool_errors
def find_dependencies(
    root_binary: str,
    search_root: str,
    output_dir: str,
    references: bool = True,
    policy: Optional[str] = None,
) -> ToolResult:
    """
    Resolve the shared-library closure of a binary inside an extracted firmware tree.

    Dependencies are copied under ``output_dir/MAIN_ANALYSIS`` preserving their
    path in the image, and a DOT graph, missing-dependency list and reference
    report are written next to them. Libraries seen for the first time are
    decided by the configured non-interactive policy (or ``policy``):
    ``approve``, ``reject`` or ``defer``. Deferred libraries are copied but
    not expanded and are listed as ``undecided``; approve or reject them with
    the command line and run again.

    Args:
        root_binary: Path of the binary to analyze
        search_root: Extracted firmware image directory
        output_dir: Output directory (relative paths go under the workspace)
        references: Also index and report the binaries referencing each approved library
        policy: Decision policy override for newly discovered libraries
    """
    config = get_config()
    provider = select_decision_provider(config, interactive=False, policy=policy)
    summary = session.run_analysis(
        root_binary,
        search_root,
        config.resolve_output_dir(clean_path(output_dir)),
        provider=provider,
        config=config,
        references=references,
    )
    return success(summary.to_dict(), passes=summary.run.passes)


@log_execution(tool_name="query_references")
@handle_tool_errors
def query_references(search_root: str, libraries: list[str]) -> ToolResult:
    """
    List the binaries under ``search_root`` that declare each library as NEEDED.

    Args:
        search_root: Extracted firmware image directory
        libraries: Library names, e.g. ``["libcamera_client.so"]``
    """
    if not libraries:
        raise ValidationError("At least one library name is required")

    found = session.query_references(search_root, libraries, config=get_config())
    entries: list[ReferenceEntry] = [
        {
            "library": name,
            "referenced_by": [str(path) for path in paths],
            "count": len(paths),
        }
        for name, paths in found.items()
    ]
    return success({"references": entries}, library_count=len(entries))


@log_execution(tool_name="read_elf_dependencies")
@handle_tool_errors
def read_elf_dependencies(file_path: str) -> ToolResult:
    """
    Read the NEEDED entries and RUNPATH/RPATH hints of one binary.

    Non-ELF or unparsable files report empty lists rather than an error.
    """
    path = validate_file_path(file_path)
    metadata = create_reader(get_config()).read(path)
    return success(
        {
            "file": str(path),
            "is_elf": looks_like_elf(path),
            "needed": list(metadata.needed),
            "runpaths": list(metadata.runpaths),
        }
    )


@log_execution(tool_name="list_approvals")
@handle_tool_errors
def list_approvals(output_dir: str) -> ToolResult:
    """Show the approved and rejected library names persisted in ``output_dir``."""
    directory = get_config().resolve_output_dir(clean_path(output_dir))
    if not directory.is_dir():
        raise ValidationError(
            f"Output directory does not exist: {directory}",
            details={"path": str(directory)},
        )
    store = FileApprovalStore.open(directory)
    return success(
        {
            "output_dir": str(directory),
            "approved": sorted(store.approved),
            "rejected": sorted(store.rejected),
        }
    )


class DependencyToolsPlugin(Plugin):
    """Plugin for firmware dependency resolution tools."""

    @property
    def name(self) -> str:
        return "dependency_tools"

    @property
    def description(self) -> str:
        return "Resolve shared-library dependencies and reverse references in firmware images."

    def register(self, mcp_server: Any) -> None:
        """Register dependency tools."""
        mcp_server.tool(find_dependencies)
        mcp_server.tool(query_references)
        mcp_server.tool(read_elf_dependencies)
        mcp_server.tool(list_approvals)
