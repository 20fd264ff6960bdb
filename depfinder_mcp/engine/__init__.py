"""
Dependency resolution engine.

Walks the transitive shared-library closure of a root binary inside an
extracted firmware tree, gates expansion on persisted approve/reject
decisions, and indexes which binaries reference which libraries.
"""

from depfinder_mcp.engine.approval import ApprovalGate, FileApprovalStore, InMemoryApprovalStore
from depfinder_mcp.engine.catalog import FileCatalog
from depfinder_mcp.engine.decisions import (
    InteractiveDecisionProvider,
    PolicyDecisionProvider,
    RuleFileDecisionProvider,
    select_decision_provider,
)
from depfinder_mcp.engine.elf_reader import ElfMetadata, create_reader
from depfinder_mcp.engine.indexer import ReferenceIndexer, build_index
from depfinder_mcp.engine.models import ApprovalState, BinaryNode, ReferenceIndex, RunResult
from depfinder_mcp.engine.resolver import SonameResolver
from depfinder_mcp.engine.session import AnalysisSummary, query_references, run_analysis
from depfinder_mcp.engine.walker import DependencyWalker, ResolutionContext, resolve_dependencies

__all__ = [
    "AnalysisSummary",
    "ApprovalGate",
    "ApprovalState",
    "BinaryNode",
    "DependencyWalker",
    "ElfMetadata",
    "FileApprovalStore",
    "FileCatalog",
    "InMemoryApprovalStore",
    "InteractiveDecisionProvider",
    "PolicyDecisionProvider",
    "ReferenceIndex",
    "ReferenceIndexer",
    "ResolutionContext",
    "RuleFileDecisionProvider",
    "RunResult",
    "SonameResolver",
    "build_index",
    "create_reader",
    "query_references",
    "resolve_dependencies",
    "run_analysis",
    "select_decision_provider",
]
