"""One complete analysis: walk the closure, index references, project outputs."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

from depfinder_mcp.core.config import Config, get_config
from depfinder_mcp.core.logging_config import get_logger
from depfinder_mcp.core.security import (
    prepare_output_root,
    validate_file_path,
    validate_search_root,
)
from depfinder_mcp.engine.approval import ApprovalGate, FileApprovalStore
from depfinder_mcp.engine.catalog import FileCatalog
from depfinder_mcp.engine.decisions import DecisionProvider, PolicyDecisionProvider
from depfinder_mcp.engine.elf_reader import CachingMetadataReader, MetadataReader, create_reader
from depfinder_mcp.engine.indexer import ReferenceIndexer
from depfinder_mcp.engine.models import BinaryNode, ReferenceIndex, RunResult
from depfinder_mcp.engine.projector import OutputProjector
from depfinder_mcp.engine.resolver import SonameResolver
from depfinder_mcp.engine.walker import ResolutionContext, resolve_dependencies

logger = get_logger(__name__)


@dataclass
class AnalysisSummary:
    run: RunResult
    statistics: dict[str, Any]
    artifacts: dict[str, Path] = field(default_factory=dict)
    index: ReferenceIndex | None = None

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly view used for ``analysis_summary.json`` and tool results."""
        final = self.run.final_pass
        return {
            "root_binary": str(self.run.root.canonical_path),
            "search_root": str(self.run.search_root),
            "output_dir": str(self.run.output_root),
            "statistics": self.statistics,
            "approved": sorted(self.run.approved),
            "rejected": sorted(self.run.rejected),
            "undecided": sorted(self.run.undecided),
            "missing": {
                name: sorted(str(p) for p in dep.referenced_by)
                for name, dep in sorted(final.missing.items())
            },
            "copy_failures": {str(p): reason for p, reason in sorted(final.copy_failures.items())},
            "artifacts": {name: str(path) for name, path in self.artifacts.items()},
        }


def _statistics(run: RunResult, index: ReferenceIndex | None) -> dict[str, Any]:
    final = run.final_pass
    stats: dict[str, Any] = {
        "passes": run.passes,
        "libraries_processed": len(final.instances),
        "instances_found": final.instance_count,
        "files_copied": len(final.copied),
        "copy_failures": len(final.copy_failures),
        "missing": len(final.missing),
        "rejected_edges": len(final.rejected_edges),
        "undecided": len(run.undecided),
        "discarded": len(run.discarded),
    }
    if index is not None:
        stats["index_libraries"] = len(index)
        stats["index_files_scanned"] = index.scanned
        stats["index_failures"] = index.failures
    return stats


def run_analysis(
    root_binary: str | Path,
    search_root: str | Path,
    output_dir: str | Path,
    provider: DecisionProvider | None = None,
    config: Config | None = None,
    references: bool = True,
    backend: str | None = None,
    workers: int | None = None,
    reader: MetadataReader | None = None,
) -> AnalysisSummary:
    """
    Resolve the dependency closure of ``root_binary`` inside ``search_root``.

    Only an unusable search root or output root aborts the run; every per-file
    problem ends up in the returned statistics.

    Args:
        root_binary: Binary whose dependencies are resolved
        search_root: Extracted firmware image directory
        output_dir: Where copies, reports and the approval state are written
        provider: Decision provider for pending libraries (default: configured policy)
        config: Configuration override
        references: Build the reference index and the REFERENCES report
        backend: ELF reader backend override (``lief`` or ``objdump``)
        workers: Reference index worker count override
        reader: Metadata reader override (tests)
    """
    config = config or get_config()
    root_path = validate_file_path(root_binary)
    search = validate_search_root(search_root)
    output = prepare_output_root(output_dir)
    if output == search or search in output.parents:
        logger.warning(f"Output directory {output} lies inside the search root {search}")

    provider = provider or PolicyDecisionProvider(config.decision_policy)
    catalog = FileCatalog.build(search)
    cached = CachingMetadataReader(reader or create_reader(config, backend))
    root = BinaryNode(root_path)
    store = FileApprovalStore.open(output)
    projector = OutputProjector(search, output)
    context = ResolutionContext(
        search_root=search,
        reader=cached,
        resolver=SonameResolver(cached, catalog),
        gate=ApprovalGate(store, implicit_approved={root.declared_name}),
        projector=projector,
    )

    logger.info(f"Resolving dependencies of {root_path} under {search}")
    run = resolve_dependencies(root, context, provider, max_passes=config.max_passes)
    final = run.final_pass

    artifacts: dict[str, Path] = {"graph": projector.write_graph(final)}
    missing_path = projector.write_missing(final)
    if missing_path is not None:
        artifacts["missing"] = missing_path

    index: ReferenceIndex | None = None
    if references:
        indexer = ReferenceIndexer(
            cached,
            workers=config.index_workers if workers is None else workers,
            executor=config.index_executor,
        )
        index = indexer.build(catalog)
        # The root binary is reported alongside every approved library that was found
        variants = {name: set(paths) for name, paths in final.instances.items()}
        variants.setdefault(root.declared_name, set()).add(root.canonical_path)
        reported = (run.approved & set(final.instances)) | {root.declared_name}
        report, ref_copied, ref_failures = projector.write_references(
            index.restricted_to(reported), variants
        )
        artifacts["references"] = report
    else:
        ref_copied = ref_failures = 0

    statistics = _statistics(run, index)
    if references:
        statistics["reference_files_copied"] = ref_copied
        statistics["reference_copy_failures"] = ref_failures

    summary = AnalysisSummary(run=run, statistics=statistics, artifacts=artifacts, index=index)
    summary.artifacts["summary"] = projector.write_summary(summary.to_dict())
    summary.artifacts["tree"] = projector.write_tree()
    logger.info(
        f"Analysis finished after {run.passes} pass(es): "
        f"{statistics['files_copied']} files copied, {statistics['missing']} missing"
    )
    return summary


def query_references(
    search_root: str | Path,
    libraries: Iterable[str],
    config: Config | None = None,
    backend: str | None = None,
    reader: MetadataReader | None = None,
) -> dict[str, list[Path]]:
    """Binaries under ``search_root`` that declare each of ``libraries``."""
    config = config or get_config()
    search = validate_search_root(search_root)
    catalog = FileCatalog.build(search)
    indexer = ReferenceIndexer(
        reader or create_reader(config, backend),
        workers=config.index_workers,
        executor=config.index_executor,
    )
    index = indexer.build(catalog)
    return {name: sorted(paths) for name, paths in index.restricted_to(libraries).items()}
