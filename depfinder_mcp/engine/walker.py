"""Dependency graph walker and the approval fixpoint loop.

One pass is a depth-first traversal from the root binary. Approved libraries
are expanded, pending ones are copied but not expanded, rejected ones are
recorded as skipped edges only. After each pass the pending names go to a
decision provider and the traversal is repeated until a pass finds nothing
new to decide.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from depfinder_mcp.core.logging_config import get_logger
from depfinder_mcp.engine.approval import ApprovalGate
from depfinder_mcp.engine.decisions import DecisionProvider
from depfinder_mcp.engine.elf_reader import MetadataReader
from depfinder_mcp.engine.models import (
    ApprovalState,
    BinaryNode,
    Edge,
    PassResult,
    RunResult,
    SkippedEdge,
)
from depfinder_mcp.engine.projector import OutputProjector
from depfinder_mcp.engine.resolver import SonameResolver

logger = get_logger(__name__)


@dataclass
class ResolutionContext:
    """State owned by one resolution run and threaded through every pass.

    ``visited`` is reset at the start of each pass; the approval gate is not.
    """

    search_root: Path
    reader: MetadataReader
    resolver: SonameResolver
    gate: ApprovalGate
    projector: OutputProjector | None = None
    visited: set[Path] = field(default_factory=set)


class DependencyWalker:
    def __init__(self, context: ResolutionContext):
        self.context = context

    def _copy(self, path: Path, result: PassResult) -> None:
        if path in result.copied or path in result.copy_failures:
            return
        projector = self.context.projector
        if projector is None:
            result.copied[path] = path
            return
        try:
            result.copied[path] = projector.copy(path)
        except OSError as e:
            result.copy_failures[path] = str(e)
            logger.error(f"Failed to copy {path}: {e}")

    def walk(self, root: BinaryNode, pass_number: int = 1) -> PassResult:
        """Run one traversal pass from ``root``."""
        ctx = self.context
        ctx.visited = set()
        ctx.gate.reset_pending()
        result = PassResult(number=pass_number)

        root_path = root.canonical_path
        self._copy(root_path, result)
        stack = [root_path]

        while stack:
            node = stack.pop()
            if node in ctx.visited:
                continue
            ctx.visited.add(node)

            children: list[Path] = []
            for soname in ctx.reader.read(node).needed:
                state = ctx.gate.decide(soname)
                if state is ApprovalState.REJECTED:
                    result.rejected_edges.add(SkippedEdge(node, soname))
                    continue

                instances = ctx.resolver.resolve(soname, node)
                if not instances:
                    result.add_missing(soname, node)
                    continue

                if state is ApprovalState.PENDING:
                    ctx.gate.hold(soname)
                result.instances[soname].update(instances)
                for instance in instances:
                    result.edges.add(Edge(node, instance))
                    self._copy(instance, result)
                    if state is ApprovalState.APPROVED and instance not in ctx.visited:
                        children.append(instance)

            # Reversed so the first declared dependency is expanded first
            stack.extend(reversed(children))

        result.visited = set(ctx.visited)
        result.pending = set(ctx.gate.pending)
        logger.info(
            f"Pass {pass_number}: {len(result.visited)} binaries expanded, "
            f"{len(result.edges)} edges, {len(result.pending)} pending, "
            f"{len(result.missing)} missing",
            extra={"pass_number": pass_number},
        )
        return result


def _discard_rejected(
    context: ResolutionContext,
    result: PassResult,
    rejected: set[str],
    root: BinaryNode,
) -> list[Path]:
    """Remove copies made for libraries that were rejected after being captured."""
    keep: set[Path] = {root.canonical_path}
    for soname, paths in result.instances.items():
        if soname not in rejected:
            keep.update(paths)

    removed: list[Path] = []
    for soname in sorted(rejected):
        for path in sorted(result.instances.get(soname, ())):
            if path in keep:
                continue
            result.copied.pop(path, None)
            if context.projector is not None and context.projector.discard(path):
                removed.append(path)
    return removed


def resolve_dependencies(
    root: BinaryNode,
    context: ResolutionContext,
    provider: DecisionProvider,
    max_passes: int = 100,
) -> RunResult:
    """
    Repeat traversal passes until no pending library is left to decide.

    Decisions are persisted by the gate's store as soon as they are made.
    The loop also stops when a decision round decides nothing (the provider
    deferred) or after ``max_passes`` passes.
    """
    gate = context.gate
    discarded: list[Path] = []
    result = PassResult(number=0)

    for pass_number in range(1, max_passes + 1):
        result = DependencyWalker(context).walk(root, pass_number)
        if not result.pending:
            break

        logger.info(f"{len(result.pending)} libraries awaiting a decision")
        decisions = provider.decide(set(result.pending), result.instances)
        applied = gate.apply(decisions)
        rejected = {name for name, state in applied.items() if state is ApprovalState.REJECTED}
        if rejected:
            discarded += _discard_rejected(context, result, rejected, root)

        if not applied:
            logger.warning(
                f"{len(result.pending)} libraries left undecided; they were copied but not expanded"
            )
            break
    else:
        logger.warning(f"Stopped after {max_passes} passes with decisions still pending")

    undecided = {
        name for name in result.pending if gate.store.state_of(name) is ApprovalState.PENDING
    }
    return RunResult(
        root=root,
        search_root=context.search_root,
        output_root=context.projector.output_root if context.projector else context.search_root,
        final_pass=result,
        passes=result.number,
        approved=set(gate.store.approved),
        rejected=set(gate.store.rejected),
        undecided=undecided,
        discarded=discarded,
    )
