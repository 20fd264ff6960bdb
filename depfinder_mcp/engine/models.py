"""Data model of the dependency resolution engine."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable


class ApprovalState(str, Enum):
    """Gate state of a library name."""

    APPROVED = "approved"
    REJECTED = "rejected"
    PENDING = "pending"


@dataclass(frozen=True, order=True)
class BinaryNode:
    """A binary artifact identified by its canonical (symlink-free) path."""

    canonical_path: Path

    @classmethod
    def from_path(cls, path: str | Path) -> "BinaryNode":
        return cls(Path(path).resolve())

    @property
    def declared_name(self) -> str:
        """Base name, used as the soname when other binaries declare it."""
        return self.canonical_path.name


@dataclass(frozen=True, order=True)
class Edge:
    """A resolved dependency edge between two physical files."""

    source: Path
    target: Path


@dataclass(frozen=True, order=True)
class SkippedEdge:
    """A declaration into a library that was not followed (rejected or missing)."""

    source: Path
    soname: str


@dataclass
class MissingDependency:
    soname: str
    referenced_by: set[Path] = field(default_factory=set)


@dataclass
class PassResult:
    """Everything one traversal pass produced."""

    number: int
    edges: set[Edge] = field(default_factory=set)
    rejected_edges: set[SkippedEdge] = field(default_factory=set)
    missing: dict[str, MissingDependency] = field(default_factory=dict)
    copied: dict[Path, Path] = field(default_factory=dict)
    copy_failures: dict[Path, str] = field(default_factory=dict)
    instances: dict[str, set[Path]] = field(default_factory=lambda: defaultdict(set))
    visited: set[Path] = field(default_factory=set)
    pending: set[str] = field(default_factory=set)

    def add_missing(self, soname: str, referenced_by: Path) -> None:
        entry = self.missing.setdefault(soname, MissingDependency(soname))
        entry.referenced_by.add(referenced_by)

    @property
    def missing_edges(self) -> set[SkippedEdge]:
        return {
            SkippedEdge(source, dep.soname)
            for dep in self.missing.values()
            for source in dep.referenced_by
        }

    @property
    def instance_count(self) -> int:
        return sum(len(paths) for paths in self.instances.values())


@dataclass
class RunResult:
    """Outcome of a complete fixpoint run for one root binary."""

    root: BinaryNode
    search_root: Path
    output_root: Path
    final_pass: PassResult
    passes: int
    approved: set[str] = field(default_factory=set)
    rejected: set[str] = field(default_factory=set)
    undecided: set[str] = field(default_factory=set)
    discarded: list[Path] = field(default_factory=list)

    @property
    def edges(self) -> set[Edge]:
        return self.final_pass.edges

    @property
    def missing(self) -> dict[str, MissingDependency]:
        return self.final_pass.missing

    @property
    def copied_nodes(self) -> set[Path]:
        return set(self.final_pass.copied)


class ReferenceIndex:
    """Inverse map: library name -> binaries that declare it as NEEDED."""

    def __init__(self) -> None:
        self._refs: dict[str, set[Path]] = defaultdict(set)
        self.scanned = 0
        self.failures = 0

    def add(self, binary: Path, needed: Iterable[str]) -> None:
        for name in needed:
            self._refs[name].add(binary)

    def merge(self, other: "ReferenceIndex") -> None:
        for name, binaries in other._refs.items():
            self._refs[name].update(binaries)
        self.scanned += other.scanned
        self.failures += other.failures

    def references_of(self, library: str) -> set[Path]:
        return set(self._refs.get(library, ()))

    def restricted_to(self, libraries: Iterable[str]) -> dict[str, set[Path]]:
        """References for ``libraries`` only, e.g. the approved subset."""
        return {name: self.references_of(name) for name in sorted(set(libraries))}

    def libraries(self) -> list[str]:
        return sorted(self._refs)

    def __len__(self) -> int:
        return len(self._refs)

    def __contains__(self, library: object) -> bool:
        return library in self._refs
