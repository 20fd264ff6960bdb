"""Output projection: mirrored file tree, graph artifact and text reports."""

from __future__ import annotations

import os
import shutil
from datetime import datetime
from pathlib import Path
from typing import Mapping

from depfinder_mcp.core import json_utils as json
from depfinder_mcp.core.logging_config import get_logger
from depfinder_mcp.engine.models import PassResult, SkippedEdge

logger = get_logger(__name__)

MAIN_DIR = "MAIN_ANALYSIS"
REFERENCES_DIR = "REFERENCES"
EXTERNAL_DIR = "_external"
GRAPH_FILE = "dependency_graph.dot"
MISSING_FILE = "missing_deps.txt"
REFERENCES_FILE = "REFERENCES.txt"
SUMMARY_FILE = "analysis_summary.json"
TREE_FILE = "output_summary_tree.txt"


def _dot_quote(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


class OutputProjector:
    """Writes everything a run produces below one output directory."""

    def __init__(self, search_root: Path, output_root: Path):
        self.search_root = Path(search_root)
        self.output_root = Path(output_root)
        self.main_dir = self.output_root / MAIN_DIR
        self.references_dir = self.main_dir / REFERENCES_DIR

    def relative_path(self, source: Path) -> Path:
        """Position of ``source`` in the image; escapees go under ``_external``."""
        source = Path(source)
        try:
            return source.relative_to(self.search_root)
        except ValueError:
            return Path(EXTERNAL_DIR) / source.relative_to(source.anchor)

    def display_path(self, source: Path) -> str:
        return self.relative_path(source).as_posix()

    def destination(self, source: Path, reference: bool = False) -> Path:
        base = self.references_dir if reference else self.main_dir
        return base / self.relative_path(source)

    def copy(self, source: Path, reference: bool = False) -> Path:
        """Mirror ``source`` into the output tree. Raises OSError on failure."""
        target = self.destination(source, reference)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, target)
        return target

    def discard(self, source: Path) -> bool:
        """Remove a mirrored copy and any directories it leaves empty."""
        target = self.destination(source)
        try:
            target.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning(f"Could not remove {target}: {e}")
            return False

        parent = target.parent
        while parent != self.main_dir and self.main_dir in parent.parents:
            try:
                parent.rmdir()
            except OSError:
                break
            parent = parent.parent
        return True

    # Graph

    def render_dot(self, result: PassResult) -> str:
        lines = ["digraph dependencies {", "  rankdir=LR;", "  node [shape=box];"]
        for edge in sorted(result.edges):
            lines.append(
                f"  {_dot_quote(self.display_path(edge.source))} -> "
                f"{_dot_quote(self.display_path(edge.target))};"
            )
        for skipped in sorted(result.rejected_edges):
            lines.append(self._skipped_line(skipped, 'style=dashed, color=red, label="rejected"'))
        for skipped in sorted(result.missing_edges):
            lines.append(self._skipped_line(skipped, 'style=dotted, color=gray, label="missing"'))
        lines.append("}")
        return "\n".join(lines) + "\n"

    def _skipped_line(self, skipped: SkippedEdge, attributes: str) -> str:
        return (
            f"  {_dot_quote(self.display_path(skipped.source))} -> "
            f"{_dot_quote(skipped.soname)} [{attributes}];"
        )

    def write_graph(self, result: PassResult) -> Path:
        path = self.output_root / GRAPH_FILE
        path.write_text(self.render_dot(result), encoding="utf-8")
        return path

    # Reports

    def write_missing(self, result: PassResult) -> Path | None:
        path = self.output_root / MISSING_FILE
        if not result.missing:
            if path.exists():
                path.unlink()
            return None
        path.write_text("".join(f"{name}\n" for name in sorted(result.missing)), encoding="utf-8")
        return path

    def write_references(
        self,
        references: Mapping[str, set[Path]],
        instances: Mapping[str, set[Path]],
    ) -> tuple[Path, int, int]:
        """
        Write REFERENCES.txt and mirror every referencing binary under REFERENCES/.

        Returns:
            (report path, referencing files copied, copy failures)
        """
        self.references_dir.mkdir(parents=True, exist_ok=True)
        report = self.references_dir / REFERENCES_FILE
        copied = 0
        failures = 0

        lines = [
            "Library References Report",
            f"Generated on: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
            "=" * 40,
            "",
        ]
        for library in sorted(references):
            lines += ["-" * 35, f"References of {library}", "-" * 35]
            lines.append("Analyzed variants:")
            for instance in sorted(instances.get(library, ())):
                lines.append(f"  - {self.display_path(instance)}")
            lines.append("")

            referencing = [p for p in sorted(references[library]) if p.name != library]
            for ref in referencing:
                lines.append(f"./{self.display_path(ref)}")
                try:
                    self.copy(ref, reference=True)
                    copied += 1
                except OSError as e:
                    failures += 1
                    logger.error(f"Failed to copy reference {ref}: {e}")
            if not referencing:
                lines.append("No references found")
            lines.append("")

        lines += ["=" * 40, "End of References Report"]
        report.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return report, copied, failures

    def write_summary(self, summary: dict) -> Path:
        path = self.output_root / SUMMARY_FILE
        path.write_text(json.dumps(summary, indent=2), encoding="utf-8")
        return path

    def render_tree(self) -> str:
        """``tree``-style listing of the output directory."""
        lines = ["."]
        dirs = files = 0

        def walk(directory: Path, prefix: str) -> None:
            nonlocal dirs, files
            try:
                entries = sorted(os.scandir(directory), key=lambda e: e.name)
            except OSError:
                return
            entries = [e for e in entries if not e.name.startswith(".")]
            for index, entry in enumerate(entries):
                last = index == len(entries) - 1
                lines.append(f"{prefix}{'└── ' if last else '├── '}{entry.name}")
                if entry.is_dir(follow_symlinks=False):
                    dirs += 1
                    walk(Path(entry.path), prefix + ("    " if last else "│   "))
                else:
                    files += 1

        walk(self.output_root, "")
        lines += ["", f"{dirs} directories, {files} files"]
        return "\n".join(lines) + "\n"

    def write_tree(self) -> Path:
        path = self.output_root / TREE_FILE
        path.write_text(self.render_tree(), encoding="utf-8")
        return path
