"""Tests for the output projector."""

from pathlib import Path

import pytest

from depfinder_mcp.engine.models import Edge, PassResult, SkippedEdge
from depfinder_mcp.engine.projector import (
    EXTERNAL_DIR,
    MAIN_DIR,
    MISSING_FILE,
    REFERENCES_DIR,
    REFERENCES_FILE,
    OutputProjector,
)


@pytest.fixture
def projector(firmware, output_dir):
    output_dir.mkdir()
    return OutputProjector(firmware.root, output_dir)


class TestPaths:
    def test_relative_path(self, projector, firmware):
        assert projector.relative_path(firmware.root / "system/lib/liba.so") == Path(
            "system/lib/liba.so"
        )

    def test_outside_search_root_goes_under_external(self, projector):
        assert projector.relative_path(Path("/opt/elsewhere/liba.so")) == Path(
            EXTERNAL_DIR, "opt/elsewhere/liba.so"
        )

    def test_destination(self, projector, firmware, output_dir):
        source = firmware.root / "vendor/lib/libx.so"
        assert projector.destination(source) == output_dir / MAIN_DIR / "vendor/lib/libx.so"
        assert projector.destination(source, reference=True) == (
            output_dir / MAIN_DIR / REFERENCES_DIR / "vendor/lib/libx.so"
        )


class TestCopy:
    def test_copy_preserves_structure_and_content(self, projector, firmware):
        source = firmware.add("vendor/lib64/hw/camera.so")
        target = projector.copy(source)
        assert target.read_bytes() == source.read_bytes()
        assert target.relative_to(projector.main_dir) == Path("vendor/lib64/hw/camera.so")

    def test_copy_failure_raises_oserror(self, projector, firmware):
        with pytest.raises(OSError):
            projector.copy(firmware.root / "missing.so")

    def test_discard_removes_file_and_empty_parents(self, projector, firmware):
        keep = firmware.add("system/bin/app")
        drop = firmware.add("system/lib/deep/libx.so")
        projector.copy(keep)
        projector.copy(drop)

        assert projector.discard(drop) is True
        assert not (projector.main_dir / "system/lib").exists()
        assert (projector.main_dir / "system/bin/app").exists()
        assert projector.discard(drop) is False


class TestGraph:
    def test_render_dot(self, projector, firmware):
        app = firmware.root / "system/bin/app"
        lib = firmware.root / "system/lib/liba.so"
        result = PassResult(number=1)
        result.edges.add(Edge(app, lib))
        result.edges.add(Edge(lib, app))
        result.rejected_edges.add(SkippedEdge(app, "libbad.so"))
        result.add_missing("libghost.so", lib)

        dot = projector.render_dot(result)

        lines = dot.splitlines()
        assert lines[0] == "digraph dependencies {"
        assert lines[-1] == "}"
        assert '  "system/bin/app" -> "system/lib/liba.so";' in lines
        assert '  "system/lib/liba.so" -> "system/bin/app";' in lines
        assert any('"libbad.so"' in line and "dashed" in line for line in lines)
        assert any('"libghost.so"' in line and "dotted" in line for line in lines)

    def test_quotes_are_escaped(self, projector, firmware):
        result = PassResult(number=1)
        result.edges.add(Edge(firmware.root / 'odd"name', firmware.root / "b"))
        assert '"odd\\"name" -> "b";' in projector.render_dot(result)

    def test_write_graph(self, projector):
        path = projector.write_graph(PassResult(number=1))
        assert path.read_text().startswith("digraph")


class TestReports:
    def test_write_missing_sorted_unique(self, projector, tmp_path):
        result = PassResult(number=1)
        result.add_missing("libz.so", tmp_path / "a")
        result.add_missing("liba.so", tmp_path / "a")
        result.add_missing("libz.so", tmp_path / "b")

        path = projector.write_missing(result)

        assert path.name == MISSING_FILE
        assert path.read_text() == "liba.so\nlibz.so\n"

    def test_write_missing_removes_stale_file(self, projector, output_dir):
        (output_dir / MISSING_FILE).write_text("libold.so\n")
        assert projector.write_missing(PassResult(number=1)) is None
        assert not (output_dir / MISSING_FILE).exists()

    def test_write_references(self, projector, firmware):
        lib = firmware.add("system/lib/libfoo.so")
        user = firmware.add("system/bin/app", executable=True)
        selfref = firmware.add("vendor/lib/libfoo.so")

        report, copied, failures = projector.write_references(
            {"libfoo.so": {user, selfref}, "libunused.so": set()},
            {"libfoo.so": {lib}, "libunused.so": {firmware.add("system/lib/libunused.so")}},
        )

        text = report.read_text()
        assert report.name == REFERENCES_FILE
        assert text.startswith("Library References Report\n")
        assert "References of libfoo.so" in text
        assert "  - system/lib/libfoo.so" in text
        assert "./system/bin/app" in text
        assert "./vendor/lib/libfoo.so" not in text
        assert "No references found" in text
        assert text.rstrip().endswith("End of References Report")
        assert (copied, failures) == (1, 0)
        assert (projector.references_dir / "system/bin/app").is_file()

    def test_write_summary(self, projector):
        from depfinder_mcp.core import json_utils as json

        path = projector.write_summary({"statistics": {"passes": 2}})
        assert json.loads(path.read_text()) == {"statistics": {"passes": 2}}

    def test_render_tree(self, projector, firmware):
        projector.copy(firmware.add("system/bin/app"))
        projector.copy(firmware.add("system/lib/liba.so"))

        tree = projector.render_tree()

        assert tree.splitlines()[0] == "."
        assert f"└── {MAIN_DIR}" in tree
        assert "│   ├── bin" in tree or "    ├── bin" in tree
        assert "4 directories, 2 files" in tree
