"""Tests for the MCP dependency tools and their plugin."""

import os
from unittest.mock import Mock

import pytest

from depfinder_mcp.core.loader import PluginLoader
from depfinder_mcp.engine.approval import APPROVED_FILE
from depfinder_mcp.tools import dependency_tools
from depfinder_mcp.tools.dependency_tools import (
    DependencyToolsPlugin,
    find_dependencies,
    list_approvals,
    query_references,
    read_elf_dependencies,
)


@pytest.fixture
def fake_backend(camera_image, patched_config, monkeypatch):
    def _reader(config=None, backend=None):
        return camera_image.reader

    monkeypatch.setattr("depfinder_mcp.engine.session.create_reader", _reader)
    monkeypatch.setattr(dependency_tools, "create_reader", _reader)
    return camera_image


class TestFindDependencies:
    def test_success(self, fake_backend, output_dir):
        result = find_dependencies(
            str(fake_backend.path("system/bin/cameraserver")),
            str(fake_backend.root),
            str(output_dir),
            policy="approve",
        )

        assert result.status == "success"
        assert result.data["statistics"]["passes"] == 3
        assert result.data["undecided"] == []
        assert result.metadata["passes"] == 3
        assert "execution_time_ms" in result.metadata

    def test_default_policy_defers(self, fake_backend, output_dir):
        result = find_dependencies(
            str(fake_backend.path("system/bin/cameraserver")),
            str(fake_backend.root),
            str(output_dir),
            references=False,
        )

        assert result.status == "success"
        assert result.data["undecided"] == ["libcamera_client.so", "libutils.so"]

    def test_relative_output_goes_to_workspace(self, fake_backend, patched_config):
        result = find_dependencies(
            str(fake_backend.path("system/bin/cameraserver")),
            str(fake_backend.root),
            "camera-run",
            references=False,
        )

        assert result.status == "success"
        assert result.data["output_dir"] == str((patched_config.workspace / "camera-run").resolve())

    def test_missing_search_root(self, fake_backend, tmp_path, output_dir):
        result = find_dependencies(
            str(fake_backend.path("system/bin/cameraserver")),
            str(tmp_path / "gone"),
            str(output_dir),
        )

        assert result.status == "error"
        assert result.error_code == "SEARCH_ROOT_UNAVAILABLE"

    def test_bad_policy(self, fake_backend, output_dir):
        result = find_dependencies(
            str(fake_backend.path("system/bin/cameraserver")),
            str(fake_backend.root),
            str(output_dir),
            policy="sometimes",
        )

        assert result.error_code == "VALIDATION_ERROR"


class TestQueryReferences:
    def test_entries(self, fake_backend):
        result = query_references(str(fake_backend.root), ["libutils.so"])

        assert result.status == "success"
        (entry,) = result.data["references"]
        assert entry["library"] == "libutils.so"
        assert entry["count"] == 3
        assert str(fake_backend.path("system/bin/cameraserver")) in entry["referenced_by"]

    def test_requires_libraries(self, fake_backend):
        result = query_references(str(fake_backend.root), [])
        assert result.error_code == "VALIDATION_ERROR"


class TestReadElfDependencies:
    def test_reads_metadata(self, fake_backend):
        result = read_elf_dependencies(str(fake_backend.path("system/lib64/libcamera_client.so")))

        assert result.status == "success"
        assert result.data["is_elf"] is True
        assert result.data["needed"] == ["libutils.so", "libbinder.so"]
        assert result.data["runpaths"] == []

    def test_missing_file(self, fake_backend, tmp_path):
        result = read_elf_dependencies(str(tmp_path / "missing.so"))
        assert result.error_code == "VALIDATION_ERROR"


class TestListApprovals:
    def test_lists_state(self, patched_config, output_dir):
        output_dir.mkdir()
        (output_dir / APPROVED_FILE).write_text("libz.so\nliba.so\n")

        result = list_approvals(str(output_dir))

        assert result.status == "success"
        assert result.data["approved"] == ["liba.so", "libz.so"]
        assert result.data["rejected"] == []

    def test_missing_directory(self, patched_config, output_dir):
        result = list_approvals(str(output_dir))
        assert result.error_code == "VALIDATION_ERROR"


class TestPlugin:
    def test_register(self):
        server = Mock()
        plugin = DependencyToolsPlugin()

        plugin.register(server)

        assert plugin.name == "dependency_tools"
        assert plugin.description
        registered = [call.args[0] for call in server.tool.call_args_list]
        assert registered == [
            find_dependencies,
            query_references,
            read_elf_dependencies,
            list_approvals,
        ]

    def test_loader_discovers_plugin(self):
        tools_dir = os.path.dirname(dependency_tools.__file__)
        loader = PluginLoader()

        plugins = loader.discover_plugins(tools_dir, "depfinder_mcp.tools")

        assert [p.name for p in plugins] == ["dependency_tools"]
        assert isinstance(loader.get_plugin("dependency_tools"), DependencyToolsPlugin)
        assert loader.get_all_plugins() == plugins
        assert loader.get_plugin("missing") is None
