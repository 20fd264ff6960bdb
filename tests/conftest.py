"""Pytest configuration and shared fixtures with explicit dependency injection."""

import logging
import os
from pathlib import Path

import pytest

from depfinder_mcp.core.config import Config
from depfinder_mcp.core.security import clear_validation_cache
from depfinder_mcp.engine.elf_reader import ELF_MAGIC, ElfMetadata


class FakeReader:
    """Metadata reader backed by a dict of canonical path -> ElfMetadata."""

    def __init__(self):
        self.metadata: dict[Path, ElfMetadata] = {}
        self.calls: list[Path] = []

    def read(self, path):
        path = Path(path).resolve()
        self.calls.append(path)
        return self.metadata.get(path, ElfMetadata.empty())


class FirmwareTree:
    """Synthetic extracted image whose binaries are described by a FakeReader."""

    def __init__(self, root: Path):
        root.mkdir(parents=True, exist_ok=True)
        self.root = root.resolve()
        self.reader = FakeReader()

    def add(self, rel, needed=(), runpaths=(), executable=False) -> Path:
        path = self.root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(ELF_MAGIC + rel.encode())
        if executable:
            os.chmod(path, 0o755)
        else:
            os.chmod(path, 0o644)
        path = path.resolve()
        self.reader.metadata[path] = ElfMetadata(tuple(needed), tuple(runpaths))
        return path

    def path(self, rel) -> Path:
        return (self.root / rel).resolve()


@pytest.fixture(autouse=True)
def _clean_state():
    """Reset path-resolution caches and the package logger around every test."""
    clear_validation_cache()
    package_logger = logging.getLogger("depfinder_mcp")
    handlers = list(package_logger.handlers)
    level = package_logger.level
    propagate = package_logger.propagate
    yield
    clear_validation_cache()
    for handler in package_logger.handlers:
        if handler not in handlers:
            handler.close()
    package_logger.handlers = handlers
    package_logger.setLevel(level)
    package_logger.propagate = propagate


@pytest.fixture
def workspace_dir(tmp_path):
    """Provision a writable workspace directory."""
    workspace = tmp_path / "workspace"
    workspace.mkdir()
    return workspace


@pytest.fixture
def config(workspace_dir, tmp_path) -> Config:
    """Provide a Config instance for components that require it."""
    return Config(
        workspace=workspace_dir,
        log_level="INFO",
        log_file=tmp_path / "logs" / "depfinder.log",
        log_format="human",
        elf_backend="lief",
        objdump_path="objdump",
        tool_timeout=60,
        max_file_size=1_000_000,
        index_workers=2,
        index_executor="thread",
        decision_policy="defer",
        decision_file=None,
        mcp_transport="stdio",
    )


@pytest.fixture
def patched_config(config, monkeypatch):
    """Ensure get_config() calls inside modules return the test Config."""
    monkeypatch.setattr("depfinder_mcp.core.config._CONFIG", config)
    return config


@pytest.fixture
def firmware(tmp_path) -> FirmwareTree:
    """An empty synthetic firmware tree; tests add binaries to it."""
    return FirmwareTree(tmp_path / "image")


@pytest.fixture
def camera_image(firmware) -> FirmwareTree:
    """
    A small image::

        system/bin/cameraserver -> libcamera_client.so, libutils.so
        system/lib64/libcamera_client.so -> libutils.so, libbinder.so
        system/lib64/libutils.so -> libc.so
        system/lib64/libbinder.so -> libutils.so
        system/lib64/libc.so
        vendor/bin/hw/camera.provider -> libcamera_client.so
    """
    firmware.add(
        "system/bin/cameraserver",
        needed=("libcamera_client.so", "libutils.so"),
        executable=True,
    )
    firmware.add("system/lib64/libcamera_client.so", needed=("libutils.so", "libbinder.so"))
    firmware.add("system/lib64/libutils.so", needed=("libc.so",))
    firmware.add("system/lib64/libbinder.so", needed=("libutils.so",))
    firmware.add("system/lib64/libc.so")
    firmware.add("vendor/bin/hw/camera.provider", needed=("libcamera_client.so",), executable=True)
    return firmware


@pytest.fixture
def output_dir(tmp_path) -> Path:
    return tmp_path / "out"
