"""ELF metadata reader: NEEDED entries and RPATH/RUNPATH hints of a binary.

Two backends produce the same ``ElfMetadata``: LIEF (in-process parsing) and
``objdump -p`` (external binutils). Readers never raise on bad input; a file
that is not ELF, is truncated, or cannot be parsed yields empty metadata.
"""

from __future__ import annotations

import re
import shutil
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from depfinder_mcp.core.config import Config, get_config
from depfinder_mcp.core.exceptions import DepFinderError, ToolNotFoundError
from depfinder_mcp.core.execution import execute_subprocess_streaming
from depfinder_mcp.core.logging_config import get_logger

logger = get_logger(__name__)

ELF_MAGIC = b"\x7fELF"

_HINT_SEPARATORS = re.compile(r"[:\n]")


def split_search_hints(raw: str) -> tuple[str, ...]:
    """Split a colon- or newline-delimited RUNPATH/RPATH value into templates."""
    return tuple(part.strip() for part in _HINT_SEPARATORS.split(raw) if part.strip())


def _unique(items) -> tuple[str, ...]:
    return tuple(dict.fromkeys(items))


@dataclass(frozen=True)
class ElfMetadata:
    """Declared dependencies and search-path hints of one binary."""

    needed: tuple[str, ...] = ()
    runpaths: tuple[str, ...] = ()

    @classmethod
    def empty(cls) -> "ElfMetadata":
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.needed and not self.runpaths


class MetadataReader(Protocol):
    def read(self, path: Path) -> ElfMetadata: ...


def looks_like_elf(path: Path) -> bool:
    try:
        with open(path, "rb") as fh:
            return fh.read(4) == ELF_MAGIC
    except OSError:
        return False


class _FileReader:
    """Shared pre-checks: regular ELF file below the size limit."""

    def __init__(self, max_file_size: int = 500_000_000):
        self.max_file_size = max_file_size

    def read(self, path: Path) -> ElfMetadata:
        path = Path(path)
        try:
            size = path.stat().st_size
        except OSError as e:
            logger.debug(f"Cannot stat {path}: {e}")
            return ElfMetadata.empty()
        if size > self.max_file_size:
            logger.warning(f"Skipping {path}: {size} bytes exceeds limit {self.max_file_size}")
            return ElfMetadata.empty()
        if not looks_like_elf(path):
            return ElfMetadata.empty()
        return self._read_elf(path)

    def _read_elf(self, path: Path) -> ElfMetadata:
        raise NotImplementedError


class LiefMetadataReader(_FileReader):
    """Read the dynamic section with LIEF."""

    def __init__(self, max_file_size: int = 500_000_000):
        super().__init__(max_file_size)
        import lief

        lief.logging.disable()

    def _read_elf(self, path: Path) -> ElfMetadata:
        import lief

        try:
            binary = lief.ELF.parse(str(path))
        except Exception as e:  # LIEF raises assorted native errors on corrupt input
            logger.debug(f"LIEF failed on {path}: {e}")
            return ElfMetadata.empty()
        if binary is None:
            return ElfMetadata.empty()

        needed: list[str] = []
        runpaths: list[str] = []
        rpaths: list[str] = []
        for entry in binary.dynamic_entries:
            if isinstance(entry, lief.ELF.DynamicEntryLibrary):
                needed.append(entry.name)
            elif isinstance(entry, lief.ELF.DynamicEntryRunPath):
                runpaths.extend(entry.paths)
            elif isinstance(entry, lief.ELF.DynamicEntryRpath):
                rpaths.extend(entry.paths)

        hints = [hint for raw in runpaths + rpaths for hint in split_search_hints(raw)]
        return ElfMetadata(needed=_unique(needed), runpaths=_unique(hints))


def parse_objdump_output(output: str) -> ElfMetadata:
    """Extract NEEDED/RUNPATH/RPATH values from ``objdump -p`` text."""
    needed: list[str] = []
    runpaths: list[str] = []
    rpaths: list[str] = []
    for line in output.splitlines():
        parts = line.split(None, 1)
        if len(parts) != 2:
            continue
        tag, value = parts[0], parts[1].strip()
        if tag == "NEEDED":
            needed.append(value)
        elif tag == "RUNPATH":
            runpaths.extend(split_search_hints(value))
        elif tag == "RPATH":
            rpaths.extend(split_search_hints(value))
    return ElfMetadata(needed=_unique(needed), runpaths=_unique(runpaths + rpaths))


class ObjdumpMetadataReader(_FileReader):
    """Read the dynamic section by running ``objdump -p``."""

    def __init__(
        self,
        objdump: str = "objdump",
        timeout: int = 60,
        max_file_size: int = 500_000_000,
    ):
        super().__init__(max_file_size)
        resolved = shutil.which(objdump)
        if resolved is None:
            raise ToolNotFoundError(objdump)
        self.objdump = resolved
        self.timeout = timeout

    def _read_elf(self, path: Path) -> ElfMetadata:
        try:
            output, _ = execute_subprocess_streaming(
                [self.objdump, "-p", str(path)],
                max_output_size=2_000_000,
                timeout=self.timeout,
            )
        except subprocess.CalledProcessError as e:
            logger.debug(f"objdump rejected {path}: exit {e.returncode}")
            return ElfMetadata.empty()
        except DepFinderError as e:
            logger.warning(f"objdump failed on {path}: {e}")
            return ElfMetadata.empty()
        return parse_objdump_output(output)


class CachingMetadataReader:
    """Memoize another reader by canonical path for the lifetime of one run."""

    def __init__(self, reader: MetadataReader):
        self._reader = reader
        self._cache: dict[Path, ElfMetadata] = {}
        self._lock = threading.Lock()

    def read(self, path: Path) -> ElfMetadata:
        key = Path(path).resolve()
        with self._lock:
            cached = self._cache.get(key)
        if cached is not None:
            return cached
        metadata = self._reader.read(key)
        with self._lock:
            self._cache[key] = metadata
        return metadata

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def __getstate__(self) -> dict:
        # Process workers get the wrapped backend with an empty cache
        return {"_reader": self._reader}

    def __setstate__(self, state: dict) -> None:
        self.__init__(state["_reader"])


def create_reader(config: Config | None = None, backend: str | None = None) -> MetadataReader:
    """Build the reader selected by ``backend`` or the configured ELF backend."""
    config = config or get_config()
    backend = (backend or config.elf_backend).lower()
    if backend == "objdump":
        return ObjdumpMetadataReader(
            config.objdump_path,
            timeout=config.tool_timeout,
            max_file_size=config.max_file_size,
        )
    return LiefMetadataReader(max_file_size=config.max_file_size)
