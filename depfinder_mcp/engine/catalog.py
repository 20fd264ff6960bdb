"""Filename catalog of an extracted firmware tree.

The tree is walked once per run. The catalog answers "every regular file named
X" for the resolver's fallback search and enumerates the executable or
shared-object-like files swept by the reference indexer.
"""

from __future__ import annotations

import os
import stat
from collections import defaultdict
from pathlib import Path

from depfinder_mcp.core.exceptions import SearchRootUnavailableError
from depfinder_mcp.core.logging_config import get_logger

logger = get_logger(__name__)


def is_candidate_binary(name: str, mode: int) -> bool:
    """Executable bit set, or a name that looks like a shared object (``*.so*``)."""
    return bool(mode & (stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)) or ".so" in name


class FileCatalog:
    def __init__(self, search_root: Path):
        self.search_root = Path(search_root)
        self._by_name: dict[str, list[Path]] = defaultdict(list)
        self._candidates: list[Path] = []
        self.unreadable_dirs = 0

    @classmethod
    def build(cls, search_root: Path) -> "FileCatalog":
        """Walk ``search_root`` without following symlinks; symlinked files are skipped."""
        catalog = cls(Path(search_root).resolve())
        if not catalog.search_root.is_dir():
            raise SearchRootUnavailableError(catalog.search_root, reason="not a directory")

        def on_error(err: OSError) -> None:
            if Path(err.filename or "") == catalog.search_root:
                raise SearchRootUnavailableError(catalog.search_root, reason="not readable")
            catalog.unreadable_dirs += 1
            logger.debug(f"Skipping unreadable directory {err.filename}: {err.strerror}")

        for dirpath, dirnames, filenames in os.walk(catalog.search_root, onerror=on_error):
            dirnames.sort()
            for name in sorted(filenames):
                path = Path(dirpath) / name
                try:
                    st = path.lstat()
                except OSError:
                    continue
                if not stat.S_ISREG(st.st_mode):
                    continue
                catalog._by_name[name].append(path)
                if is_candidate_binary(name, st.st_mode):
                    catalog._candidates.append(path)

        logger.info(
            f"Cataloged {sum(len(v) for v in catalog._by_name.values())} files under "
            f"{catalog.search_root} ({len(catalog._candidates)} binary candidates)"
        )
        return catalog

    def find(self, name: str) -> tuple[Path, ...]:
        """All regular files called ``name``, sorted."""
        return tuple(sorted(self._by_name.get(name, ())))

    def candidates(self) -> list[Path]:
        return list(self._candidates)

    def __len__(self) -> int:
        return sum(len(paths) for paths in self._by_name.values())
