"""Soname resolution with dynamic-loader precedence.

RUNPATH/RPATH hints of the referencing binary are tried first and a hit is
authoritative. Without a hit the whole firmware tree is searched and every
physical copy is returned, since an image routinely ships the same soname in
several partitions or ABI directories.
"""

from __future__ import annotations

import os
from pathlib import Path

from depfinder_mcp.core.logging_config import get_logger
from depfinder_mcp.engine.catalog import FileCatalog
from depfinder_mcp.engine.elf_reader import MetadataReader

logger = get_logger(__name__)

ORIGIN_TOKENS = ("${ORIGIN}", "$ORIGIN")


def expand_search_hint(hint: str, origin_dir: Path, search_root: Path) -> Path:
    """
    Turn one RUNPATH/RPATH template into a directory inside the image.

    ``$ORIGIN`` expands to the referencing binary's directory. Other absolute
    hints (``/vendor/lib64``) are device paths and are re-rooted under the
    search root; relative hints are taken relative to the search root.
    """
    expanded = hint
    from_origin = False
    for token in ORIGIN_TOKENS:
        if token in expanded:
            expanded = expanded.replace(token, str(origin_dir))
            from_origin = True

    if from_origin and os.path.isabs(expanded):
        return Path(os.path.normpath(expanded))
    return Path(os.path.normpath(search_root / expanded.lstrip("/")))


class SonameResolver:
    """Resolve declared sonames to canonical paths under one search root."""

    def __init__(self, reader: MetadataReader, catalog: FileCatalog):
        self.reader = reader
        self.catalog = catalog
        self.search_root = catalog.search_root

    def resolve_from_hints(self, soname: str, referencing_binary: Path) -> Path | None:
        origin_dir = Path(referencing_binary).parent
        for hint in self.reader.read(referencing_binary).runpaths:
            candidate = expand_search_hint(hint, origin_dir, self.search_root) / soname
            if candidate.is_file():
                logger.debug(f"{soname} resolved through runpath '{hint}' of {referencing_binary}")
                return candidate.resolve()
        return None

    def resolve(self, soname: str, referencing_binary: Path) -> tuple[Path, ...]:
        """
        Resolve ``soname`` as declared by ``referencing_binary``.

        Returns:
            The single runpath hit, otherwise every file named ``soname``
            under the search root (possibly none), canonical and sorted.
            A name containing a slash is a device path and is looked up
            directly under the search root before falling back to its base name.
        """
        if "/" in soname:
            direct = self.search_root / soname.lstrip("/")
            if direct.is_file():
                return (direct.resolve(),)
        else:
            hit = self.resolve_from_hints(soname, referencing_binary)
            if hit is not None:
                return (hit,)

        matches = {path.resolve() for path in self.catalog.find(Path(soname).name)}
        return tuple(sorted(matches))
