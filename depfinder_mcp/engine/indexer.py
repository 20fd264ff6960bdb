"""Corpus-wide reference index: which binaries declare which libraries.

Every executable or shared-object-like file under the search root is read
once, independent of the walk. Per-file extraction shares no state and runs
on a worker pool; the inverse map is merged on the calling thread only.
"""

from __future__ import annotations

import os
from concurrent.futures import Executor, ProcessPoolExecutor, ThreadPoolExecutor
from concurrent.futures.process import BrokenProcessPool
from pathlib import Path

from depfinder_mcp.core.config import Config, get_config
from depfinder_mcp.core.logging_config import get_logger
from depfinder_mcp.engine.catalog import FileCatalog
from depfinder_mcp.engine.elf_reader import MetadataReader, create_reader
from depfinder_mcp.engine.models import ReferenceIndex

logger = get_logger(__name__)


def _extract_needed(reader: MetadataReader, path: Path) -> tuple[Path, tuple[str, ...] | None]:
    """Worker: NEEDED names of one file, or None when extraction blew up."""
    try:
        return path, reader.read(path).needed
    except Exception as e:  # one bad file must not sink the sweep
        logger.debug(f"Metadata extraction failed for {path}: {e}")
        return path, None


class ReferenceIndexer:
    def __init__(self, reader: MetadataReader, workers: int = 0, executor: str = "thread"):
        self.reader = reader
        self.workers = workers or os.cpu_count() or 1
        self.executor = executor

    def _make_executor(self) -> Executor:
        if self.executor == "process":
            return ProcessPoolExecutor(max_workers=self.workers)
        return ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="depfinder-index")

    def build(self, catalog: FileCatalog) -> ReferenceIndex:
        """Sweep every candidate binary in ``catalog`` and invert its NEEDED entries."""
        candidates = catalog.candidates()
        index = ReferenceIndex()
        logger.info(
            f"Indexing {len(candidates)} candidate binaries with {self.workers} "
            f"{self.executor} worker(s)"
        )

        if self.workers <= 1 or len(candidates) <= 1:
            results = (_extract_needed(self.reader, path) for path in candidates)
            self._merge(index, results)
        else:
            try:
                with self._make_executor() as pool:
                    chunksize = max(1, len(candidates) // (self.workers * 4))
                    results = pool.map(
                        _extract_needed,
                        [self.reader] * len(candidates),
                        candidates,
                        chunksize=chunksize,
                    )
                    self._merge(index, results)
            except BrokenProcessPool as e:
                lost = len(candidates) - index.scanned - index.failures
                index.failures += lost
                logger.error(f"Index worker pool died ({e}); {lost} files left unindexed")

        logger.info(
            f"Reference index ready: {len(index)} libraries, {index.scanned} files scanned, "
            f"{index.failures} failures"
        )
        return index

    @staticmethod
    def _merge(index: ReferenceIndex, results) -> None:
        for path, needed in results:
            if needed is None:
                index.failures += 1
                continue
            index.scanned += 1
            index.add(path, needed)


def build_index(
    search_root: Path,
    reader: MetadataReader | None = None,
    config: Config | None = None,
    catalog: FileCatalog | None = None,
) -> ReferenceIndex:
    """Convenience wrapper: catalog ``search_root`` and index it with configured workers."""
    config = config or get_config()
    catalog = catalog or FileCatalog.build(search_root)
    indexer = ReferenceIndexer(
        reader or create_reader(config),
        workers=config.index_workers,
        executor=config.index_executor,
    )
    return indexer.build(catalog)
