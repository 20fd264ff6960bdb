"""Tests for the corpus-wide reference index."""

from concurrent.futures.process import BrokenProcessPool

import pytest

from depfinder_mcp.engine.catalog import FileCatalog
from depfinder_mcp.engine.elf_reader import CachingMetadataReader
from depfinder_mcp.engine.indexer import ReferenceIndexer, build_index
from depfinder_mcp.engine.models import ReferenceIndex


@pytest.fixture
def corpus(firmware):
    """Ten binaries, four of which declare libfoo.so."""
    declaring = set()
    for i in range(10):
        needed = ("libc.so", "libfoo.so") if i % 3 == 0 else ("libc.so",)
        path = firmware.add(f"system/bin/tool{i}", needed=needed, executable=True)
        if "libfoo.so" in needed:
            declaring.add(path)
    firmware.add("system/lib/libfoo.so", needed=("libc.so",))
    firmware.add("system/lib/libc.so")
    (firmware.root / "system" / "etc").mkdir()
    (firmware.root / "system" / "etc" / "libfoo.so.txt").write_text("not a binary")
    return firmware, declaring


class TestReferenceIndexer:
    @pytest.mark.parametrize("workers", [1, 4])
    def test_references_of_returns_exactly_the_declarers(self, corpus, workers):
        firmware, declaring = corpus
        index = ReferenceIndexer(firmware.reader, workers=workers).build(
            FileCatalog.build(firmware.root)
        )

        assert len(declaring) == 4
        assert index.references_of("libfoo.so") == declaring
        assert len(index.references_of("libc.so")) == 11
        assert index.references_of("libunknown.so") == set()
        assert index.failures == 0
        assert index.scanned == 13

    def test_failing_file_is_dropped(self, corpus):
        firmware, declaring = corpus
        broken = sorted(declaring)[0]

        class Flaky:
            def read(self, path):
                if path == broken:
                    raise RuntimeError("corrupt dynamic section")
                return firmware.reader.read(path)

        index = ReferenceIndexer(Flaky(), workers=3).build(FileCatalog.build(firmware.root))

        assert index.failures == 1
        assert index.references_of("libfoo.so") == declaring - {broken}

    def test_process_pool_with_caching_reader(self, corpus):
        firmware, declaring = corpus
        indexer = ReferenceIndexer(
            CachingMetadataReader(firmware.reader), workers=2, executor="process"
        )

        index = indexer.build(FileCatalog.build(firmware.root))

        assert index.references_of("libfoo.so") == declaring
        assert index.scanned == 13
        assert index.failures == 0

    def test_dead_pool_counts_unindexed_files(self, corpus, monkeypatch):
        firmware, _ = corpus

        class DeadPool:
            def __enter__(self):
                return self

            def __exit__(self, *exc):
                return False

            def map(self, *args, **kwargs):
                raise BrokenProcessPool("worker killed")

        indexer = ReferenceIndexer(firmware.reader, workers=2, executor="process")
        monkeypatch.setattr(indexer, "_make_executor", DeadPool)

        index = indexer.build(FileCatalog.build(firmware.root))

        assert index.scanned == 0
        assert index.failures == 13
        assert len(index) == 0

    def test_build_index_uses_configured_workers(self, corpus, config):
        firmware, declaring = corpus
        index = build_index(firmware.root, reader=firmware.reader, config=config)
        assert index.references_of("libfoo.so") == declaring


class TestReferenceIndex:
    def test_restricted_to(self, tmp_path):
        index = ReferenceIndex()
        index.add(tmp_path / "a", ["liba.so", "libb.so"])
        index.add(tmp_path / "b", ["libb.so"])

        assert index.restricted_to(["libb.so", "libz.so"]) == {
            "libb.so": {tmp_path / "a", tmp_path / "b"},
            "libz.so": set(),
        }
        assert index.libraries() == ["liba.so", "libb.so"]
        assert "liba.so" in index
        assert len(index) == 2

    def test_merge(self, tmp_path):
        left, right = ReferenceIndex(), ReferenceIndex()
        left.add(tmp_path / "a", ["liba.so"])
        left.scanned = 1
        right.add(tmp_path / "b", ["liba.so"])
        right.scanned = 2
        right.failures = 1

        left.merge(right)

        assert left.references_of("liba.so") == {tmp_path / "a", tmp_path / "b"}
        assert left.scanned == 3
        assert left.failures == 1
