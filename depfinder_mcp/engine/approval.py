"""Persistent approve/reject decisions and the gate consulted by the walker.

Decisions are monotonic: once a library is approved or rejected the state
never changes for the lifetime of the output directory. The file-backed store
keeps two line-delimited lists next to the analysis output and rewrites them
atomically after every mutation.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Iterable, Mapping

from depfinder_mcp.core.exceptions import ApprovalStateError
from depfinder_mcp.core.logging_config import get_logger
from depfinder_mcp.engine.models import ApprovalState

logger = get_logger(__name__)

APPROVED_FILE = "approved_libs.txt"
REJECTED_FILE = "rejected_libs.txt"

_DECIDED = (ApprovalState.APPROVED, ApprovalState.REJECTED)


def _valid_name(name: str) -> bool:
    # One name per line; NEEDED may legally carry a path such as /system/lib64/libfoo.so
    return bool(name) and name == name.strip() and not any(ch in name for ch in "\x00\r\n")


class InMemoryApprovalStore:
    """Approval record without persistence; base of the file-backed store."""

    def __init__(
        self,
        approved: Iterable[str] = (),
        rejected: Iterable[str] = (),
    ):
        self._rejected: set[str] = set(rejected)
        self._approved: set[str] = set(approved) - self._rejected

    def state_of(self, name: str) -> ApprovalState:
        if name in self._rejected:
            return ApprovalState.REJECTED
        if name in self._approved:
            return ApprovalState.APPROVED
        return ApprovalState.PENDING

    @property
    def approved(self) -> frozenset[str]:
        return frozenset(self._approved)

    @property
    def rejected(self) -> frozenset[str]:
        return frozenset(self._rejected)

    def record(self, decisions: Mapping[str, ApprovalState]) -> dict[str, ApprovalState]:
        """
        Apply decisions for undecided names and persist them.

        Names that are already decided keep their state; decisions other than
        approved/rejected are ignored.

        Returns:
            The decisions that actually changed the record
        """
        applied: dict[str, ApprovalState] = {}
        for name, decision in decisions.items():
            decision = ApprovalState(decision)
            if decision not in _DECIDED:
                continue
            if not _valid_name(name):
                logger.warning(f"Ignoring {decision.value} for unstorable name {name!r}")
                continue
            current = self.state_of(name)
            if current is not ApprovalState.PENDING:
                if current is not decision:
                    logger.warning(f"Ignoring {decision.value} for {name}: already {current.value}")
                continue
            if decision is ApprovalState.APPROVED:
                self._approved.add(name)
            else:
                self._rejected.add(name)
            applied[name] = decision

        if applied:
            self._persist()
        return applied

    def _persist(self) -> None:
        pass


class FileApprovalStore(InMemoryApprovalStore):
    """Approval record stored as ``approved_libs.txt`` / ``rejected_libs.txt``."""

    def __init__(self, directory: Path):
        super().__init__()
        self.directory = Path(directory)
        self.approved_path = self.directory / APPROVED_FILE
        self.rejected_path = self.directory / REJECTED_FILE

    @classmethod
    def open(cls, directory: Path) -> "FileApprovalStore":
        store = cls(directory)
        store.load()
        return store

    @staticmethod
    def _read_names(path: Path) -> set[str]:
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return set()
        except OSError as e:
            logger.warning(f"Cannot read approval state {path}: {e}")
            return set()

        names: set[str] = set()
        skipped = 0
        for line in raw.splitlines():
            line = line.strip()
            if not line:
                continue
            try:
                name = line.decode("utf-8")
            except UnicodeDecodeError:
                skipped += 1
                continue
            if not _valid_name(name):
                skipped += 1
                continue
            names.add(name)
        if skipped:
            logger.warning(f"Skipped {skipped} malformed line(s) in {path}")
        return names

    def load(self) -> None:
        """(Re)load both lists. Rejection wins when a name appears in both."""
        self._rejected = self._read_names(self.rejected_path)
        self._approved = self._read_names(self.approved_path) - self._rejected
        logger.debug(
            f"Loaded approval state from {self.directory}: "
            f"{len(self._approved)} approved, {len(self._rejected)} rejected"
        )

    def _write_atomic(self, path: Path, names: Iterable[str]) -> None:
        content = "".join(f"{name}\n" for name in sorted(names))
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(content)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, path)
        except OSError:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise

    def _persist(self) -> None:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            self._write_atomic(self.rejected_path, self._rejected)
            self._write_atomic(self.approved_path, self._approved)
        except OSError as e:
            raise ApprovalStateError(f"Cannot persist approval state in {self.directory}: {e}") from e


class ApprovalGate:
    """Classifies library names and collects the ones awaiting a decision."""

    def __init__(self, store: InMemoryApprovalStore, implicit_approved: Iterable[str] = ()):
        self.store = store
        self.implicit_approved = frozenset(implicit_approved)
        self.pending: set[str] = set()

    def decide(self, name: str) -> ApprovalState:
        state = self.store.state_of(name)
        if state is ApprovalState.PENDING and name in self.implicit_approved:
            return ApprovalState.APPROVED
        return state

    def hold(self, name: str) -> None:
        """Queue an undecided name for the next decision round."""
        if self.decide(name) is ApprovalState.PENDING:
            self.pending.add(name)

    def apply(self, decisions: Mapping[str, ApprovalState]) -> dict[str, ApprovalState]:
        applied = self.store.record(decisions)
        self.pending.difference_update(applied)
        return applied

    def reset_pending(self) -> None:
        self.pending.clear()
