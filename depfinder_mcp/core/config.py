"""Lightweight configuration loader for depfinder_mcp.

All configuration is loaded once from environment variables. Code can call
``get_config()`` to access the cached singleton, and tests can use
``reset_config()`` or build ad-hoc configs for dependency injection.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

ELF_BACKENDS = ("lief", "objdump")
INDEX_EXECUTORS = ("thread", "process")
DECISION_POLICIES = ("approve", "reject", "defer")


def _parse_int(value: str | None, default: int) -> int:
    try:
        return int(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def _parse_choice(value: str | None, choices: tuple[str, ...], default: str) -> str:
    if value is None:
        return default
    value = value.strip().lower()
    return value if value in choices else default


def _parse_path(value: str | None) -> Path | None:
    if not value or not value.strip():
        return None
    return Path(value.strip()).expanduser()


@dataclass(frozen=True)
class Config:
    """Immutable snapshot of runtime configuration."""

    workspace: Path
    log_level: str
    log_file: Path
    log_format: str
    elf_backend: str
    objdump_path: str
    tool_timeout: int
    max_file_size: int
    index_workers: int
    index_executor: str
    decision_policy: str
    decision_file: Path | None
    mcp_transport: str
    max_passes: int = 100

    @classmethod
    def from_env(cls) -> "Config":
        """Build a configuration object from environment variables."""
        workspace = (
            Path(os.getenv("DEPFINDER_WORKSPACE", "~/.depfinder/workspace")).expanduser().resolve()
        )
        log_level = os.getenv("LOG_LEVEL", "INFO").upper()
        log_file = Path(os.getenv("LOG_FILE", "/tmp/depfinder/app.log")).expanduser()
        log_format = os.getenv("LOG_FORMAT", "human").lower()

        return cls(
            workspace=workspace,
            log_level=log_level,
            log_file=log_file,
            log_format=log_format,
            elf_backend=_parse_choice(os.getenv("DEPFINDER_ELF_BACKEND"), ELF_BACKENDS, "lief"),
            objdump_path=os.getenv("DEPFINDER_OBJDUMP", "objdump"),
            tool_timeout=_parse_int(os.getenv("DEPFINDER_TOOL_TIMEOUT"), default=60),
            max_file_size=_parse_int(os.getenv("DEPFINDER_MAX_FILE_SIZE"), default=500_000_000),
            index_workers=max(0, _parse_int(os.getenv("DEPFINDER_INDEX_WORKERS"), default=0)),
            index_executor=_parse_choice(
                os.getenv("DEPFINDER_INDEX_EXECUTOR"), INDEX_EXECUTORS, "thread"
            ),
            decision_policy=_parse_choice(
                os.getenv("DEPFINDER_DECISION_POLICY"), DECISION_POLICIES, "defer"
            ),
            decision_file=_parse_path(os.getenv("DEPFINDER_DECISION_FILE")),
            mcp_transport=os.getenv("MCP_TRANSPORT", "stdio").lower(),
            max_passes=max(1, _parse_int(os.getenv("DEPFINDER_MAX_PASSES"), default=100)),
        )

    def resolve_output_dir(self, output_dir: str | Path) -> Path:
        """Return ``output_dir`` as an absolute path, relative ones under the workspace."""
        path = Path(output_dir).expanduser()
        if not path.is_absolute():
            path = self.workspace / path
        return path.resolve()


_CONFIG: Config | None = None


def get_config() -> Config:
    """Return the cached Config instance, loading it on first access."""
    global _CONFIG
    if _CONFIG is None:
        _CONFIG = Config.from_env()
    return _CONFIG


def reset_config() -> Config:
    """Reload configuration from the current environment (primarily for tests)."""
    global _CONFIG
    _CONFIG = Config.from_env()
    return _CONFIG
