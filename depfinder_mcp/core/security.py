"""
Input validation for user-supplied paths.

Paths typed at a prompt or pasted from a file manager often carry quotes,
stray whitespace, or a leading ``~``; they are cleaned before validation.
The validators return canonical (symlink-resolved, absolute) paths.
"""

import os
from functools import lru_cache
from pathlib import Path

from depfinder_mcp.core.exceptions import (
    OutputRootUnavailableError,
    SearchRootUnavailableError,
    ValidationError,
)

PATH_VALIDATION_CACHE_SIZE = 256


def clean_path(raw: str) -> str:
    """Strip whitespace and one pair of surrounding quotes, expand ``~``."""
    value = raw.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        value = value[1:-1]
    return os.path.expanduser(value)


@lru_cache(maxsize=PATH_VALIDATION_CACHE_SIZE)
def _canonical_existing(path_str: str) -> Path:
    """Cached symlink resolution of an existing path; failures raise and are not cached."""
    return Path(path_str).resolve(strict=True)


def _resolve_path(path_str: str) -> tuple[Path, bool, bool, str]:
    """
    Resolve ``path_str`` and stat it afresh.

    Returns:
        Tuple of (resolved_path, is_file, is_dir, error_message)
    """
    try:
        abs_path = _canonical_existing(path_str)
    except (OSError, RuntimeError) as e:
        return (Path(path_str), False, False, str(e))
    return (abs_path, abs_path.is_file(), abs_path.is_dir(), "")


def validate_file_path(path: str | Path) -> Path:
    """
    Validate that ``path`` names an existing regular file.

    Returns:
        The canonical absolute path

    Raises:
        ValidationError: If the path does not exist or is not a file
    """
    path_str = clean_path(str(path))
    abs_path, is_file, _, error = _resolve_path(path_str)
    if error:
        raise ValidationError(
            f"Invalid file path: {path_str}. Error: {error}",
            details={"path": path_str, "error": error},
        )
    if not is_file:
        raise ValidationError(
            f"Path does not point to a file: {abs_path}",
            details={"path": str(abs_path)},
        )
    return abs_path


def validate_search_root(path: str | Path) -> Path:
    """
    Validate the extracted firmware root.

    Raises:
        SearchRootUnavailableError: If it is missing, not a directory, or unreadable
    """
    path_str = clean_path(str(path))
    abs_path, _, is_dir, error = _resolve_path(path_str)
    if error:
        raise SearchRootUnavailableError(Path(path_str), reason="missing")
    if not is_dir:
        raise SearchRootUnavailableError(abs_path, reason="not a directory")
    if not os.access(abs_path, os.R_OK | os.X_OK):
        raise SearchRootUnavailableError(abs_path, reason="not readable")
    return abs_path


def prepare_output_root(path: str | Path) -> Path:
    """
    Create the output directory if needed and check that it is writable.

    Raises:
        OutputRootUnavailableError: If it cannot be created or written
    """
    output = Path(clean_path(str(path)))
    if output.exists() and not output.is_dir():
        raise OutputRootUnavailableError(output, reason="not a directory")
    try:
        output.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise OutputRootUnavailableError(output, reason=f"not creatable ({e})") from e
    output = output.resolve()
    if not os.access(output, os.W_OK | os.X_OK):
        raise OutputRootUnavailableError(output)
    return output


def clear_validation_cache() -> None:
    """Forget cached resolutions (tests create and delete paths freely)."""
    _canonical_existing.cache_clear()
