"""
Safe subprocess execution with streaming and output limits.

This module runs external ELF introspection tools (objdump) with:
- Streaming output to prevent OOM on large outputs
- Configurable output size limits
- Timeout handling
- Proper error handling and reporting
"""

import asyncio
import subprocess
import threading
from collections.abc import Coroutine
from typing import Any

from depfinder_mcp.core.exceptions import ExecutionTimeoutError, ToolNotFoundError
from depfinder_mcp.core.logging_config import get_logger

logger = get_logger(__name__)

MAX_STDERR_SIZE = 64 * 1024


class _BackgroundLoopRunner:
    """Run asyncio coroutines on a dedicated background event loop."""

    def __init__(self) -> None:
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="DepFinderAsyncLoop",
            daemon=True,
        )
        self._thread.start()

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    def run(self, coro: Coroutine[Any, Any, tuple[str, int]]) -> tuple[str, int]:
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result()


_BACKGROUND_LOOP_LOCK = threading.Lock()
_BACKGROUND_LOOP_RUNNER: _BackgroundLoopRunner | None = None


def _get_background_runner() -> _BackgroundLoopRunner:
    global _BACKGROUND_LOOP_RUNNER
    with _BACKGROUND_LOOP_LOCK:
        if _BACKGROUND_LOOP_RUNNER is None:
            _BACKGROUND_LOOP_RUNNER = _BackgroundLoopRunner()
        return _BACKGROUND_LOOP_RUNNER


async def execute_subprocess_async(
    cmd: list[str],
    max_output_size: int = 10_000_000,
    timeout: int = 60,
    encoding: str = "utf-8",
    errors: str = "replace",
) -> tuple[str, int]:
    """
    Execute a subprocess command asynchronously with streaming output and size limits.

    Output beyond ``max_output_size`` is dropped and a truncation warning is
    appended to the returned text.

    Args:
        cmd: Command and arguments as a list (e.g., ["objdump", "-p", "libfoo.so"])
        max_output_size: Maximum output size in bytes (default: 10MB)
        timeout: Maximum execution time in seconds (default: 60)
        encoding: Text encoding for output (default: "utf-8")
        errors: Error handling for encoding (default: "replace")

    Returns:
        Tuple of (output_text, bytes_read)

    Raises:
        ToolNotFoundError: If the command executable is not found
        ExecutionTimeoutError: If the command exceeds the timeout
        subprocess.CalledProcessError: If the command returns non-zero exit code
    """
    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError:
        raise ToolNotFoundError(cmd[0] if cmd else "unknown")

    output_chunks: list[str] = []
    stderr_chunks: list[bytes] = []
    bytes_read = 0
    stderr_read = 0

    async def read_stdout() -> None:
        nonlocal bytes_read
        while True:
            chunk = await process.stdout.read(8192)
            if not chunk:
                break
            bytes_read += len(chunk)
            if bytes_read <= max_output_size:
                output_chunks.append(chunk.decode(encoding, errors=errors))

    async def read_stderr() -> None:
        # Drained concurrently with stdout; a full stderr pipe stalls the child
        nonlocal stderr_read
        while True:
            chunk = await process.stderr.read(8192)
            if not chunk:
                break
            stderr_read += len(chunk)
            if stderr_read <= MAX_STDERR_SIZE:
                stderr_chunks.append(chunk)

    async def read_streams() -> None:
        await asyncio.gather(read_stdout(), read_stderr())

    try:
        await asyncio.wait_for(read_streams(), timeout=timeout)
        await asyncio.wait_for(process.wait(), timeout=1.0)
    except asyncio.TimeoutError:
        logger.warning(f"Command timed out after {timeout}s: {' '.join(cmd)}")
        raise ExecutionTimeoutError(timeout)
    finally:
        if process.returncode is None:
            try:
                process.kill()
                await asyncio.wait_for(process.wait(), timeout=2.0)
            except (ProcessLookupError, asyncio.TimeoutError) as e:
                logger.error(f"Failed to reap process {process.pid}: {e}")

    stderr_data = b"".join(stderr_chunks)
    output_text = "".join(output_chunks)

    if bytes_read > max_output_size:
        output_text += (
            f"\n\n[WARNING: Output truncated at {max_output_size} bytes. "
            f"Total output size: {bytes_read} bytes]"
        )

    if process.returncode != 0:
        raise subprocess.CalledProcessError(
            process.returncode,
            cmd,
            output=output_text,
            stderr=stderr_data.decode(encoding, errors=errors) if stderr_data else "",
        )

    return output_text, bytes_read


def execute_subprocess_streaming(
    cmd: list[str],
    max_output_size: int = 10_000_000,
    timeout: int = 60,
    encoding: str = "utf-8",
    errors: str = "replace",
) -> tuple[str, int]:
    """
    Synchronous wrapper around :func:`execute_subprocess_async`.

    Safe to call from worker threads (each gets its own ``asyncio.run``) and
    from code already running inside an event loop (delegated to a background
    loop thread).
    """
    coro = execute_subprocess_async(
        cmd,
        max_output_size=max_output_size,
        timeout=timeout,
        encoding=encoding,
        errors=errors,
    )

    try:
        running_loop = asyncio.get_running_loop()
    except RuntimeError:
        running_loop = None

    if running_loop and running_loop.is_running():
        return _get_background_runner().run(coro)

    return asyncio.run(coro)
