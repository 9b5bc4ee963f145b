"""Subprocess runner for the external coverage and test tools.

Runs one command at a time, with optional timeout and output capture, and
reports failures as :class:`SubprocessFailureError` carrying the exit code.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

logger = logging.getLogger(__name__)


@dataclass
class SubprocessResult:
    """Result of subprocess execution."""

    returncode: int
    """Exit code of the process."""

    stdout: str
    """Standard output captured from the process (empty when not captured)."""

    stderr: str
    """Standard error captured from the process (empty when not captured)."""

    success: bool
    """True if returncode is 0."""

    timed_out: bool = False
    """True if the process was terminated due to timeout."""

    duration_ms: float = 0.0
    """Actual duration of execution in milliseconds."""


async def run_subprocess(
    command: Sequence[str],
    *,
    cwd: Path | None = None,
    timeout: float | None = None,
    env: Mapping[str, str] | None = None,
    check: bool = False,
    capture: bool = True,
) -> SubprocessResult:
    """Execute a command in a subprocess.

    Args:
        command: Command and arguments as a sequence (e.g. ['node', 'cli.js', 'report']).
        cwd: Working directory for the subprocess. Defaults to current directory.
        timeout: Maximum seconds to wait for completion. None waits indefinitely.
        env: Environment variables to set on top of the current environment.
        check: If True, raise SubprocessFailureError on non-zero exit code.
        capture: If False, the child writes directly to this process's
            stdout/stderr instead of being captured.

    Returns:
        SubprocessResult with exit code, output, and metadata.

    Raises:
        SubprocessFailureError: If check=True and the command fails, or the
            command cannot be started.
        ValueError: If command is empty or timeout is invalid.
    """
    if not command:
        raise ValueError("Command cannot be empty")

    if timeout is not None and timeout <= 0:
        raise ValueError(f"Timeout must be positive, got {timeout}")

    work_dir = cwd.resolve() if cwd else Path.cwd()
    if not work_dir.exists():
        raise ValueError(f"Working directory does not exist: {work_dir}")

    full_env = {**os.environ, **env} if env else None
    stream = asyncio.subprocess.PIPE if capture else None

    logger.debug(
        "Running subprocess: %s (cwd=%s, timeout=%s)",
        " ".join(str(c) for c in command),
        work_dir,
        timeout,
    )

    start_time = time.perf_counter()
    timed_out = False

    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdout=stream,
            stderr=stream,
            cwd=work_dir,
            env=full_env,
        )

        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                process.communicate(), timeout=timeout
            )
        except TimeoutError:
            logger.warning("Subprocess timed out after %s seconds", timeout)
            timed_out = True
            try:
                process.kill()
                await process.wait()
            except ProcessLookupError:
                pass  # Process already terminated

            stdout_bytes = b""
            stderr_bytes = b"Process timed out and was killed"

        duration_ms = (time.perf_counter() - start_time) * 1000

        stdout = (stdout_bytes or b"").decode("utf-8", errors="replace")
        stderr = (stderr_bytes or b"").decode("utf-8", errors="replace")
        returncode = process.returncode or (-1 if timed_out else 0)

        result = SubprocessResult(
            returncode=returncode,
            stdout=stdout,
            stderr=stderr,
            success=(returncode == 0 and not timed_out),
            timed_out=timed_out,
            duration_ms=duration_ms,
        )

        logger.debug(
            "Subprocess completed: returncode=%d, duration=%.2fms, success=%s",
            returncode,
            duration_ms,
            result.success,
        )

        if check and not result.success:
            raise SubprocessFailureError(
                f"Command failed with exit code {returncode}: {' '.join(str(c) for c in command)}",
                result=result,
            )

        return result

    except SubprocessFailureError:
        raise

    except FileNotFoundError as exc:
        logger.error("Command not found: %s", command[0])
        raise SubprocessFailureError(
            f"Command not found: {command[0]}",
            result=SubprocessResult(
                returncode=-1,
                stdout="",
                stderr=str(exc),
                success=False,
            ),
        ) from exc

    except OSError as exc:
        logger.exception("Unexpected error running subprocess")
        raise SubprocessFailureError(
            f"Subprocess execution failed: {exc}",
            result=SubprocessResult(
                returncode=-1,
                stdout="",
                stderr=str(exc),
                success=False,
            ),
        ) from exc


class SubprocessFailureError(Exception):
    """Exception raised when a subprocess fails or cannot be started."""

    def __init__(self, message: str, result: SubprocessResult) -> None:
        """Initialize with error message and result.

        Args:
            message: Error description.
            result: The SubprocessResult from the failed execution.
        """
        super().__init__(message)
        self.result = result

    @property
    def exit_code(self) -> int:
        """Exit code to propagate: the child's own code, or 1 if it never ran."""
        if self.result.returncode > 0:
            return self.result.returncode
        return 1
