"""Async build runner.

Runs the configured build command as a shell subprocess in the project
root, captures stdout/stderr line by line, and counts compiler-style error
diagnostics to produce the `BuildOutcome` the agent consumes.

The command string is used verbatim; constructing tool-specific arguments
is the host's concern.
"""

import asyncio
import logging
import re
import time
from pathlib import Path
from typing import Optional

from wisdom.agent.types import BuildOutcome
from wisdom.build.types import BuildResult, BuildRunError

logger = logging.getLogger(__name__)

# Matches "error:" diagnostics from swiftc/clang/gcc/rustc/tsc-style output,
# including codes like "error[E0308]:" and "error TS2322:"
DEFAULT_ERROR_PATTERN = r"(?i)\berror\b\s*(?:\[[^\]]*\]|[a-z]+\d+)?\s*:"

# Exit code reported when the process never produced one
_EXIT_KILLED = -2


class BuildRunner:
    """Runs one build at a time and remembers the last result."""

    def __init__(
        self,
        root: Path,
        command: str,
        timeout: Optional[float] = None,
        error_pattern: str = DEFAULT_ERROR_PATTERN,
        env: Optional[dict] = None,
    ) -> None:
        self.root = Path(root)
        self.command = command
        self.timeout = timeout
        self.env = env
        self._error_re = re.compile(error_pattern)
        self._process: Optional[asyncio.subprocess.Process] = None
        self.last_result: Optional[BuildResult] = None

    @property
    def is_building(self) -> bool:
        return self._process is not None

    async def run(self) -> BuildOutcome:
        """Run the build and return its outcome.

        Raises BuildRunError if a build is already running, the command
        cannot be started, or it exceeds `timeout`.
        """
        result = await self.run_result()
        return BuildOutcome(error_count=result.error_count, successful=result.is_success)

    async def run_result(self) -> BuildResult:
        if self._process is not None:
            raise BuildRunError("A build is already in progress")
        if not self.root.is_dir():
            raise BuildRunError(f"Build working directory does not exist: {self.root}")

        logger.info("Running build: %s (cwd=%s)", self.command, self.root)
        start = time.monotonic()
        try:
            process = await asyncio.create_subprocess_shell(
                self.command,
                cwd=str(self.root),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self.env,
            )
        except OSError as exc:
            raise BuildRunError(f"Failed to start build command: {exc}")

        self._process = process
        try:
            try:
                stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
            except asyncio.TimeoutError:
                self._kill(process)
                await process.wait()
                raise BuildRunError(f"Build timed out after {self.timeout} seconds")
            except asyncio.CancelledError:
                self._kill(process)
                raise
        finally:
            self._process = None

        duration = time.monotonic() - start
        stdout_lines = _decode_lines(stdout)
        stderr_lines = _decode_lines(stderr)
        result = BuildResult(
            command=self.command,
            exit_code=process.returncode if process.returncode is not None else _EXIT_KILLED,
            duration_seconds=duration,
            stdout_lines=stdout_lines,
            stderr_lines=stderr_lines,
            error_lines=[
                line for line in stdout_lines + stderr_lines if self._error_re.search(line)
            ],
        )
        self.last_result = result

        status = "OK" if result.is_success else "FAILED"
        logger.info(
            "Build %s (exit=%d, errors=%d, %.1fs)",
            status, result.exit_code, result.error_count, result.duration_seconds,
        )
        if not result.is_success and stderr_lines:
            logger.warning("Build stderr (tail):\n%s", _truncate_output(stderr_lines))
        return result

    def stop(self) -> None:
        """Terminate a running build. Safe to call when idle."""
        if self._process is not None:
            self._kill(self._process)

    def errors(self) -> str:
        """Error diagnostics from the last build, one per line."""
        if self.last_result is None:
            return ""
        return "\n".join(self.last_result.error_lines)

    @staticmethod
    def _kill(process: asyncio.subprocess.Process) -> None:
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass


def _decode_lines(data: Optional[bytes]) -> list[str]:
    if not data:
        return []
    return data.decode("utf-8", errors="replace").splitlines()


def _truncate_output(lines: list[str], max_lines: int = 60, max_chars: int = 4000) -> str:
    """Return a concise tail of command output for logs."""
    joined = "\n".join(lines[-max_lines:])
    if len(joined) > max_chars:
        joined = joined[-max_chars:]
    return joined
