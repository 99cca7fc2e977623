"""Types for the build runner."""

from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass
class BuildResult:
    """Result of one build command run.

    Captures exit code, timing, and output lines for the generator prompt.
    A build is successful if exit_code == 0.
    """

    command: str
    exit_code: int
    duration_seconds: float
    stdout_lines: list[str] = field(default_factory=list)
    stderr_lines: list[str] = field(default_factory=list)
    error_lines: list[str] = field(default_factory=list)
    finished_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    @property
    def is_success(self) -> bool:
        return self.exit_code == 0

    @property
    def error_count(self) -> int:
        """Diagnostic lines matched, or 1 for a failure that matched none."""
        if self.error_lines:
            return len(self.error_lines)
        return 0 if self.is_success else 1

    def to_dict(self) -> dict:
        return {
            "command": self.command,
            "exit_code": self.exit_code,
            "duration_seconds": round(self.duration_seconds, 3),
            "stdout_lines": len(self.stdout_lines),
            "stderr_lines": len(self.stderr_lines),
            "error_count": self.error_count,
            "is_success": self.is_success,
            "finished_at": self.finished_at,
        }


class BuildRunError(Exception):
    """Raised when the build could not be run to completion.

    A build that runs and exits non-zero is not an error — it produces a
    failed `BuildOutcome`. This covers commands that cannot start, time
    out, or overlap another build.
    """

    def __init__(self, message: str, stderr: str = ""):
        self.stderr = stderr
        super().__init__(message)
