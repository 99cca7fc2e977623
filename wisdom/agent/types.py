"""Types for the agent orchestration engine.

`Operation` and `Proposal` describe a batch of file edits returned by the
generation service. `BuildOutcome` is the per-cycle verdict produced by the
build collaborator. `LogEntry` is one record in the audit log, and
`CycleReport` is what a single build → generate → apply cycle hands back to
the orchestrator.

All model types are immutable; the orchestrator's mutable run state lives
in `wisdom.agent.orchestrator` and is never exposed directly.
"""

import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from pathlib import PurePosixPath
from typing import Optional

from wisdom.agent.errors import EmptyProposalError, MissingContentError

# Default policy values, mirrored by `wisdom.core.config.Settings`
DEFAULT_MAX_NO_IMPROVEMENT_COUNT = 5
DEFAULT_GENERATE_TIMEOUT_SECONDS = 60.0


class OperationKind(StrEnum):
    """Kind of file mutation carried by an `Operation`."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"

    @property
    def requires_content(self) -> bool:
        return self is not OperationKind.DELETE


class LogKind(StrEnum):
    """Severity / category of an audit log entry."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    ACTION = "action"   # a file operation was executed


class StopReason(StrEnum):
    """Which idle transition ended the last run."""

    COMPLETED = "completed"        # clean build with continue_on_success=False
    STOPPED = "stopped"            # external stop()
    POLICY_HALT = "policy_halt"    # no-improvement threshold reached


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Operation:
    """One file mutation inside a proposal.

    `path` is repo-relative. `content` is plain text in memory; the wire
    codec base64-encodes it. Content is mandatory for create/update and is
    dropped for delete.
    """

    id: str
    language: str
    kind: OperationKind
    path: str
    content: Optional[str] = None

    def __post_init__(self) -> None:
        kind = OperationKind(self.kind)
        object.__setattr__(self, "kind", kind)
        if kind.requires_content and self.content is None:
            raise MissingContentError(self.id, kind.value)
        if not kind.requires_content and self.content is not None:
            object.__setattr__(self, "content", None)

    @property
    def file_name(self) -> str:
        return PurePosixPath(self.path).name

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "language": self.language,
            "kind": self.kind.value,
            "path": self.path,
            "has_content": self.content is not None,
        }


@dataclass(frozen=True)
class Proposal:
    """An ordered batch of operations produced by one generate call."""

    id: str
    operations: tuple[Operation, ...] = ()
    timestamp: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        object.__setattr__(self, "operations", tuple(self.operations))

    @property
    def is_empty(self) -> bool:
        return not self.operations

    def require_operations(self) -> tuple[Operation, ...]:
        """Return the operations, rejecting a proposal that has none.

        An empty proposal cannot drive further work; callers handing a
        proposal to the apply phase must go through this check.
        """
        if self.is_empty:
            raise EmptyProposalError(self.id)
        return self.operations

    def get_operation(self, operation_id: str) -> Optional[Operation]:
        return next((op for op in self.operations if op.id == operation_id), None)


@dataclass(frozen=True)
class BuildOutcome:
    """Verdict of one build: error count plus the build's own success flag.

    The two fields are not required to agree — a build may exit cleanly
    while still reporting warnings counted as errors. The engine consumes
    the pair as given.
    """

    error_count: int
    successful: bool

    def __post_init__(self) -> None:
        if self.error_count < 0:
            raise ValueError(f"error_count must be non-negative, got {self.error_count}")

    def summary(self) -> str:
        """Human-readable status string passed to the generator."""
        status = "successful" if self.successful else "failed"
        return f"Build {status} with {self.error_count} errors."


@dataclass(frozen=True)
class AgentOptions:
    """Per-run policy consumed by `Agent.start`.

    max_no_improvement_count: consecutive non-improving (or failed) cycles
        tolerated before the loop halts. Must be >= 1.
    continue_on_success: keep iterating after a successful build.
    generate_timeout: seconds allowed for the generate phase; None disables
        the timeout race.
    abort_on_operation_failure: fail the whole cycle on the first failed
        file operation instead of logging it and continuing.
    """

    max_no_improvement_count: int = DEFAULT_MAX_NO_IMPROVEMENT_COUNT
    continue_on_success: bool = True
    generate_timeout: Optional[float] = DEFAULT_GENERATE_TIMEOUT_SECONDS
    abort_on_operation_failure: bool = False

    def __post_init__(self) -> None:
        if self.max_no_improvement_count < 1:
            raise ValueError(
                f"max_no_improvement_count must be >= 1, got {self.max_no_improvement_count}"
            )
        if self.generate_timeout is not None and self.generate_timeout <= 0:
            raise ValueError(
                f"generate_timeout must be positive or None, got {self.generate_timeout}"
            )


@dataclass(frozen=True)
class LogEntry:
    """A single append-only audit record."""

    kind: LogKind
    message: str
    details: Optional[str] = None
    proposal_id: Optional[str] = None
    operation_id: Optional[str] = None
    phase: Optional[str] = None        # "agent" | "cycle" | "build" | "generate" | "apply"
    iteration: Optional[int] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "kind": self.kind.value,
            "message": self.message,
            "details": self.details,
            "proposal_id": self.proposal_id,
            "operation_id": self.operation_id,
            "phase": self.phase,
            "iteration": self.iteration,
        }


@dataclass(frozen=True)
class CycleReport:
    """Result of one successful build → generate → apply cycle.

    `outcome` is the verdict the orchestrator feeds into its termination
    policy. The operation id lists describe how far the apply phase got:
    `skipped` is non-empty only when the cycle was cancelled mid-apply.
    """

    outcome: BuildOutcome
    proposal_id: str
    applied: tuple[str, ...] = ()
    failed: tuple[str, ...] = ()
    skipped: tuple[str, ...] = ()
    cancelled: bool = False

    @property
    def applied_count(self) -> int:
        return len(self.applied)


@dataclass(frozen=True)
class RunStateSnapshot:
    """Read-only view of the orchestrator's run state."""

    is_running: bool
    iteration_count: int
    no_improvement_count: int
    last_error_count: float = math.inf
    current_task_id: Optional[str] = None
    stop_reason: Optional[StopReason] = None
