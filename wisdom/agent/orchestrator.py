"""Agent orchestrator — owns the iterate-build-generate-apply loop.

Loop (one `AgentTask` per iteration):
  1. Run the task; it returns a `CycleReport` or raises an `AgentError`.
  2. Compare the cycle's error count against the previous one: a strict
     decrease resets the no-improvement counter, anything else (including a
     tie) increments it. A failed cycle also increments it.
  3. Stop when the build succeeds and `continue_on_success` is off
     (completed), when the counter reaches `max_no_improvement_count`
     (policy halt), or when `stop()` was called (stopped).

The run state is private to the orchestrator and only mutated from the
coroutine running `start`; readers get a frozen `RunStateSnapshot`.
Everything the engine does is recorded in the `AuditLog`, which is the only
way to observe progress from outside.
"""

import logging
import math
import uuid
from dataclasses import dataclass
from typing import Optional

from wisdom.agent.audit import AuditLog
from wisdom.agent.errors import (
    AgentError,
    BuildFailed,
    FileOperationFailed,
    GenerateFailed,
)
from wisdom.agent.task import AgentTask, ApplyFn, BuildFn, CancellationToken, GenerateFn
from wisdom.agent.types import (
    AgentOptions,
    CycleReport,
    LogEntry,
    LogKind,
    Operation,
    Proposal,
    RunStateSnapshot,
    StopReason,
)
from wisdom.core.logging import bind_iteration, bind_run_id, clear_run_context

logger = logging.getLogger(__name__)


@dataclass
class _RunState:
    is_running: bool = False
    # Cleared only when the loop itself exits; stop() leaves it set
    loop_active: bool = False
    iteration_count: int = 0
    no_improvement_count: int = 0
    last_error_count: float = math.inf
    current_task: Optional[AgentTask] = None
    stop_reason: Optional[StopReason] = None


class Agent:
    """Stateful orchestrator. One run at a time per instance."""

    def __init__(self, audit_log: Optional[AuditLog] = None) -> None:
        self.audit_log = audit_log if audit_log is not None else AuditLog()
        self._state = _RunState()
        self._token: Optional[CancellationToken] = None
        self._proposals: list[Proposal] = []
        self._run_id: str = ""

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._state.is_running

    @property
    def state(self) -> RunStateSnapshot:
        task = self._state.current_task
        return RunStateSnapshot(
            is_running=self._state.is_running,
            iteration_count=self._state.iteration_count,
            no_improvement_count=self._state.no_improvement_count,
            last_error_count=self._state.last_error_count,
            current_task_id=task.id if task else None,
            stop_reason=self._state.stop_reason,
        )

    @property
    def proposals(self) -> tuple[Proposal, ...]:
        return tuple(self._proposals)

    def get_proposal(self, proposal_id: str) -> Optional[Proposal]:
        return next((p for p in self._proposals if p.id == proposal_id), None)

    def latest_proposal(self) -> Optional[Proposal]:
        return self._proposals[-1] if self._proposals else None

    def get_operation(self, operation_id: str) -> Optional[Operation]:
        for proposal in self._proposals:
            operation = proposal.get_operation(operation_id)
            if operation is not None:
                return operation
        return None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(
        self,
        message: str,
        options: Optional[AgentOptions] = None,
        *,
        build: BuildFn,
        generate: GenerateFn,
        apply_operation: ApplyFn,
    ) -> None:
        """Run the improvement loop until completion, policy halt, or stop().

        Returns nothing; progress is observable through `audit_log` and
        `state`. No exception escapes the loop except a cancellation of the
        calling coroutine itself, and the run state is reset to idle first.

        A start request is ignored while a previous loop is still unwinding,
        including the window between `stop()` and that loop's exit.
        """
        if self._state.loop_active:
            self._log(LogKind.WARNING, "Agent is already running, ignoring start request", phase="agent")
            return

        options = options or AgentOptions()
        state = self._state
        state.is_running = True
        state.loop_active = True
        state.iteration_count = 0
        state.no_improvement_count = 0
        state.last_error_count = math.inf
        state.current_task = None
        state.stop_reason = None
        self._token = CancellationToken()
        self._run_id = str(uuid.uuid4())
        bind_run_id(self._run_id)

        self._log(LogKind.INFO, f"Agent started with message: {message}", phase="agent")

        try:
            while state.is_running and (
                state.iteration_count == 0
                or state.no_improvement_count < options.max_no_improvement_count
            ):
                state.iteration_count += 1
                iteration = state.iteration_count
                bind_iteration(iteration)

                task = AgentTask(
                    message=message,
                    build=build,
                    generate=generate,
                    apply_operation=apply_operation,
                    options=options,
                    token=self._token,
                    iteration=iteration,
                )
                state.current_task = task
                self._log(LogKind.INFO, "Starting new iteration", phase="cycle", iteration=iteration)

                report: Optional[CycleReport] = None
                try:
                    report = await task.run(log_handler=self._relay)
                except AgentError as exc:
                    self._log_cycle_failure(exc, iteration)
                    state.no_improvement_count += 1
                except Exception as exc:
                    logger.exception("Unexpected error in cycle %d", iteration)
                    self._log(
                        LogKind.ERROR,
                        "Unexpected error in cycle",
                        details=f"{type(exc).__name__}: {exc}",
                        phase="cycle",
                        iteration=iteration,
                    )
                    state.no_improvement_count += 1
                finally:
                    if task.proposal is not None:
                        self._proposals.append(task.proposal)

                if report is not None:
                    self._track_improvement(report, iteration)

                # stop() takes precedence over completion and policy halt
                if self._token.is_cancelled:
                    break

                if (
                    report is not None
                    and report.outcome.successful
                    and not options.continue_on_success
                ):
                    self._log(
                        LogKind.INFO,
                        "Build successful, stopping agent as configured",
                        phase="cycle",
                        iteration=iteration,
                    )
                    state.stop_reason = StopReason.COMPLETED
                    break

                if state.no_improvement_count >= options.max_no_improvement_count:
                    self._log(
                        LogKind.WARNING,
                        "No improvement after multiple attempts",
                        details=f"Attempts: {options.max_no_improvement_count}",
                        phase="cycle",
                        iteration=iteration,
                    )
                    state.stop_reason = StopReason.POLICY_HALT
                    break

                state.current_task = None

            if state.stop_reason is None:
                state.stop_reason = StopReason.STOPPED
            self._log(
                LogKind.INFO,
                f"Agent stopped after {state.iteration_count} iterations",
                details=f"Reason: {state.stop_reason.value}",
                phase="agent",
            )
        finally:
            state.is_running = False
            state.loop_active = False
            state.current_task = None
            clear_run_context()

    def stop(self) -> None:
        """Request a cooperative stop. Idempotent."""
        if self._state.is_running:
            self._state.is_running = False
            if self._token is not None:
                self._token.cancel()
            if self._state.current_task is not None:
                self._state.current_task.stop()
            self._log(LogKind.INFO, "Agent stop requested", phase="agent")
        else:
            self._log(LogKind.INFO, "Agent stop requested, but agent was not running", phase="agent")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _track_improvement(self, report: CycleReport, iteration: int) -> None:
        state = self._state
        error_count = report.outcome.error_count
        if error_count >= state.last_error_count:
            state.no_improvement_count += 1
            self._log(
                LogKind.WARNING,
                "No improvement in error count",
                details=f"Current: {error_count}, Last: {_format_count(state.last_error_count)}",
                proposal_id=report.proposal_id,
                phase="build",
                iteration=iteration,
            )
        else:
            state.no_improvement_count = 0
            self._log(
                LogKind.INFO,
                "Error count improved",
                details=f"From {_format_count(state.last_error_count)} to {error_count}",
                proposal_id=report.proposal_id,
                phase="build",
                iteration=iteration,
            )
        state.last_error_count = error_count

    def _log_cycle_failure(self, exc: AgentError, iteration: int) -> None:
        self._log(LogKind.ERROR, "Error in cycle", details=exc.reason, phase="cycle", iteration=iteration)

        operation_id = None
        if isinstance(exc, BuildFailed):
            message = "Build failed"
        elif isinstance(exc, GenerateFailed):
            message = f"Generate failed ({exc.code.value})"
        elif isinstance(exc, FileOperationFailed):
            message = "File operation failed"
            operation_id = exc.operation_id
        else:
            message = "Cycle failed"

        task = self._state.current_task
        self._log(
            LogKind.ERROR,
            message,
            details=exc.reason,
            proposal_id=task.proposal.id if task and task.proposal else None,
            operation_id=operation_id,
            phase=exc.phase,
            iteration=iteration,
        )

    def _relay(self, entry: LogEntry) -> None:
        self.audit_log.append(entry)

    def _log(
        self,
        kind: LogKind,
        message: str,
        details: Optional[str] = None,
        proposal_id: Optional[str] = None,
        operation_id: Optional[str] = None,
        phase: Optional[str] = None,
        iteration: Optional[int] = None,
    ) -> LogEntry:
        return self.audit_log.record(
            kind,
            message,
            details=details,
            proposal_id=proposal_id,
            operation_id=operation_id,
            phase=phase,
            iteration=iteration,
        )


def _format_count(value: float) -> str:
    return "none" if math.isinf(value) else str(int(value))
