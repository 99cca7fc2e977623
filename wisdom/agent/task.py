"""Single-cycle executor: build → generate → apply.

An `AgentTask` runs exactly one cycle and either returns a `CycleReport`
or raises one of the tagged `AgentError`s. It never touches orchestrator
state: log entries go out through the `emit` callback and the verdict comes
back as the return value.

Phases:
  1. build    — await the build collaborator; any exception → BuildFailed.
  2. generate — race the generate collaborator against `generate_timeout`;
                the loser is cancelled. Timeout, decode error, empty
                proposal and any other failure each map to a distinct
                GenerateFailed code.
  3. apply    — operations are applied strictly in proposal order, checking
                the cancellation token before each one. A failed operation
                is logged and skipped unless `abort_on_operation_failure`
                is set. Nothing is rolled back.
"""

import asyncio
import logging
import threading
import time
import uuid
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from wisdom.agent.errors import (
    AgentError,
    BuildFailed,
    EmptyProposalError,
    FileOperationFailed,
    GenerateFailed,
    GenerateFailureCode,
    ProposalDecodeError,
)
from wisdom.agent.types import (
    AgentOptions,
    BuildOutcome,
    CycleReport,
    LogEntry,
    LogKind,
    Operation,
    Proposal,
)

logger = logging.getLogger(__name__)

BuildFn = Callable[[], Awaitable[BuildOutcome]]
GenerateFn = Callable[[str, str], Awaitable[Proposal]]
ApplyFn = Callable[[Operation], Awaitable[None]]
LogHandler = Callable[[LogEntry], None]

# How long a cancelled generate call is given to unwind before the cycle
# reports the timeout anyway
_CANCEL_GRACE_SECONDS = 0.1


class CancellationToken:
    """Cooperative cancellation flag shared by the agent and its tasks.

    Backed by a `threading.Event` so a host UI thread may call `cancel()`
    while the loop runs on an event loop thread.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()


class _GenerateTimeout(Exception):
    def __init__(self, seconds: float):
        self.seconds = seconds
        super().__init__(f"Operation timed out after {seconds:g} seconds")


class AgentTask:
    """One build → generate → apply cycle."""

    def __init__(
        self,
        message: str,
        build: BuildFn,
        generate: GenerateFn,
        apply_operation: ApplyFn,
        options: AgentOptions,
        token: Optional[CancellationToken] = None,
        iteration: Optional[int] = None,
    ) -> None:
        self.id = str(uuid.uuid4())
        self.start_time = datetime.now(timezone.utc)
        self.iteration = iteration
        # The proposal produced by the generate phase, kept for the
        # orchestrator even when the apply phase later fails
        self.proposal: Optional[Proposal] = None

        self._message = message
        self._build = build
        self._generate = generate
        self._apply_operation = apply_operation
        self._options = options
        self._token = token or CancellationToken()
        self._log_handler: Optional[LogHandler] = None

    @property
    def is_cancelled(self) -> bool:
        return self._token.is_cancelled

    def stop(self) -> None:
        """Request cooperative cancellation; honoured before the next operation."""
        self._token.cancel()

    async def run(self, log_handler: Optional[LogHandler] = None) -> CycleReport:
        """Execute the cycle. Raises `AgentError` on failure."""
        self._log_handler = log_handler
        outcome = await self._run_build()
        proposal = await self._run_generate(outcome)
        return await self._run_apply(outcome, proposal)

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    async def _run_build(self) -> BuildOutcome:
        self._emit(LogKind.INFO, "Starting build process", phase="build")
        try:
            outcome = await self._build()
        except AgentError:
            raise
        except Exception as exc:
            raise BuildFailed(f"Build failed: {exc}") from exc

        if not isinstance(outcome, BuildOutcome):
            raise BuildFailed(
                f"Build collaborator returned {type(outcome).__name__}, expected BuildOutcome"
            )

        status = "successful" if outcome.successful else "failed"
        self._emit(
            LogKind.INFO,
            f"Build {status} with {outcome.error_count} errors",
            phase="build",
        )
        return outcome

    async def _run_generate(self, outcome: BuildOutcome) -> Proposal:
        self._emit(LogKind.INFO, "Starting code generation", phase="generate")
        summary = outcome.summary()
        started = time.monotonic()

        try:
            proposal = await self._generate_with_timeout(summary)
        except _GenerateTimeout as exc:
            self._emit(LogKind.ERROR, "Generation timed out", details=str(exc), phase="generate")
            raise GenerateFailed(
                f"Generation timed out after {exc.seconds:g}s",
                GenerateFailureCode.TIMEOUT,
            ) from exc
        except ProposalDecodeError as exc:
            self._emit(LogKind.ERROR, "Decoding error", details=str(exc), phase="generate")
            raise GenerateFailed(
                f"Decoding failed: possible data mismatch or incomplete response ({exc})",
                GenerateFailureCode.DECODE,
            ) from exc
        except AgentError:
            raise
        except Exception as exc:
            self._emit(
                LogKind.ERROR,
                "Unexpected generation error",
                details=f"{type(exc).__name__}: {exc}",
                phase="generate",
            )
            raise GenerateFailed(
                f"Generation failed: {exc}",
                GenerateFailureCode.TRANSPORT,
            ) from exc

        if not isinstance(proposal, Proposal):
            raise GenerateFailed(
                f"Generator returned {type(proposal).__name__}, expected Proposal",
                GenerateFailureCode.DECODE,
            )

        self.proposal = proposal
        duration = time.monotonic() - started
        self._emit(
            LogKind.INFO,
            "Generated proposal",
            details=f"Duration: {duration:.2f}s, Operations count: {len(proposal.operations)}",
            proposal_id=proposal.id,
            phase="generate",
        )

        try:
            proposal.require_operations()
        except EmptyProposalError as exc:
            self._emit(
                LogKind.WARNING,
                "Empty proposal",
                details="Generator returned no operations",
                proposal_id=proposal.id,
                phase="generate",
            )
            raise GenerateFailed(
                "Generator returned an empty proposal",
                GenerateFailureCode.EMPTY_PROPOSAL,
            ) from exc
        return proposal

    async def _run_apply(self, outcome: BuildOutcome, proposal: Proposal) -> CycleReport:
        operations = proposal.require_operations()
        self._emit(
            LogKind.INFO,
            "Starting file operations",
            details=f"{len(operations)} operations",
            proposal_id=proposal.id,
            phase="apply",
        )

        applied: list[str] = []
        failed: list[str] = []
        skipped: list[str] = []
        last_failure: Optional[FileOperationFailed] = None

        for index, operation in enumerate(operations):
            if self._token.is_cancelled:
                skipped = [op.id for op in operations[index:]]
                break

            try:
                await self._apply_operation(operation)
            except Exception as exc:
                failure = FileOperationFailed(
                    f"File operation failed for {operation.file_name}: {exc}",
                    operation_id=operation.id,
                )
                if self._options.abort_on_operation_failure:
                    raise failure from exc
                failed.append(operation.id)
                last_failure = failure
                self._emit(
                    LogKind.ERROR,
                    "File operation failed",
                    details=failure.reason,
                    proposal_id=proposal.id,
                    operation_id=operation.id,
                    phase="apply",
                )
                continue

            applied.append(operation.id)
            self._emit(
                LogKind.ACTION,
                "Executed file operation",
                details=f"{operation.kind.value} on file: {operation.file_name}",
                proposal_id=proposal.id,
                operation_id=operation.id,
                phase="apply",
            )

        cancelled = bool(skipped) or self._token.is_cancelled
        if cancelled:
            self._emit(
                LogKind.WARNING,
                "File operations cancelled",
                details=f"Applied: {len(applied)}, Skipped: {len(skipped)}",
                proposal_id=proposal.id,
                phase="apply",
            )

        if last_failure is not None and not applied and not cancelled:
            raise FileOperationFailed(
                f"All {len(failed)} attempted operations failed; last: {last_failure.reason}",
                operation_id=last_failure.operation_id,
            )

        if not cancelled:
            self._emit(
                LogKind.INFO,
                "Completed all file operations",
                details=f"Applied: {len(applied)}, Failed: {len(failed)}",
                proposal_id=proposal.id,
                phase="apply",
            )

        return CycleReport(
            outcome=outcome,
            proposal_id=proposal.id,
            applied=tuple(applied),
            failed=tuple(failed),
            skipped=tuple(skipped),
            cancelled=cancelled,
        )

    # ------------------------------------------------------------------
    # Timeout race
    # ------------------------------------------------------------------

    async def _generate_with_timeout(self, summary: str) -> Proposal:
        """Race the generate call against the timer; cancel whichever loses."""
        timeout = self._options.generate_timeout
        if timeout is None:
            return await self._generate(self._message, summary)

        work = asyncio.ensure_future(self._generate(self._message, summary))
        timer = asyncio.ensure_future(asyncio.sleep(timeout))
        try:
            done, _ = await asyncio.wait({work, timer}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            timer.cancel()
            raise

        if work in done:
            timer.cancel()
            return work.result()

        work.cancel()
        work.add_done_callback(_discard_result)
        _, pending = await asyncio.wait({work}, timeout=_CANCEL_GRACE_SECONDS)
        if pending:
            logger.debug(
                "Generate call still unwinding %.1fs after cancellation",
                _CANCEL_GRACE_SECONDS,
            )
        raise _GenerateTimeout(timeout)

    def _emit(
        self,
        kind: LogKind,
        message: str,
        details: Optional[str] = None,
        proposal_id: Optional[str] = None,
        operation_id: Optional[str] = None,
        phase: Optional[str] = None,
    ) -> None:
        if self._log_handler is None:
            return
        self._log_handler(LogEntry(
            kind=kind,
            message=message,
            details=details,
            proposal_id=proposal_id,
            operation_id=operation_id,
            phase=phase,
            iteration=self.iteration,
        ))


def _discard_result(future: "asyncio.Future") -> None:
    """Retrieve a cancelled loser's outcome so asyncio does not warn about it."""
    if not future.cancelled():
        future.exception()
