"""Append-only audit log for the agent engine.

The audit log is the only way to observe the engine from outside: every
phase of every cycle records its entry and its outcome here. Entries are
never mutated or removed.

Each appended entry is also mirrored to structlog with its fields as
key-values (so run/iteration context from `wisdom.core.logging` is attached)
and delivered to any live subscribers.
"""

import logging
from typing import Callable, Iterator, Optional

import structlog

from wisdom.agent.types import LogEntry, LogKind

logger = logging.getLogger(__name__)

_audit_logger = structlog.get_logger("wisdom.audit")

EntryCallback = Callable[[LogEntry], None]


class AuditLog:
    """Chronological, append-only sequence of `LogEntry` records."""

    def __init__(self) -> None:
        self._entries: list[LogEntry] = []
        self._by_id: dict[str, LogEntry] = {}
        self._subscribers: list[EntryCallback] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[LogEntry]:
        # Iterate over a copy so readers never observe a half-appended list
        return iter(list(self._entries))

    @property
    def entries(self) -> tuple[LogEntry, ...]:
        return tuple(self._entries)

    def append(self, entry: LogEntry) -> LogEntry:
        """Record an entry, mirror it to the process log, notify subscribers."""
        if entry.id in self._by_id:
            raise ValueError(f"Audit entry {entry.id} already recorded")
        self._entries.append(entry)
        self._by_id[entry.id] = entry
        _mirror(entry)
        for callback in list(self._subscribers):
            try:
                callback(entry)
            except Exception:
                logger.debug("Audit subscriber failed for entry %s", entry.id, exc_info=True)
        return entry

    def record(
        self,
        kind: LogKind,
        message: str,
        details: Optional[str] = None,
        proposal_id: Optional[str] = None,
        operation_id: Optional[str] = None,
        phase: Optional[str] = None,
        iteration: Optional[int] = None,
    ) -> LogEntry:
        return self.append(LogEntry(
            kind=kind,
            message=message,
            details=details,
            proposal_id=proposal_id,
            operation_id=operation_id,
            phase=phase,
            iteration=iteration,
        ))

    def subscribe(self, callback: EntryCallback) -> Callable[[], None]:
        """Register a live listener. Returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def get(self, entry_id: str) -> Optional[LogEntry]:
        return self._by_id.get(entry_id)

    def for_proposal(self, proposal_id: str) -> list[LogEntry]:
        return [e for e in self._entries if e.proposal_id == proposal_id]

    def for_operation(self, operation_id: str) -> list[LogEntry]:
        return [e for e in self._entries if e.operation_id == operation_id]

    def of_kind(self, kind: LogKind) -> list[LogEntry]:
        return [e for e in self._entries if e.kind == kind]

    def to_dicts(self) -> list[dict]:
        return [e.to_dict() for e in self._entries]


def _mirror(entry: LogEntry) -> None:
    fields = {
        "kind": entry.kind.value,
        "phase": entry.phase,
        "iteration": entry.iteration,
        "details": entry.details,
        "proposal_id": entry.proposal_id,
        "operation_id": entry.operation_id,
    }
    fields = {k: v for k, v in fields.items() if v is not None}

    if entry.kind == LogKind.ERROR:
        _audit_logger.error(entry.message, **fields)
    elif entry.kind == LogKind.WARNING:
        _audit_logger.warning(entry.message, **fields)
    else:
        _audit_logger.info(entry.message, **fields)
