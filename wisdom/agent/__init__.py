"""Agent orchestration engine.

Public API:
    Agent                — iterate build → generate → apply until convergence
    AgentTask            — a single cycle, with the generate timeout race
    AuditLog             — append-only record of everything the engine does
    Operation, Proposal  — file edits returned by the generation service
    decode_proposal()    — wire decoding (base64 content)
"""

from wisdom.agent.audit import AuditLog
from wisdom.agent.codec import decode_proposal, encode_proposal
from wisdom.agent.errors import (
    AgentError,
    BuildFailed,
    ContentDecodeError,
    EmptyProposalError,
    FileOperationFailed,
    GenerateFailed,
    GenerateFailureCode,
    InvalidFieldError,
    MissingContentError,
    MissingFieldError,
    ProposalDecodeError,
    ProposalError,
)
from wisdom.agent.orchestrator import Agent
from wisdom.agent.task import AgentTask, CancellationToken
from wisdom.agent.types import (
    AgentOptions,
    BuildOutcome,
    CycleReport,
    LogEntry,
    LogKind,
    Operation,
    OperationKind,
    Proposal,
    RunStateSnapshot,
    StopReason,
)

__all__ = [
    "Agent",
    "AgentTask",
    "AuditLog",
    "CancellationToken",
    "decode_proposal",
    "encode_proposal",
    "AgentOptions",
    "BuildOutcome",
    "CycleReport",
    "LogEntry",
    "LogKind",
    "Operation",
    "OperationKind",
    "Proposal",
    "RunStateSnapshot",
    "StopReason",
    "AgentError",
    "BuildFailed",
    "GenerateFailed",
    "GenerateFailureCode",
    "FileOperationFailed",
    "ProposalError",
    "ProposalDecodeError",
    "MissingContentError",
    "MissingFieldError",
    "InvalidFieldError",
    "ContentDecodeError",
    "EmptyProposalError",
]
