"""Exception taxonomy for the agent engine.

Two families live here:

- `ProposalError` and its subclasses are raised by the proposal model and
  the wire codec (missing content, empty proposals, undecodable payloads).
- `AgentError` and its subclasses are the tagged failures of a single
  cycle. The agent task converts every collaborator exception into one of
  them; the orchestrator catches them at its loop boundary and turns them
  into audit log entries.
"""

from enum import StrEnum
from typing import Optional


# ---------------------------------------------------------------------------
# Proposal model / wire codec
# ---------------------------------------------------------------------------


class ProposalError(Exception):
    """Base class for invalid proposal or operation data."""


class MissingContentError(ProposalError):
    """A create/update operation was constructed without content."""

    def __init__(self, operation_id: str, kind: str):
        self.operation_id = operation_id
        self.kind = kind
        super().__init__(f"Operation {operation_id!r} of kind '{kind}' requires content")


class EmptyProposalError(ProposalError):
    """A proposal with zero operations was handed to the apply phase."""

    def __init__(self, proposal_id: str):
        self.proposal_id = proposal_id
        super().__init__(f"Proposal {proposal_id!r} contains no operations")


class ProposalDecodeError(ProposalError):
    """The generator's response could not be decoded into a proposal."""


class MissingFieldError(ProposalDecodeError):
    """A required field is absent from the wire payload."""

    def __init__(self, field_name: str, context: str = "proposal"):
        self.field_name = field_name
        self.context = context
        super().__init__(f"Missing required field '{field_name}' in {context}")


class InvalidFieldError(ProposalDecodeError):
    """A field is present but has the wrong type or an unknown value."""

    def __init__(self, field_name: str, message: str, context: str = "proposal"):
        self.field_name = field_name
        self.context = context
        super().__init__(f"Invalid field '{field_name}' in {context}: {message}")


class ContentDecodeError(ProposalDecodeError):
    """An operation's base64 content could not be decoded to UTF-8 text."""

    def __init__(self, operation_id: str, message: str):
        self.operation_id = operation_id
        super().__init__(f"Failed to decode base64 content of operation {operation_id!r}: {message}")


# ---------------------------------------------------------------------------
# Cycle failures
# ---------------------------------------------------------------------------


class GenerateFailureCode(StrEnum):
    """Sub-reason of a `GenerateFailed`, kept distinct for log filtering."""

    TIMEOUT = "timeout"
    DECODE = "decode"
    EMPTY_PROPOSAL = "empty_proposal"
    TRANSPORT = "transport"


class AgentError(Exception):
    """Base class for a failed cycle. `phase` names where it happened."""

    phase = "cycle"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class BuildFailed(AgentError):
    """The build collaborator raised instead of producing an outcome."""

    phase = "build"


class GenerateFailed(AgentError):
    """Generation timed out, failed, or returned an unusable proposal."""

    phase = "generate"

    def __init__(self, reason: str, code: GenerateFailureCode = GenerateFailureCode.TRANSPORT):
        self.code = code
        super().__init__(reason)


class FileOperationFailed(AgentError):
    """Applying the proposal failed fatally for the cycle."""

    phase = "apply"

    def __init__(self, reason: str, operation_id: Optional[str] = None):
        self.operation_id = operation_id
        super().__init__(reason)
