"""Tests for wisdom/agent/types.py."""

import pytest

from wisdom.agent.errors import EmptyProposalError, MissingContentError
from wisdom.agent.types import (
    AgentOptions,
    BuildOutcome,
    LogEntry,
    LogKind,
    Operation,
    OperationKind,
    Proposal,
)


def _make_op(op_id: str = "op-1", kind: str = "update", content: str | None = "x", path: str = "src/a.swift") -> Operation:
    return Operation(id=op_id, language="swift", kind=kind, path=path, content=content)


class TestOperation:
    def test_create_requires_content(self) -> None:
        with pytest.raises(MissingContentError, match="requires content"):
            _make_op(kind="create", content=None)

    def test_update_requires_content(self) -> None:
        with pytest.raises(MissingContentError):
            _make_op(kind="update", content=None)

    def test_empty_string_content_is_allowed(self) -> None:
        op = _make_op(kind="create", content="")
        assert op.content == ""

    def test_delete_without_content(self) -> None:
        op = _make_op(kind="delete", content=None)
        assert op.kind is OperationKind.DELETE
        assert op.content is None

    def test_delete_drops_content(self) -> None:
        op = _make_op(kind="delete", content="ignored")
        assert op.content is None

    def test_kind_string_is_coerced(self) -> None:
        assert _make_op(kind="create").kind is OperationKind.CREATE

    def test_unknown_kind_rejected(self) -> None:
        with pytest.raises(ValueError):
            _make_op(kind="rename")

    def test_file_name_is_last_component(self) -> None:
        assert _make_op(path="Sources/App/main.swift").file_name == "main.swift"

    def test_is_immutable(self) -> None:
        op = _make_op()
        with pytest.raises(AttributeError):
            op.path = "other"  # type: ignore[misc]

    def test_to_dict_omits_content_body(self) -> None:
        data = _make_op(content="secret").to_dict()
        assert data["kind"] == "update"
        assert data["has_content"] is True
        assert "secret" not in data.values()


class TestProposal:
    def test_operations_are_stored_as_tuple(self) -> None:
        proposal = Proposal(id="p-1", operations=[_make_op()])
        assert isinstance(proposal.operations, tuple)

    def test_require_operations_rejects_empty(self) -> None:
        proposal = Proposal(id="p-empty", operations=[])
        assert proposal.is_empty
        with pytest.raises(EmptyProposalError, match="p-empty"):
            proposal.require_operations()

    def test_require_operations_preserves_order(self) -> None:
        ops = [_make_op("a"), _make_op("b"), _make_op("c")]
        proposal = Proposal(id="p-1", operations=ops)
        assert [op.id for op in proposal.require_operations()] == ["a", "b", "c"]

    def test_get_operation(self) -> None:
        proposal = Proposal(id="p-1", operations=[_make_op("a"), _make_op("b")])
        assert proposal.get_operation("b").id == "b"
        assert proposal.get_operation("missing") is None

    def test_timestamp_defaults_to_aware_utc(self) -> None:
        assert Proposal(id="p-1").timestamp.tzinfo is not None


class TestBuildOutcome:
    def test_summary_failed(self) -> None:
        assert BuildOutcome(error_count=7, successful=False).summary() == "Build failed with 7 errors."

    def test_summary_successful(self) -> None:
        assert BuildOutcome(error_count=0, successful=True).summary() == "Build successful with 0 errors."

    def test_disagreeing_fields_are_accepted(self) -> None:
        outcome = BuildOutcome(error_count=3, successful=True)
        assert outcome.successful
        assert outcome.error_count == 3

    def test_negative_error_count_rejected(self) -> None:
        with pytest.raises(ValueError, match="non-negative"):
            BuildOutcome(error_count=-1, successful=False)


class TestAgentOptions:
    def test_defaults(self) -> None:
        options = AgentOptions()
        assert options.max_no_improvement_count == 5
        assert options.continue_on_success is True
        assert options.generate_timeout == 60.0
        assert options.abort_on_operation_failure is False

    def test_zero_no_improvement_count_rejected(self) -> None:
        with pytest.raises(ValueError, match="max_no_improvement_count"):
            AgentOptions(max_no_improvement_count=0)

    def test_timeout_may_be_disabled(self) -> None:
        assert AgentOptions(generate_timeout=None).generate_timeout is None

    def test_non_positive_timeout_rejected(self) -> None:
        with pytest.raises(ValueError, match="generate_timeout"):
            AgentOptions(generate_timeout=0)


class TestLogEntry:
    def test_ids_are_unique(self) -> None:
        a = LogEntry(kind=LogKind.INFO, message="a")
        b = LogEntry(kind=LogKind.INFO, message="a")
        assert a.id != b.id

    def test_to_dict(self) -> None:
        entry = LogEntry(
            kind=LogKind.ACTION,
            message="Executed file operation",
            proposal_id="p-1",
            operation_id="op-1",
            phase="apply",
            iteration=2,
        )
        data = entry.to_dict()
        assert data["kind"] == "action"
        assert data["proposal_id"] == "p-1"
        assert data["operation_id"] == "op-1"
        assert data["iteration"] == 2
        assert data["details"] is None
