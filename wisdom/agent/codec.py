"""Wire codec for proposals returned by the generation service.

Wire shape (JSON)::

    {
      "id": "p-1",
      "timestamp": "2024-07-28T10:00:00.123Z",
      "operations": [
        {"id": "op-1", "language": "swift", "actionType": "update",
         "path": "Sources/App/main.swift", "content": "<base64 utf-8>"}
      ]
    }

`content` travels base64-encoded and is held as plain text in memory.
Decoding distinguishes a missing field (`MissingFieldError`), a malformed
field (`InvalidFieldError`), and undecodable content (`ContentDecodeError`);
all three are `ProposalDecodeError`s so the agent task can map them to a
single generate failure code.
"""

import base64
import binascii
import json
from datetime import datetime, timezone
from typing import Any, Mapping, Union

from wisdom.agent.errors import (
    ContentDecodeError,
    InvalidFieldError,
    MissingFieldError,
    ProposalDecodeError,
)
from wisdom.agent.types import Operation, OperationKind, Proposal

# Wire key for the operation kind (kept from the service's schema)
KIND_KEY = "actionType"

Payload = Union[str, bytes, Mapping[str, Any]]


def encode_content(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def decode_content(encoded: str, operation_id: str = "") -> str:
    """Decode base64 wire content to text, raising `ContentDecodeError`."""
    try:
        raw = base64.b64decode(encoded, validate=True)
        return raw.decode("utf-8")
    except (binascii.Error, ValueError) as exc:
        # UnicodeDecodeError is a ValueError subclass
        raise ContentDecodeError(operation_id, str(exc)) from exc


def decode_operation(data: Mapping[str, Any]) -> Operation:
    """Build an `Operation` from its wire mapping."""
    if not isinstance(data, Mapping):
        raise InvalidFieldError("operations", f"expected object, got {type(data).__name__}")

    op_id = _require_str(data, "id", "operation")
    context = f"operation {op_id!r}"
    language = _require_str(data, "language", context)
    kind_raw = _require_str(data, KIND_KEY, context)
    path = _require_str(data, "path", context)

    try:
        kind = OperationKind(kind_raw.lower())
    except ValueError:
        raise InvalidFieldError(KIND_KEY, f"unknown kind '{kind_raw}'", context)

    content = None
    encoded = data.get("content")
    if encoded is not None:
        if not isinstance(encoded, str):
            raise InvalidFieldError("content", "expected base64 string", context)
        content = decode_content(encoded, op_id)
    if kind.requires_content and content is None:
        raise MissingFieldError("content", context)

    return Operation(id=op_id, language=language, kind=kind, path=path, content=content)


def decode_proposal(payload: Payload) -> Proposal:
    """Decode a proposal from a JSON string/bytes or an already-parsed mapping.

    Parsing accepts a proposal with no operations; rejecting it is the
    apply phase's job (see `Proposal.require_operations`).
    """
    if isinstance(payload, (str, bytes, bytearray)):
        try:
            payload = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise ProposalDecodeError(f"Response is not valid JSON: {exc}") from exc

    if not isinstance(payload, Mapping):
        raise ProposalDecodeError(
            f"Expected a JSON object for proposal, got {type(payload).__name__}"
        )

    proposal_id = _require_str(payload, "id", "proposal")
    if "operations" not in payload:
        raise MissingFieldError("operations")
    raw_ops = payload["operations"]
    if not isinstance(raw_ops, list):
        raise InvalidFieldError("operations", "expected a list")
    if "timestamp" not in payload:
        raise MissingFieldError("timestamp")

    return Proposal(
        id=proposal_id,
        operations=tuple(decode_operation(op) for op in raw_ops),
        timestamp=parse_timestamp(payload["timestamp"]),
    )


def encode_operation(operation: Operation) -> dict:
    data = {
        "id": operation.id,
        "language": operation.language,
        KIND_KEY: operation.kind.value,
        "path": operation.path,
    }
    if operation.content is not None:
        data["content"] = encode_content(operation.content)
    return data


def encode_proposal(proposal: Proposal) -> dict:
    return {
        "id": proposal.id,
        "operations": [encode_operation(op) for op in proposal.operations],
        "timestamp": format_timestamp(proposal.timestamp),
    }


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 timestamp with or without fractional seconds.

    Naive values are taken as UTC.
    """
    if not isinstance(value, str):
        raise InvalidFieldError("timestamp", "expected an ISO-8601 string")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise InvalidFieldError("timestamp", f"cannot parse '{value}'")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _require_str(data: Mapping[str, Any], key: str, context: str) -> str:
    if key not in data or data[key] is None:
        raise MissingFieldError(key, context)
    value = data[key]
    if not isinstance(value, str):
        raise InvalidFieldError(key, f"expected string, got {type(value).__name__}", context)
    return value
