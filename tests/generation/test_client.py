"""Unit tests for the generation service client.

HTTP is served by `httpx.MockTransport`; no real calls are made.
"""

import base64
import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from wisdom.agent.errors import ProposalDecodeError
from wisdom.agent.types import OperationKind
from wisdom.generation.client import GenerationClient, GenerationTransportError

BASE_URL = "http://localhost:5001/x-package/asia-northeast1"


def _b64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def _proposal_body() -> dict:
    return {
        "id": "p-1",
        "timestamp": "2024-05-01T12:00:00.123Z",
        "operations": [
            {
                "id": "op-1",
                "language": "swift",
                "actionType": "update",
                "path": "Sources/App/main.swift",
                "content": _b64("print(\"fixed\")\n"),
            },
            {
                "id": "op-2",
                "language": "swift",
                "actionType": "delete",
                "path": "Sources/App/Old.swift",
            },
        ],
    }


def _make_client(handler) -> tuple[GenerationClient, list[httpx.Request]]:
    requests: list[httpx.Request] = []

    def _record(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    client = GenerationClient(BASE_URL, timeout=5.0, transport=httpx.MockTransport(_record))
    return client, requests


class TestImprove:
    @pytest.mark.asyncio
    async def test_posts_request_and_decodes_proposal(self) -> None:
        client, requests = _make_client(lambda request: httpx.Response(200, json=_proposal_body()))

        proposal = await client.improve(
            "Fix the build",
            "Build failed with 1 errors.",
            errors="main.swift:1:1: error: x",
            sources="App/\n",
        )

        assert proposal.id == "p-1"
        assert [op.kind for op in proposal.operations] == [OperationKind.UPDATE, OperationKind.DELETE]
        assert proposal.operations[0].content == "print(\"fixed\")\n"

        (request,) = requests
        assert request.method == "POST"
        assert str(request.url) == f"{BASE_URL}/improve"
        assert json.loads(request.content) == {
            "message": "Fix the build",
            "buildStatus": "Build failed with 1 errors.",
            "errors": "main.swift:1:1: error: x",
            "sources": "App/\n",
        }

    @pytest.mark.asyncio
    async def test_trailing_slash_in_base_url(self) -> None:
        requests = []

        def _handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=_proposal_body())

        client = GenerationClient(BASE_URL + "/", transport=httpx.MockTransport(_handler))
        await client.improve("goal", "Build successful with 0 errors.")
        assert str(requests[0].url) == f"{BASE_URL}/improve"

    @pytest.mark.asyncio
    async def test_server_error_raises_transport_error(self) -> None:
        client, _ = _make_client(lambda request: httpx.Response(500, text="upstream model unavailable"))
        with pytest.raises(GenerationTransportError) as exc_info:
            await client.improve("goal", "Build failed with 3 errors.")
        assert exc_info.value.status_code == 500
        assert exc_info.value.body == "upstream model unavailable"

    @pytest.mark.asyncio
    async def test_long_error_body_is_truncated(self) -> None:
        client, _ = _make_client(lambda request: httpx.Response(502, text="x" * 2000))
        with pytest.raises(GenerationTransportError) as exc_info:
            await client.improve("goal", "status")
        assert len(exc_info.value.body) == 500

    @pytest.mark.asyncio
    async def test_connection_error_raises_transport_error(self) -> None:
        def _refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client, _ = _make_client(_refuse)
        with pytest.raises(GenerationTransportError, match="connection refused") as exc_info:
            await client.improve("goal", "status")
        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_malformed_body_raises_decode_error(self) -> None:
        client, _ = _make_client(lambda request: httpx.Response(200, text="<html>gateway</html>"))
        with pytest.raises(ProposalDecodeError):
            await client.improve("goal", "status")

    @pytest.mark.asyncio
    async def test_missing_operations_raises_decode_error(self) -> None:
        body = _proposal_body()
        del body["operations"]
        client, _ = _make_client(lambda request: httpx.Response(200, json=body))
        with pytest.raises(ProposalDecodeError):
            await client.improve("goal", "status")

    @pytest.mark.asyncio
    async def test_uses_async_client_as_context_manager(self) -> None:
        mock_response = MagicMock()
        mock_response.status_code = 200
        mock_response.content = json.dumps(_proposal_body()).encode("utf-8")

        with patch("wisdom.generation.client.httpx.AsyncClient") as mock_client_cls:
            mock_client = AsyncMock()
            mock_client.post.return_value = mock_response
            mock_client.__aenter__ = AsyncMock(return_value=mock_client)
            mock_client.__aexit__ = AsyncMock(return_value=False)
            mock_client_cls.return_value = mock_client

            proposal = await GenerationClient(BASE_URL, timeout=30.0).improve("goal", "status")

        assert proposal.id == "p-1"
        mock_client_cls.assert_called_once_with(base_url=BASE_URL, timeout=30.0, transport=None)
        mock_client.post.assert_awaited_once()
        assert mock_client.post.call_args.args == ("/improve",)
