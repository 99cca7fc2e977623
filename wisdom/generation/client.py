"""HTTP client for the remote code-generation service.

POSTs the goal, the build status summary, the build's error diagnostics
and the source context to `{base_url}/improve`, and decodes the response
body into a `Proposal` via the wire codec.

Failure mapping:
  network error / HTTP status >= 400 → GenerationTransportError
  body that is not a valid proposal   → ProposalDecodeError (from the codec)

The client holds no state between calls, so a call abandoned by the agent's
timeout race leaves nothing behind once its task is cancelled.
"""

import logging
from typing import Optional

import httpx

from wisdom.agent.codec import decode_proposal
from wisdom.agent.types import Proposal

logger = logging.getLogger(__name__)

# Timeout for a single improve call (the agent applies its own, shorter,
# generate timeout on top)
DEFAULT_HTTP_TIMEOUT = 120.0

IMPROVE_ENDPOINT = "/improve"

# Characters of a failing response body kept on the exception
_BODY_EXCERPT_CHARS = 500


class GenerationTransportError(Exception):
    """Raised when the generation service cannot be reached or returns an error."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class GenerationClient:
    """Calls the generation service's improve endpoint."""

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def improve(
        self,
        message: str,
        build_status: str,
        errors: str = "",
        sources: str = "",
    ) -> Proposal:
        payload = {
            "message": message,
            "buildStatus": build_status,
            "errors": errors,
            "sources": sources,
        }
        body = await self._post(IMPROVE_ENDPOINT, payload)
        proposal = decode_proposal(body)
        logger.info(
            "Decoded proposal %s with %d operations",
            proposal.id, len(proposal.operations),
        )
        return proposal

    async def _post(self, endpoint: str, payload: dict) -> bytes:
        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
        ) as client:
            try:
                response = await client.post(endpoint, json=payload)
            except httpx.HTTPError as exc:
                raise GenerationTransportError(f"Request to {endpoint} failed: {exc}") from exc

        logger.debug("POST %s -> %d", endpoint, response.status_code)
        if response.status_code >= 400:
            excerpt = response.text[:_BODY_EXCERPT_CHARS]
            raise GenerationTransportError(
                f"Generation service returned {response.status_code}",
                status_code=response.status_code,
                body=excerpt,
            )
        return response.content
