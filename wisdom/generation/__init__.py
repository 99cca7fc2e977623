"""Reference generate collaborator: httpx client for the improve endpoint."""

from wisdom.generation.client import GenerationClient, GenerationTransportError

__all__ = ["GenerationClient", "GenerationTransportError"]
