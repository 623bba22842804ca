"""Embedding abstractions and provider implementations."""

from __future__ import annotations

from abc import ABC, abstractmethod
from hashlib import blake2b
from math import sqrt
from numbers import Real

import httpx

from influence_mcp.config import EmbeddingConfig
from influence_mcp.errors import ConfigurationMissing, UpstreamCallFailure
from influence_mcp.obs.logger import get_logger

log = get_logger("embeddings")

_BODY_EXCERPT_CHARS = 500


class Embedder(ABC):
    """Turns one text into one fixed-length vector."""

    dimension: int

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Embed one query text."""


class OpenAIEmbedder(Embedder):
    """Calls an OpenAI-compatible ``/v1/embeddings`` endpoint.

    No caching, batching or retry: one text in, one vector out. Without an
    API key it fails before any network I/O.
    """

    def __init__(
        self,
        config: EmbeddingConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self.dimension = config.dimension
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def embed(self, text: str) -> list[float]:
        if not self.config.api_key:
            raise ConfigurationMissing("OPENAI_API_KEY not set; cannot embed query_text")

        try:
            response = await self._get_client().post(
                self.config.endpoint,
                json={"model": self.config.model, "input": text},
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {self.config.api_key}",
                },
            )
        except httpx.HTTPError as exc:
            raise UpstreamCallFailure(
                "Embedding request", body=self._redact(f"{exc.__class__.__name__}: {exc}")
            ) from None

        if not response.is_success:
            log.warning("embedding request failed with status %s", response.status_code)
            body = response.text[:_BODY_EXCERPT_CHARS]
            raise UpstreamCallFailure(
                "Embedding request",
                status=response.status_code,
                status_text=response.reason_phrase,
                body=self._redact(body),
            )

        try:
            vector = response.json()["data"][0]["embedding"]
        except (ValueError, KeyError, IndexError, TypeError):
            raise UpstreamCallFailure("Embedding request", body="Invalid embedding response") from None
        return self._check_vector(vector)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.config.timeout_seconds,
                transport=self._transport,
            )
        return self._client

    def _check_vector(self, vector: object) -> list[float]:
        if not isinstance(vector, list) or not all(
            isinstance(value, Real) and not isinstance(value, bool) for value in vector
        ):
            raise UpstreamCallFailure("Embedding request", body="Invalid embedding response")
        if len(vector) != self.dimension:
            raise UpstreamCallFailure(
                "Embedding request",
                body=f"Expected {self.dimension} dimensions, got {len(vector)}",
            )
        return [float(value) for value in vector]

    def _redact(self, text: str) -> str:
        if self.config.api_key:
            text = text.replace(self.config.api_key, "***")
        return text


class HashingEmbedder(Embedder):
    """Deterministic embedding without external model calls.

    Only selected with ``EMBEDDING_PROVIDER=hashing`` for local development
    against a database whose vectors were produced the same way.
    """

    def __init__(self, dimension: int = 1536) -> None:
        self.dimension = dimension

    async def embed(self, text: str) -> list[float]:
        vector = [0.0 for _ in range(self.dimension)]
        tokens = text.lower().split()
        if not tokens:
            return vector

        for token in tokens:
            digest = blake2b(token.encode("utf-8"), digest_size=8).digest()
            idx = int.from_bytes(digest[:4], "little") % self.dimension
            sign = -1.0 if digest[4] % 2 else 1.0
            vector[idx] += sign

        norm = sqrt(sum(value * value for value in vector))
        if norm == 0:
            return vector
        return [value / norm for value in vector]


def build_embedder(
    config: EmbeddingConfig,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Embedder:
    if config.provider == "hashing":
        return HashingEmbedder(config.dimension)
    if config.provider != "openai":
        raise ValueError(f"Unsupported embedding provider: {config.provider}")
    return OpenAIEmbedder(config, transport=transport)
