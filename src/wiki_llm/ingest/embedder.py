"""Embedding abstractions, the Ollama client and a deterministic baseline."""

from __future__ import annotations

from abc import ABC, abstractmethod
from hashlib import blake2b
from math import sqrt

import httpx
import structlog

from wiki_llm.config import EmbeddingConfig
from wiki_llm.errors import TransportError, UnexpectedResponseFormatError

logger = structlog.get_logger(__name__)


class Embedder(ABC):
    """Embedder interface used by ingest and retrieval components."""

    @abstractmethod
    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """Embed many documents."""

    @abstractmethod
    def embed_query(self, text: str) -> list[float]:
        """Embed one query."""


class OllamaEmbedder(Embedder):
    """Calls Ollama's ``/api/embeddings`` endpoint once per text."""

    def __init__(
        self,
        config: EmbeddingConfig | None = None,
        *,
        client: httpx.Client | None = None,
    ) -> None:
        self.config = config or EmbeddingConfig()
        self._client = client or httpx.Client(
            base_url=self.config.base_url,
            timeout=self.config.timeout_seconds,
            headers={"Content-Type": "application/json"},
        )

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self._embed(text) for text in texts]

    def embed_query(self, text: str) -> list[float]:
        return self._embed(text)

    def close(self) -> None:
        self._client.close()

    def _embed(self, text: str) -> list[float]:
        payload = {
            "model": self.config.model,
            "prompt": text,
            "keep_alive": self.config.keep_alive,
        }
        try:
            response = self._client.post("/api/embeddings", json=payload)
        except httpx.HTTPError as exc:
            raise TransportError(f"Ollama request failed: {exc}") from exc

        if response.status_code >= 400:
            raise TransportError(
                f"Ollama HTTP error: {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            result = response.json()
        except ValueError as exc:
            raise UnexpectedResponseFormatError(
                f"Ollama returned invalid JSON: {response.text[:200]}"
            ) from exc

        embedding = result.get("embedding") if isinstance(result, dict) else None
        if not isinstance(embedding, list):
            raise UnexpectedResponseFormatError(
                f"Ollama response missing embedding: {response.text[:200]}"
            )
        logger.debug("embedding_generated", model=self.config.model, dimension=len(embedding))
        return [float(value) for value in embedding]


class HashingEmbedder(Embedder):
    """Deterministic sparse-like embedding without external model calls.

    Used for offline runs and tests. Production indexing goes through
    ``OllamaEmbedder``.
    """

    def __init__(self, dimension: int = 256) -> None:
        self.dimension = dimension

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self._embed(text) for text in texts]

    def embed_query(self, text: str) -> list[float]:
        return self._embed(text)

    def _embed(self, text: str) -> list[float]:
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
