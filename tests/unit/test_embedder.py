import json

import httpx
import pytest

from wiki_llm.config import EmbeddingConfig
from wiki_llm.errors import TransportError, UnexpectedResponseFormatError
from wiki_llm.ingest.embedder import HashingEmbedder, OllamaEmbedder


def _embedder(handler) -> OllamaEmbedder:
    client = httpx.Client(transport=httpx.MockTransport(handler), base_url="http://ollama:11434")
    return OllamaEmbedder(EmbeddingConfig(model="nomic-embed-text"), client=client)


def test_ollama_request_payload_and_result() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.url.path, json.loads(request.content)))
        return httpx.Response(200, json={"embedding": [0.5, 1, -2]})

    vector = _embedder(handler).embed_query("hello")

    assert vector == [0.5, 1.0, -2.0]
    assert seen == [
        ("/api/embeddings", {"model": "nomic-embed-text", "prompt": "hello", "keep_alive": "30m"})
    ]


def test_missing_embedding_is_an_error() -> None:
    embedder = _embedder(lambda request: httpx.Response(200, json={"error": "model not found"}))

    with pytest.raises(UnexpectedResponseFormatError):
        embedder.embed_documents(["text"])


def test_http_failure_is_a_transport_error() -> None:
    embedder = _embedder(lambda request: httpx.Response(503, text="loading"))

    with pytest.raises(TransportError) as excinfo:
        embedder.embed_query("text")

    assert excinfo.value.status_code == 503


def test_hashing_embedder_is_deterministic_and_normalised() -> None:
    embedder = HashingEmbedder(dimension=32)

    first, second = embedder.embed_documents(["same words", "same words"])

    assert first == second
    assert sum(value * value for value in first) == pytest.approx(1.0)
    assert embedder.embed_query("") == [0.0] * 32
