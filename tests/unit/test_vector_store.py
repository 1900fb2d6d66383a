import json

import httpx
import pytest

from wiki_llm.errors import CollectionNotFoundError, GatewayError
from wiki_llm.retrieval.vector_store import ChromaGateway, InMemoryVectorStore

BASE = "/api/v2/tenants/default_tenant/databases/default_database"


class FakeChroma:
    """Minimal Chroma v2 server keyed by (method, path)."""

    def __init__(self, *, tenant_exists: bool = True) -> None:
        self.tenant_exists = tenant_exists
        self.requests: list[tuple[str, str, dict | None]] = []
        self.collections = [{"id": "c-1", "name": "reports"}]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        path = request.url.path
        self.requests.append((request.method, path, body))

        if path == "/api/v2/tenants/default_tenant" and request.method == "GET":
            if not self.tenant_exists:
                return httpx.Response(404, json={"error": "NotFound"})
            return httpx.Response(200, json={"name": "default_tenant"})
        if path == "/api/v2/tenants" and request.method == "POST":
            self.tenant_exists = True
            return httpx.Response(200, json={})
        if path == BASE:
            return httpx.Response(200, json={"name": "default_database"})
        if path == f"{BASE}/collections" and request.method == "GET":
            return httpx.Response(200, json=self.collections)
        if path == f"{BASE}/collections" and request.method == "POST":
            created = {"id": "c-2", "name": body["name"]}
            self.collections.append(created)
            return httpx.Response(200, json=created)
        if path == f"{BASE}/collections/c-1/get":
            return httpx.Response(200, json={"ids": [], "metadatas": []})
        if path == f"{BASE}/collections/c-1/upsert":
            return httpx.Response(200, content=b"")
        if path == "/api/v2/heartbeat":
            return httpx.Response(200, json={"nanosecond heartbeat": 1})
        return httpx.Response(500, text="boom")


def _gateway(server: FakeChroma) -> ChromaGateway:
    client = httpx.Client(transport=httpx.MockTransport(server), base_url="http://chroma:8000")
    return ChromaGateway(client=client)


def test_missing_tenant_is_created_on_construction() -> None:
    server = FakeChroma(tenant_exists=False)

    _gateway(server)

    assert ("POST", "/api/v2/tenants", {"name": "default_tenant"}) in server.requests


def test_ensure_collection_reports_status() -> None:
    gateway = _gateway(FakeChroma())

    assert gateway.ensure_collection("reports") == "Collection 'reports' already exists."
    assert gateway.ensure_collection("clinic") == "Collection 'clinic' created."
    assert gateway.collection_id("clinic") == "c-2"


def test_get_sends_include_and_limit() -> None:
    server = FakeChroma()
    gateway = _gateway(server)

    gateway.get("c-1", ["doc@1", "doc@2"], include=["metadatas"], limit=1)

    method, path, body = server.requests[-1]
    assert (method, path) == ("POST", f"{BASE}/collections/c-1/get")
    assert body == {"ids": ["doc@1", "doc@2"], "include": ["metadatas"], "limit": 1}


def test_empty_response_body_is_none() -> None:
    gateway = _gateway(FakeChroma())

    assert gateway.upsert("c-1", ["a@1"], ["text"], [{"k": "v"}], [[0.1]]) is None


def test_http_errors_carry_status_and_body() -> None:
    gateway = _gateway(FakeChroma())

    with pytest.raises(GatewayError) as excinfo:
        gateway.query("c-9", [[0.1]], 3)

    assert excinfo.value.status_code == 500
    assert excinfo.value.body == "boom"


def test_unknown_collection_raises_not_found() -> None:
    gateway = _gateway(FakeChroma())

    with pytest.raises(CollectionNotFoundError):
        gateway.collection_id("missing")


def test_in_memory_store_query_and_get_shapes() -> None:
    store = InMemoryVectorStore()
    store.ensure_collection("reports")
    collection_id = store.collection_id("reports")
    store.upsert(
        collection_id,
        ids=["a@1", "b@1"],
        documents=["alpha", "beta"],
        metadatas=[{"type": "report"}, {"type": "template"}],
        embeddings=[[1.0, 0.0], [0.0, 1.0]],
    )

    result = store.query(collection_id, [[1.0, 0.0]], 2)
    assert result["ids"] == [["a@1", "b@1"]]
    assert result["distances"][0][0] == pytest.approx(0.0)

    filtered = store.query(collection_id, [[1.0, 0.0]], 2, where={"type": "template"})
    assert filtered["ids"] == [["b@1"]]

    fetched = store.get(collection_id, ["missing@1", "b@1", "a@1"], include=["metadatas"], limit=1)
    assert fetched == {"ids": ["b@1"], "metadatas": [{"type": "template"}]}

    with pytest.raises(GatewayError):
        store.create_collection("reports")
