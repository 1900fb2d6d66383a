"""Vector store gateway contract and concrete adapters."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from math import sqrt
from typing import Any, Protocol

import httpx
import structlog

from wiki_llm.config import VectorStoreConfig
from wiki_llm.errors import CollectionNotFoundError, GatewayError, NotFoundError
from wiki_llm.ingest.identifier import DEFAULT_COLLECTION

logger = structlog.get_logger(__name__)


class VectorStore(Protocol):
    """Collection-oriented vector store contract (Chroma semantics).

    ``query`` returns one list per query embedding under ``ids``,
    ``documents``, ``metadatas`` and ``distances``; ``get`` returns flat lists.
    """

    def list_collections(self) -> list[dict[str, Any]]:
        """List collections of the configured tenant/database."""

    def get_collection(self, name: str) -> dict[str, Any]:
        """Find a collection by name or raise ``CollectionNotFoundError``."""

    def collection_id(self, name: str) -> str:
        """Resolve a collection name to its server-side id."""

    def create_collection(self, name: str, metadata: dict[str, Any] | None = None) -> dict[str, Any]:
        """Create a collection."""

    def delete_collection(self, name: str) -> Any:
        """Delete a collection by name."""

    def ensure_collection(self, name: str) -> str:
        """Create the collection when absent; return a status message."""

    def upsert(
        self,
        collection_id: str,
        ids: list[str],
        documents: list[str],
        metadatas: list[dict[str, Any]] | None = None,
        embeddings: list[list[float]] | None = None,
    ) -> Any:
        """Insert or replace records keyed by id."""

    def query(
        self,
        collection_id: str,
        query_embeddings: list[list[float]],
        n_results: int,
        where: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Nearest-neighbour search."""

    def get(
        self,
        collection_id: str,
        ids: list[str],
        include: list[str] | None = None,
        limit: int | None = None,
    ) -> dict[str, Any]:
        """Fetch records by id."""

    def heartbeat(self) -> dict[str, Any]:
        """Server liveness."""

    def get_identity(self) -> dict[str, Any]:
        """Authentication and identity information."""


class ChromaGateway:
    """Chroma v2 REST client.

    Every call is scoped to the configured tenant and database, both of which
    are created on construction when missing. Non-2xx responses and connection
    failures raise ``GatewayError``; nothing is retried.
    """

    def __init__(
        self,
        config: VectorStoreConfig | None = None,
        *,
        client: httpx.Client | None = None,
    ) -> None:
        self.config = config or VectorStoreConfig()
        self.tenant = self.config.tenant
        self.database = self.config.database
        self._client = client or httpx.Client(
            base_url=self.config.base_url,
            timeout=self.config.timeout_seconds,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
        )
        self.ensure_tenant_and_database()

    def close(self) -> None:
        self._client.close()

    @property
    def _collections_path(self) -> str:
        return f"/tenants/{self.tenant}/databases/{self.database}/collections"

    def list_collections(self) -> list[dict[str, Any]]:
        return self._request("GET", self._collections_path) or []

    def get_collection(self, name: str) -> dict[str, Any]:
        name = name or DEFAULT_COLLECTION
        for collection in self.list_collections():
            if collection.get("name") == name:
                return collection
        raise CollectionNotFoundError(f"Collection '{name}' not found")

    def collection_id(self, name: str) -> str:
        collection = self.get_collection(name)
        if not collection.get("id"):
            raise CollectionNotFoundError(f"Collection ID not found for '{name}'")
        return str(collection["id"])

    def create_collection(self, name: str, metadata: dict[str, Any] | None = None) -> dict[str, Any]:
        payload: dict[str, Any] = {"name": name or DEFAULT_COLLECTION}
        if metadata:
            payload["metadata"] = metadata
        return self._request("POST", self._collections_path, payload)

    def delete_collection(self, name: str) -> Any:
        collection_id = self.collection_id(name)
        return self._request("DELETE", f"{self._collections_path}/{collection_id}")

    def ensure_collection(self, name: str) -> str:
        try:
            self.get_collection(name)
            return f"Collection '{name}' already exists."
        except NotFoundError:
            self.create_collection(name)
            logger.info("collection_created", collection=name)
            return f"Collection '{name}' created."

    def upsert(
        self,
        collection_id: str,
        ids: list[str],
        documents: list[str],
        metadatas: list[dict[str, Any]] | None = None,
        embeddings: list[list[float]] | None = None,
    ) -> Any:
        payload: dict[str, Any] = {"ids": ids, "documents": documents}
        if metadatas:
            payload["metadatas"] = metadatas
        if embeddings:
            payload["embeddings"] = embeddings
        return self._request("POST", f"{self._collections_path}/{collection_id}/upsert", payload)

    def query(
        self,
        collection_id: str,
        query_embeddings: list[list[float]],
        n_results: int,
        where: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"query_embeddings": query_embeddings, "n_results": n_results}
        if where:
            payload["where"] = where
        return self._request("POST", f"{self._collections_path}/{collection_id}/query", payload) or {}

    def get(
        self,
        collection_id: str,
        ids: list[str],
        include: list[str] | None = None,
        limit: int | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"ids": ids, "include": include or ["metadatas", "documents"]}
        if limit is not None:
            payload["limit"] = limit
        return self._request("POST", f"{self._collections_path}/{collection_id}/get", payload) or {}

    def heartbeat(self) -> dict[str, Any]:
        return self._request("GET", "/heartbeat")

    def get_identity(self) -> dict[str, Any]:
        return self._request("GET", "/identity")

    def get_tenant(self, name: str) -> dict[str, Any]:
        return self._request("GET", f"/tenants/{name}")

    def create_tenant(self, name: str) -> dict[str, Any]:
        return self._request("POST", "/tenants", {"name": name})

    def get_database(self, name: str, tenant: str) -> dict[str, Any]:
        return self._request("GET", f"/tenants/{tenant}/databases/{name}")

    def create_database(self, name: str, tenant: str) -> dict[str, Any]:
        return self._request("POST", f"/tenants/{tenant}/databases", {"name": name})

    def ensure_tenant_and_database(self) -> None:
        try:
            self.get_tenant(self.tenant)
        except GatewayError:
            logger.info("tenant_created", tenant=self.tenant)
            self.create_tenant(self.tenant)

        try:
            self.get_database(self.database, self.tenant)
        except GatewayError:
            logger.info("database_created", tenant=self.tenant, database=self.database)
            self.create_database(self.database, self.tenant)

    def _request(self, method: str, endpoint: str, payload: dict[str, Any] | None = None) -> Any:
        try:
            response = self._client.request(method, f"/api/v2{endpoint}", json=payload)
        except httpx.HTTPError as exc:
            raise GatewayError(f"Chroma request failed: {exc}") from exc

        if response.status_code >= 400:
            raise GatewayError(
                f"HTTP Error: {response.status_code}, Response: {response.text}",
                status_code=response.status_code,
                body=response.text,
            )
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise GatewayError(
                f"Chroma returned invalid JSON: {response.text[:200]}",
                status_code=response.status_code,
                body=response.text,
            ) from exc


@dataclass(slots=True)
class _StoredVector:
    document: str
    metadata: dict[str, Any]
    embedding: list[float]


@dataclass(slots=True)
class _Collection:
    id: str
    name: str
    metadata: dict[str, Any] | None
    records: dict[str, _StoredVector] = field(default_factory=dict)


class InMemoryVectorStore:
    """Deterministic vector store used for tests and local prototyping."""

    def __init__(self) -> None:
        self._collections: dict[str, _Collection] = {}

    def list_collections(self) -> list[dict[str, Any]]:
        return [
            {"id": col.id, "name": col.name, "metadata": col.metadata}
            for col in self._collections.values()
        ]

    def get_collection(self, name: str) -> dict[str, Any]:
        name = name or DEFAULT_COLLECTION
        for collection in self.list_collections():
            if collection["name"] == name:
                return collection
        raise CollectionNotFoundError(f"Collection '{name}' not found")

    def collection_id(self, name: str) -> str:
        return str(self.get_collection(name)["id"])

    def create_collection(self, name: str, metadata: dict[str, Any] | None = None) -> dict[str, Any]:
        name = name or DEFAULT_COLLECTION
        if name in self._collections:
            raise GatewayError(f"Collection '{name}' already exists", status_code=409)
        collection = _Collection(id=str(uuid.uuid4()), name=name, metadata=metadata)
        self._collections[name] = collection
        return {"id": collection.id, "name": name, "metadata": metadata}

    def delete_collection(self, name: str) -> None:
        name = name or DEFAULT_COLLECTION
        if self._collections.pop(name, None) is None:
            raise CollectionNotFoundError(f"Collection '{name}' not found")

    def ensure_collection(self, name: str) -> str:
        try:
            self.get_collection(name)
            return f"Collection '{name}' already exists."
        except NotFoundError:
            self.create_collection(name)
            return f"Collection '{name}' created."

    def upsert(
        self,
        collection_id: str,
        ids: list[str],
        documents: list[str],
        metadatas: list[dict[str, Any]] | None = None,
        embeddings: list[list[float]] | None = None,
    ) -> None:
        if len(ids) != len(documents):
            raise ValueError("ids and documents must have the same length")
        collection = self._by_id(collection_id)
        metadatas = metadatas or [{} for _ in ids]
        embeddings = embeddings or [[] for _ in ids]
        for record_id, document, metadata, embedding in zip(
            ids, documents, metadatas, embeddings, strict=True
        ):
            collection.records[record_id] = _StoredVector(
                document=document, metadata=dict(metadata), embedding=embedding
            )

    def query(
        self,
        collection_id: str,
        query_embeddings: list[list[float]],
        n_results: int,
        where: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        collection = self._by_id(collection_id)
        candidates = [
            (record_id, rec)
            for record_id, rec in collection.records.items()
            if _metadata_match(rec.metadata, where)
        ]

        result: dict[str, list[list[Any]]] = {
            "ids": [],
            "documents": [],
            "metadatas": [],
            "distances": [],
        }
        for query_embedding in query_embeddings:
            ranked = sorted(
                candidates,
                key=lambda item: _cosine_similarity(query_embedding, item[1].embedding),
                reverse=True,
            )[:n_results]
            result["ids"].append([record_id for record_id, _ in ranked])
            result["documents"].append([rec.document for _, rec in ranked])
            result["metadatas"].append([dict(rec.metadata) for _, rec in ranked])
            result["distances"].append(
                [1.0 - _cosine_similarity(query_embedding, rec.embedding) for _, rec in ranked]
            )
        return result

    def get(
        self,
        collection_id: str,
        ids: list[str],
        include: list[str] | None = None,
        limit: int | None = None,
    ) -> dict[str, Any]:
        collection = self._by_id(collection_id)
        found = [record_id for record_id in ids if record_id in collection.records]
        if limit is not None:
            found = found[:limit]
        include = include or ["metadatas", "documents"]

        result: dict[str, Any] = {"ids": found}
        if "documents" in include:
            result["documents"] = [collection.records[rid].document for rid in found]
        if "metadatas" in include:
            result["metadatas"] = [dict(collection.records[rid].metadata) for rid in found]
        return result

    def heartbeat(self) -> dict[str, Any]:
        return {"nanosecond heartbeat": 0}

    def get_identity(self) -> dict[str, Any]:
        return {"user_id": "in-memory", "tenant": "default_tenant", "databases": ["default_database"]}

    def _by_id(self, collection_id: str) -> _Collection:
        for collection in self._collections.values():
            if collection.id == collection_id:
                return collection
        raise CollectionNotFoundError(f"Collection id '{collection_id}' not found")


def _metadata_match(
    metadata: dict[str, Any], metadata_filter: dict[str, Any] | None
) -> bool:
    if not metadata_filter:
        return True
    for key, value in metadata_filter.items():
        if metadata.get(key) != value:
            return False
    return True


def _cosine_similarity(a: list[float], b: list[float]) -> float:
    if not a or not b or len(a) != len(b):
        return 0.0
    numerator = sum(x * y for x, y in zip(a, b, strict=True))
    norm_a = sqrt(sum(x * x for x in a))
    norm_b = sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return numerator / (norm_a * norm_b)
