"""Best-effort similarity lookups used to augment completion context."""

from __future__ import annotations

import re
from typing import Any

import structlog

from wiki_llm.ingest.embedder import Embedder
from wiki_llm.ingest.identifier import collection_for
from wiki_llm.retrieval.vector_store import VectorStore

logger = structlog.get_logger(__name__)

_CHUNK_SUFFIX = re.compile(r"@\d+$")


class ContextRetriever:
    """Queries the collection of the page being edited.

    The collection is the first segment of ``page_id`` (``playground`` pages use
    the default collection); without a page id ``default_collection`` is used.
    Lookups never raise: a failing query is logged and yields no results, so
    augmentation degrades to an empty context.
    """

    def __init__(
        self,
        vector_store: VectorStore,
        embedder: Embedder,
        *,
        page_id: str | None = None,
        default_collection: str = "reports",
    ) -> None:
        self.vector_store = vector_store
        self.embedder = embedder
        self.page_id = page_id
        self.default_collection = default_collection

    @property
    def collection(self) -> str:
        if not self.page_id:
            return self.default_collection
        return collection_for(self.page_id)

    def query_ids(self, text: str, limit: int = 5, where: dict[str, Any] | None = None) -> list[str]:
        results = self._query(text, limit, where)
        ids = results.get("ids") or [[]]
        return [str(item) for item in (ids[0] or [])]

    def query_snippets(self, text: str, count: int = 10, where: dict[str, Any] | None = None) -> list[str]:
        results = self._query(text, count, where)
        documents = results.get("documents") or [[]]
        return [str(item) for item in (documents[0] or [])]

    def query_template(self, text: str) -> list[str]:
        """At most one template document id, without its ``@N`` chunk suffix."""

        template_ids = self.query_ids(text, 1, {"type": "template"})
        return [_CHUNK_SUFFIX.sub("", template_id) for template_id in template_ids[:1]]

    def _query(self, text: str, limit: int, where: dict[str, Any] | None) -> dict[str, Any]:
        try:
            collection_id = self.vector_store.collection_id(self.collection)
            embedding = self.embedder.embed_query(text)
            return self.vector_store.query(collection_id, [embedding], limit, where)
        except Exception as exc:
            logger.warning(
                "context_query_failed",
                collection=self.collection,
                error=str(exc),
            )
            return {}
