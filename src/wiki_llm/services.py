"""Wiring of gateways, stores and pipelines from ``Settings``."""

from __future__ import annotations

from functools import cached_property

from wiki_llm.agent.completion import CompletionGateway, OpenAICompatibleCompletionGateway
from wiki_llm.agent.context import ContextAssembler
from wiki_llm.agent.orchestrator import ToolOrchestrator
from wiki_llm.agent.prompts import PagePromptStore, PromptLibrary
from wiki_llm.config import Settings
from wiki_llm.ingest.chunker import ParagraphChunker
from wiki_llm.ingest.embedder import Embedder, OllamaEmbedder
from wiki_llm.ingest.identifier import IdentifierParser
from wiki_llm.ingest.pipeline import Indexer
from wiki_llm.pages import FilesystemPageStore, PageStore
from wiki_llm.retrieval.retriever import ContextRetriever
from wiki_llm.retrieval.vector_store import ChromaGateway, VectorStore


class Services:
    """Builds collaborators on first use; any of them may be injected instead.

    The Chroma gateway talks to the server as soon as it is constructed, so
    it is only created when something actually needs the vector store.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        page_store: PageStore | None = None,
        embedder: Embedder | None = None,
        vector_store: VectorStore | None = None,
        gateway: CompletionGateway | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self._page_store = page_store
        self._embedder = embedder
        self._vector_store = vector_store
        self._gateway = gateway

    @cached_property
    def page_store(self) -> PageStore:
        return self._page_store or FilesystemPageStore(self.settings.indexing.pages_dir)

    @cached_property
    def embedder(self) -> Embedder:
        return self._embedder or OllamaEmbedder(self.settings.embedding)

    @cached_property
    def vector_store(self) -> VectorStore | None:
        if self._vector_store is not None:
            return self._vector_store
        if not self.settings.enable_vector_store:
            return None
        return ChromaGateway(self.settings.vector_store)

    @cached_property
    def gateway(self) -> CompletionGateway:
        return self._gateway or OpenAICompatibleCompletionGateway(self.settings.completion)

    def prompt_library(self, profile: str | None = None) -> PromptLibrary:
        cfg = self.settings.orchestrator
        store = PagePromptStore(self.page_store, cfg.prompt_namespace)
        return PromptLibrary(store, profile or cfg.profile)

    def retriever(self, page_id: str | None = None) -> ContextRetriever | None:
        vector_store = self.vector_store
        if vector_store is None:
            return None
        return ContextRetriever(
            vector_store,
            self.embedder,
            page_id=page_id,
            default_collection=self.settings.orchestrator.default_collection,
        )

    def assembler(self, page_id: str | None = None) -> ContextAssembler:
        return ContextAssembler(self.page_store, self.retriever(page_id), page_id=page_id)

    def orchestrator(self, page_id: str | None = None, *, profile: str | None = None) -> ToolOrchestrator:
        return ToolOrchestrator(
            self.gateway,
            self.prompt_library(profile),
            self.assembler(page_id),
            completion_config=self.settings.completion,
            config=self.settings.orchestrator,
        )

    def indexer(self) -> Indexer:
        vector_store = self.vector_store
        if vector_store is None:
            raise RuntimeError("Vector store is disabled")
        cfg = self.settings.indexing
        return Indexer(
            IdentifierParser(
                cfg.pages_dir,
                extensions=cfg.extensions,
                default_institution=cfg.default_institution,
            ),
            ParagraphChunker(min_tag_length=cfg.min_tag_length),
            self.embedder,
            vector_store,
            page_store=self.page_store,
            staleness_probe=cfg.staleness_probe,
        )
