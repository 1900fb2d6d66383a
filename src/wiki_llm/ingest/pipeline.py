"""Incremental indexing pipeline: identify -> check staleness -> chunk -> embed -> upsert."""

from __future__ import annotations

import threading
import weakref
from datetime import datetime
from pathlib import Path
from typing import Any

import structlog

from wiki_llm.errors import StalenessCheckError
from wiki_llm.ingest.chunker import ParagraphChunker
from wiki_llm.ingest.embedder import Embedder
from wiki_llm.ingest.identifier import IdentifierParser, collection_for
from wiki_llm.pages import PageStore
from wiki_llm.retrieval.vector_store import VectorStore
from wiki_llm.types import DirectoryResult, FileResult, IndexResult

logger = structlog.get_logger(__name__)

PROCESSED_AT_FORMAT = "%Y-%m-%d %H:%M:%S"


class _DocumentLocks:
    """One lock per document id so concurrent runs never interleave on a page.

    Locks are held weakly: an entry lives only while some caller references it.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: weakref.WeakValueDictionary[str, threading.Lock] = weakref.WeakValueDictionary()

    def __call__(self, document_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(document_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[document_id] = lock
            return lock

    def __len__(self) -> int:
        return len(self._locks)


class Indexer:
    """Coordinates identifier/chunker/embedder/vector store stages.

    Indexing is incremental: a page is only re-embedded when its file is newer
    than the ``processed_at`` stamp stored on its first chunks. Errors are
    reported as ``IndexResult(status="error")`` so a batch run never aborts on
    a single bad file.
    """

    def __init__(
        self,
        identifier_parser: IdentifierParser,
        chunker: ParagraphChunker,
        embedder: Embedder,
        vector_store: VectorStore,
        *,
        page_store: PageStore | None = None,
        staleness_probe: int = 3,
    ) -> None:
        self._identifiers = identifier_parser
        self._chunker = chunker
        self._embedder = embedder
        self._vector_store = vector_store
        self._page_store = page_store
        self._staleness_probe = staleness_probe
        self._locks = _DocumentLocks()

    def process_single_file(
        self,
        path: str | Path,
        collection_name: str | None = None,
        *,
        collection_ensured: bool = False,
    ) -> IndexResult:
        """Index one page file unless its stored chunks are already current."""

        document_id: str | None = None
        try:
            document_id = self._identifiers.parse(path)
            collection = collection_name or collection_for(document_id)
            with self._locks(document_id):
                return self._index(Path(path), document_id, collection, collection_ensured)
        except Exception as exc:
            logger.warning("index_failed", path=str(path), document_id=document_id, error=str(exc))
            return IndexResult(
                status="error",
                message=f"Error sending file to vector store: {exc}",
                document_id=document_id,
                collection=collection_name,
            )

    def process_directory(self, root: str | Path) -> DirectoryResult:
        """Index every eligible page file below ``root``, one at a time."""

        root_path = Path(root)
        if not root_path.is_dir():
            return DirectoryResult(status="error", message=f"Directory does not exist: {root}")

        files = self.discover(root_path)
        if not files:
            return DirectoryResult(status="skipped", message=f"No page files found in directory: {root}")

        # All pages below one root share a namespace, so one collection serves them all.
        collection = collection_for(self._identifiers.parse(files[0]))
        try:
            self._vector_store.ensure_collection(collection)
        except Exception as exc:
            logger.warning("ensure_collection_failed", collection=collection, error=str(exc))

        results: list[FileResult] = []
        for file_path in files:
            result = self.process_single_file(file_path, collection, collection_ensured=True)
            logger.info(
                "file_processed",
                path=str(file_path),
                status=result.status,
                chunks=result.chunks,
            )
            results.append(FileResult(path=str(file_path), result=result))

        return DirectoryResult(
            status="success",
            message="Finished processing directory.",
            files_count=len(files),
            collection=collection,
            results=results,
        )

    def index_page(self, page_id: str) -> IndexResult:
        """Index a page by id after it was saved."""

        if self._page_store is None:
            return IndexResult(status="error", message="No page store configured", document_id=page_id)
        path = self._page_store.path_for(page_id)
        return self.process_single_file(path, collection_for(page_id))

    def discover(self, root: Path) -> list[Path]:
        """Page files below ``root``; names starting with ``_`` are drafts and skipped."""

        return sorted(
            path
            for path in root.rglob("*")
            if path.is_file()
            and path.suffix in self._identifiers.extensions
            and not path.name.startswith("_")
        )

    def needs_update(self, collection_id: str, document_id: str, modified_at: float) -> bool:
        """Whether the stored chunks of ``document_id`` are missing or older than the file.

        The first chunks may be titles that were never stored, so several
        leading ordinals are probed. Any failure counts as "needs update".
        """

        probe_ids = [f"{document_id}@{n}" for n in range(1, self._staleness_probe + 1)]
        try:
            result = self._vector_store.get(collection_id, probe_ids, include=["metadatas"], limit=1)
            if not result.get("ids"):
                return True

            metadatas = result.get("metadatas") or []
            if not metadatas:
                return False
            metadata = metadatas[0] or {}
            if "processed_at" not in metadata:
                return True
            return _parse_processed_at(metadata["processed_at"]) < modified_at
        except Exception as exc:
            logger.debug("staleness_check_failed", document_id=document_id, error=str(exc))
            return True

    def _index(
        self,
        path: Path,
        document_id: str,
        collection: str,
        collection_ensured: bool,
    ) -> IndexResult:
        collection_status = ""
        if not collection_ensured:
            collection_status = self._vector_store.ensure_collection(collection)
        collection_id = self._vector_store.collection_id(collection)

        # processed_at has whole-second precision, so compare against whole seconds.
        if not self.needs_update(collection_id, document_id, int(path.stat().st_mtime)):
            return IndexResult(
                status="skipped",
                message=f"Document '{document_id}' is up to date in collection '{collection}'. Skipping...",
                document_id=document_id,
                collection=collection,
                collection_status=collection_status,
            )

        content = path.read_text(encoding="utf-8")
        base_metadata: dict[str, Any] = {
            **self._identifiers.extract_metadata(document_id),
            "processed_at": datetime.now().strftime(PROCESSED_AT_FORMAT),
        }
        chunks = self._chunker.chunk_document(document_id, content, base_metadata)
        if not chunks:
            return IndexResult(
                status="skipped",
                message=f"No valid chunks found in file '{document_id}'. Skipping...",
                document_id=document_id,
                collection=collection,
                collection_status=collection_status,
            )

        embeddings = self._embedder.embed_documents([chunk.content for chunk in chunks])
        for chunk, embedding in zip(chunks, embeddings, strict=True):
            chunk.embedding = embedding

        self._vector_store.upsert(
            collection_id,
            ids=[chunk.chunk_id for chunk in chunks],
            documents=[chunk.content for chunk in chunks],
            metadatas=[chunk.metadata for chunk in chunks],
            embeddings=embeddings,
        )
        return IndexResult(
            status="success",
            message="Successfully sent file to vector store",
            document_id=document_id,
            chunks=len(chunks),
            collection=collection,
            collection_status=collection_status,
        )


def _parse_processed_at(value: Any) -> float:
    try:
        return datetime.fromisoformat(str(value)).timestamp()
    except ValueError as exc:
        raise StalenessCheckError(f"Unparseable processed_at: {value!r}") from exc
