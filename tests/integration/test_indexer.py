import gc
import os
import time

import pytest

from wiki_llm.ingest.chunker import ParagraphChunker
from wiki_llm.ingest.embedder import HashingEmbedder
from wiki_llm.ingest.identifier import IdentifierParser
from wiki_llm.ingest.pipeline import Indexer, _DocumentLocks
from wiki_llm.pages import FilesystemPageStore
from wiki_llm.retrieval.vector_store import InMemoryVectorStore

REPORT = """====== MRI Brain ======

Clinical indication: persistent headache for two weeks.

No acute intracranial abnormality. Ventricles are normal in size.

===== Conclusion =====

Normal cerebral MRI examination."""


class FailingGetStore(InMemoryVectorStore):
    def get(self, collection_id, ids, include=None, limit=None):
        raise RuntimeError("store offline")


def _age(path, seconds: float = 3600.0) -> None:
    stamp = time.time() - seconds
    os.utime(path, (stamp, stamp))


def _indexer(root, store=None) -> tuple[Indexer, InMemoryVectorStore]:
    store = store or InMemoryVectorStore()
    indexer = Indexer(
        IdentifierParser(root),
        ParagraphChunker(),
        HashingEmbedder(),
        store,
        page_store=FilesystemPageStore(root),
    )
    return indexer, store


def _report(root, relative: str = "reports/mri/2024/g287-jane-doe.txt", content: str = REPORT):
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    _age(path)
    return path


def test_single_file_end_to_end(tmp_path) -> None:
    path = _report(tmp_path)
    indexer, store = _indexer(tmp_path)

    result = indexer.process_single_file(path)

    assert result.status == "success"
    assert result.document_id == "reports:mri:2024:g287-jane-doe"
    assert result.collection == "reports"
    assert result.chunks == 3
    assert result.collection_status == "Collection 'reports' created."

    stored = store.get(
        store.collection_id("reports"),
        ["reports:mri:2024:g287-jane-doe@2", "reports:mri:2024:g287-jane-doe@5"],
    )
    assert stored["ids"] == ["reports:mri:2024:g287-jane-doe@2", "reports:mri:2024:g287-jane-doe@5"]
    metadata = stored["metadatas"][0]
    assert metadata["modality"] == "mri"
    assert metadata["year"] == "2024"
    assert metadata["registration"] == "g287"
    assert metadata["name"] == "jane doe"
    assert metadata["tags"] == "brain"
    assert metadata["total_chunks"] == 5
    assert stored["metadatas"][1]["tags"] == "conclusion"


def test_unchanged_file_is_skipped_and_newer_file_reindexed(tmp_path) -> None:
    path = _report(tmp_path)
    indexer, _ = _indexer(tmp_path)

    assert indexer.process_single_file(path).status == "success"
    second = indexer.process_single_file(path)
    assert second.status == "skipped"
    assert "is up to date" in second.message

    future = time.time() + 3600
    os.utime(path, (future, future))
    assert indexer.process_single_file(path).status == "success"


def test_staleness_failure_means_update(tmp_path) -> None:
    indexer, store = _indexer(tmp_path, FailingGetStore())
    store.create_collection("reports")

    assert indexer.needs_update(store.collection_id("reports"), "reports:x", time.time()) is True


def test_directory_run_continues_after_errors(tmp_path) -> None:
    _report(tmp_path)
    _report(tmp_path, "reports/mri/2024/_draft.txt")
    _report(tmp_path, "reports/mri/templates/cerebral.txt", "===== Only a title =====")
    bad = tmp_path / "reports/mri/2024/b1-broken.txt"
    bad.write_bytes(b"\xff\xfe\xfa not utf-8")
    indexer, _ = _indexer(tmp_path)

    outcome = indexer.process_directory(tmp_path / "reports")

    assert outcome.status == "success"
    assert outcome.collection == "reports"
    assert outcome.files_count == 3
    assert outcome.count("success") == 1
    assert outcome.count("skipped") == 1
    assert outcome.count("error") == 1
    errors = [item.result for item in outcome.results if item.result.status == "error"]
    assert errors[0].document_id == "reports:mri:2024:b1-broken"


def test_directory_edge_cases(tmp_path) -> None:
    indexer, _ = _indexer(tmp_path)
    (tmp_path / "empty").mkdir()

    assert indexer.process_directory(tmp_path / "missing").status == "error"
    assert indexer.process_directory(tmp_path / "empty").status == "skipped"


def test_index_page_by_id(tmp_path) -> None:
    _report(tmp_path, "playground/scratch.txt", "Some draft text.")
    indexer, store = _indexer(tmp_path)

    result = indexer.index_page("playground:scratch")

    assert result.status == "success"
    assert result.collection == "documents"
    assert store.get(store.collection_id("documents"), ["playground:scratch@1"])["ids"] == [
        "playground:scratch@1"
    ]


def test_file_written_just_before_indexing_is_skipped_next_time(tmp_path) -> None:
    path = tmp_path / "reports/mri/2024/g287-jane-doe.txt"
    path.parent.mkdir(parents=True)
    path.write_text(REPORT, encoding="utf-8")
    # Sub-second mtime inside the current second.
    now = time.time()
    stamp = max(int(now), now - 0.2)
    os.utime(path, (stamp, stamp))
    indexer, _ = _indexer(tmp_path)

    assert indexer.process_single_file(path).status == "success"
    assert indexer.process_single_file(path).status == "skipped"


@pytest.mark.parametrize(
    ("content", "expected_ids", "tags"),
    [
        ("===Title===\n\nBody one.\n\nBody two.", ["playground:note@2", "playground:note@3"], "title"),
    ],
)
def test_title_chunks_keep_positions_and_tag_bodies(tmp_path, content, expected_ids, tags) -> None:
    path = _report(tmp_path, "playground/note.txt", content)
    indexer, store = _indexer(tmp_path)

    result = indexer.process_single_file(path)

    assert result.status == "success"
    assert result.collection == "documents"
    stored = store.get(store.collection_id("documents"), ["playground:note@1", *expected_ids])
    assert stored["ids"] == expected_ids
    assert [metadata["tags"] for metadata in stored["metadatas"]] == [tags] * len(expected_ids)


def test_document_locks_are_released_after_use() -> None:
    locks = _DocumentLocks()

    with locks("reports:a"):
        assert locks("reports:a") is locks("reports:a")
        assert len(locks) == 1

    gc.collect()
    assert len(locks) == 0
