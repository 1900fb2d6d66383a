"""Shared domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

IndexStatus = Literal["success", "skipped", "error"]


@dataclass(slots=True)
class RawChunk:
    """One paragraph of a page as produced by the chunker."""

    ordinal: int
    content: str
    title: bool = False
    tags: list[str] = field(default_factory=list)


@dataclass(slots=True)
class DocumentChunk:
    """An indexable chunk of a page, keyed by ``<document id>@<ordinal>``."""

    chunk_id: str
    document_id: str
    content: str
    metadata: dict[str, Any]
    embedding: list[float] | None = None


@dataclass(slots=True)
class IndexResult:
    """Outcome of indexing a single page file."""

    status: IndexStatus
    message: str
    document_id: str | None = None
    chunks: int = 0
    collection: str | None = None
    collection_status: str = ""


@dataclass(slots=True)
class FileResult:
    path: str
    result: IndexResult


@dataclass(slots=True)
class DirectoryResult:
    """Aggregated outcome of a directory run."""

    status: IndexStatus
    message: str
    files_count: int = 0
    collection: str | None = None
    results: list[FileResult] = field(default_factory=list)

    def count(self, status: IndexStatus) -> int:
        return sum(1 for item in self.results if item.result.status == status)


@dataclass(slots=True)
class ToolTrace:
    """Trace record for an executed tool call."""

    name: str
    input_payload: dict[str, Any]
    output_preview: str
    latency_ms: float
    cached: bool = False


@dataclass(slots=True)
class ProcessResult:
    """Final completion text plus the tool activity that produced it."""

    content: str
    tool_traces: list[ToolTrace] = field(default_factory=list)
    requests: int = 0
    tools_disabled: bool = False
