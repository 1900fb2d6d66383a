"""Paragraph chunking with title-derived tags."""

from __future__ import annotations

import re
from typing import Any

from wiki_llm.types import DocumentChunk, RawChunk

_PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")
_TITLE = re.compile(r"^=+(.*?)=+$")
_WHITESPACE = re.compile(r"\s+")


class ParagraphChunker:
    """Splits wiki page text into paragraph chunks.

    Design notes:
    1. Ordinals are positional.
       Every paragraph produced by the blank-line split consumes an ordinal,
       including empty paragraphs and titles, so ``<id>@<n>`` always points at
       the n-th paragraph of the source text. Numbering has gaps where titles
       or blank paragraphs were dropped.

    2. Titles become tags.
       A paragraph wrapped in ``=`` markers is a wiki heading. Its words of at
       least ``min_tag_length`` characters become lowercase tags, and those
       tags are attached to every following content chunk until the next
       heading replaces them.
    """

    def __init__(self, min_tag_length: int = 4) -> None:
        self.min_tag_length = min_tag_length

    def split(self, text: str) -> list[RawChunk]:
        """Return title and content chunks in source order; blanks are dropped."""

        output: list[RawChunk] = []
        current_tags: list[str] = []

        for index, paragraph in enumerate(self.paragraphs(text)):
            paragraph = paragraph.strip()
            if not paragraph:
                continue

            title = self.title_tags(paragraph)
            if title is not None:
                current_tags = title
                output.append(
                    RawChunk(ordinal=index + 1, content=paragraph, title=True, tags=list(title))
                )
                continue

            output.append(RawChunk(ordinal=index + 1, content=paragraph, tags=list(current_tags)))
        return output

    def chunk_document(
        self,
        document_id: str,
        text: str,
        base_metadata: dict[str, Any] | None = None,
    ) -> list[DocumentChunk]:
        """Build indexable chunks for ``document_id``.

        ``total_chunks`` counts every paragraph of the source text, matching the
        positional ordinals rather than the number of chunks returned.
        """

        total = len(self.paragraphs(text))
        chunks: list[DocumentChunk] = []
        for raw in self.split(text):
            if raw.title:
                continue
            chunk_id = f"{document_id}@{raw.ordinal}"
            metadata: dict[str, Any] = {
                **(base_metadata or {}),
                "chunk_id": chunk_id,
                "chunk_number": raw.ordinal,
                "total_chunks": total,
            }
            if raw.tags:
                metadata["tags"] = ",".join(raw.tags)
            chunks.append(
                DocumentChunk(
                    chunk_id=chunk_id,
                    document_id=document_id,
                    content=raw.content,
                    metadata=metadata,
                )
            )
        return chunks

    def title_tags(self, paragraph: str) -> list[str] | None:
        """Tags for a heading paragraph, or ``None`` when it is not a heading."""

        match = _TITLE.match(paragraph)
        if match is None:
            return None

        tags: list[str] = []
        for word in _WHITESPACE.split(match.group(1).strip()):
            word = word.lower()
            if len(word) >= self.min_tag_length and word not in tags:
                tags.append(word)
        return tags

    @staticmethod
    def paragraphs(text: str) -> list[str]:
        return _PARAGRAPH_SPLIT.split(text)
