"""Context assembly for completion requests: templates, example pages, snippets."""

from __future__ import annotations

import re
from collections.abc import Sequence
from datetime import datetime

from wiki_llm.ingest.identifier import expand_two_digit_year
from wiki_llm.pages import PageStore
from wiki_llm.retrieval.retriever import ContextRetriever

NO_TEMPLATE = "( no template )"
NO_EXAMPLES = "( no examples )"
NO_PREVIOUS = "( no previous report )"
PREVIOUS_NOT_FOUND = "( previous report not found )"

_PAGE_DATE = re.compile(r"(\d{2})(\d{2})(\d{2})")


class ContextAssembler:
    """Collects the reference material a completion request is steered with.

    Missing pages are skipped rather than reported: the context block is a
    best-effort addition and a request without it is still valid.
    """

    def __init__(
        self,
        page_store: PageStore,
        retriever: ContextRetriever | None = None,
        *,
        page_id: str | None = None,
    ) -> None:
        self.page_store = page_store
        self.retriever = retriever
        self.page_id = page_id

    def build_static_context(
        self,
        template: str | None = None,
        examples: Sequence[str] | None = None,
        snippets: Sequence[str] | None = None,
    ) -> str:
        """Return the ``<context>`` block, or ``""`` when nothing could be added."""

        parts: list[str] = []

        if template:
            content = self.page_store.read(template)
            if content is not None:
                parts.append(
                    f"\n\n<template>\nStart from this template ({template}):\n{content}\n</template>\n"
                )

        if examples:
            pages = self._example_pages(examples)
            if pages:
                parts.append(
                    "\n<style_examples>\nThese are complete earlier reports, "
                    "study my writing style:\n" + "\n".join(pages) + "\n</style_examples>\n"
                )

        if snippets:
            numbered = [
                f"\n<example id=\"{i}\">\n{snippet}\n</example>\n"
                for i, snippet in enumerate(snippets, start=1)
            ]
            parts.append(
                "\n\n<style_examples>\nThese are excerpts from my earlier reports, study the "
                "writing style, terminology and sentence structure:\n"
                + "\n".join(numbered)
                + "\n</style_examples>\n"
            )

        if not parts:
            return ""
        return "\n\n<context>\n" + "".join(parts) + "\n</context>\n"

    def page_content(self, page_id: str) -> str | None:
        return self.page_store.read(page_id)

    def template_content(self, page_id: str | None = None, text: str = "") -> str:
        """Content of ``page_id``, else of the best matching indexed template."""

        if page_id:
            content = self.page_store.read(page_id)
            if content is not None:
                return content

        if self.retriever is None:
            return NO_TEMPLATE

        matches = self.retriever.query_template(text)
        if matches:
            content = self.page_store.read(matches[0])
            if content is not None:
                return content
        return NO_TEMPLATE

    def find_template(self, text: str) -> str | None:
        if self.retriever is None:
            return None
        matches = self.retriever.query_template(text)
        return matches[0] if matches else None

    def snippets_content(self, text: str, count: int = 10) -> str:
        if self.retriever is None:
            return NO_EXAMPLES

        snippets = self.retriever.query_snippets(text, count)
        if not snippets:
            return NO_EXAMPLES
        return "\n".join(
            f"<example id=\"{i}\">\n{snippet}\n</example>" for i, snippet in enumerate(snippets, start=1)
        )

    def examples_content(self, example_ids: Sequence[str] | None = None) -> str:
        if not example_ids:
            return NO_EXAMPLES
        return "\n".join(self._example_pages(example_ids))

    def previous_content(self, previous_id: str | None = None) -> str:
        if not previous_id:
            return NO_PREVIOUS
        content = self.page_store.read(previous_id)
        return content if content is not None else PREVIOUS_NOT_FOUND

    def page_date(self, page_id: str | None = None) -> str:
        """``YYYY-MM-DD`` from a ``YYmmdd`` run in the page id, else the file date."""

        target = page_id or self.page_id
        if not target:
            return ""

        match = _PAGE_DATE.search(target)
        if match:
            year, month, day = match.groups()
            return f"{expand_two_digit_year(year)}-{month}-{day}"

        modified = self.page_store.mtime(target)
        if modified is None:
            return ""
        return datetime.fromtimestamp(modified).strftime("%Y-%m-%d")

    def _example_pages(self, example_ids: Sequence[str]) -> list[str]:
        pages: list[str] = []
        for example_id in example_ids:
            content = self.page_store.read(example_id)
            if content is not None:
                pages.append(_example_page(example_id, content))
        return pages


def _example_page(source: str, content: str) -> str:
    return f"<example_page source=\"{source}\">\n{content}\n</example_page>"
