"""Read-only access to wiki pages stored as text files."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from wiki_llm.config import DEFAULT_PAGES_DIR


class PageStore(Protocol):
    """Page storage collaborator: raw text and modification time by page id."""

    def read(self, page_id: str) -> str | None:
        """Raw page text, or ``None`` when the page is missing or unreadable."""

    def mtime(self, page_id: str) -> float | None:
        """Page modification time as a POSIX timestamp, or ``None``."""

    def path_for(self, page_id: str) -> Path:
        """Filesystem location backing ``page_id``."""


class FilesystemPageStore:
    """Maps ``ns:sub:page`` to ``<pages_dir>/ns/sub/page.txt``."""

    def __init__(self, pages_dir: str | Path = DEFAULT_PAGES_DIR, extension: str = ".txt") -> None:
        self.pages_dir = Path(pages_dir)
        self.extension = extension

    def path_for(self, page_id: str) -> Path:
        parts = [part for part in page_id.strip(":").split(":") if part]
        if not parts:
            return self.pages_dir / f"start{self.extension}"
        return self.pages_dir.joinpath(*parts[:-1], parts[-1] + self.extension)

    def read(self, page_id: str) -> str | None:
        if not page_id:
            return None
        try:
            return self.path_for(page_id).read_text(encoding="utf-8")
        except OSError:
            return None

    def mtime(self, page_id: str) -> float | None:
        if not page_id:
            return None
        try:
            return self.path_for(page_id).stat().st_mtime
        except OSError:
            return None
