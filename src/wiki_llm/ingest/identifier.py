"""Page path -> document identifier conversion and metadata extraction."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

from wiki_llm.config import DEFAULT_PAGES_DIR
from wiki_llm.errors import MalformedPathError

SEPARATOR = ":"
DEFAULT_COLLECTION = "documents"
PLAYGROUND_NAMESPACE = "playground"
TEMPLATES_SEGMENT = "templates"

_NUMERIC = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
_REGISTRATION_NAME = re.compile(r"^([a-zA-Z0-9]+[0-9]*)-(.+)$")
_DATE_NAME = re.compile(r"^(\d{6})-(.+)$")
_DIGIT = re.compile(r"[0-9]")


def expand_two_digit_year(year: str) -> str:
    """Map ``yy`` to a four digit year: ``00..70`` -> 20yy, ``71..99`` -> 19yy."""

    return ("20" if int(year) <= 70 else "19") + year


def collection_for(document_id: str) -> str:
    """Collection that holds chunks of ``document_id``."""

    namespace = document_id.split(SEPARATOR, 1)[0] if document_id else ""
    if not namespace or namespace == PLAYGROUND_NAMESPACE:
        return DEFAULT_COLLECTION
    return namespace


class IdentifierParser:
    """Turns page file paths into colon-joined identifiers.

    Two naming conventions share the same depth and are told apart by the
    third segment only:

    - ``reports:mri:2024:g287-name-surname``: numeric third segment, a year,
      followed by ``<registration>-<name>``.
    - ``reports:mri:medima:250620-name-surname``: anything else is an
      institution, followed by ``<ddmmyy>-<name>``.

    A numeric institution name is therefore read as a year. Templates (any
    segment equal to ``templates``) carry neither.
    """

    def __init__(
        self,
        pages_dir: str | Path = DEFAULT_PAGES_DIR,
        *,
        extensions: tuple[str, ...] = (".txt",),
        default_institution: str = "default",
    ) -> None:
        base = str(pages_dir).replace("\\", "/")
        self.pages_dir = base if base.endswith("/") else base + "/"
        self.extensions = extensions
        self.default_institution = default_institution

    def parse(self, path: str | Path) -> str:
        relative = str(path).replace("\\", "/")
        if relative.startswith(self.pages_dir):
            relative = relative[len(self.pages_dir) :]
        for extension in self.extensions:
            if relative.endswith(extension):
                relative = relative[: -len(extension)]
                break

        segments = [segment for segment in relative.split("/") if segment]
        if not segments:
            raise MalformedPathError(f"Cannot derive a document id from path: {path!r}")
        return SEPARATOR.join(segments)

    def extract_metadata(self, document_id: str) -> dict[str, Any]:
        parts = document_id.split(SEPARATOR)
        last_part = parts[-1]
        is_template = TEMPLATES_SEGMENT in parts

        metadata: dict[str, Any] = {
            "document_id": document_id,
            "type": "template" if is_template else "report",
        }
        if len(parts) > 1:
            metadata["modality"] = parts[1]

        if is_template:
            metadata.update(_registration_and_name(last_part))
            return metadata

        if len(parts) > 2:
            if _NUMERIC.match(parts[2]):
                metadata["year"] = parts[2]
                metadata["institution"] = self.default_institution
                metadata.update(_registration_and_name(last_part))
            else:
                metadata["institution"] = parts[2]
                metadata.update(_date_and_name(last_part))
        return metadata


def _registration_and_name(segment: str) -> dict[str, str]:
    match = _REGISTRATION_NAME.match(segment)
    if match and _DIGIT.search(match.group(1)):
        return {
            "registration": match.group(1),
            "name": match.group(2).replace("-", " "),
        }
    return {"name": segment.replace("-", " ")}


def _date_and_name(segment: str) -> dict[str, str]:
    match = _DATE_NAME.match(segment)
    if not match:
        return {"name": segment.replace("-", " ")}

    stamp = match.group(1)
    day, month, year = stamp[0:2], stamp[2:4], stamp[4:6]
    return {
        "date": f"{expand_two_digit_year(year)}-{month}-{day}",
        "name": match.group(2).replace("-", " "),
    }
