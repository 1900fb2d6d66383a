"""Prompt templates stored as wiki pages, grouped by profile."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any, Protocol

from pydantic import BaseModel

from wiki_llm.errors import PromptNotFoundError
from wiki_llm.pages import PageStore

DEFAULT_PROFILE = "default"

_PLACEHOLDER = re.compile(r"\{([^}]+)\}")
_TABLE_ROW = re.compile(
    r"^\|\s*([^|]+)\s*\|\s*([^|]+)\s*\|\s*([^|]+)\s*\|\s*([^|]+)\s*\|\s*([^|]+)\s*\|$"
)
_PAGE_LINK = re.compile(r"\[\[\.?:?([^\]]+)\]\]")


class PromptStore(Protocol):
    """Prompt lookup capability."""

    def get(self, profile: str, name: str) -> str | None:
        """Prompt text for ``name`` in ``profile``, or ``None`` when absent."""


class PagePromptStore:
    """Reads prompts from pages named ``<namespace>:<profile>:<name>``."""

    def __init__(self, page_store: PageStore, namespace: str = "wikillm:profiles") -> None:
        self.page_store = page_store
        self.namespace = namespace

    def page_id(self, profile: str, name: str | None = None) -> str:
        if name is None:
            return f"{self.namespace}:{profile}"
        return f"{self.namespace}:{profile}:{name}"

    def get(self, profile: str, name: str) -> str | None:
        return self.page_store.read(self.page_id(profile, name))

    def profile_page(self, profile: str) -> str | None:
        return self.page_store.read(self.page_id(profile))


class ActionSpec(BaseModel):
    """One row of a profile's action table."""

    id: str
    label: str
    description: str
    icon: str
    result: str


class PromptLibrary:
    """Resolves prompts for a profile with an explicit fallback to ``default``."""

    def __init__(self, store: PromptStore, profile: str = DEFAULT_PROFILE) -> None:
        self.store = store
        self.profile = profile or DEFAULT_PROFILE

    def load(self, name: str) -> str:
        """Two-step lookup: configured profile, then the default profile."""

        prompt = self.store.get(self.profile, name)
        if prompt is None and self.profile != DEFAULT_PROFILE:
            prompt = self.store.get(DEFAULT_PROFILE, name)
        if prompt is None:
            raise PromptNotFoundError(f"Prompt not found: {name} (profile {self.profile})")
        return prompt

    def actions(self) -> list[ActionSpec]:
        """Parse the profile page's action table; a missing page has no actions."""

        profile_page = getattr(self.store, "profile_page", None)
        if profile_page is None:
            return []
        content = profile_page(self.profile)
        if content is None:
            return []
        return parse_action_table(content)


def find_placeholders(text: str) -> list[str]:
    """Unique ``{name}`` markers in order of first appearance."""

    found: list[str] = []
    for name in _PLACEHOLDER.findall(text):
        if name not in found:
            found.append(name)
    return found


def substitute(text: str, variables: Mapping[str, Any]) -> str:
    """Replace known placeholders in one pass.

    Inserted values are not scanned again, so a value containing ``{x}`` is
    kept verbatim. Unknown placeholders are left untouched.
    """

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in variables:
            return match.group(0)
        return _stringify(variables[name])

    return _PLACEHOLDER.sub(_replace, text)


def parse_action_table(content: str) -> list[ActionSpec]:
    actions: list[ActionSpec] = []
    in_table = False
    for line in content.splitlines():
        match = _TABLE_ROW.match(line.strip())
        if match is None:
            if in_table:
                break
            continue

        in_table = True
        raw_id, label, description, icon, result = (group.strip() for group in match.groups())
        if raw_id.lower() == "id":
            continue

        action_id = raw_id
        link = _PAGE_LINK.search(raw_id)
        if link:
            action_id = link.group(1).split(":")[-1]
        actions.append(
            ActionSpec(id=action_id, label=label, description=description, icon=icon, result=result)
        )
    return actions


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return "\n".join(str(item) for item in value)
    return str(value)
