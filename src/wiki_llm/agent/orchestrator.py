"""Prompt rendering and the completion/tool-call loop."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping, Sequence
from typing import Any

import structlog
from pydantic import ValidationError

from wiki_llm.agent.completion import CompletionGateway
from wiki_llm.agent.context import ContextAssembler
from wiki_llm.agent.prompts import PromptLibrary, find_placeholders, substitute
from wiki_llm.agent.registry import ToolRegistry
from wiki_llm.agent.tools import register_context_tools
from wiki_llm.config import CompletionConfig, OrchestratorConfig
from wiki_llm.errors import NotFoundError, UnexpectedResponseFormatError, WikiLlmError
from wiki_llm.obs.tracing import Timer, TraceCollector
from wiki_llm.types import ProcessResult, ToolTrace

logger = structlog.get_logger(__name__)

CUSTOM_COMMAND = "custom"

# Metadata keys renamed before prompt rendering so that ``{template}``,
# ``{examples}`` and ``{previous}`` resolve to page content, not page ids.
_RENAMED_KEYS = (
    ("template", "page_template"),
    ("examples", "page_examples"),
    ("previous", "page_previous"),
)


class ToolSession:
    """Cache and call counters for the tool calls of one ``process`` call."""

    def __init__(
        self,
        registry: ToolRegistry,
        *,
        max_calls_per_tool: int = 3,
        max_total_calls: int = 10,
    ) -> None:
        self.registry = registry
        self.max_calls_per_tool = max_calls_per_tool
        self.max_total_calls = max_total_calls
        self.counts: dict[str, int] = {}
        self.total = 0
        self.tools_disabled = False
        self._cache: dict[str, str] = {}
        self._collector = TraceCollector()
        self.registry.set_observer(self._collector)

    @property
    def traces(self) -> list[ToolTrace]:
        return self._collector.traces

    def summary(self) -> dict[str, float | int]:
        return self._collector.summary()

    def close(self) -> None:
        self.registry.set_observer(None)

    def handle(self, tool_call: Mapping[str, Any]) -> dict[str, Any]:
        """Run one tool call and return the ``tool`` message answering it."""

        function = tool_call.get("function") or {}
        name = str(function.get("name", ""))
        arguments = _parse_arguments(function.get("arguments"))

        self.counts[name] = self.counts.get(name, 0) + 1
        self.total += 1
        content = self._lookup(name, arguments)

        if self.limit_reached():
            self.tools_disabled = True
        return {"role": "tool", "tool_call_id": tool_call.get("id", ""), "content": content}

    def limit_reached(self) -> bool:
        if any(count > self.max_calls_per_tool for count in self.counts.values()):
            return True
        return self.total > self.max_total_calls

    def _lookup(self, name: str, arguments: dict[str, Any]) -> str:
        key = cache_key(name, arguments)
        cached = self._cache.get(key)
        if cached is not None:
            self.registry.record_cached(name, arguments, cached)
            return cached

        if not self.registry.has(name):
            output = f"Unknown tool: {name}"
        else:
            try:
                output = self.registry.execute(name, arguments)
            except ValidationError as exc:
                output = f"Invalid arguments for {name}: {exc.error_count()} validation error(s)"
        self._cache[key] = output
        return output


class ToolOrchestrator:
    """Turns an action on a page into a completion, resolving tool calls on the way.

    Each call builds its prompt from the prompt library, optionally prefixes a
    ``<context>`` block and then loops: send the message list, return the
    final content, or execute the requested tools and send again. Once any
    tool was called more than ``max_calls_per_tool`` times, or more than
    ``max_total_calls`` calls were made, tool declarations are dropped from
    the request; a model that still answers with tool calls is an error.
    """

    def __init__(
        self,
        gateway: CompletionGateway,
        prompts: PromptLibrary,
        assembler: ContextAssembler,
        *,
        completion_config: CompletionConfig | None = None,
        config: OrchestratorConfig | None = None,
    ) -> None:
        self.gateway = gateway
        self.prompts = prompts
        self.assembler = assembler
        self.completion_config = completion_config or CompletionConfig()
        self.config = config or OrchestratorConfig()

    def process(self, action: str, text: str, metadata: Mapping[str, Any] | None = None) -> str:
        """Run ``action`` on ``text`` and return the trimmed completion."""
        return self.run(action, text, metadata).content

    def run(self, action: str, text: str, metadata: Mapping[str, Any] | None = None) -> ProcessResult:
        variables = dict(metadata or {})
        variables["text"] = text
        variables["think"] = "/think" if self.completion_config.think else "/no_think"
        variables["action"] = action
        for source, target in _RENAMED_KEYS:
            if source in variables:
                variables[target] = variables.pop(source)

        # The renamed keys only feed placeholders; the context block carries snippets alone.
        prompt = self.render_prompt(action, variables, text)
        return self._call(
            action,
            prompt,
            text,
            snippets=variables.get("snippets"),
            template_id=variables.get("page_template"),
        )

    def process_custom_prompt(self, text: str, metadata: Mapping[str, Any] | None = None) -> str:
        """Apply a user-written instruction (``metadata["prompt"]``) to ``text``."""
        return self.run_custom(text, metadata).content

    def run_custom(self, text: str, metadata: Mapping[str, Any] | None = None) -> ProcessResult:
        metadata = dict(metadata or {})
        prompt = str(metadata.get("prompt") or "") + "\n\nText to process:\n" + text
        return self._call(
            CUSTOM_COMMAND,
            prompt,
            text,
            template=metadata.get("template"),
            examples=metadata.get("examples"),
            snippets=metadata.get("snippets"),
            template_id=metadata.get("template"),
        )

    def find_template(self, text: str) -> str | None:
        return self.assembler.find_template(text)

    def get_template(self, page_id: str) -> str:
        content = self.assembler.page_content(page_id)
        if content is None:
            raise NotFoundError(f"Template not found: {page_id}")
        return content

    def render_prompt(self, name: str, variables: Mapping[str, Any], text: str) -> str:
        """Load prompt ``name`` and fill every placeholder it contains.

        ``template``, ``snippets``, ``examples`` and ``previous`` are supplied
        from pages and the vector store when the caller did not provide them;
        any other missing placeholder becomes an empty string.
        """

        prompt = self.prompts.load(name)
        values = dict(variables)
        for placeholder in find_placeholders(prompt):
            if values.get(placeholder) is not None:
                continue
            if placeholder == "template":
                values["template"] = self.assembler.template_content(values.get("page_template"), text)
            elif placeholder == "snippets":
                values["snippets"] = self.assembler.snippets_content(text, self.config.snippet_count)
            elif placeholder == "examples":
                values["examples"] = self.assembler.examples_content(values.get("page_examples"))
            elif placeholder == "previous":
                previous_id = values.get("page_previous")
                values["previous"] = self.assembler.previous_content(previous_id)
                values["current_date"] = self.assembler.page_date()
                values["previous_date"] = self.assembler.page_date(previous_id) if previous_id else ""
            else:
                values[placeholder] = ""
        return substitute(prompt, values)

    def system_prompt(self, command: str, text: str = "") -> str:
        """The ``system`` prompt plus an optional ``<command>:system`` appendage."""

        prompt = self.render_prompt("system", {}, text)
        if command:
            try:
                prompt += "\n" + self.render_prompt(f"{command}:system", {}, text)
            except WikiLlmError:
                pass
        return prompt

    def request_body(self, messages: list[dict[str, Any]], *, tools: list[dict[str, Any]] | None) -> dict[str, Any]:
        cfg = self.completion_config
        body: dict[str, Any] = {
            "model": cfg.model,
            "messages": messages,
            "max_tokens": cfg.max_tokens,
            "stream": False,
        }
        if tools:
            body["tools"] = tools
            body["tool_choice"] = "auto"
        for key in ("temperature", "top_p", "top_k", "min_p"):
            value = getattr(cfg, key)
            if value is not None:
                body[key] = value
        return body

    def _call(
        self,
        command: str,
        prompt: str,
        text: str,
        *,
        template: str | None = None,
        examples: Sequence[str] | None = None,
        snippets: Sequence[str] | None = None,
        template_id: str | None = None,
    ) -> ProcessResult:
        system = self.system_prompt(command, text)

        if self.config.use_context:
            context = self.assembler.build_static_context(
                template or None,
                _as_list(examples),
                _as_list(snippets),
            )
            if context:
                prompt = context + "\n\n" + prompt

        messages: list[dict[str, Any]] = [
            {"role": "system", "content": system},
            {"role": "user", "content": prompt},
        ]

        session: ToolSession | None = None
        if self.config.use_tools:
            registry = ToolRegistry()
            register_context_tools(registry, self.assembler, text, template_id=template_id or None)
            session = ToolSession(
                registry,
                max_calls_per_tool=self.config.max_calls_per_tool,
                max_total_calls=self.config.max_total_calls,
            )

        try:
            with Timer() as timer:
                result = self._loop(messages, session)
        finally:
            if session is not None:
                session.close()

        stats = session.summary() if session is not None else {}
        logger.info(
            "completion_finished",
            command=command,
            requests=result.requests,
            tools_disabled=result.tools_disabled,
            latency_ms=round(timer.elapsed_ms, 2),
            **stats,
        )
        return result

    def _loop(self, messages: list[dict[str, Any]], session: ToolSession | None) -> ProcessResult:
        declarations = session.registry.declarations() if session is not None else None
        requests = 0
        while True:
            tools_enabled = session is not None and not session.tools_disabled
            body = self.request_body(messages, tools=declarations if tools_enabled else None)
            response = self.gateway.complete(body)
            requests += 1

            message = _first_message(response)
            content = message.get("content")
            tool_calls = message.get("tool_calls") or []

            if isinstance(content, str) and (content.strip() or not tool_calls):
                return ProcessResult(
                    content=content.strip(),
                    tool_traces=list(session.traces) if session is not None else [],
                    requests=requests,
                    tools_disabled=session.tools_disabled if session is not None else False,
                )
            if not tool_calls:
                raise UnexpectedResponseFormatError("Unexpected API response format")
            if not tools_enabled:
                raise UnexpectedResponseFormatError(
                    "Model requested tool calls while tools are disabled"
                )

            assistant = {key: value for key, value in message.items() if key != "content"}
            assistant["content"] = None
            messages.append(assistant)
            for tool_call in tool_calls:
                messages.append(session.handle(tool_call))
            logger.debug("tool_round", total=session.total, counts=dict(session.counts))


def cache_key(name: str, arguments: Mapping[str, Any]) -> str:
    """Stable key for a tool call: name plus canonical JSON of its arguments."""

    encoded = json.dumps(arguments, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256((name + encoded).encode("utf-8")).hexdigest()


def _parse_arguments(raw: Any) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _first_message(response: Mapping[str, Any]) -> dict[str, Any]:
    choices = response.get("choices")
    if not isinstance(choices, list) or not choices:
        raise UnexpectedResponseFormatError("Unexpected API response format")
    message = choices[0].get("message") if isinstance(choices[0], dict) else None
    if not isinstance(message, dict):
        raise UnexpectedResponseFormatError("Unexpected API response format")
    return message


def _as_list(value: Any) -> list[str] | None:
    if not value:
        return None
    if isinstance(value, str):
        return [value]
    return [str(item) for item in value]
