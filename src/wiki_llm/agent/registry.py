"""Tool registry built on Pydantic v2 models."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from langchain_core.tools import StructuredTool
from langchain_core.utils.function_calling import convert_to_openai_tool
from pydantic import BaseModel, ConfigDict

from wiki_llm.obs.tracing import Timer
from wiki_llm.types import ToolTrace

PREVIEW_LENGTH = 320


class ToolSpec(BaseModel):
    """Declarative tool specification for registration and validation."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    description: str
    args_schema: type[BaseModel]
    handler: Callable[[BaseModel], str]

    def invoke(self, payload: dict[str, Any]) -> str:
        data = self.args_schema.model_validate(payload)
        return self.handler(data)


class ToolRegistry:
    """Stores tool specs and exports them as completion-API tool declarations."""

    def __init__(self) -> None:
        self._tools: dict[str, ToolSpec] = {}
        self._observer: Callable[[ToolTrace], None] | None = None

    def register(self, spec: ToolSpec) -> None:
        if spec.name in self._tools:
            raise ValueError(f"Tool already registered: {spec.name}")
        self._tools[spec.name] = spec

    def set_observer(self, observer: Callable[[ToolTrace], None] | None) -> None:
        """Set an optional callback invoked after each tool execution."""
        self._observer = observer

    def has(self, name: str) -> bool:
        return name in self._tools

    def execute(self, name: str, payload: dict[str, Any]) -> str:
        spec = self._tools.get(name)
        if spec is None:
            raise KeyError(f"Unknown tool: {name}")
        return self._execute_spec(spec, payload)

    def record_cached(self, name: str, payload: dict[str, Any], output: str) -> None:
        """Report a tool result served from a cache instead of executing."""
        self._notify(
            ToolTrace(
                name=name,
                input_payload=payload,
                output_preview=output[:PREVIEW_LENGTH],
                latency_ms=0.0,
                cached=True,
            )
        )

    def as_langchain_tools(self) -> list[StructuredTool]:
        tools: list[StructuredTool] = []
        for spec in self._tools.values():
            tools.append(
                StructuredTool.from_function(
                    name=spec.name,
                    description=spec.description,
                    args_schema=spec.args_schema,
                    func=self._build_function(spec),
                )
            )
        return tools

    def declarations(self) -> list[dict[str, Any]]:
        """OpenAI ``tools`` entries (``{"type": "function", "function": ...}``)."""
        return [convert_to_openai_tool(tool) for tool in self.as_langchain_tools()]

    def _build_function(self, spec: ToolSpec) -> Callable[..., str]:
        def _callable(**kwargs: Any) -> str:
            return self._execute_spec(spec, kwargs)

        return _callable

    def _execute_spec(self, spec: ToolSpec, payload: dict[str, Any]) -> str:
        with Timer() as timer:
            output = spec.invoke(payload)

        self._notify(
            ToolTrace(
                name=spec.name,
                input_payload=payload,
                output_preview=output[:PREVIEW_LENGTH],
                latency_ms=timer.elapsed_ms,
            )
        )
        return output

    def _notify(self, trace: ToolTrace) -> None:
        if self._observer is not None:
            self._observer(trace)
