"""Timing helpers and tool-trace collection."""

from __future__ import annotations

import time

from wiki_llm.types import ToolTrace


class Timer:
    """Simple context timer used by the tool registry and the orchestrator."""

    def __init__(self) -> None:
        self._start = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000.0


class TraceCollector:
    """Registry observer that keeps every trace of one request."""

    def __init__(self) -> None:
        self.traces: list[ToolTrace] = []

    def __call__(self, trace: ToolTrace) -> None:
        self.traces.append(trace)

    def summary(self) -> dict[str, float | int]:
        executed = [trace for trace in self.traces if not trace.cached]
        return {
            "tool_calls": len(self.traces),
            "cached_calls": len(self.traces) - len(executed),
            "tool_latency_ms": sum(trace.latency_ms for trace in executed),
        }
