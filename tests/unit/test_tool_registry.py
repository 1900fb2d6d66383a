import pytest
from pydantic import BaseModel, Field, ValidationError

from wiki_llm.agent.registry import ToolRegistry, ToolSpec


class ExamplesInput(BaseModel):
    count: int = Field(default=5, ge=1, le=20)


def _spec() -> ToolSpec:
    def _handler(data: ExamplesInput) -> str:
        return str(data.count)

    return ToolSpec(
        name="get_examples",
        description="return the requested count",
        args_schema=ExamplesInput,
        handler=_handler,
    )


def test_tool_registry_validation() -> None:
    registry = ToolRegistry()
    registry.register(_spec())

    assert registry.execute("get_examples", {"count": 3}) == "3"
    assert registry.execute("get_examples", {}) == "5"

    with pytest.raises(ValidationError):
        registry.execute("get_examples", {"count": 0})


def test_duplicate_tool_registration_rejected() -> None:
    registry = ToolRegistry()
    spec = _spec()

    registry.register(spec)
    with pytest.raises(ValueError):
        registry.register(spec)


def test_unknown_tool_raises_key_error() -> None:
    registry = ToolRegistry()

    assert registry.has("get_examples") is False
    with pytest.raises(KeyError):
        registry.execute("get_examples", {})
