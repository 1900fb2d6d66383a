from wiki_llm.agent.context import ContextAssembler
from wiki_llm.agent.registry import ToolRegistry
from wiki_llm.agent.tools import register_context_tools
from wiki_llm.pages import FilesystemPageStore


def _declarations(tmp_path) -> dict[str, dict]:
    registry = ToolRegistry()
    register_context_tools(registry, ContextAssembler(FilesystemPageStore(tmp_path)), "text")
    return {entry["function"]["name"]: entry for entry in registry.declarations()}


def test_declared_tool_set(tmp_path) -> None:
    declarations = _declarations(tmp_path)

    assert sorted(declarations) == ["get_document", "get_examples", "get_template"]
    assert all(entry["type"] == "function" for entry in declarations.values())
    assert all(entry["function"]["description"] for entry in declarations.values())


def test_declared_parameters(tmp_path) -> None:
    declarations = _declarations(tmp_path)

    document = declarations["get_document"]["function"]["parameters"]
    assert document["type"] == "object"
    assert document["properties"]["id"]["type"] == "string"
    assert document["required"] == ["id"]

    examples = declarations["get_examples"]["function"]["parameters"]
    assert examples["properties"]["count"]["type"] == "integer"
    assert examples["properties"]["count"]["default"] == 5
    assert "count" not in examples.get("required", [])

    template = declarations["get_template"]["function"]["parameters"]
    assert "type" in template["properties"]
    assert "type" not in template.get("required", [])


def test_get_examples_output_is_wrapped(tmp_path) -> None:
    registry = ToolRegistry()
    register_context_tools(registry, ContextAssembler(FilesystemPageStore(tmp_path)), "text")

    assert registry.execute("get_examples", {}) == "<examples>\n( no examples )\n</examples>"
    assert registry.execute("get_document", {"id": "nope"}) == "Document not found: nope"
    assert registry.execute("get_template", {}) == "( no template )"
