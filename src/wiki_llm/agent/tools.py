"""Context tools the completion model may call while drafting a page."""

from __future__ import annotations

from pydantic import BaseModel, Field

from wiki_llm.agent.context import ContextAssembler
from wiki_llm.agent.registry import ToolRegistry, ToolSpec


class GetDocumentInput(BaseModel):
    id: str = Field(
        min_length=1,
        description=(
            "The unique identifier of the document to retrieve. This should be a valid "
            "document ID that exists in the system."
        ),
    )


class GetTemplateInput(BaseModel):
    type: str = Field(
        default="",
        description='The type of the template (e.g., "mri" for MRI reports, "daily" for daily reports).',
    )


class GetExamplesInput(BaseModel):
    count: int = Field(
        default=5,
        ge=1,
        le=20,
        description=(
            "The number of examples to retrieve (1-20). Use more examples when you need "
            "comprehensive reference material, fewer when you need just a quick reminder of the style."
        ),
    )


def register_context_tools(
    registry: ToolRegistry,
    assembler: ContextAssembler,
    text: str,
    *,
    template_id: str | None = None,
) -> None:
    """Register the tool set offered to the completion model.

    Tools:
    - `get_document`: full content of a page by id.
    - `get_template`: the configured template page, else the best indexed match for ``text``.
    - `get_examples`: snippets from earlier pages similar to ``text``.
    """

    def _get_document(input_data: GetDocumentInput) -> str:
        content = assembler.page_content(input_data.id)
        if content is None:
            return f"Document not found: {input_data.id}"
        return content

    def _get_template(input_data: GetTemplateInput) -> str:
        return assembler.template_content(template_id, text)

    def _get_examples(input_data: GetExamplesInput) -> str:
        return "<examples>\n" + assembler.snippets_content(text, input_data.count) + "\n</examples>"

    registry.register(
        ToolSpec(
            name="get_document",
            description=(
                "Retrieve the full content of a specific document by providing its unique document ID. "
                "Use this when you need to access the complete text of a particular document for "
                "reference or analysis."
            ),
            args_schema=GetDocumentInput,
            handler=_get_document,
        )
    )
    registry.register(
        ToolSpec(
            name="get_template",
            description=(
                "Retrieve a relevant template document that matches the current context and content. "
                "Use this when you need a structural template or format example to base your response "
                "on, particularly for creating consistent reports or documents."
            ),
            args_schema=GetTemplateInput,
            handler=_get_template,
        )
    )
    registry.register(
        ToolSpec(
            name="get_examples",
            description=(
                "Retrieve relevant example snippets from previous reports that are similar to the "
                "current context. Use this when you need to see how similar content was previously "
                "handled, to maintain consistency in style, terminology, and structure."
            ),
            args_schema=GetExamplesInput,
            handler=_get_examples,
        )
    )
