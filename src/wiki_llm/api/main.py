"""FastAPI entrypoint for page processing, templates and indexing."""

from __future__ import annotations

from dataclasses import asdict
from functools import lru_cache
from typing import Any

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field

from wiki_llm.config import Settings
from wiki_llm.errors import NotFoundError, TransportError, UnexpectedResponseFormatError, WikiLlmError
from wiki_llm.obs.logging import configure_logging
from wiki_llm.services import Services


class ProcessRequest(BaseModel):
    action: str = Field(min_length=1)
    text: str
    page_id: str | None = None
    prompt: str | None = None
    profile: str | None = None
    template: str | None = None
    examples: list[str] = Field(default_factory=list)
    previous: str | None = None
    snippets: list[str] = Field(default_factory=list)


class FindTemplateRequest(BaseModel):
    text: str = Field(min_length=1)
    page_id: str | None = None


@lru_cache(maxsize=1)
def get_services() -> Services:
    return Services(Settings.from_env())


def create_app() -> FastAPI:
    app = FastAPI(title="Wiki LLM", version="0.1.0")

    @app.get("/health")
    def health(services: Services = Depends(get_services)) -> dict[str, Any]:
        settings = services.settings
        return {
            "status": "ok",
            "model": settings.completion.model,
            "profile": settings.orchestrator.profile,
            "vector_store_enabled": settings.enable_vector_store,
            "tools_enabled": settings.orchestrator.use_tools,
        }

    @app.post("/process")
    def process(request: ProcessRequest, services: Services = Depends(get_services)) -> dict[str, Any]:
        metadata: dict[str, Any] = {}
        if request.template:
            metadata["template"] = request.template
        if request.examples:
            metadata["examples"] = request.examples
        if request.previous:
            metadata["previous"] = request.previous
        if request.snippets:
            metadata["snippets"] = request.snippets

        try:
            orchestrator = services.orchestrator(request.page_id, profile=request.profile)
            if request.action == "custom":
                metadata["prompt"] = request.prompt or ""
                result = orchestrator.run_custom(request.text, metadata)
            else:
                result = orchestrator.run(request.action, request.text, metadata)
        except NotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except (TransportError, UnexpectedResponseFormatError) as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc

        return {
            "content": result.content,
            "requests": result.requests,
            "tools_disabled": result.tools_disabled,
            "tool_traces": [asdict(trace) for trace in result.tool_traces],
        }

    @app.get("/actions")
    def actions(profile: str | None = None, services: Services = Depends(get_services)) -> dict[str, Any]:
        library = services.prompt_library(profile)
        return {"profile": library.profile, "items": [action.model_dump() for action in library.actions()]}

    @app.get("/templates/{page_id}")
    def template(page_id: str, services: Services = Depends(get_services)) -> dict[str, Any]:
        content = services.page_store.read(page_id)
        if content is None:
            raise HTTPException(status_code=404, detail=f"Template not found: {page_id}")
        return {"id": page_id, "content": content}

    @app.post("/templates/find")
    def find_template(request: FindTemplateRequest, services: Services = Depends(get_services)) -> dict[str, Any]:
        try:
            template_id = services.orchestrator(request.page_id).find_template(request.text)
        except WikiLlmError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return {"template": template_id}

    @app.post("/pages/{page_id}/index")
    def index_page(page_id: str, services: Services = Depends(get_services)) -> dict[str, Any]:
        try:
            indexer = services.indexer()
        except RuntimeError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        except WikiLlmError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc

        result = indexer.index_page(page_id)
        if result.status == "error":
            raise HTTPException(status_code=500, detail=result.message)
        return asdict(result)

    return app


def _create_default_app() -> FastAPI:
    configure_logging(json_logs=True)
    return create_app()


app = _create_default_app()
