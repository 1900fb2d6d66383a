"""Configuration models for the indexing and completion services."""

from __future__ import annotations

import os

from pydantic import BaseModel, Field

DEFAULT_PAGES_DIR = "/var/www/html/dokuwiki/data/pages/"


class VectorStoreConfig(BaseModel):
    """Connection settings for the Chroma REST server."""

    host: str = "127.0.0.1"
    port: int = Field(default=8000, ge=1, le=65535)
    tenant: str = "default_tenant"
    database: str = "default_database"
    timeout_seconds: float = Field(default=30.0, gt=0.0)

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"


class EmbeddingConfig(BaseModel):
    """Connection settings for the Ollama embeddings endpoint."""

    host: str = "127.0.0.1"
    port: int = Field(default=11434, ge=1, le=65535)
    model: str = "nomic-embed-text"
    keep_alive: str = "30m"
    timeout_seconds: float = Field(default=60.0, gt=0.0)

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"


class CompletionConfig(BaseModel):
    """Chat-completion endpoint and sampling parameters.

    Sampling values left as ``None`` are omitted from the request body.
    """

    api_url: str = "https://api.openai.com/v1/chat/completions"
    api_key: str | None = None
    model: str = "gpt-4o-mini"
    timeout_seconds: float = Field(default=30.0, gt=0.0)
    max_tokens: int = Field(default=6144, ge=1)
    temperature: float | None = Field(default=0.3, ge=0.0, le=2.0)
    top_p: float | None = Field(default=0.8, ge=0.0, le=1.0)
    top_k: int | None = Field(default=20, ge=1)
    min_p: float | None = Field(default=0.0, ge=0.0, le=1.0)
    think: bool = False


class IndexingConfig(BaseModel):
    """Controls how page files map to identifiers and chunks."""

    pages_dir: str = DEFAULT_PAGES_DIR
    extensions: tuple[str, ...] = (".txt",)
    default_institution: str = "default"
    min_tag_length: int = Field(default=4, ge=1)
    staleness_probe: int = Field(default=3, ge=1)


class OrchestratorConfig(BaseModel):
    """Configures prompt lookup, context augmentation and the tool loop."""

    profile: str = "default"
    prompt_namespace: str = "wikillm:profiles"
    default_collection: str = "reports"
    use_context: bool = True
    use_tools: bool = False
    max_calls_per_tool: int = Field(default=3, ge=1)
    max_total_calls: int = Field(default=10, ge=1)
    snippet_count: int = Field(default=10, ge=1, le=50)


class Settings(BaseModel):
    """Aggregated settings for the CLI and the service."""

    vector_store: VectorStoreConfig = Field(default_factory=VectorStoreConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    completion: CompletionConfig = Field(default_factory=CompletionConfig)
    indexing: IndexingConfig = Field(default_factory=IndexingConfig)
    orchestrator: OrchestratorConfig = Field(default_factory=OrchestratorConfig)
    enable_vector_store: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from ``WIKI_LLM_*`` environment variables."""

        env = os.environ
        vector_store = VectorStoreConfig(
            host=env.get("WIKI_LLM_CHROMA_HOST", "127.0.0.1"),
            port=int(env.get("WIKI_LLM_CHROMA_PORT", "8000")),
            tenant=env.get("WIKI_LLM_CHROMA_TENANT", "default_tenant"),
            database=env.get("WIKI_LLM_CHROMA_DATABASE", "default_database"),
        )
        embedding = EmbeddingConfig(
            host=env.get("WIKI_LLM_OLLAMA_HOST", "127.0.0.1"),
            port=int(env.get("WIKI_LLM_OLLAMA_PORT", "11434")),
            model=env.get("WIKI_LLM_OLLAMA_MODEL", "nomic-embed-text"),
        )
        completion = CompletionConfig(
            api_url=env.get("WIKI_LLM_API_URL", CompletionConfig().api_url),
            api_key=env.get("WIKI_LLM_API_KEY") or env.get("OPENAI_API_KEY"),
            model=env.get("WIKI_LLM_MODEL", "gpt-4o-mini"),
            think=_env_flag(env.get("WIKI_LLM_THINK")),
        )
        indexing = IndexingConfig(
            pages_dir=env.get("WIKI_LLM_PAGES_DIR", DEFAULT_PAGES_DIR),
            default_institution=env.get("WIKI_LLM_DEFAULT_INSTITUTION", "default"),
        )
        orchestrator = OrchestratorConfig(
            profile=env.get("WIKI_LLM_PROFILE", "default"),
            default_collection=env.get("WIKI_LLM_COLLECTION", "reports"),
            use_tools=_env_flag(env.get("WIKI_LLM_USE_TOOLS")),
        )
        return cls(
            vector_store=vector_store,
            embedding=embedding,
            completion=completion,
            indexing=indexing,
            orchestrator=orchestrator,
            enable_vector_store=_env_flag(env.get("WIKI_LLM_ENABLE_CHROMA", "1")),
        )


def _env_flag(value: str | None) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}
