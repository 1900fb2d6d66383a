from wiki_llm.config import Settings


def test_settings_from_env(monkeypatch) -> None:
    monkeypatch.setenv("WIKI_LLM_CHROMA_HOST", "chroma.internal")
    monkeypatch.setenv("WIKI_LLM_CHROMA_PORT", "9000")
    monkeypatch.setenv("WIKI_LLM_PROFILE", "clinic")
    monkeypatch.setenv("WIKI_LLM_USE_TOOLS", "true")
    monkeypatch.setenv("WIKI_LLM_ENABLE_CHROMA", "0")

    settings = Settings.from_env()

    assert settings.vector_store.base_url == "http://chroma.internal:9000"
    assert settings.orchestrator.profile == "clinic"
    assert settings.orchestrator.use_tools is True
    assert settings.enable_vector_store is False


def test_defaults() -> None:
    settings = Settings()

    assert settings.embedding.keep_alive == "30m"
    assert settings.orchestrator.max_calls_per_tool == 3
    assert settings.orchestrator.max_total_calls == 10
    assert settings.indexing.min_tag_length == 4
