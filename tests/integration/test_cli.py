import os
import time

from click.testing import CliRunner

from wiki_llm.cli import cli
from wiki_llm.config import Settings
from wiki_llm.ingest.embedder import HashingEmbedder
from wiki_llm.retrieval.vector_store import InMemoryVectorStore
from wiki_llm.services import Services


def _services(root) -> Services:
    settings = Settings()
    settings.indexing.pages_dir = str(root)
    return Services(settings, embedder=HashingEmbedder(), vector_store=InMemoryVectorStore())


def _page(root, relative: str, content: str):
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    stamp = time.time() - 3600
    os.utime(path, (stamp, stamp))
    return path


def test_send_directory_then_query_and_get(tmp_path) -> None:
    _page(tmp_path, "reports/mri/2024/g287-jane-doe.txt", "== Findings ==\n\nNo focal lesions seen.")
    _page(tmp_path, "reports/mri/2024/b5-john-roe.txt", "Mild sinus mucosal thickening.")
    bad = tmp_path / "reports/mri/2024/c9-broken.txt"
    bad.write_bytes(b"\xff\xfe not text")
    services = _services(tmp_path)
    runner = CliRunner()

    sent = runner.invoke(cli, ["send", str(tmp_path / "reports")], obj=services)
    assert sent.exit_code == 0
    assert "Processed: 2 files" in sent.output
    assert "Errors: 1 files" in sent.output

    resent = runner.invoke(cli, ["send", str(tmp_path / "reports")], obj=services)
    assert "Skipped: 2 files" in resent.output

    queried = runner.invoke(
        cli, ["query", "focal lesions", "--collection", "reports", "--limit", "1"], obj=services
    )
    assert queried.exit_code == 0
    assert "Result 1:" in queried.output
    assert "Result 2:" not in queried.output

    fetched = runner.invoke(
        cli, ["get", "reports:mri:2024:g287-jane-doe@2", "--collection", "reports"], obj=services
    )
    assert fetched.exit_code == 0
    assert "No focal lesions seen." in fetched.output

    derived = runner.invoke(cli, ["get", "reports:mri:2024:g287-jane-doe@2"], obj=services)
    assert derived.exit_code == 0
    assert "Collection: reports" in derived.output
    assert "No focal lesions seen." in derived.output


def test_single_file_error_exits_non_zero(tmp_path) -> None:
    bad = tmp_path / "reports/mri/2024/c9-broken.txt"
    bad.parent.mkdir(parents=True)
    bad.write_bytes(b"\xff\xfe not text")

    result = CliRunner().invoke(cli, ["send", str(bad)], obj=_services(tmp_path))

    assert result.exit_code == 1


def test_missing_path_and_bad_limit(tmp_path) -> None:
    runner = CliRunner()

    assert runner.invoke(cli, ["send", str(tmp_path / "nope")], obj=_services(tmp_path)).exit_code == 1
    assert runner.invoke(cli, ["query", "x", "--limit", "0"], obj=_services(tmp_path)).exit_code == 2


def test_server_commands(tmp_path) -> None:
    services = _services(tmp_path)
    services.vector_store.create_collection("reports")
    runner = CliRunner()

    assert "Server is alive!" in runner.invoke(cli, ["heartbeat"], obj=services).output
    assert "Identity information:" in runner.invoke(cli, ["identity"], obj=services).output
    assert "  - reports" in runner.invoke(cli, ["list"], obj=services).output
