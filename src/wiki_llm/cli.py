"""Command-line interface for indexing pages and inspecting the vector store."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click
import structlog

from wiki_llm.config import EmbeddingConfig, Settings, VectorStoreConfig
from wiki_llm.errors import WikiLlmError
from wiki_llm.ingest.identifier import DEFAULT_COLLECTION, collection_for
from wiki_llm.ingest.pipeline import Indexer
from wiki_llm.obs.logging import configure_logging
from wiki_llm.retrieval.vector_store import VectorStore
from wiki_llm.services import Services
from wiki_llm.types import IndexResult

logger = structlog.get_logger(__name__)

RULE = "=" * 42


@click.group()
@click.version_option(version="0.1.0", prog_name="wiki-llm")
@click.option("--host", default="127.0.0.1", show_default=True, help="Chroma server host.")
@click.option("--port", default=8000, show_default=True, type=int, help="Chroma server port.")
@click.option("--tenant", default="default_tenant", show_default=True, help="Chroma tenant.")
@click.option("--database", default="default_database", show_default=True, help="Chroma database.")
@click.option("--ollama-host", envvar="OLLAMA_HOST", default="127.0.0.1", show_default=True)
@click.option("--ollama-port", envvar="OLLAMA_PORT", default=11434, show_default=True, type=int)
@click.option("--ollama-model", envvar="OLLAMA_MODEL", default="nomic-embed-text", show_default=True)
@click.option(
    "--pages-dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Wiki pages root used to derive document ids.",
)
@click.option("--verbose", "-v", is_flag=True, help="Show per-file details and debug logs.")
@click.pass_context
def cli(
    ctx: click.Context,
    host: str,
    port: int,
    tenant: str,
    database: str,
    ollama_host: str,
    ollama_port: int,
    ollama_model: str,
    pages_dir: str | None,
    verbose: bool,
) -> None:
    """Index wiki pages into Chroma and query them.

    \b
    Examples:
        wiki-llm send /var/www/html/dokuwiki/data/pages/reports
        wiki-llm query "contrast enhancement" --collection reports --limit 10
    """
    configure_logging(verbose)
    if isinstance(ctx.obj, Services):
        services = ctx.obj
    else:
        settings = Settings.from_env()
        settings.vector_store = VectorStoreConfig(host=host, port=port, tenant=tenant, database=database)
        settings.embedding = EmbeddingConfig(host=ollama_host, port=ollama_port, model=ollama_model)
        services = Services(settings)
    if pages_dir:
        services.settings.indexing.pages_dir = pages_dir
    ctx.obj = services
    ctx.meta["verbose"] = verbose


@cli.command()
@click.argument("path", type=click.Path())
@click.pass_context
def send(ctx: click.Context, path: str) -> None:
    """Send a page file, or every page file below a directory, to the vector store."""

    services: Services = ctx.obj
    verbose = ctx.meta["verbose"]
    target = Path(path)
    if not target.exists():
        click.echo(f"Error: Path does not exist: {path}", err=True)
        sys.exit(1)

    indexer = _indexer(services)
    if target.is_file():
        if target.name.startswith("_"):
            click.echo(f"Skipping file (starts with underscore): {path}")
            return
        result = indexer.process_single_file(target)
        _echo_result(result, services, verbose)
        if result.status == "error":
            sys.exit(1)
        return

    if verbose:
        click.echo(f"Processing directory: {path}")
    outcome = indexer.process_directory(target)
    if outcome.status == "error":
        click.echo(f"Error: {outcome.message}", err=True)
        sys.exit(1)
    if outcome.status == "skipped":
        click.echo(outcome.message)
        return

    if verbose:
        click.echo(f"Found {outcome.files_count} files to process.")
    for item in outcome.results:
        if verbose:
            click.echo(f"\nProcessing file: {item.path}")
        _echo_result(item.result, services, verbose)

    click.echo(f"\n{outcome.message}")
    click.echo("Processing summary:")
    click.echo(f"  Processed: {outcome.count('success')} files")
    click.echo(f"  Skipped: {outcome.count('skipped')} files")
    click.echo(f"  Errors: {outcome.count('error')} files")


@cli.command()
@click.argument("text")
@click.option("--collection", default=DEFAULT_COLLECTION, show_default=True)
@click.option("--limit", default=5, show_default=True, type=click.IntRange(min=1))
@click.pass_context
def query(ctx: click.Context, text: str, collection: str, limit: int) -> None:
    """Query a collection for chunks similar to TEXT."""

    services: Services = ctx.obj
    _header(services, f'Query results for: "{text}"', collection=collection)
    try:
        store = _vector_store(services)
        collection_id = store.collection_id(collection)
        embedding = services.embedder.embed_query(text)
        results = store.query(collection_id, [embedding], limit)
    except WikiLlmError as exc:
        click.echo(f"Error querying vector store: {exc}", err=True)
        sys.exit(1)

    ids = (results.get("ids") or [[]])[0]
    if not ids:
        click.echo("No results found.")
        return

    documents = (results.get("documents") or [[]])[0]
    distances = (results.get("distances") or [[]])[0]
    metadatas = (results.get("metadatas") or [[]])[0]
    for index, record_id in enumerate(ids):
        click.echo(f"Result {index + 1}:")
        click.echo(f"  ID: {record_id}")
        if index < len(distances):
            click.echo(f"  Distance: {distances[index]}")
        if index < len(documents):
            click.echo(f"  Document: {str(documents[index])[:255]}...")
        if index < len(metadatas) and metadatas[index]:
            click.echo(f"  Metadata: {json.dumps(metadatas[index])}")
        click.echo("")


@cli.command()
@click.pass_context
def heartbeat(ctx: click.Context) -> None:
    """Check that the vector store server is alive."""

    services: Services = ctx.obj
    _header(services, "Checking vector store server status...")
    try:
        response = _vector_store(services).heartbeat()
    except WikiLlmError as exc:
        click.echo(f"Error checking server status: {exc}", err=True)
        sys.exit(1)
    click.echo("Server is alive!")
    click.echo(f"Response: {json.dumps(response)}")


@cli.command()
@click.pass_context
def identity(ctx: click.Context) -> None:
    """Show authentication and identity information."""

    services: Services = ctx.obj
    _header(services, "Checking vector store identity...")
    try:
        response = _vector_store(services).get_identity()
    except WikiLlmError as exc:
        click.echo(f"Error checking identity: {exc}", err=True)
        sys.exit(1)
    click.echo("Identity information:")
    click.echo(f"Response: {json.dumps(response, indent=4)}")


@cli.command(name="list")
@click.pass_context
def list_collections(ctx: click.Context) -> None:
    """List all collections."""

    services: Services = ctx.obj
    _header(services, "Listing collections...")
    try:
        collections = _vector_store(services).list_collections()
    except WikiLlmError as exc:
        click.echo(f"Error listing collections: {exc}", err=True)
        sys.exit(1)

    if not collections:
        click.echo("No collections found.")
        return
    click.echo("Collections:")
    for collection in collections:
        click.echo(f"  - {collection.get('name') or json.dumps(collection)}")


@cli.command()
@click.argument("document_id")
@click.option("--collection", default=None, help="Defaults to the first segment of DOCUMENT_ID.")
@click.pass_context
def get(ctx: click.Context, document_id: str, collection: str | None) -> None:
    """Fetch a stored chunk by its id (for example ``reports:mri:2024:g287-jane-doe@2``)."""

    services: Services = ctx.obj
    collection = collection or collection_for(document_id)
    _header(services, f"Getting document: {document_id}", collection=collection)
    try:
        store = _vector_store(services)
        result = store.get(store.collection_id(collection), [document_id])
    except WikiLlmError as exc:
        click.echo(f"Error getting document: {exc}", err=True)
        sys.exit(1)

    ids = result.get("ids") or []
    if not ids:
        click.echo("No documents found with the specified ID.")
        return
    documents = result.get("documents") or []
    metadatas = result.get("metadatas") or []
    for index, record_id in enumerate(ids):
        click.echo(f"Document ID: {record_id}")
        if index < len(metadatas) and metadatas[index]:
            click.echo(f"Metadata: {json.dumps(metadatas[index], indent=4)}")
        if index < len(documents):
            click.echo("Content:")
            click.echo(documents[index])
        click.echo(RULE)


def _vector_store(services: Services) -> VectorStore:
    store = services.vector_store
    if store is None:
        raise click.UsageError("Vector store is disabled (WIKI_LLM_ENABLE_CHROMA).")
    return store


def _indexer(services: Services) -> Indexer:
    try:
        return services.indexer()
    except RuntimeError as exc:
        raise click.UsageError(str(exc)) from exc
    except WikiLlmError as exc:
        click.echo(f"Error connecting to vector store: {exc}", err=True)
        sys.exit(1)


def _header(services: Services, title: str, *, collection: str | None = None) -> None:
    cfg = services.settings.vector_store
    click.echo(title)
    click.echo(f"Host: {cfg.host}:{cfg.port}")
    click.echo(f"Tenant: {cfg.tenant}")
    click.echo(f"Database: {cfg.database}")
    if collection is not None:
        click.echo(f"Collection: {collection}")
    click.echo(RULE)


def _echo_result(result: IndexResult, services: Services, verbose: bool) -> None:
    if verbose and result.collection_status:
        click.echo(result.collection_status)

    if result.status == "success":
        cfg = services.settings.vector_store
        if verbose:
            click.echo(f"Adding {result.chunks} chunks to the vector store...")
        click.echo("Successfully sent file to vector store:")
        click.echo(f"  Document ID: {result.document_id}")
        if verbose:
            click.echo(f"  Chunks: {result.chunks}")
            click.echo(f"  Host: {cfg.host}:{cfg.port}")
            click.echo(f"  Tenant: {cfg.tenant}")
            click.echo(f"  Database: {cfg.database}")
            click.echo(f"  Collection: {result.collection}")
    elif result.status == "skipped":
        if verbose:
            click.echo(result.message)
    else:
        logger.error("send_failed", document_id=result.document_id, error=result.message)
        click.echo(result.message, err=True)


def main() -> None:
    cli(auto_envvar_prefix="WIKI_LLM")


if __name__ == "__main__":
    main()
