"""libcontext ingest / preview — index a local documentation tree.

Files are discovered under PATH (*.md, *.markdown, *.rst; hidden directories
and node_modules skipped), segmented by extension, chunked, optionally
embedded, and written as one atomic generation for (library id, version).
Cloning a repository is left to the caller.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from libcontext.cli.common import (
    DbOption,
    EmbeddingApiKeyOption,
    EmbeddingApiUrlOption,
    EmbeddingModelOption,
    EmbeddingProviderOption,
    console,
    open_db,
    resolve_config,
)
from libcontext.cli.errors import (
    err_config,
    err_dimension_mismatch,
    err_embedding_auth,
    err_ingest_failed,
    err_invalid_library_id,
    err_no_documents,
    err_not_a_directory,
)
from libcontext.db.repository import Repository
from libcontext.embeddings import create_embedder
from libcontext.errors import (
    ConfigError,
    EmbeddingAuthenticationError,
    EmbeddingDimensionError,
    IngestError,
    InvalidLibraryIdError,
)
from libcontext.ingest.pipeline import discover_documents, ingest_library, preview_documents
from libcontext.rag.retriever import parse_library_id


def ingest_cmd(
    path: Annotated[Path, typer.Argument(help="Local directory containing the documentation.")],
    library_id: Annotated[
        str,
        typer.Option("--library-id", "-l", help="Library ID, /org/project."),
    ],
    version: Annotated[
        str,
        typer.Option("--version", help="Library version."),
    ] = "latest",
    title: Annotated[
        str | None,
        typer.Option("--title", help="Display title (default: project name)."),
    ] = None,
    description: Annotated[
        str,
        typer.Option("--description", help="Short library description."),
    ] = "",
    source_repo: Annotated[
        str,
        typer.Option("--source-repo", help="Origin repository URL (GitHub URLs add per-file links)."),
    ] = "",
    no_embed: Annotated[
        bool,
        typer.Option("--no-embed", help="Skip embeddings; run 'libcontext vectorize' later."),
    ] = False,
    db: DbOption = None,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Replace an existing index without asking."),
    ] = False,
    embedding_provider: EmbeddingProviderOption = None,
    embedding_api_key: EmbeddingApiKeyOption = None,
    embedding_model: EmbeddingModelOption = None,
    embedding_api_url: EmbeddingApiUrlOption = None,
) -> None:
    """Index the documentation under PATH as LIBRARY_ID@VERSION."""
    if not path.is_dir():
        console.print(err_not_a_directory(str(path)))
        raise typer.Exit(1)

    try:
        lib_id, lib_version = parse_library_id(library_id, default_version=version)
    except InvalidLibraryIdError:
        console.print(err_invalid_library_id(library_id))
        raise typer.Exit(1) from None

    cfg = resolve_config(
        db=db,
        embedding={
            "provider": embedding_provider,
            "api_key": embedding_api_key,
            "model": embedding_model,
            "api_url": embedding_api_url,
        },
    )

    documents = list(discover_documents(path))
    if not documents:
        console.print(err_no_documents(str(path)))
        raise typer.Exit(0)
    console.print(f"\n[bold]→ {lib_id}@{lib_version}[/]  ({len(documents)} files)")

    embedder = None
    if not no_embed:
        try:
            embedder = create_embedder(cfg.embedding)
        except ConfigError as exc:
            console.print(err_config(str(exc)))
            raise typer.Exit(1) from exc

    conn = open_db(cfg.database.path)
    repo = Repository(conn)
    try:
        existing = repo.get_library(lib_id, lib_version)
        if existing and not yes:
            console.print(
                f"  [yellow]↻[/] {lib_id}@{lib_version} already has "
                f"{existing.total_snippets} snippets; they will be replaced."
            )
            if not typer.confirm("  Proceed?", default=True):
                console.print("  [dim]Skipped.[/]")
                raise typer.Exit(0)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            transient=True,
            console=console,
        ) as prog:
            task = prog.add_task("Embedding…" if embedder else "Indexing…", total=None)

            def _on_progress(done: int, total: int) -> None:
                prog.update(task, completed=done, total=total)

            result = ingest_library(
                repo,
                lib_id,
                documents,
                version=lib_version,
                title=title,
                description=description,
                source_repo=source_repo,
                embedder=embedder,
                max_chunk_size=cfg.chunking.max_chunk_size,
                progress=_on_progress,
            )
    except EmbeddingAuthenticationError as exc:
        console.print(err_embedding_auth(cfg.embedding.provider))
        raise typer.Exit(1) from exc
    except EmbeddingDimensionError as exc:
        console.print(err_dimension_mismatch(str(exc)))
        raise typer.Exit(1) from exc
    except IngestError as exc:
        console.print(err_ingest_failed(str(exc)))
        raise typer.Exit(1) from exc
    finally:
        conn.close()

    console.print(f"  [green]✓[/] {result.snippets_written} snippets from {result.documents} files")
    if embedder is not None:
        console.print(f"  [green]✓[/] {result.embedded} embedded with {embedder.model_name}")
        missing = result.snippets_written - result.embedded
        if missing:
            console.print(
                f"  [yellow]⚠[/] {missing} snippets have no embedding. "
                "Run:  libcontext vectorize --library-id " + lib_id
            )


def preview_cmd(
    path: Annotated[Path, typer.Argument(help="Local directory containing the documentation.")],
    max_chunk_size: Annotated[
        int | None,
        typer.Option("--max-chunk-size", help="Chunk size limit in characters."),
    ] = None,
) -> None:
    """Show how PATH would be chunked, without writing anything."""
    if not path.is_dir():
        console.print(err_not_a_directory(str(path)))
        raise typer.Exit(1)

    cfg = resolve_config()
    size = max_chunk_size or cfg.chunking.max_chunk_size
    documents = list(discover_documents(path))
    if not documents:
        console.print(err_no_documents(str(path)))
        raise typer.Exit(0)

    result = preview_documents(documents, max_chunk_size=size)

    table = Table(title=f"Preview: {path}", show_lines=False)
    table.add_column("File")
    table.add_column("Chunks", justify="right")
    table.add_column("Tokens", justify="right")
    for item in result.files:
        table.add_row(item.path, str(item.chunks), str(item.tokens))
    console.print(table)
    console.print(
        f"\n  {len(result.files)} files  |  {result.total_chunks} chunks  |  "
        f"~{result.total_tokens:,} tokens"
    )
