"""libcontext vectorize — compute embeddings for stored snippets.

Picks up snippets ingested with --no-embed or whose embedding batch failed.
--force recomputes every embedding in scope, which is how a library moves to
a model with a different dimensionality.

Usage:
  libcontext vectorize
  libcontext vectorize --library-id /facebook/react --force
"""

from __future__ import annotations

from typing import Annotated

import typer
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

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
    err_invalid_library_id,
    err_no_db,
)
from libcontext.db.repository import Repository
from libcontext.embeddings import create_embedder
from libcontext.errors import (
    ConfigError,
    EmbeddingAuthenticationError,
    EmbeddingDimensionError,
    InvalidLibraryIdError,
)
from libcontext.ingest.pipeline import vectorize
from libcontext.rag.retriever import parse_library_id


def vectorize_cmd(
    library_id: Annotated[
        str | None,
        typer.Option("--library-id", "-l", help="Restrict to one library (default: all)."),
    ] = None,
    version: Annotated[
        str | None,
        typer.Option("--version", help="Restrict to one version."),
    ] = None,
    force: Annotated[
        bool,
        typer.Option("--force", help="Clear and recompute existing embeddings."),
    ] = False,
    db: DbOption = None,
    embedding_provider: EmbeddingProviderOption = None,
    embedding_api_key: EmbeddingApiKeyOption = None,
    embedding_model: EmbeddingModelOption = None,
    embedding_api_url: EmbeddingApiUrlOption = None,
) -> None:
    """Embed snippets that have no embedding yet."""
    lib_id = None
    if library_id is not None:
        try:
            lib_id, id_version = parse_library_id(library_id, default_version="")
        except InvalidLibraryIdError:
            console.print(err_invalid_library_id(library_id))
            raise typer.Exit(1) from None
        version = version or id_version or None

    cfg = resolve_config(
        db=db,
        embedding={
            "provider": embedding_provider,
            "api_key": embedding_api_key,
            "model": embedding_model,
            "api_url": embedding_api_url,
        },
    )
    if not cfg.database.path.exists():
        console.print(err_no_db(str(cfg.database.path)))
        raise typer.Exit(1)

    try:
        embedder = create_embedder(cfg.embedding)
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc

    conn = open_db(cfg.database.path)
    repo = Repository(conn)
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            transient=True,
            console=console,
        ) as prog:
            task = prog.add_task(f"Embedding with {embedder.model_name}…", total=None)

            def _on_progress(done: int, total: int) -> None:
                prog.update(task, completed=done, total=total)

            result = vectorize(
                repo,
                embedder,
                library_id=lib_id,
                version=version,
                force=force,
                batch_size=cfg.embedding.batch_size,
                progress=_on_progress,
            )
    except EmbeddingAuthenticationError as exc:
        console.print(err_embedding_auth(cfg.embedding.provider))
        raise typer.Exit(1) from exc
    except EmbeddingDimensionError as exc:
        console.print(err_dimension_mismatch(str(exc)))
        raise typer.Exit(1) from exc
    finally:
        conn.close()

    if result.updated == 0 and result.skipped == 0:
        console.print("[dim]Nothing to embed.[/]")
        return
    console.print(f"[green]✓[/] {result.updated} snippets embedded")
    if result.skipped:
        console.print(
            f"[yellow]⚠[/] {result.skipped} snippets could not be embedded; run vectorize again."
        )
