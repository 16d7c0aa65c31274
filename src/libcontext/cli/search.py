"""libcontext search — query one indexed library from the terminal.

Prints exactly the text an assistant would receive for the same query.

Usage:
  libcontext search /facebook/react "useState hook"
  libcontext search /facebook/react/18.2.0 "suspense" --mode keyword --top-k 5
  libcontext search /facebook/react "effects cleanup" --rerank
"""

from __future__ import annotations

import time
from typing import Annotated

import typer

from libcontext.cli.common import (
    DbOption,
    EmbeddingApiKeyOption,
    EmbeddingApiUrlOption,
    EmbeddingModelOption,
    EmbeddingProviderOption,
    RerankingApiKeyOption,
    RerankingApiUrlOption,
    RerankingModelOption,
    RerankingProviderOption,
    console,
    open_db,
    resolve_config,
)
from libcontext.cli.errors import (
    err_config,
    err_invalid_library_id,
    err_library_not_found,
    err_no_db,
)
from libcontext.db.repository import Repository
from libcontext.embeddings import create_embedder
from libcontext.errors import ConfigError, InvalidLibraryIdError
from libcontext.rag.format import format_documentation
from libcontext.rag.retriever import SEARCH_MODES, parse_library_id, query_documentation
from libcontext.rerank import create_reranker

RERANK_TIMEOUT_SECONDS = 30.0


def search_cmd(
    library_id: Annotated[str, typer.Argument(help="Library ID, /org/project[/version].")],
    query: Annotated[str, typer.Argument(help="Natural-language query.")],
    version: Annotated[
        str,
        typer.Option("--version", help="Library version when the ID has none."),
    ] = "latest",
    mode: Annotated[
        str,
        typer.Option("--mode", "-m", help="keyword | semantic | hybrid."),
    ] = "hybrid",
    top_k: Annotated[
        int,
        typer.Option("--top-k", "-k", min=1, help="Number of snippets to return."),
    ] = 10,
    rerank: Annotated[
        bool,
        typer.Option("--rerank", help="Rerank candidates with the configured reranker."),
    ] = False,
    db: DbOption = None,
    embedding_provider: EmbeddingProviderOption = None,
    embedding_api_key: EmbeddingApiKeyOption = None,
    embedding_model: EmbeddingModelOption = None,
    embedding_api_url: EmbeddingApiUrlOption = None,
    reranking_provider: RerankingProviderOption = None,
    reranking_api_key: RerankingApiKeyOption = None,
    reranking_model: RerankingModelOption = None,
    reranking_api_url: RerankingApiUrlOption = None,
) -> None:
    """Search LIBRARY_ID for QUERY and print the formatted snippets."""
    if mode not in SEARCH_MODES:
        console.print(f"[red]Error:[/] --mode must be one of: {', '.join(SEARCH_MODES)}")
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
        reranking={
            "provider": reranking_provider,
            "api_key": reranking_api_key,
            "model": reranking_model,
            "api_url": reranking_api_url,
        },
    )
    if not cfg.database.path.exists():
        console.print(err_no_db(str(cfg.database.path)))
        raise typer.Exit(1)

    embedder = None
    if mode != "keyword":
        try:
            embedder = create_embedder(cfg.embedding)
        except ConfigError as exc:
            console.print(err_config(str(exc)))
            raise typer.Exit(1) from exc

    reranker = None
    if rerank:
        try:
            reranker = create_reranker(cfg.reranking)
        except ConfigError as exc:
            console.print(err_config(str(exc)))
            raise typer.Exit(1) from exc

    conn = open_db(cfg.database.path)
    repo = Repository(conn)
    try:
        if repo.get_library(lib_id, lib_version) is None:
            console.print(err_library_not_found(lib_id, lib_version))
            raise typer.Exit(1)

        results = query_documentation(
            repo,
            lib_id,
            query,
            version=lib_version,
            mode=mode,
            top_k=top_k,
            use_reranking=rerank,
            embedder=embedder,
            reranker=reranker,
            deadline=time.monotonic() + RERANK_TIMEOUT_SECONDS,
        )
    finally:
        conn.close()

    console.print(format_documentation(results), markup=False, highlight=False, soft_wrap=True)
