"""Shared CLI plumbing: database access, config resolution, provider options."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from libcontext.cli.errors import err_config
from libcontext.config import LibContextConfig, apply_overrides, load_config
from libcontext.db.connection import Database
from libcontext.db.schema import initialize
from libcontext.errors import ConfigError

console = Console()

DbOption = Annotated[
    Path | None,
    typer.Option("--db", help="Path to the index database (default: database.path or LIBCONTEXT_DB)."),
]
EmbeddingProviderOption = Annotated[
    str | None,
    typer.Option("--embedding-provider", help="Embedding provider: local | openai."),
]
EmbeddingApiKeyOption = Annotated[
    str | None,
    typer.Option("--embedding-api-key", help="API key for the embedding provider."),
]
EmbeddingModelOption = Annotated[
    str | None,
    typer.Option("--embedding-model", help="Embedding model name."),
]
EmbeddingApiUrlOption = Annotated[
    str | None,
    typer.Option("--embedding-api-url", help="Override the embedding API endpoint."),
]
RerankingProviderOption = Annotated[
    str | None,
    typer.Option("--reranking-provider", help="Reranking provider: none | local | cohere | jina."),
]
RerankingApiKeyOption = Annotated[
    str | None,
    typer.Option("--reranking-api-key", help="API key for the reranking provider."),
]
RerankingModelOption = Annotated[
    str | None,
    typer.Option("--reranking-model", help="Reranking model name."),
]
RerankingApiUrlOption = Annotated[
    str | None,
    typer.Option("--reranking-api-url", help="Override the reranking API endpoint."),
]


def resolve_config(
    *,
    db: Path | None = None,
    embedding: dict | None = None,
    reranking: dict | None = None,
) -> LibContextConfig:
    """Load config files + env, then apply the CLI flags that were passed.

    Exits with code 1 on a configuration error.
    """
    try:
        cfg = load_config()
        if embedding:
            cfg.embedding = apply_overrides(cfg.embedding, **embedding)
        if reranking:
            cfg.reranking = apply_overrides(cfg.reranking, **reranking)
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc
    if db is not None:
        cfg.database.path = db
    return cfg


def open_db(db_path: Path) -> sqlite3.Connection:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = Database(db_path).connect()
    initialize(conn)
    return conn
