"""libcontext list / remove — library lifecycle.

Usage:
  libcontext list
  libcontext remove /facebook/react
  libcontext remove /facebook/react --version 18.2.0 --yes
"""

from __future__ import annotations

from typing import Annotated

import typer
from rich.table import Table

from libcontext.cli.common import DbOption, console, open_db, resolve_config
from libcontext.cli.errors import err_invalid_library_id, err_library_not_found, err_no_db
from libcontext.db.repository import Repository
from libcontext.errors import InvalidLibraryIdError
from libcontext.rag.retriever import parse_library_id


def list_cmd(db: DbOption = None) -> None:
    """List every indexed library version."""
    cfg = resolve_config(db=db)
    if not cfg.database.path.exists():
        console.print(err_no_db(str(cfg.database.path)))
        raise typer.Exit(1)

    conn = open_db(cfg.database.path)
    try:
        libraries = Repository(conn).list_libraries()
    finally:
        conn.close()

    if not libraries:
        console.print("[dim]No libraries indexed yet.[/]")
        return

    table = Table(title="Indexed libraries")
    table.add_column("Library ID", style="bold")
    table.add_column("Version")
    table.add_column("Title")
    table.add_column("Snippets", justify="right")
    table.add_column("Embedding")
    table.add_column("Ingested")
    for lib in libraries:
        embedding = (
            f"{lib.embedding_model} ({lib.embedding_dims}d)" if lib.embedding_model else "[dim]-[/]"
        )
        table.add_row(
            lib.id,
            lib.version,
            lib.title,
            str(lib.total_snippets),
            embedding,
            (lib.ingested_at or "")[:10],
        )
    console.print(table)


def remove_cmd(
    library_id: Annotated[str, typer.Argument(help="Library ID, /org/project.")],
    version: Annotated[
        str | None,
        typer.Option("--version", help="Remove only this version (default: every version)."),
    ] = None,
    db: DbOption = None,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Remove a library and all its snippets from the index."""
    try:
        lib_id, id_version = parse_library_id(library_id, default_version="")
    except InvalidLibraryIdError:
        console.print(err_invalid_library_id(library_id))
        raise typer.Exit(1) from None
    target_version = version or id_version or None

    cfg = resolve_config(db=db)
    if not cfg.database.path.exists():
        console.print(err_no_db(str(cfg.database.path)))
        raise typer.Exit(1)

    conn = open_db(cfg.database.path)
    repo = Repository(conn)
    try:
        matches = [
            lib
            for lib in repo.list_libraries()
            if lib.id == lib_id and (target_version is None or lib.version == target_version)
        ]
        if not matches:
            console.print(err_library_not_found(lib_id, target_version))
            raise typer.Exit(0)

        snippet_total = sum(repo.count_snippets(lib.id, lib.version) for lib in matches)
        console.print(f"\nRemove library: [bold]{lib_id}[/]")
        console.print(
            f"  Versions: {', '.join(lib.version for lib in matches)}  |  Snippets: {snippet_total}"
        )

        if not yes:
            if not typer.confirm("Confirm removal?", default=False):
                console.print("[dim]Cancelled.[/]")
                raise typer.Exit(0)

        removed = repo.remove_library(lib_id, target_version)
    finally:
        conn.close()

    console.print(f"[green]✓[/] Removed {removed} version(s) of {lib_id} ({snippet_total} snippets)")
