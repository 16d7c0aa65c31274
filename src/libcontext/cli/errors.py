"""libcontext rich error messages.

Every error shown to the user states what went wrong and the exact action
that fixes it.

Usage:
    from libcontext.cli.errors import err_no_db
    console.print(err_no_db(path))
    raise typer.Exit(1)
"""

from __future__ import annotations


def err_no_db(db_path: str) -> str:
    return (
        f"[red]Error:[/] No database found at '{db_path}'.\n"
        "  Run:  libcontext ingest PATH --library-id /org/project"
    )


def err_library_not_found(library_id: str, version: str | None = None) -> str:
    target = f"{library_id}@{version}" if version else library_id
    return (
        f"[yellow]Library not found:[/] '{target}' is not in the index.\n"
        "  Run:  libcontext list  to see all indexed libraries."
    )


def err_invalid_library_id(library_id: str) -> str:
    return (
        f"[red]Error:[/] Invalid library ID '{library_id}'.\n"
        "  Expected /org/project or /org/project/version, e.g.  /facebook/react"
    )


def err_no_documents(path: str) -> str:
    return (
        f"[yellow]No documentation files found under '{path}'.[/]\n"
        "  libcontext indexes *.md, *.markdown and *.rst files (hidden directories\n"
        "  and node_modules are skipped). Point PATH at the docs directory."
    )


def err_not_a_directory(path: str) -> str:
    return (
        f"[red]Error:[/] '{path}' is not a directory.\n"
        "  Clone the repository first, then pass its local path:\n"
        "    git clone --depth 1 <url> /tmp/repo && libcontext ingest /tmp/repo --library-id /org/project"
    )


def err_config(message: str) -> str:
    return (
        f"[red]Configuration error:[/] {message}\n"
        "  Check libcontext.yaml, ~/.libcontext/config.yaml and the EMBEDDING_* / RERANKING_*\n"
        "  environment variables, or pass the matching --embedding-* / --reranking-* flag."
    )


def err_embedding_auth(provider: str) -> str:
    return (
        f"[red]Error:[/] The '{provider}' embedding provider rejected the API key.\n"
        "  Set a valid key:  export EMBEDDING_API_KEY=<key>  or pass --embedding-api-key."
    )


def err_dimension_mismatch(message: str) -> str:
    return (
        f"[red]Error:[/] Embedding dimension mismatch.\n"
        f"  {message}\n"
        "  Re-embed everything with the current model:  libcontext vectorize --force"
    )


def err_ingest_failed(message: str) -> str:
    return (
        f"[red]Error:[/] {message}\n"
        "  The previous index for this library is unchanged. Check disk space and\n"
        "  that no other process holds a write lock on the database, then retry."
    )
