"""libcontext CLI entry point."""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

from libcontext.cli.ingest import ingest_cmd, preview_cmd
from libcontext.cli.libraries import list_cmd, remove_cmd
from libcontext.cli.search import search_cmd
from libcontext.cli.vectorize import vectorize_cmd

_NOISY_LOGGERS = ("httpx", "httpcore", "LiteLLM", "litellm", "sentence_transformers", "urllib3")


def _installed_version() -> str:
    try:
        return importlib.metadata.version("libcontext")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"libcontext {_installed_version()}")
        raise typer.Exit()


def configure_logging(verbose: bool) -> None:
    """Route library logging through rich on stderr; DEBUG with --verbose."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


app = typer.Typer(
    name="libcontext",
    help=(
        "libcontext — local documentation index for coding assistants.\n\n"
        "  libcontext ingest   Index a local docs tree as /org/project[@version].\n"
        "  libcontext search   Query an indexed library, as an assistant would."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging."),
    ] = False,
) -> None:
    """libcontext — local documentation index for coding assistants."""
    configure_logging(verbose)


app.command("ingest")(ingest_cmd)
app.command("preview")(preview_cmd)
app.command("list")(list_cmd)
app.command("remove")(remove_cmd)
app.command("vectorize")(vectorize_cmd)
app.command("search")(search_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed libcontext version."""
    typer.echo(f"libcontext {_installed_version()}")


if __name__ == "__main__":
    app()
