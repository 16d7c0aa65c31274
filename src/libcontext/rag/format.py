"""Outbound text for the assistant-facing protocol layer."""

from __future__ import annotations

from collections.abc import Iterable

from libcontext.db.models import Library, Snippet
from libcontext.rag.retriever import RankedSnippet

NO_LIBRARIES_MESSAGE = "No libraries found matching the provided name."
NO_DOCUMENTATION_MESSAGE = "No documentation found matching your query for this library."
SNIPPET_SEPARATOR = "\n\n---\n\n"
LIBRARY_SEPARATOR = "\n----------\n"

_LIBRARY_HEADER = """\
Available Libraries:

Each result includes:
- Library ID: identifier (format: /org/project)
- Name: Library or package name
- Description: Short summary
- Code Snippets: Number of indexed snippets
- Source Reputation: Authority indicator (High, Medium, Low, or Unknown)
- Benchmark Score: Quality indicator (100 is the highest score)
- Versions: Indexed versions. Query a specific one as /org/project/version.

----------

"""


def source_reputation_label(trust_score: float | None) -> str:
    """High (>= 7), Medium (>= 4), Low, or Unknown for a missing/negative score."""
    if trust_score is None or trust_score < 0:
        return "Unknown"
    if trust_score >= 7:
        return "High"
    if trust_score >= 4:
        return "Medium"
    return "Low"


def format_library_results(libraries: Iterable[Library]) -> str:
    """One entry per library id, listing every indexed version."""
    grouped: dict[str, tuple[Library, list[str]]] = {}
    for library in libraries:
        if library.id not in grouped:
            grouped[library.id] = (library, [])
        grouped[library.id][1].append(library.version)

    if not grouped:
        return NO_LIBRARIES_MESSAGE

    entries = []
    for library, versions in grouped.values():
        lines = [
            f"- Name: {library.title}",
            f"- Library ID: {library.id}",
            f"- Description: {library.description}",
            f"- Code Snippets: {library.total_snippets}",
            f"- Source Reputation: {source_reputation_label(library.trust_score)}",
            f"- Benchmark Score: {library.benchmark_score:g}",
            f"- Versions: {', '.join(versions)}",
        ]
        entries.append("\n".join(lines))
    return _LIBRARY_HEADER + LIBRARY_SEPARATOR.join(entries)


def format_snippet(snippet: Snippet) -> str:
    header = [
        f"## {snippet.title or snippet.breadcrumb or 'Untitled'}",
        f"**Breadcrumb:** {snippet.breadcrumb}" if snippet.breadcrumb else "",
        f"**Source:** {snippet.source_url or snippet.source_path}" if snippet.source_path else "",
        f"**Language:** {snippet.language}" if snippet.language else "",
    ]
    return "\n".join(line for line in header if line) + "\n\n" + snippet.content


def format_documentation(results: Iterable[RankedSnippet | Snippet]) -> str:
    snippets = [r.snippet if isinstance(r, RankedSnippet) else r for r in results]
    if not snippets:
        return NO_DOCUMENTATION_MESSAGE
    return SNIPPET_SEPARATOR.join(format_snippet(s) for s in snippets)
