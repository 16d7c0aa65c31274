"""Retrieval façade: search, fusion, reranking and outbound formatting."""

from libcontext.rag.format import (
    NO_DOCUMENTATION_MESSAGE,
    NO_LIBRARIES_MESSAGE,
    format_documentation,
    format_library_results,
    source_reputation_label,
)
from libcontext.rag.retriever import (
    SEARCH_MODES,
    RankedSnippet,
    fuse_scores,
    parse_library_id,
    query_documentation,
    search,
)

__all__ = [
    "SEARCH_MODES",
    "RankedSnippet",
    "fuse_scores",
    "parse_library_id",
    "query_documentation",
    "search",
    "format_documentation",
    "format_library_results",
    "source_reputation_label",
    "NO_DOCUMENTATION_MESSAGE",
    "NO_LIBRARIES_MESSAGE",
]
