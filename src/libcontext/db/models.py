"""Domain models for the index store."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Library:
    """One documentation source, identified by (id, version)."""

    id: str
    title: str
    version: str = "latest"
    description: str = ""
    source_repo: str = ""
    total_snippets: int = 0
    trust_score: float = 5.0
    benchmark_score: float = 0.0
    embedding_model: str | None = None
    embedding_dims: int | None = None
    ingested_at: str | None = None


@dataclass
class Snippet:
    library_id: str
    title: str
    content: str
    library_version: str = "latest"
    source_path: str | None = None
    source_url: str | None = None
    language: str = ""
    token_count: int = 0
    breadcrumb: str = ""
    embedding: list[float] | None = None
    id: int | None = None  # set after insert; None for unsaved snippets
