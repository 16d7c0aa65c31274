"""Ingest and vectorize pipelines.

Write path: SourceDocument → segmenter (by extension) → DocumentChunker →
Snippet rows → optional embeddings → Repository.replace_generation().
Everything is computed before the write transaction opens, so the
transaction itself only touches the database.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from libcontext.db.models import Library, Snippet
from libcontext.db.repository import Repository
from libcontext.embeddings.base import Embedder
from libcontext.errors import EmbeddingAuthenticationError, IngestError
from libcontext.ingest.base import BaseSegmenter
from libcontext.ingest.chunker import DEFAULT_MAX_CHUNK_SIZE, Chunk, DocumentChunker, estimate_tokens
from libcontext.ingest.github import github_source_url_builder
from libcontext.ingest.markdown import MarkdownSegmenter
from libcontext.ingest.rst import RstSegmenter

logger = logging.getLogger(__name__)

DEFAULT_PATTERNS: tuple[str, ...] = ("**/*.md", "**/*.markdown", "**/*.rst")
EMBED_BATCH_SIZE = 10

_RST_SUFFIXES = {".rst", ".rest", ".txt"}
_SKIP_DIRS = {"node_modules"}

ProgressCallback = Callable[[int, int], None]


@dataclass
class SourceDocument:
    """One raw document: repository-relative *path* and its text."""

    path: str
    raw_text: str


@dataclass
class IngestResult:
    library_id: str
    version: str
    documents: int
    snippets_written: int
    embedded: int = 0


@dataclass
class VectorizeResult:
    updated: int
    skipped: int


@dataclass
class FilePreview:
    path: str
    chunks: int
    tokens: int


@dataclass
class PreviewResult:
    files: list[FilePreview] = field(default_factory=list)

    @property
    def total_chunks(self) -> int:
        return sum(f.chunks for f in self.files)

    @property
    def total_tokens(self) -> int:
        return sum(f.tokens for f in self.files)


# ------------------------------------------------------------------
# Document → chunks
# ------------------------------------------------------------------


def segmenter_for(path: str) -> BaseSegmenter:
    """RST for ``.rst``/``.rest``/``.txt``; Markdown for everything else."""
    if PurePosixPath(path).suffix.lower() in _RST_SUFFIXES:
        return RstSegmenter()
    return MarkdownSegmenter()


def chunk_source(document: SourceDocument, max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE) -> list[Chunk]:
    sections = segmenter_for(document.path).segment(document.raw_text)
    return DocumentChunker(max_chunk_size).chunk(sections)


def build_snippets(
    library_id: str,
    version: str,
    documents: Iterable[SourceDocument],
    *,
    max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE,
    source_url_builder: Callable[[str], str] | None = None,
) -> list[Snippet]:
    """Chunk every document into unsaved Snippet objects, in document order.

    Stored content is the chunk prose followed by its code blocks as fenced
    blocks; ``token_count`` is estimated from that stored content.
    """
    snippets: list[Snippet] = []
    for document in documents:
        path = document.path.replace("\\", "/")
        url = source_url_builder(path) if source_url_builder else None
        for chunk in chunk_source(document, max_chunk_size):
            content = chunk.render()
            if not content.strip():
                continue
            snippets.append(
                Snippet(
                    library_id=library_id,
                    library_version=version,
                    title=chunk.title,
                    content=content,
                    source_path=path,
                    source_url=url,
                    language=chunk.language or "",
                    token_count=estimate_tokens(content),
                    breadcrumb=chunk.breadcrumb,
                )
            )
    return snippets


# ------------------------------------------------------------------
# Embeddings
# ------------------------------------------------------------------


def _embed_in_batches(
    snippets: list[Snippet],
    embedder: Embedder,
    batch_size: int,
    progress: ProgressCallback | None,
) -> Iterator[tuple[list[Snippet], list[list[float] | None]]]:
    """Yield (batch, vectors). A failed batch yields all-None vectors.

    EmbeddingAuthenticationError is not caught: every later batch would
    fail the same way.
    """
    total = len(snippets)
    for start in range(0, total, batch_size):
        batch = snippets[start : start + batch_size]
        try:
            vectors = embedder.embed_batch([s.content for s in batch])
        except EmbeddingAuthenticationError:
            raise
        except Exception as exc:
            logger.warning(
                "Embedding batch %d-%d failed, storing without embeddings: %s",
                start,
                start + len(batch) - 1,
                exc,
            )
            vectors = [None] * len(batch)
        yield batch, vectors
        if progress:
            progress(min(start + len(batch), total), total)


def embed_snippets(
    snippets: list[Snippet],
    embedder: Embedder,
    *,
    batch_size: int = EMBED_BATCH_SIZE,
    progress: ProgressCallback | None = None,
) -> int:
    """Attach embeddings to unsaved snippets in place. Returns how many got one."""
    embedded = 0
    for batch, vectors in _embed_in_batches(snippets, embedder, batch_size, progress):
        for snippet, vector in zip(batch, vectors):
            snippet.embedding = vector
            embedded += vector is not None
    return embedded


# ------------------------------------------------------------------
# Public operations
# ------------------------------------------------------------------


def ingest_library(
    repo: Repository,
    library_id: str,
    documents: Iterable[SourceDocument],
    *,
    version: str = "latest",
    title: str | None = None,
    description: str = "",
    source_repo: str = "",
    embedder: Embedder | None = None,
    max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE,
    source_url_builder: Callable[[str], str] | None = None,
    progress: ProgressCallback | None = None,
) -> IngestResult:
    """Replace everything stored for (library_id, version) with *documents*.

    Args:
        repo: Open repository.
        library_id: ``/org/project`` slug.
        documents: Raw documents to index.
        version: Library version (default ``latest``).
        title: Display title; defaults to the last id segment.
        description: Free-text description.
        source_repo: Origin URL. GitHub URLs also yield per-file source
            links unless *source_url_builder* is given.
        embedder: When set, snippets are embedded in batches of 10 before
            the write; a failed batch is stored without embeddings.
        max_chunk_size: Chunk size limit in characters.
        source_url_builder: Maps a document path to its public URL.
        progress: Called as ``progress(done, total)`` while embedding.

    Raises:
        IngestError: The write transaction failed; the previous generation
            is still in place.
        EmbeddingAuthenticationError: The embedding provider rejected its
            credentials; nothing was written.
    """
    docs = list(documents)
    if source_url_builder is None and source_repo:
        source_url_builder = github_source_url_builder(source_repo, version)

    snippets = build_snippets(
        library_id,
        version,
        docs,
        max_chunk_size=max_chunk_size,
        source_url_builder=source_url_builder,
    )
    logger.info("Parsed %d documents into %d snippets for %s@%s", len(docs), len(snippets), library_id, version)

    library = Library(
        id=library_id,
        version=version,
        title=title or library_id.rstrip("/").rsplit("/", 1)[-1] or library_id,
        description=description,
        source_repo=source_repo,
    )

    embedded = 0
    if embedder is not None and snippets:
        embedded = embed_snippets(snippets, embedder, progress=progress)
        if embedded:
            library.embedding_model = embedder.model_name

    try:
        written = repo.replace_generation(library, snippets)
    except sqlite3.Error as exc:
        raise IngestError(f"Ingest of {library_id}@{version} failed and was rolled back: {exc}") from exc

    logger.info("Indexed %d snippets for %s@%s (%d embedded)", written, library_id, version, embedded)
    return IngestResult(
        library_id=library_id,
        version=version,
        documents=len(docs),
        snippets_written=written,
        embedded=embedded,
    )


def vectorize(
    repo: Repository,
    embedder: Embedder,
    *,
    library_id: str | None = None,
    version: str | None = None,
    force: bool = False,
    batch_size: int = EMBED_BATCH_SIZE,
    progress: ProgressCallback | None = None,
) -> VectorizeResult:
    """Compute embeddings for stored snippets.

    Without *force* only snippets lacking an embedding are processed. With
    *force* every embedding in scope is cleared first and recomputed, which
    is also the way to switch a library to a model of another dimensionality.

    Raises:
        EmbeddingDimensionError: The library already holds embeddings of a
            different length (re-run with force).
        EmbeddingAuthenticationError: Credentials rejected.
    """
    if force:
        cleared = repo.clear_embeddings(library_id, version)
        logger.info("Cleared %d existing embeddings", cleared)

    snippets = repo.list_snippets_for_embedding(library_id, version, force=force)
    updated = skipped = 0
    for batch, vectors in _embed_in_batches(snippets, embedder, max(1, batch_size), progress):
        pairs = [(s.id, v) for s, v in zip(batch, vectors) if s.id is not None]
        count = repo.set_embeddings(pairs, model=embedder.model_name)
        updated += count
        skipped += len(batch) - count
    return VectorizeResult(updated=updated, skipped=skipped)


def preview_documents(
    documents: Iterable[SourceDocument],
    max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE,
) -> PreviewResult:
    """Chunk statistics per document without touching the store."""
    result = PreviewResult()
    for document in documents:
        contents = [chunk.render() for chunk in chunk_source(document, max_chunk_size)]
        contents = [c for c in contents if c.strip()]
        result.files.append(
            FilePreview(
                path=document.path,
                chunks=len(contents),
                tokens=sum(estimate_tokens(c) for c in contents),
            )
        )
    return result


def discover_documents(
    root: Path,
    patterns: Iterable[str] = DEFAULT_PATTERNS,
) -> Iterator[SourceDocument]:
    """Yield documentation files under *root*, sorted by relative path.

    Hidden directories and ``node_modules`` are skipped. Paths are
    POSIX-style and relative to *root*.
    """
    root = Path(root)
    found: set[Path] = set()
    for pattern in patterns:
        for path in root.glob(pattern):
            if not path.is_file():
                continue
            rel = path.relative_to(root)
            if any(part.startswith(".") or part in _SKIP_DIRS for part in rel.parts[:-1]):
                continue
            found.add(rel)

    for rel in sorted(found, key=lambda p: p.as_posix()):
        text = (root / rel).read_text(encoding="utf-8", errors="replace")
        yield SourceDocument(path=rel.as_posix(), raw_text=text)
