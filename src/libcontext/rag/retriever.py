"""Retrieval engine: keyword (FTS5 BM25), semantic (cosine) and hybrid search.

Hybrid score fusion:
  keyword  → min-max normalised over the keyword candidate set
             (1.0 for every candidate when all scores are equal)
  semantic → similarity / max similarity in the semantic set
  final    = 0.3 * keyword + 0.7 * semantic   (0 for a missing side)

Ties are broken by snippet id ascending, so results are reproducible.
Semantic failures fall back to keyword search; rerank failures fall back to
the pre-rerank order. Neither is surfaced to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from libcontext.db.models import Snippet
from libcontext.db.repository import Repository
from libcontext.embeddings.base import Embedder
from libcontext.errors import InvalidLibraryIdError
from libcontext.rerank.base import Reranker

logger = logging.getLogger(__name__)

SEARCH_MODES: tuple[str, ...] = ("keyword", "semantic", "hybrid")
KEYWORD_WEIGHT = 0.3
SEMANTIC_WEIGHT = 0.7
HYBRID_KEYWORD_FACTOR = 5
HYBRID_MIN_KEYWORD_CANDIDATES = 100
RERANK_CANDIDATES = 100


@dataclass
class RankedSnippet:
    """A retrieved snippet with its final score and per-stage scores.

    Attributes:
        snippet: The stored snippet.
        score: Score used for the final ordering (higher = more relevant).
        keyword_score: Keyword relevance (-bm25), raw or normalised
            depending on the mode; None if not a keyword hit.
        semantic_score: Cosine similarity, raw or normalised; None if not a
            semantic hit.
        rerank_score: Score from the reranker, when one ran.
    """

    snippet: Snippet
    score: float
    keyword_score: float | None = None
    semantic_score: float | None = None
    rerank_score: float | None = None


# ------------------------------------------------------------------
# Library ids
# ------------------------------------------------------------------


def parse_library_id(raw: str, default_version: str = "latest") -> tuple[str, str]:
    """Split ``/org/project[/version]`` into (``/org/project``, version).

    Raises:
        InvalidLibraryIdError: If *raw* does not have two or three segments.
    """
    parts = [p for p in raw.strip().split("/") if p]
    if len(parts) == 2:
        return f"/{parts[0]}/{parts[1]}", default_version
    if len(parts) == 3:
        return f"/{parts[0]}/{parts[1]}", parts[2]
    raise InvalidLibraryIdError(
        f"Invalid library ID format. Expected /org/project or /org/project/version, got: {raw}"
    )


# ------------------------------------------------------------------
# Single-channel search
# ------------------------------------------------------------------


def keyword_search(
    repo: Repository,
    query: str,
    library_id: str,
    version: str,
    limit: int,
) -> list[RankedSnippet]:
    hits = repo.search_keyword(query, library_id, version, limit=limit)
    return [RankedSnippet(snippet=s, score=rel, keyword_score=rel) for s, rel in hits]


def semantic_search(
    repo: Repository,
    query_embedding: list[float],
    library_id: str,
    version: str,
    limit: int | None = None,
) -> list[RankedSnippet]:
    hits = repo.search_vector(query_embedding, library_id, version, limit=limit)
    return [RankedSnippet(snippet=s, score=sim, semantic_score=sim) for s, sim in hits]


# ------------------------------------------------------------------
# Fusion
# ------------------------------------------------------------------


def _normalize_keyword(scores: dict[int, float]) -> dict[int, float]:
    if not scores:
        return {}
    low, high = min(scores.values()), max(scores.values())
    if high == low:
        return {k: 1.0 for k in scores}
    return {k: (v - low) / (high - low) for k, v in scores.items()}


def _normalize_semantic(scores: dict[int, float]) -> dict[int, float]:
    if not scores:
        return {}
    top = max(scores.values())
    divisor = top if top > 0 else 1.0
    return {k: v / divisor for k, v in scores.items()}


def fuse_scores(
    keyword_hits: list[tuple[Snippet, float]],
    semantic_hits: list[tuple[Snippet, float]],
    limit: int | None = None,
) -> list[RankedSnippet]:
    """Fuse keyword relevance and cosine similarity by snippet id.

    Args:
        keyword_hits: (snippet, relevance) with higher relevance = better.
        semantic_hits: (snippet, similarity).
        limit: Keep at most this many fused results.
    """
    snippets: dict[int, Snippet] = {}
    keyword_raw: dict[int, float] = {}
    semantic_raw: dict[int, float] = {}
    for snippet, relevance in keyword_hits:
        snippets[snippet.id] = snippet
        keyword_raw[snippet.id] = relevance
    for snippet, similarity in semantic_hits:
        snippets.setdefault(snippet.id, snippet)
        semantic_raw[snippet.id] = similarity

    keyword_norm = _normalize_keyword(keyword_raw)
    semantic_norm = _normalize_semantic(semantic_raw)

    fused = [
        RankedSnippet(
            snippet=snippets[sid],
            score=KEYWORD_WEIGHT * keyword_norm.get(sid, 0.0)
            + SEMANTIC_WEIGHT * semantic_norm.get(sid, 0.0),
            keyword_score=keyword_norm.get(sid),
            semantic_score=semantic_norm.get(sid),
        )
        for sid in snippets
    ]
    fused.sort(key=lambda r: (-r.score, r.snippet.id))
    return fused[:limit] if limit is not None else fused


def hybrid_search(
    repo: Repository,
    query: str,
    query_embedding: list[float],
    library_id: str,
    version: str,
    limit: int,
) -> list[RankedSnippet]:
    keyword_limit = max(HYBRID_KEYWORD_FACTOR * limit, HYBRID_MIN_KEYWORD_CANDIDATES)
    keyword_hits = repo.search_keyword(query, library_id, version, limit=keyword_limit)
    semantic_hits = repo.search_vector(query_embedding, library_id, version)
    return fuse_scores(keyword_hits, semantic_hits, limit)


# ------------------------------------------------------------------
# Orchestration
# ------------------------------------------------------------------


def search(
    repo: Repository,
    query: str,
    library_id: str,
    version: str,
    *,
    mode: str = "hybrid",
    limit: int = 10,
    embedder: Embedder | None = None,
) -> list[RankedSnippet]:
    """Run one query in *mode*, falling back to keyword search when needed.

    Semantic and hybrid modes need a query embedding. Without an embedder,
    with a blank embedding, or when embedding or vector search raises, the
    query is answered by keyword search instead.
    """
    if mode not in SEARCH_MODES:
        raise ValueError(f"mode must be one of {', '.join(SEARCH_MODES)}; got {mode!r}")

    if mode != "keyword":
        if embedder is None:
            logger.warning("No embedding provider configured, falling back to keyword search")
        else:
            try:
                query_embedding = embedder.embed(query)
                if query_embedding is not None:
                    if mode == "semantic":
                        return semantic_search(repo, query_embedding, library_id, version, limit)
                    return hybrid_search(repo, query, query_embedding, library_id, version, limit)
                logger.warning("Query embedding was empty, falling back to keyword search")
            except Exception as exc:
                logger.warning("%s search failed, falling back to keyword search: %s", mode, exc)

    return keyword_search(repo, query, library_id, version, limit)


def rerank_results(
    query: str,
    results: list[RankedSnippet],
    reranker: Reranker,
    top_k: int,
    *,
    deadline: float | None = None,
) -> list[RankedSnippet]:
    """Reorder *results* with *reranker*; on any error return ``results[:top_k]``."""
    if not results:
        return []
    try:
        ranked = reranker.rerank(
            query, [r.snippet.content for r in results], top_n=top_k, deadline=deadline
        )
    except Exception as exc:
        logger.warning("Reranking failed, using search order: %s", exc)
        return results[:top_k]

    reordered: list[RankedSnippet] = []
    for item in ranked[:top_k]:
        original = results[item.original_index]
        original.rerank_score = item.score
        original.score = item.score
        reordered.append(original)
    return reordered


def query_documentation(
    repo: Repository,
    library_id: str,
    query: str,
    *,
    version: str | None = None,
    mode: str = "hybrid",
    top_k: int = 10,
    limit: int | None = None,
    use_reranking: bool = False,
    embedder: Embedder | None = None,
    reranker: Reranker | None = None,
    deadline: float | None = None,
) -> list[RankedSnippet]:
    """Answer *query* against one library version.

    Args:
        repo: Open repository.
        library_id: ``/org/project`` or ``/org/project/version``; a version
            suffix overrides *version*.
        query: Natural-language query.
        version: Library version when the id has none (default ``latest``).
        mode: ``keyword``, ``semantic`` or ``hybrid``.
        top_k: Number of results returned.
        limit: Candidate count retrieved before the final cut (default
            *top_k*). Reranking always retrieves 100 candidates.
        use_reranking: Run *reranker* over the candidates.
        embedder: Needed by semantic and hybrid modes.
        reranker: Needed when *use_reranking* is set.
        deadline: ``time.monotonic()`` bound for remote rerank retries.

    Returns:
        Up to *top_k* results best-first; ``[]`` for a malformed id, an
        unknown library or no match.
    """
    try:
        lib_id, lib_version = parse_library_id(library_id, default_version=version or "latest")
    except InvalidLibraryIdError as exc:
        logger.info("%s", exc)
        return []

    if repo.get_library(lib_id, lib_version) is None:
        logger.info("Library %s@%s not found", lib_id, lib_version)
        return []

    rerank = use_reranking and reranker is not None
    if use_reranking and reranker is None:
        logger.warning("Reranking requested but no reranker configured")
    candidate_limit = RERANK_CANDIDATES if rerank else max(limit or top_k, top_k)

    results = search(
        repo, query, lib_id, lib_version, mode=mode, limit=candidate_limit, embedder=embedder
    )
    if rerank:
        return rerank_results(query, results, reranker, top_k, deadline=deadline)
    return results[:top_k]
