"""Reranker interface and the pass-through variant."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class RankedResult:
    """One reranked document.

    Attributes:
        content: The document text as passed in.
        score: Relevance score; higher is better.
        original_index: Position of the document in the input list.
    """

    content: str
    score: float
    original_index: int


class Reranker(ABC):
    """Re-scores candidate documents against a query.

    ``rerank()`` short-circuits empty input, sorts by score (ties keep input
    order) and applies ``top_n``. Subclasses implement ``_score()``.
    """

    name: str = ""
    model_name: str = ""

    def is_loaded(self) -> bool:
        return True

    def rerank(
        self,
        query: str,
        documents: list[str],
        top_n: int | None = None,
        *,
        deadline: float | None = None,
    ) -> list[RankedResult]:
        """Return *documents* ranked best-first, optionally cut to *top_n*.

        Args:
            query: The search query.
            documents: Candidate texts.
            top_n: Keep only this many results (default: all; 0 or less gives
                an empty list without scoring).
            deadline: ``time.monotonic()`` value after which no further
                network attempt is started. Ignored by local variants.
        """
        if not documents or (top_n is not None and top_n <= 0):
            return []
        results = self._score(query, documents, top_n, deadline)
        results.sort(key=lambda r: (-r.score, r.original_index))
        return results if top_n is None else results[:top_n]

    @abstractmethod
    def _score(
        self,
        query: str,
        documents: list[str],
        top_n: int | None,
        deadline: float | None,
    ) -> list[RankedResult]:
        """Score a non-empty list of documents."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(model={self.model_name!r})"


class NoOpReranker(Reranker):
    """Keeps the input order; scores fall by 0.01 per position from 1.0."""

    name = "none"
    model_name = "none"

    def _score(self, query, documents, top_n, deadline):
        return [
            RankedResult(content=doc, score=1.0 - index * 0.01, original_index=index)
            for index, doc in enumerate(documents)
        ]
