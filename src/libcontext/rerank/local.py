"""Local cross-encoder reranker via sentence-transformers."""

from __future__ import annotations

import logging
import time

from libcontext.errors import RerankError
from libcontext.lazy import LazyHandle
from libcontext.rerank.base import RankedResult, Reranker

logger = logging.getLogger(__name__)

DEFAULT_CROSS_ENCODER = "cross-encoder/ms-marco-MiniLM-L-6-v2"


class LocalReranker(Reranker):
    """Scores each (query, document) pair with a cross-encoder.

    Pairs are independent, so they are scored in one batched ``predict()``
    call; the output order depends only on the scores.
    """

    name = "local"

    def __init__(self, model_name: str = DEFAULT_CROSS_ENCODER, batch_size: int = 32) -> None:
        self.model_name = model_name
        self.batch_size = batch_size
        self._model = LazyHandle(self._load)

    def is_loaded(self) -> bool:
        return self._model.loaded

    def _load(self):
        from sentence_transformers import CrossEncoder

        logger.info("Loading reranking model %s", self.model_name)
        started = time.monotonic()
        model = CrossEncoder(self.model_name)
        logger.info("Reranking model loaded in %.1fs", time.monotonic() - started)
        return model

    def _score(self, query, documents, top_n, deadline):
        try:
            model = self._model.get()
            scores = model.predict(
                [(query, doc) for doc in documents],
                batch_size=self.batch_size,
                show_progress_bar=False,
            )
        except Exception as exc:
            raise RerankError(f"Failed to rerank documents: {exc}", provider=self.name) from exc
        return [
            RankedResult(content=doc, score=float(score), original_index=index)
            for index, (doc, score) in enumerate(zip(documents, scores))
        ]
