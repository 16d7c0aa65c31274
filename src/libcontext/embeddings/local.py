"""Local embeddings via sentence-transformers (all-MiniLM-L6-v2, 384 dims)."""

from __future__ import annotations

import logging
import time

from libcontext.db.vectors import validate_embedding
from libcontext.embeddings.base import Embedder, Vector
from libcontext.errors import EmbeddingError
from libcontext.lazy import LazyHandle

logger = logging.getLogger(__name__)

DEFAULT_LOCAL_MODEL = "sentence-transformers/all-MiniLM-L6-v2"
DEFAULT_LOCAL_DIMENSIONS = 384
DEFAULT_LOCAL_MAX_TOKENS = 256


class LocalEmbedder(Embedder):
    """In-process embedder; the model is downloaded and loaded on first use.

    Vectors are mean-pooled and L2-normalised, so cosine similarity equals
    the dot product.
    """

    name = "local"

    def __init__(
        self,
        model_name: str = DEFAULT_LOCAL_MODEL,
        dimensions: int = DEFAULT_LOCAL_DIMENSIONS,
        max_tokens: int = DEFAULT_LOCAL_MAX_TOKENS,
        batch_size: int = 32,
    ) -> None:
        super().__init__(model_name, dimensions, max_tokens)
        self.batch_size = batch_size
        self._model = LazyHandle(self._load)

    def is_loaded(self) -> bool:
        return self._model.loaded

    def _load(self):
        from sentence_transformers import SentenceTransformer

        logger.info("Loading embedding model %s", self.model_name)
        started = time.monotonic()
        model = SentenceTransformer(self.model_name)
        logger.info("Embedding model loaded in %.1fs", time.monotonic() - started)
        return model

    def _embed_many(self, texts: list[str]) -> list[Vector | None]:
        try:
            model = self._model.get()
            matrix = model.encode(
                texts,
                batch_size=self.batch_size,
                normalize_embeddings=True,
                show_progress_bar=False,
            )
        except Exception as exc:
            raise EmbeddingError(f"Local embedding failed: {exc}") from exc

        vectors = [[float(x) for x in row] for row in matrix]
        for vector in vectors:
            try:
                validate_embedding(vector, self.dimensions)
            except ValueError as exc:
                raise EmbeddingError(f"Unexpected embedding from {self.model_name}: {exc}") from exc
        return vectors
