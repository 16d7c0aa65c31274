"""OpenAI embeddings through LiteLLM (text-embedding-3-small, 1536 dims)."""

from __future__ import annotations

import logging

import litellm

from libcontext.embeddings.base import Embedder, Vector
from libcontext.errors import ConfigError, EmbeddingAuthenticationError

litellm.suppress_debug_info = True

logger = logging.getLogger(__name__)

DEFAULT_OPENAI_MODEL = "text-embedding-3-small"
DEFAULT_OPENAI_DIMENSIONS = 1536
DEFAULT_OPENAI_MAX_TOKENS = 8191
DEFAULT_OPENAI_BATCH_SIZE = 100


class OpenAIEmbedder(Embedder):
    """API embedder. Inputs are sent in sub-batches of ``batch_size``.

    A sub-batch that fails yields None for each of its members and the rest
    of the batch carries on. A rejected API key aborts the whole call with
    EmbeddingAuthenticationError, since every later request would fail too.
    """

    name = "openai"

    def __init__(
        self,
        api_key: str | None,
        model_name: str = DEFAULT_OPENAI_MODEL,
        dimensions: int = DEFAULT_OPENAI_DIMENSIONS,
        max_tokens: int = DEFAULT_OPENAI_MAX_TOKENS,
        api_url: str | None = None,
        batch_size: int = DEFAULT_OPENAI_BATCH_SIZE,
    ) -> None:
        if not api_key:
            raise ConfigError(
                "OpenAI embedding provider requires an API key. "
                "Set EMBEDDING_API_KEY or embedding.api_key in libcontext.yaml."
            )
        super().__init__(model_name, dimensions, max_tokens)
        self._api_key = api_key
        self.api_url = api_url
        self.batch_size = max(1, batch_size)

    @property
    def litellm_model(self) -> str:
        return self.model_name if "/" in self.model_name else f"openai/{self.model_name}"

    def _embed_many(self, texts: list[str]) -> list[Vector | None]:
        vectors: list[Vector | None] = []
        for start in range(0, len(texts), self.batch_size):
            batch = texts[start : start + self.batch_size]
            try:
                vectors.extend(self._request(batch))
            except litellm.AuthenticationError as exc:
                raise EmbeddingAuthenticationError(
                    f"OpenAI rejected the embedding API key: {exc}"
                ) from exc
            except Exception as exc:
                logger.warning(
                    "Embedding sub-batch %d-%d failed, leaving it empty: %s",
                    start,
                    start + len(batch) - 1,
                    exc,
                )
                vectors.extend([None] * len(batch))
        return vectors

    def _request(self, batch: list[str]) -> list[Vector | None]:
        kwargs: dict = {"model": self.litellm_model, "input": batch, "api_key": self._api_key}
        if self.api_url:
            kwargs["api_base"] = self.api_url
        response = litellm.embedding(**kwargs)

        ordered: list[Vector | None] = [None] * len(batch)
        for position, item in enumerate(response.data):
            index = item.get("index", position)
            vector = [float(x) for x in item["embedding"]]
            if len(vector) != self.dimensions:
                logger.warning(
                    "Discarding %d-dimensional embedding (expected %d)",
                    len(vector),
                    self.dimensions,
                )
                continue
            if 0 <= index < len(batch):
                ordered[index] = vector
        return ordered
