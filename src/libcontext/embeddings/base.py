"""Embedder interface shared by the local and API-backed providers."""

from __future__ import annotations

from abc import ABC, abstractmethod

Vector = list[float]


class Embedder(ABC):
    """Text → fixed-length vector.

    Subclasses implement ``_embed_many()`` for a list of non-empty, already
    truncated texts. The public methods handle blank input (``None``, never
    an error), truncation to the token budget, and order preservation.

    Attributes:
        name: Provider kind (``"local"``, ``"openai"``).
        model_name: Model identifier passed to the backend.
        dimensions: Length of every vector this embedder returns.
        max_tokens: Input budget; text beyond ``max_tokens * 4`` characters
            is cut off before embedding.
    """

    name: str = ""

    def __init__(self, model_name: str, dimensions: int, max_tokens: int) -> None:
        if dimensions < 1:
            raise ValueError("dimensions must be >= 1")
        if max_tokens < 1:
            raise ValueError("max_tokens must be >= 1")
        self.model_name = model_name
        self.dimensions = dimensions
        self.max_tokens = max_tokens

    def is_loaded(self) -> bool:
        return True

    def embed(self, text: str) -> Vector | None:
        """Embed one text. Returns None for empty or whitespace-only input."""
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: list[str]) -> list[Vector | None]:
        """Embed *texts* in order; blank entries map to None."""
        results: list[Vector | None] = [None] * len(texts)
        positions = [i for i, text in enumerate(texts) if text and text.strip()]
        if not positions:
            return results
        vectors = self._embed_many([self.truncate(texts[i]) for i in positions])
        for i, vector in zip(positions, vectors):
            results[i] = vector
        return results

    def truncate(self, text: str) -> str:
        """Cut *text* to the token budget (4 characters ≈ 1 token)."""
        text = text.strip()
        max_chars = self.max_tokens * 4
        return text if len(text) <= max_chars else text[:max_chars]

    @abstractmethod
    def _embed_many(self, texts: list[str]) -> list[Vector | None]:
        """Embed non-empty texts; must return one entry per input, in order."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(model={self.model_name!r}, dims={self.dimensions})"
