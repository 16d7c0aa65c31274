"""Map embedding settings to a concrete Embedder."""

from __future__ import annotations

from enum import Enum

from libcontext.config import EmbeddingSettings
from libcontext.embeddings.base import Embedder
from libcontext.embeddings.local import LocalEmbedder
from libcontext.embeddings.openai import OpenAIEmbedder
from libcontext.errors import ConfigError


class EmbeddingProviderKind(str, Enum):
    LOCAL = "local"
    OPENAI = "openai"


def create_embedder(cfg: EmbeddingSettings) -> Embedder:
    """Build the embedder selected by *cfg.provider*.

    Raises:
        ConfigError: Unknown provider, or an API provider without a key.
    """
    try:
        kind = EmbeddingProviderKind(cfg.provider.lower())
    except ValueError:
        valid = ", ".join(k.value for k in EmbeddingProviderKind)
        raise ConfigError(
            f"Invalid embedding provider '{cfg.provider}'. Valid providers: {valid}."
        ) from None

    if kind is EmbeddingProviderKind.LOCAL:
        return LocalEmbedder(model_name=cfg.model) if cfg.model else LocalEmbedder()

    kwargs: dict = {"api_key": cfg.api_key, "api_url": cfg.api_url}
    if cfg.model:
        kwargs["model_name"] = cfg.model
    return OpenAIEmbedder(**kwargs)
