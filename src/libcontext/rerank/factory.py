"""Map reranking settings to a concrete Reranker."""

from __future__ import annotations

from enum import Enum

from libcontext.config import RerankingSettings
from libcontext.errors import ConfigError
from libcontext.rerank.base import NoOpReranker, Reranker
from libcontext.rerank.local import LocalReranker
from libcontext.rerank.remote import CohereReranker, JinaReranker


class RerankerKind(str, Enum):
    NONE = "none"
    LOCAL = "local"
    COHERE = "cohere"
    JINA = "jina"


def create_reranker(cfg: RerankingSettings) -> Reranker:
    """Build the reranker selected by *cfg.provider*.

    Raises:
        ConfigError: Unknown provider, or an API provider without a key.
    """
    try:
        kind = RerankerKind(cfg.provider.lower())
    except ValueError:
        valid = ", ".join(k.value for k in RerankerKind)
        raise ConfigError(
            f"Invalid reranking provider '{cfg.provider}'. Valid providers: {valid}."
        ) from None

    if kind is RerankerKind.NONE:
        return NoOpReranker()
    if kind is RerankerKind.LOCAL:
        return LocalReranker(cfg.model) if cfg.model else LocalReranker()
    if kind is RerankerKind.COHERE:
        return CohereReranker(cfg.api_key, model_name=cfg.model, api_url=cfg.api_url)
    return JinaReranker(cfg.api_key, model_name=cfg.model, api_url=cfg.api_url)
