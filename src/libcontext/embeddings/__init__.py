"""Embedding providers: text → fixed-length vector."""

from libcontext.embeddings.base import Embedder, Vector
from libcontext.embeddings.factory import EmbeddingProviderKind, create_embedder
from libcontext.embeddings.local import LocalEmbedder
from libcontext.embeddings.openai import OpenAIEmbedder

__all__ = [
    "Embedder",
    "Vector",
    "EmbeddingProviderKind",
    "create_embedder",
    "LocalEmbedder",
    "OpenAIEmbedder",
]
