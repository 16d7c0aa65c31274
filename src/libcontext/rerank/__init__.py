"""Reranking providers: second-pass scoring of retrieval candidates."""

from libcontext.rerank.base import NoOpReranker, RankedResult, Reranker
from libcontext.rerank.factory import RerankerKind, create_reranker
from libcontext.rerank.local import LocalReranker
from libcontext.rerank.remote import CohereReranker, JinaReranker, RemoteReranker

__all__ = [
    "RankedResult",
    "Reranker",
    "NoOpReranker",
    "LocalReranker",
    "RemoteReranker",
    "CohereReranker",
    "JinaReranker",
    "RerankerKind",
    "create_reranker",
]
