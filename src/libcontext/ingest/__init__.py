"""Document ingestion: segmentation, chunking and the ingest/vectorize pipelines."""

from libcontext.ingest.base import BaseSegmenter, CodeBlock, Section
from libcontext.ingest.chunker import Chunk, DocumentChunker, chunk_document
from libcontext.ingest.github import build_library_id, build_source_url
from libcontext.ingest.markdown import MarkdownSegmenter, parse_markdown
from libcontext.ingest.pipeline import (
    IngestResult,
    PreviewResult,
    SourceDocument,
    VectorizeResult,
    discover_documents,
    ingest_library,
    preview_documents,
    vectorize,
)
from libcontext.ingest.rst import RstSegmenter, parse_rst

__all__ = [
    "BaseSegmenter",
    "CodeBlock",
    "Section",
    "MarkdownSegmenter",
    "RstSegmenter",
    "parse_markdown",
    "parse_rst",
    "Chunk",
    "DocumentChunker",
    "chunk_document",
    "build_library_id",
    "build_source_url",
    "SourceDocument",
    "IngestResult",
    "VectorizeResult",
    "PreviewResult",
    "ingest_library",
    "vectorize",
    "preview_documents",
    "discover_documents",
]
