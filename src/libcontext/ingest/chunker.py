"""Section chunker — size-bounded, breadcrumb-annotated chunks.

Sections that fit within ``max_chunk_size`` characters become one chunk.
Larger sections are split greedily at paragraph boundaries; a paragraph that
is too long on its own is truncated to the limit and emitted alone. Code
blocks are never split: all of a section's code blocks ride on its last chunk.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from libcontext.ingest.base import CodeBlock, Section

DEFAULT_MAX_CHUNK_SIZE = 1500
BREADCRUMB_SEPARATOR = " > "


@dataclass
class Chunk:
    title: str
    content: str
    breadcrumb: str
    token_count: int
    language: str | None = None
    code_blocks: list[CodeBlock] = field(default_factory=list)

    def render(self) -> str:
        """Prose followed by each code block as a fenced block."""
        parts = [self.content] if self.content else []
        for block in self.code_blocks:
            parts.append(f"```{block.language or ''}\n{block.value}\n```")
        return "\n\n".join(parts)


def estimate_tokens(text: str) -> int:
    """Approximate token count: ceil(characters / 4)."""
    return math.ceil(len(text) / 4)


class DocumentChunker:
    """Turn a section sequence into chunks no longer than ``max_chunk_size``."""

    def __init__(self, max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE) -> None:
        if max_chunk_size < 1:
            raise ValueError("max_chunk_size must be >= 1")
        self.max_chunk_size = max_chunk_size

    def chunk(self, sections: list[Section]) -> list[Chunk]:
        chunks: list[Chunk] = []
        stack: list[tuple[str, int]] = []

        for section in sections:
            # Empty sections still name their subsections.
            if section.heading:
                while stack and stack[-1][1] >= section.depth:
                    stack.pop()
                stack.append((section.heading, section.depth))
            if not section.content and not section.code_blocks:
                continue

            breadcrumb = BREADCRUMB_SEPARATOR.join(heading for heading, _ in stack)
            language = section.code_blocks[0].language if section.code_blocks else None
            title = section.heading or ""

            if len(section.content) <= self.max_chunk_size:
                chunks.append(_make_chunk(title, section.content, breadcrumb, language,
                                          list(section.code_blocks)))
                continue

            pieces = self._split(section.content)
            for index, piece in enumerate(pieces):
                is_last = index == len(pieces) - 1
                code = list(section.code_blocks) if is_last else []
                chunks.append(_make_chunk(title, piece, breadcrumb, language, code))

        return chunks

    def _split(self, content: str) -> list[str]:
        """Greedy paragraph fill; oversized paragraphs are truncated and emitted alone."""
        limit = self.max_chunk_size
        pieces: list[str] = []
        current = ""

        for paragraph in content.split("\n\n"):
            if not paragraph.strip():
                continue
            if len(paragraph) > limit:
                if current:
                    pieces.append(current)
                    current = ""
                pieces.append(paragraph[:limit])
                continue
            if not current:
                current = paragraph
            elif len(current) + 2 + len(paragraph) <= limit:
                current = f"{current}\n\n{paragraph}"
            else:
                pieces.append(current)
                current = paragraph

        if current:
            pieces.append(current)
        return pieces


def _make_chunk(title: str, content: str, breadcrumb: str, language: str | None,
                code_blocks: list[CodeBlock]) -> Chunk:
    return Chunk(
        title=title,
        content=content,
        breadcrumb=breadcrumb,
        token_count=estimate_tokens(content),
        language=language,
        code_blocks=code_blocks,
    )


def chunk_document(sections: list[Section], max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE) -> list[Chunk]:
    return DocumentChunker(max_chunk_size).chunk(sections)
