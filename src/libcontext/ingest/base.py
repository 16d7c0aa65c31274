"""Section model and base segmenter shared by the Markdown and RST dialects."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

# Front matter: a leading block fenced by --- lines.
_FRONT_MATTER_RE = re.compile(r"\A\ufeff?---[ \t]*\n.*?\n---[ \t]*(?:\n|\Z)", re.DOTALL)


@dataclass
class CodeBlock:
    language: str | None
    value: str


@dataclass
class Section:
    """One heading-delimited part of a document.

    Attributes:
        heading: Plain-text heading, or None for content before the first heading.
        depth: Heading level (1 = top); 0 for the leading headless section.
        content: Prose paragraphs separated by a blank line.
        code_blocks: Code blocks in document order.
    """

    heading: str | None
    depth: int
    content: str = ""
    code_blocks: list[CodeBlock] = field(default_factory=list)

    def append_paragraph(self, text: str) -> None:
        text = text.strip()
        if not text:
            return
        self.content = f"{self.content}\n\n{text}" if self.content else text


class BaseSegmenter(ABC):
    """Abstract base for markup segmenters.

    Subclasses implement ``_parse()`` over normalised text. ``segment()``
    never raises: input is normalised first and each dialect treats anything
    it cannot recognise as literal prose.
    """

    def segment(self, text: str) -> list[Section]:
        """Split *text* into an ordered list of sections."""
        text = normalize_newlines(text).removeprefix("\ufeff")
        text = strip_front_matter(text)
        return self._parse(text)

    @abstractmethod
    def _parse(self, text: str) -> list[Section]:
        """Parse normalised text into sections."""


class SectionBuilder:
    """Accumulates sections while a segmenter walks its input."""

    def __init__(self) -> None:
        self.sections: list[Section] = []
        self._current: Section | None = None

    @property
    def current(self) -> Section:
        if self._current is None:
            self._current = Section(heading=None, depth=0)
            self.sections.append(self._current)
        return self._current

    def start(self, heading: str, depth: int) -> None:
        self._current = Section(heading=heading, depth=depth)
        self.sections.append(self._current)

    def paragraph(self, text: str) -> None:
        if text.strip():
            self.current.append_paragraph(text)

    def code(self, language: str | None, value: str) -> None:
        self.current.code_blocks.append(CodeBlock(language=language or None, value=value))


def normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def strip_front_matter(text: str) -> str:
    """Drop a leading ``---`` fenced front-matter block, if present."""
    return _FRONT_MATTER_RE.sub("", text, count=1)


def dedent_lines(lines: list[str], width: int) -> list[str]:
    """Remove up to *width* leading spaces from each line.

    Only indentation contributed by the surrounding markup is removed;
    deeper indentation inside the block is kept.
    """
    out: list[str] = []
    for line in lines:
        line = line.expandtabs(4)
        strip = min(width, len(line) - len(line.lstrip(" ")))
        out.append(line[strip:])
    return out


def indent_of(line: str) -> int:
    line = line.expandtabs(4)
    return len(line) - len(line.lstrip(" "))
