"""Markdown segmenter — heading-aware sections with verbatim code blocks.

A small line-oriented block parser covering what documentation repositories
actually use: ATX and setext headings, fenced and indented code, paragraphs,
lists, tables, block quotes (GitHub ``[!NOTE]`` alerts included), and
``:::``/``!!!`` admonitions. Anything unrecognised is kept as prose.
"""

from __future__ import annotations

import re

from libcontext.ingest.base import BaseSegmenter, Section, SectionBuilder, dedent_lines, indent_of

_ATX_RE = re.compile(r"^ {0,3}(#{1,6})(?:[ \t]+(.*?))?[ \t]*$")
_ATX_CLOSING_RE = re.compile(r"(?:^|[ \t]+)#+[ \t]*$")
_SETEXT_RE = re.compile(r"^ {0,3}(=+|-+)[ \t]*$")
_FENCE_RE = re.compile(r"^( {0,3})(`{3,}|~{3,})[ \t]*([^`]*?)[ \t]*$")
_THEMATIC_RE = re.compile(r"^ {0,3}([-*_])(?:[ \t]*\1){2,}[ \t]*$")
_BLOCKQUOTE_RE = re.compile(r"^ {0,3}> ?")
_LIST_ITEM_RE = re.compile(r"^ {0,3}(?:[-+*]|\d{1,9}[.)])(?:[ \t]|$)")
_LINK_DEF_RE = re.compile(r"^ {0,3}\[[^\]]+\]:\s*\S+")
_HTML_COMMENT_RE = re.compile(r"<!--.*?-->", re.DOTALL)

# Admonitions: GitHub alerts, Docusaurus ::: fences, MkDocs !!!/??? blocks.
_ALERT_RE = re.compile(r"^\s*\[!(?:NOTE|TIP|IMPORTANT|WARNING|CAUTION)\][ \t]*", re.IGNORECASE)
_COLON_FENCE_RE = re.compile(r"^ {0,3}:{3,}")
_MKDOCS_ADMONITION_RE = re.compile(r"^ {0,3}(?:!!!|\?\?\?\+?)[ \t]+\w+")

# Inline markup
_IMAGE_RE = re.compile(r"!\[([^\]]*)\]\([^)]*\)")
_LINK_RE = re.compile(r"\[([^\]]+)\]\([^)]*\)")
_REF_LINK_RE = re.compile(r"\[([^\]]+)\]\[[^\]]*\]")
_AUTOLINK_RE = re.compile(r"<((?:https?|mailto|ftp):[^>\s]+)>")
_CODE_SPAN_RE = re.compile(r"(`+)(.+?)\1", re.DOTALL)
_STRONG_RE = re.compile(r"(\*\*|__)(?=\S)(.+?)(?<=\S)\1")
_EMPHASIS_STAR_RE = re.compile(r"(?<![\w*])\*(?=\S)(.+?)(?<=\S)\*(?![\w*])")
_EMPHASIS_UNDERSCORE_RE = re.compile(r"(?<![\w_])_(?=\S)(.+?)(?<=\S)_(?![\w_])")
_STRIKE_RE = re.compile(r"~~(?=\S)(.+?)(?<=\S)~~")
_HTML_TAG_RE = re.compile(r"</?[A-Za-z][^<>]*>")
_ESCAPE_RE = re.compile(r"\\([!\"#$%&'()*+,\-./:;<=>?@\[\\\]^_`{|}~])")

# Code spans and escaped characters are swapped out for placeholders so the
# emphasis and link rules never touch them.
_PLACEHOLDER = "\x00{}\x00"
_PLACEHOLDER_RE = re.compile("\x00(\\d+)\x00")


def strip_inline_markup(text: str) -> str:
    """Reduce Markdown inline markup to plain text."""
    spans: list[str] = []

    def _stash(literal: str) -> str:
        spans.append(literal)
        return _PLACEHOLDER.format(len(spans) - 1)

    text = _HTML_COMMENT_RE.sub("", text.replace("\x00", ""))
    text = _CODE_SPAN_RE.sub(lambda m: _stash(m.group(2).strip() or m.group(2)), text)
    text = _ESCAPE_RE.sub(lambda m: _stash(m.group(1)), text)
    text = _IMAGE_RE.sub(r"\1", text)
    text = _LINK_RE.sub(r"\1", text)
    text = _REF_LINK_RE.sub(r"\1", text)
    text = _AUTOLINK_RE.sub(r"\1", text)
    text = _HTML_TAG_RE.sub("", text)
    for _ in range(2):  # nested emphasis, e.g. ***bold italic***
        text = _STRONG_RE.sub(r"\2", text)
        text = _EMPHASIS_STAR_RE.sub(r"\1", text)
        text = _EMPHASIS_UNDERSCORE_RE.sub(r"\1", text)
    text = _STRIKE_RE.sub(r"\1", text)
    return _PLACEHOLDER_RE.sub(lambda m: spans[int(m.group(1))], text)


class MarkdownSegmenter(BaseSegmenter):
    """Segment Markdown into sections at every ATX or setext heading."""

    def _parse(self, text: str) -> list[Section]:
        lines = text.split("\n")
        out = SectionBuilder()
        para: list[str] = []
        in_list = False  # indented lines continue a list, not start code

        def flush() -> None:
            if para:
                out.paragraph(strip_inline_markup("\n".join(para)))
                para.clear()

        i = 0
        n = len(lines)
        while i < n:
            line = lines[i]
            stripped = line.strip()

            if not stripped:
                flush()
                i += 1
                continue

            fence = _FENCE_RE.match(line)
            if fence and not (fence.group(2)[0] == "`" and "`" in fence.group(3)):
                flush()
                i = self._consume_fence(lines, i, fence, out)
                in_list = False
                continue

            atx = _ATX_RE.match(line)
            if atx:
                flush()
                heading = _ATX_CLOSING_RE.sub("", atx.group(2) or "")
                out.start(strip_inline_markup(heading).strip(), len(atx.group(1)))
                in_list = False
                i += 1
                continue

            setext = _SETEXT_RE.match(line)
            if setext and para and not in_list:
                heading = strip_inline_markup(" ".join(p.strip() for p in para)).strip()
                para.clear()
                out.start(heading, 1 if setext.group(1)[0] == "=" else 2)
                i += 1
                continue

            if _THEMATIC_RE.match(line):
                flush()
                in_list = False
                i += 1
                continue

            if indent_of(line) >= 4 and not para and not in_list:
                i = self._consume_indented_code(lines, i, out)
                continue

            if _BLOCKQUOTE_RE.match(line):
                flush()
                i = self._consume_blockquote(lines, i, out)
                in_list = False
                continue

            if _COLON_FENCE_RE.match(line):
                # Marker line only; the admonition body flows on as prose.
                flush()
                i += 1
                continue

            if _MKDOCS_ADMONITION_RE.match(line):
                flush()
                i = self._consume_admonition(lines, i + 1, out)
                in_list = False
                continue

            if _LINK_DEF_RE.match(line) and not para:
                i += 1
                continue

            if _LIST_ITEM_RE.match(line):
                if not in_list:
                    flush()
                in_list = True
            elif not para and indent_of(line) < 4:
                in_list = False

            para.append(line.strip() if not in_list else line.rstrip())
            i += 1

        flush()
        return out.sections

    # ------------------------------------------------------------------
    # Block consumers (each returns the index of the next unread line)
    # ------------------------------------------------------------------

    @staticmethod
    def _consume_fence(lines: list[str], i: int, fence: re.Match[str], out: SectionBuilder) -> int:
        indent = len(fence.group(1))
        marker = fence.group(2)
        info = fence.group(3).strip()
        language = info.split()[0] if info else None
        close_re = re.compile(rf"^ {{0,3}}{re.escape(marker[0])}{{{len(marker)},}}[ \t]*$")

        body: list[str] = []
        i += 1
        while i < len(lines) and not close_re.match(lines[i]):
            body.append(lines[i])
            i += 1
        if i >= len(lines):
            # Unclosed fence: runs to the end of the document.
            while body and not body[-1].strip():
                body.pop()
        out.code(language, "\n".join(dedent_lines(body, indent)))
        return i + 1

    @staticmethod
    def _consume_indented_code(lines: list[str], i: int, out: SectionBuilder) -> int:
        body: list[str] = []
        while i < len(lines) and (not lines[i].strip() or indent_of(lines[i]) >= 4):
            body.append(lines[i])
            i += 1
        while body and not body[-1].strip():
            body.pop()
        out.code(None, "\n".join(dedent_lines(body, 4)))
        return i

    @staticmethod
    def _consume_admonition(lines: list[str], i: int, out: SectionBuilder) -> int:
        body: list[str] = []
        while i < len(lines) and (not lines[i].strip() or indent_of(lines[i]) >= 4):
            body.append(lines[i])
            i += 1
        text = "\n".join(dedent_lines(body, 4))
        for paragraph in re.split(r"\n\s*\n", text):
            out.paragraph(strip_inline_markup(" ".join(paragraph.split())))
        return i

    @staticmethod
    def _consume_blockquote(lines: list[str], i: int, out: SectionBuilder) -> int:
        quoted: list[str] = []
        while i < len(lines) and lines[i].strip() and _BLOCKQUOTE_RE.match(lines[i]):
            quoted.append(_BLOCKQUOTE_RE.sub("", lines[i], count=1))
            i += 1
        text = "\n".join(quoted)
        text = _ALERT_RE.sub("", text, count=1)
        for paragraph in re.split(r"\n\s*\n", text):
            out.paragraph(strip_inline_markup(paragraph.strip()))
        return i


def parse_markdown(markdown: str) -> list[Section]:
    """Convenience wrapper around MarkdownSegmenter().segment()."""
    return MarkdownSegmenter().segment(markdown)
