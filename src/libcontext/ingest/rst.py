"""reStructuredText segmenter.

Handles the subset of RST found in project documentation (Sphinx, Django,
Python docs): underline and overline section titles, ``code-block`` style
directives, ``::`` literal blocks, admonitions, comments and inline roles.
Section depth follows the order in which adornment styles first appear, as
docutils does.
"""

from __future__ import annotations

import re

from libcontext.ingest.base import BaseSegmenter, Section, SectionBuilder, dedent_lines, indent_of

# Any non-alphanumeric printable ASCII may adorn a title.
_ADORNMENT_CHARS = "=-`:'\"~^_*+#<>.!$%&,/;?@[]{}|\\()"
_DIRECTIVE_RE = re.compile(r"^(\s*)\.\.[ \t]+([\w:.+-]+?)::(?:[ \t]+(.*?))?[ \t]*$")
_COMMENT_RE = re.compile(r"^(\s*)\.\.(?:[ \t]|$)")
_OPTION_RE = re.compile(r"^\s+:[\w-]+:")
_LIST_ITEM_RE = re.compile(r"^\s*(?:[-*+•]|\d+[.)]|#\.)\s")

_CODE_DIRECTIVES = {"code-block", "code", "sourcecode", "ipython"}
_LANGUAGE_BY_DIRECTIVE = {"console": "bash", "parsed-literal": "text", "doctest": "python"}
_ADMONITIONS = {
    "admonition", "attention", "caution", "danger", "error", "hint",
    "important", "note", "seealso", "tip", "warning",
}

# Inline markup
_ROLE_WITH_TARGET_RE = re.compile(r":[\w:+.-]+:`([^`<]+?)\s*<[^>]*>`")
_ROLE_TILDE_RE = re.compile(r":[\w:+.-]+:`~([^`]+)`")
_ROLE_RE = re.compile(r":[\w:+.-]+:`([^`]+)`")
_LITERAL_RE = re.compile(r"``(.+?)``")
_LINK_WITH_TARGET_RE = re.compile(r"`([^`<]+?)\s*<[^>]*>`__?")
_REFERENCE_RE = re.compile(r"`([^`]+)`__?")
_INTERPRETED_RE = re.compile(r"`([^`]+)`")
_STRONG_RE = re.compile(r"\*\*(?=\S)(.+?)(?<=\S)\*\*")
_EMPHASIS_RE = re.compile(r"(?<![\w*])\*(?=\S)(.+?)(?<=\S)\*(?![\w*])")
_SUBSTITUTION_RE = re.compile(r"\|([^|\s][^|]*)\|")
_FOOTNOTE_REF_RE = re.compile(r"\s*\[(?:#\w*|\*|\d+)\]_")


def clean_inline_markup(text: str) -> str:
    """Reduce RST inline markup (roles, literals, links, emphasis) to plain text."""
    text = _ROLE_WITH_TARGET_RE.sub(r"\1", text)
    text = _ROLE_TILDE_RE.sub(lambda m: m.group(1).rsplit(".", 1)[-1], text)
    text = _ROLE_RE.sub(r"\1", text)
    text = _LITERAL_RE.sub(r"\1", text)
    text = _LINK_WITH_TARGET_RE.sub(r"\1", text)
    text = _REFERENCE_RE.sub(r"\1", text)
    text = _INTERPRETED_RE.sub(r"\1", text)
    text = _STRONG_RE.sub(r"\1", text)
    text = _EMPHASIS_RE.sub(r"\1", text)
    text = _SUBSTITUTION_RE.sub(r"\1", text)
    return _FOOTNOTE_REF_RE.sub("", text)


def _adornment(line: str) -> str | None:
    """Return the adornment character if *line* is a title adornment."""
    s = line.rstrip()
    if len(s) < 2 or s in ("::", "..") or s[0] not in _ADORNMENT_CHARS or s[0] != line[0]:
        return None
    return s[0] if s == s[0] * len(s) else None


class RstSegmenter(BaseSegmenter):
    """Segment reStructuredText into sections at every section title."""

    def _parse(self, text: str) -> list[Section]:
        lines = text.split("\n")
        out = SectionBuilder()
        styles: list[tuple[str, bool]] = []
        para: list[str] = []
        literal_next = False

        def depth_for(style: tuple[str, bool]) -> int:
            if style not in styles:
                styles.append(style)
            return styles.index(style) + 1

        def flush() -> None:
            nonlocal literal_next
            if not para:
                return
            body = _join_paragraph(para)
            para.clear()
            if body.endswith("::"):
                literal_next = True
                # "Text::" keeps one colon; "Text ::" and a bare "::" keep none.
                body = body[:-1] if body[:-2] and not body[:-2].endswith(" ") else body[:-2].rstrip()
            out.paragraph(clean_inline_markup(body))

        i = 0
        n = len(lines)
        while i < n:
            line = lines[i]
            stripped = line.strip()

            if not stripped:
                flush()
                i += 1
                continue

            indent = indent_of(line)

            if literal_next and not para:
                literal_next = False
                if indent > 0:
                    i = self._consume_literal(lines, i, 0, out, None)
                    continue

            # Title with overline: adornment, text, matching adornment.
            over = _adornment(line)
            if over and i + 2 < n and lines[i + 1].strip() and _adornment(lines[i + 2]) == over:
                flush()
                out.start(clean_inline_markup(lines[i + 1].strip()), depth_for((over, True)))
                i += 3
                continue

            # Title with underline only.
            under = _adornment(lines[i + 1]) if i + 1 < n else None
            if under and indent == 0 and not over and len(lines[i + 1].rstrip()) >= min(len(stripped), 3):
                flush()
                out.start(clean_inline_markup(stripped), depth_for((under, False)))
                i += 2
                continue

            if over and not para:
                # Transition line.
                i += 1
                continue

            directive = _DIRECTIVE_RE.match(line)
            if directive:
                flush()
                literal_next = False
                i = self._consume_directive(lines, i, directive, out)
                continue

            if _COMMENT_RE.match(line):
                flush()
                literal_next = False
                _, i = _indented_block(lines, i + 1, indent)
                continue

            para.append(line)
            i += 1

        flush()
        return out.sections

    # ------------------------------------------------------------------
    # Block consumers
    # ------------------------------------------------------------------

    @staticmethod
    def _consume_literal(lines: list[str], i: int, base: int, out: SectionBuilder,
                         language: str | None) -> int:
        body, i = _indented_block(lines, i, base)
        if body:
            out.code(language, "\n".join(body))
        return i

    def _consume_directive(self, lines: list[str], i: int, match: re.Match[str],
                           out: SectionBuilder) -> int:
        base = len(match.group(1).expandtabs(4))
        name = match.group(2).lower()
        argument = (match.group(3) or "").strip()

        i += 1
        while i < len(lines) and lines[i].strip() and _OPTION_RE.match(lines[i]):
            i += 1

        if name in _CODE_DIRECTIVES or name in _LANGUAGE_BY_DIRECTIVE:
            language = argument.split()[0] if argument else None
            language = _LANGUAGE_BY_DIRECTIVE.get(name, language)
            return self._consume_literal(lines, i, base, out, language)

        body, i = _indented_block(lines, i, base)
        if name in _ADMONITIONS:
            if argument:
                out.paragraph(clean_inline_markup(argument))
            for paragraph in _split_paragraphs(body):
                out.paragraph(clean_inline_markup(paragraph))
        return i


def _indented_block(lines: list[str], i: int, base: int) -> tuple[list[str], int]:
    """Collect lines indented deeper than *base*, dedented to their common indent.

    Returns the block (trailing blank lines dropped) and the index of the
    first line after it.
    """
    block: list[str] = []
    while i < len(lines) and (not lines[i].strip() or indent_of(lines[i]) > base):
        block.append(lines[i])
        i += 1
    while block and not block[0].strip():
        block.pop(0)
    while block and not block[-1].strip():
        block.pop()
    if not block:
        return [], i
    width = min(indent_of(line) for line in block if line.strip())
    return dedent_lines(block, width), i


def _join_paragraph(lines: list[str]) -> str:
    # RST reflows paragraph lines; list items keep their own line.
    parts: list[str] = []
    for line in lines:
        text = line.strip()
        if parts and not _LIST_ITEM_RE.match(line):
            parts[-1] = f"{parts[-1]} {text}"
        else:
            parts.append(text)
    return "\n".join(parts)


def _split_paragraphs(lines: list[str]) -> list[str]:
    paragraphs: list[str] = []
    current: list[str] = []
    for line in lines + [""]:
        if line.strip():
            current.append(line)
        elif current:
            paragraphs.append(_join_paragraph(current))
            current = []
    return paragraphs


def parse_rst(text: str) -> list[Section]:
    return RstSegmenter().segment(text)
