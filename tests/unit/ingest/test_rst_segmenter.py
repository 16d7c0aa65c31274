"""Tests for the reStructuredText segmenter."""

from __future__ import annotations

from libcontext.ingest.base import CodeBlock, Section
from libcontext.ingest.rst import RstSegmenter, clean_inline_markup, parse_rst

_GUIDE = """\
=====
Guide
=====

Intro *text* with ``literal`` and :func:`os.path.join`.

Install
-------

Run:

.. code-block:: bash

   pip install foo

Usage
-----

Example::

    import foo
    foo.run()

Advanced
~~~~~~~~

.. note::

   Remember this.

.. toctree::
   :maxdepth: 2

   api
"""


def test_guide_document():
    assert parse_rst(_GUIDE) == [
        Section(heading="Guide", depth=1, content="Intro text with literal and os.path.join."),
        Section(
            heading="Install",
            depth=2,
            content="Run:",
            code_blocks=[CodeBlock(language="bash", value="pip install foo")],
        ),
        Section(
            heading="Usage",
            depth=2,
            content="Example:",
            code_blocks=[CodeBlock(language=None, value="import foo\nfoo.run()")],
        ),
        Section(heading="Advanced", depth=3, content="Remember this."),
    ]


def test_depth_follows_first_appearance_of_style():
    text = "Part\n####\n\nA\n\nChap\n****\n\nB\n\nPart2\n#####\n\nC\n"
    assert [(s.heading, s.depth) for s in parse_rst(text)] == [
        ("Part", 1),
        ("Chap", 2),
        ("Part2", 1),
    ]


def test_overline_style_differs_from_underline_only():
    text = "=====\nTop\n=====\n\na\n\nSub\n===\n\nb\n"
    assert [(s.heading, s.depth) for s in parse_rst(text)] == [("Top", 1), ("Sub", 2)]


def test_literal_marker_variants():
    sections = parse_rst("Spaced ::\n\n    a = 1\n\nBare:\n\n::\n\n    b = 2\n")
    assert sections[0].content == "Spaced\n\nBare:"
    assert [b.value for b in sections[0].code_blocks] == ["a = 1", "b = 2"]


def test_code_block_options_skipped():
    text = ".. code-block:: python\n   :linenos:\n   :caption: demo\n\n   x = 1\n   if x:\n       y = 2\n"
    assert parse_rst(text)[0].code_blocks == [
        CodeBlock(language="python", value="x = 1\nif x:\n    y = 2")
    ]


def test_code_directive_without_language():
    assert parse_rst(".. code::\n\n   raw\n")[0].code_blocks == [CodeBlock(language=None, value="raw")]


def test_doctest_directive_is_python():
    block = parse_rst(".. doctest::\n\n   >>> 1 + 1\n   2\n")[0].code_blocks[0]
    assert block == CodeBlock(language="python", value=">>> 1 + 1\n2")


def test_admonition_argument_and_body_flattened():
    text = ".. admonition:: Custom title\n\n   First para\n   continues.\n\n   Second para.\n"
    assert parse_rst(text)[0].content == "Custom title\n\nFirst para continues.\n\nSecond para."


def test_comments_and_unknown_directives_skipped():
    text = (
        ".. this is a comment\n   still comment\n\n"
        ".. image:: logo.png\n   :alt: Logo\n\n"
        "Real text.\n"
    )
    assert parse_rst(text) == [Section(heading=None, depth=0, content="Real text.")]


def test_transition_line_skipped():
    section = parse_rst("Para one.\n\n----------\n\nPara two.\n")[0]
    assert section.content == "Para one.\n\nPara two."


def test_paragraph_lines_reflowed_but_list_items_kept():
    section = parse_rst("Some long\nsentence here.\n\n- one\n- two\n  continued\n")[0]
    assert section.content == "Some long sentence here.\n\n- one\n- two continued"


def test_clean_inline_markup_roles():
    assert clean_inline_markup(":meth:`~foo.Bar.baz`") == "baz"
    assert clean_inline_markup(":doc:`Guide <guide/index>`") == "Guide"
    assert clean_inline_markup(":py:class:`Widget`") == "Widget"


def test_clean_inline_markup_links_and_emphasis():
    text = "See `Docs <https://x.io>`_ and **bold**, *em*, |release| [#]_."
    assert clean_inline_markup(text) == "See Docs and bold, em, release."


def test_never_raises_on_odd_input():
    segmenter = RstSegmenter()
    for text in ["", "::", "..", "===", "=\n=\n=", ".. code-block::", "Title\n===\n", "\t\t::\n"]:
        assert isinstance(segmenter.segment(text), list)
