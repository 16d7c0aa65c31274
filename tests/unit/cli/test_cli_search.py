"""Tests for libcontext search."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from libcontext.cli.main import app
from libcontext.embeddings.local import LocalEmbedder
from libcontext.rag.format import NO_DOCUMENTATION_MESSAGE

runner = CliRunner()

_HOOKS = """\
# Hooks

Hooks are functions that let you use React features.

## useState Hook

The useState hook adds a state variable to a component.

```jsx
const [count, setCount] = useState(0);
```

## useEffect Hook

The useEffect hook synchronizes a component with an external system.
"""


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    docs = tmp_path / "repo"
    docs.mkdir()
    (docs / "hooks.md").write_text(_HOOKS, encoding="utf-8")
    (docs / "dom.md").write_text("# createRoot\n\nRenders into a DOM node.\n", encoding="utf-8")
    path = tmp_path / "docs.db"
    result = runner.invoke(
        app, ["ingest", str(docs), "-l", "/facebook/react", "--no-embed", "--db", str(path)]
    )
    assert result.exit_code == 0, result.output
    return path


def _search(db_path: Path, *args: str):
    return runner.invoke(app, ["search", *args, "--db", str(db_path)])


def test_keyword_search_prints_snippets(db_path: Path) -> None:
    result = _search(db_path, "/facebook/react", "useState hook", "--mode", "keyword")

    assert result.exit_code == 0, result.output
    assert result.output.lstrip().startswith("## useState Hook")
    assert "const [count, setCount] = useState(0);" in result.output
    assert "**Source:** hooks.md" in result.output


def test_top_k_limits_output(db_path: Path) -> None:
    result = _search(db_path, "/facebook/react", "hook", "-m", "keyword", "-k", "1")
    assert result.exit_code == 0, result.output
    assert result.output.count("## ") == 1


def test_no_match_message(db_path: Path) -> None:
    result = _search(db_path, "/facebook/react", "kubernetes", "--mode", "keyword")
    assert result.exit_code == 0
    assert NO_DOCUMENTATION_MESSAGE in result.output


def test_hybrid_without_api_key_is_config_error(db_path: Path) -> None:
    result = _search(
        db_path, "/facebook/react", "useState hook", "--embedding-provider", "openai"
    )
    assert result.exit_code == 1
    assert "Configuration error" in result.output
    assert "## useState Hook" not in result.output


def test_query_embedding_failure_uses_keyword(db_path: Path) -> None:
    with patch.object(LocalEmbedder, "_load", side_effect=RuntimeError("no model")):
        result = _search(db_path, "/facebook/react", "createRoot")
    assert result.exit_code == 0, result.output
    assert "## createRoot" in result.output


def test_rerank_with_noop_provider(db_path: Path) -> None:
    result = _search(db_path, "/facebook/react", "hook", "-m", "keyword", "--rerank")
    assert result.exit_code == 0, result.output
    assert "## useState Hook" in result.output


def test_rerank_provider_failure_falls_back(db_path: Path) -> None:
    with patch("libcontext.rerank.remote.litellm.rerank", side_effect=ValueError("boom")):
        result = _search(
            db_path, "/facebook/react", "hook", "-m", "keyword", "--rerank",
            "--reranking-provider", "cohere", "--reranking-api-key", "k",
        )
    assert result.exit_code == 0, result.output
    assert "## " in result.output


def test_rerank_provider_without_key(db_path: Path) -> None:
    result = _search(
        db_path, "/facebook/react", "hook", "--rerank", "--reranking-provider", "cohere"
    )
    assert result.exit_code == 1
    assert "Configuration error" in result.output


def test_unknown_library_exits_1(db_path: Path) -> None:
    result = _search(db_path, "/vuejs/core", "ref", "-m", "keyword")
    assert result.exit_code == 1
    assert "Library not found" in result.output


def test_unknown_version_exits_1(db_path: Path) -> None:
    result = _search(db_path, "/facebook/react/16.0.0", "hook", "-m", "keyword")
    assert result.exit_code == 1


def test_invalid_mode(db_path: Path) -> None:
    result = _search(db_path, "/facebook/react", "hook", "--mode", "fuzzy")
    assert result.exit_code == 1
    assert "--mode must be one of" in result.output


def test_invalid_library_id(db_path: Path) -> None:
    result = _search(db_path, "react", "hook")
    assert result.exit_code == 1
    assert "Invalid library ID" in result.output


def test_no_db(tmp_path: Path) -> None:
    result = _search(tmp_path / "missing.db", "/facebook/react", "hook")
    assert result.exit_code == 1
    assert "No database" in result.output
