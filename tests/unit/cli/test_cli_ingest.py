"""Tests for libcontext ingest / preview."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import litellm
import pytest
from typer.testing import CliRunner

from libcontext.cli.main import app
from libcontext.db.connection import Database
from libcontext.db.repository import Repository
from libcontext.embeddings.local import LocalEmbedder

runner = CliRunner()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class FakeModel:
    def encode(self, texts, **kwargs):
        return [[1.0] + [0.0] * 383 for _ in texts]


@pytest.fixture
def docs(tmp_path: Path) -> Path:
    root = tmp_path / "repo"
    (root / "docs").mkdir(parents=True)
    (root / "docs" / "hooks.md").write_text(
        "# Hooks\n\nHooks let you use state.\n\n## useState\n\nReturns a pair.\n",
        encoding="utf-8",
    )
    (root / "docs" / "api.rst").write_text("API\n===\n\nReference text.\n", encoding="utf-8")
    return root


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "index" / "docs.db"


def _ingest(docs: Path, db_path: Path, *extra: str, **kwargs):
    return runner.invoke(
        app,
        ["ingest", str(docs), "--library-id", "/facebook/react", "--db", str(db_path), *extra],
        **kwargs,
    )


def _library(db_path: Path, version: str = "latest"):
    conn = Database(db_path).connect()
    try:
        repo = Repository(conn)
        return repo.get_library("/facebook/react", version), repo.count_snippets("/facebook/react")
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# ingest
# ---------------------------------------------------------------------------


def test_ingest_no_embed(docs: Path, db_path: Path) -> None:
    result = _ingest(docs, db_path, "--no-embed")

    assert result.exit_code == 0, result.output
    assert "3 snippets from 2 files" in result.output
    lib, count = _library(db_path)
    assert lib.title == "react"
    assert count == 3
    assert lib.embedding_model is None


def test_ingest_with_local_embeddings(docs: Path, db_path: Path) -> None:
    with patch.object(LocalEmbedder, "_load", return_value=FakeModel()):
        result = _ingest(docs, db_path, "--title", "React", "--version", "18.2.0")

    assert result.exit_code == 0, result.output
    assert "3 embedded" in result.output
    lib, _ = _library(db_path, "18.2.0")
    assert lib.title == "React"
    assert lib.embedding_dims == 384


def test_ingest_version_in_library_id(docs: Path, db_path: Path) -> None:
    result = runner.invoke(
        app, ["ingest", str(docs), "-l", "/facebook/react/17.0.0", "--no-embed", "--db", str(db_path)]
    )
    assert result.exit_code == 0, result.output
    lib, _ = _library(db_path, "17.0.0")
    assert lib is not None


def test_ingest_invalid_library_id(docs: Path, db_path: Path) -> None:
    result = runner.invoke(app, ["ingest", str(docs), "-l", "react", "--db", str(db_path)])
    assert result.exit_code == 1
    assert "Invalid library ID" in result.output
    assert not db_path.exists()


def test_ingest_path_must_be_directory(tmp_path: Path, db_path: Path) -> None:
    result = _ingest(tmp_path / "missing", db_path, "--no-embed")
    assert result.exit_code == 1
    assert "is not a directory" in " ".join(result.output.split())


def test_ingest_no_documents(tmp_path: Path, db_path: Path) -> None:
    empty = tmp_path / "empty"
    empty.mkdir()
    result = _ingest(empty, db_path, "--no-embed")
    assert result.exit_code == 0
    assert "No documentation files" in result.output


def test_reingest_asks_before_replacing(docs: Path, db_path: Path) -> None:
    _ingest(docs, db_path, "--no-embed")
    (docs / "docs" / "api.rst").unlink()

    declined = _ingest(docs, db_path, "--no-embed", input="n\n")
    assert declined.exit_code == 0
    assert "Skipped" in declined.output
    assert _library(db_path)[1] == 3

    accepted = _ingest(docs, db_path, "--no-embed", "--yes")
    assert accepted.exit_code == 0
    assert _library(db_path)[1] == 2


def test_ingest_openai_without_key(docs: Path, db_path: Path) -> None:
    result = _ingest(docs, db_path, "--embedding-provider", "openai")
    assert result.exit_code == 1
    assert "Configuration error" in result.output


def test_ingest_invalid_provider_flag(docs: Path, db_path: Path) -> None:
    result = _ingest(docs, db_path, "--embedding-provider", "word2vec")
    assert result.exit_code == 1
    assert "Invalid embedding provider" in result.output


def test_ingest_rejected_key_writes_nothing(docs: Path, db_path: Path) -> None:
    error = litellm.AuthenticationError(message="bad key", llm_provider="openai", model="m")
    with patch("libcontext.embeddings.openai.litellm.embedding", side_effect=error):
        result = _ingest(
            docs, db_path, "--embedding-provider", "openai", "--embedding-api-key", "sk-bad"
        )
    assert result.exit_code == 1
    assert "rejected the API key" in result.output
    assert _library(db_path)[0] is None


# ---------------------------------------------------------------------------
# preview
# ---------------------------------------------------------------------------


def test_preview_lists_files(docs: Path, db_path: Path) -> None:
    result = runner.invoke(app, ["preview", str(docs)])

    assert result.exit_code == 0, result.output
    assert "hooks.md" in result.output
    assert "2 files" in result.output
    assert "3 chunks" in result.output
    assert not db_path.exists()


def test_preview_missing_directory(tmp_path: Path) -> None:
    result = runner.invoke(app, ["preview", str(tmp_path / "nope")])
    assert result.exit_code == 1
