"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from libcontext.db.connection import Database
from libcontext.db.schema import initialize

_PROVIDER_ENV_VARS = (
    "EMBEDDING_PROVIDER",
    "EMBEDDING_API_KEY",
    "EMBEDDING_MODEL",
    "EMBEDDING_API_URL",
    "RERANKING_PROVIDER",
    "RERANKING_API_KEY",
    "RERANKING_MODEL",
    "RERANKING_API_URL",
    "LIBCONTEXT_DB",
)


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep the user's global config and provider env vars out of every test."""
    for var in _PROVIDER_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr(
        "libcontext.config._GLOBAL_CONFIG_PATH", tmp_path / "global" / "config.yaml"
    )
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / "docs.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()
