"""Forward-only migration runner for the index store schema.

The exact-term index (snippets_fts) is an external-content FTS5 table kept in
sync with ``snippets`` by triggers, so every insert, update, and delete of a
snippet row updates its postings in the same transaction.
"""

from __future__ import annotations

import sqlite3

# schema_version is the bootstrap table, created before migrations run.
_CREATE_SCHEMA_VERSION = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER NOT NULL,
    applied_at  DATETIME NOT NULL DEFAULT (datetime('now'))
)
"""

_V1_SQL = """
CREATE TABLE IF NOT EXISTS libraries (
    id              TEXT NOT NULL,
    version         TEXT NOT NULL DEFAULT 'latest',
    title           TEXT NOT NULL,
    description     TEXT NOT NULL DEFAULT '',
    source_repo     TEXT NOT NULL DEFAULT '',
    total_snippets  INTEGER NOT NULL DEFAULT 0,
    trust_score     REAL NOT NULL DEFAULT 5.0,
    benchmark_score REAL NOT NULL DEFAULT 0,
    embedding_model TEXT,
    embedding_dims  INTEGER,
    ingested_at     DATETIME NOT NULL DEFAULT (datetime('now')),
    PRIMARY KEY (id, version)
);

CREATE TABLE IF NOT EXISTS snippets (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    library_id      TEXT NOT NULL,
    library_version TEXT NOT NULL DEFAULT 'latest',
    title           TEXT NOT NULL,
    content         TEXT NOT NULL,
    source_path     TEXT,
    source_url      TEXT,
    language        TEXT NOT NULL DEFAULT '',
    token_count     INTEGER NOT NULL DEFAULT 0,
    breadcrumb      TEXT NOT NULL DEFAULT '',
    embedding       BLOB,
    FOREIGN KEY (library_id, library_version)
        REFERENCES libraries(id, version) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_snippets_library
    ON snippets(library_id, library_version);

CREATE VIRTUAL TABLE IF NOT EXISTS snippets_fts USING fts5(
    title, content, source_path,
    content='snippets', content_rowid='id',
    tokenize='porter unicode61'
);

CREATE TRIGGER IF NOT EXISTS snippets_fts_insert AFTER INSERT ON snippets BEGIN
    INSERT INTO snippets_fts(rowid, title, content, source_path)
    VALUES (new.id, new.title, new.content, new.source_path);
END;

CREATE TRIGGER IF NOT EXISTS snippets_fts_delete AFTER DELETE ON snippets BEGIN
    INSERT INTO snippets_fts(snippets_fts, rowid, title, content, source_path)
    VALUES ('delete', old.id, old.title, old.content, old.source_path);
END;

CREATE TRIGGER IF NOT EXISTS snippets_fts_update
AFTER UPDATE OF title, content, source_path ON snippets BEGIN
    INSERT INTO snippets_fts(snippets_fts, rowid, title, content, source_path)
    VALUES ('delete', old.id, old.title, old.content, old.source_path);
    INSERT INTO snippets_fts(rowid, title, content, source_path)
    VALUES (new.id, new.title, new.content, new.source_path);
END;
"""

# Append-only. Each entry: (version: int, sql: str).
# executescript() issues an implicit COMMIT before running.
MIGRATIONS: list[tuple[int, str]] = [
    (1, _V1_SQL),
]


def run_migrations(conn: sqlite3.Connection) -> None:
    """Apply all pending migrations in ascending version order.

    Idempotent: safe to call on a database at any version.
    """
    conn.execute(_CREATE_SCHEMA_VERSION)
    conn.commit()

    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    current = row[0] if row[0] is not None else 0

    for version, sql in MIGRATIONS:
        if version > current:
            conn.executescript(sql)
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )
            conn.commit()
