"""Repository pattern for all index store operations.

Single interface for: libraries, snippets, FTS5 keyword search, and
cosine-similarity search over stored embeddings. Snippet postings in
snippets_fts are maintained by triggers (see migrations), so the repository
never writes to the FTS table directly.
"""

from __future__ import annotations

import re
import sqlite3
from collections.abc import Iterable, Iterator
from contextlib import contextmanager

from libcontext.db.models import Library, Snippet
from libcontext.db.vectors import deserialize, serialize
from libcontext.errors import EmbeddingDimensionError

_LIBRARY_COLUMNS = (
    "id, version, title, description, source_repo, total_snippets, trust_score, "
    "benchmark_score, embedding_model, embedding_dims, ingested_at"
)

_SNIPPET_COLUMNS = (
    "s.id, s.library_id, s.library_version, s.title, s.content, s.source_path, "
    "s.source_url, s.language, s.token_count, s.breadcrumb, s.embedding"
)

# FTS5 MATCH treats punctuation as syntax; only word characters survive.
_FTS_TOKEN_RE = re.compile(r"\w+", re.UNICODE)


def build_fts_query(query: str) -> str:
    """Turn free text into an FTS5 expression: quoted terms joined with OR.

    Returns an empty string when *query* has no word characters.
    """
    terms = _FTS_TOKEN_RE.findall(query)
    return " OR ".join(f'"{t}"' for t in terms)


class Repository:
    """Data access layer for libraries and snippets.

    Wraps an open sqlite3.Connection. The connection is owned by the caller
    and must be closed after use.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with sqlite-vec loaded and schema
                initialised (see libcontext.db.schema.initialize).
        """
        self._conn = conn

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run the enclosed statements in one write transaction.

        ``BEGIN IMMEDIATE`` takes the write lock up front; readers on other
        connections keep seeing the last committed state until COMMIT.
        Any exception rolls the transaction back and propagates.
        """
        if self._conn.in_transaction:
            self._conn.commit()
        self._conn.execute("BEGIN IMMEDIATE")
        try:
            yield self._conn
        except BaseException:
            self._conn.rollback()
            raise
        else:
            self._conn.commit()

    # ------------------------------------------------------------------
    # Libraries
    # ------------------------------------------------------------------

    def upsert_library(self, library: Library) -> None:
        """Create or wholesale-replace the row for (library.id, library.version)."""
        self._upsert_library(library)
        self._conn.commit()

    def _upsert_library(self, library: Library) -> None:
        self._conn.execute(
            """
            INSERT INTO libraries (
                id, version, title, description, source_repo, total_snippets,
                trust_score, benchmark_score, embedding_model, embedding_dims
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id, version) DO UPDATE SET
                title = excluded.title,
                description = excluded.description,
                source_repo = excluded.source_repo,
                total_snippets = excluded.total_snippets,
                trust_score = excluded.trust_score,
                benchmark_score = excluded.benchmark_score,
                embedding_model = excluded.embedding_model,
                embedding_dims = excluded.embedding_dims,
                ingested_at = datetime('now')
            """,
            (
                library.id,
                library.version,
                library.title,
                library.description,
                library.source_repo,
                library.total_snippets,
                library.trust_score,
                library.benchmark_score,
                library.embedding_model,
                library.embedding_dims,
            ),
        )

    def get_library(self, library_id: str, version: str = "latest") -> Library | None:
        """Return the library row for (library_id, version), or None."""
        row = self._conn.execute(
            f"SELECT {_LIBRARY_COLUMNS} FROM libraries WHERE id = ? AND version = ?",
            (library_id, version),
        ).fetchone()
        return _row_to_library(row) if row else None

    def list_libraries(self) -> list[Library]:
        """Return all libraries ordered by id, then version."""
        rows = self._conn.execute(
            f"SELECT {_LIBRARY_COLUMNS} FROM libraries ORDER BY id, version"
        ).fetchall()
        return [_row_to_library(r) for r in rows]

    def search_libraries(self, name: str) -> list[Library]:
        """Substring match on id or title, best reputation and coverage first."""
        pattern = f"%{name}%"
        rows = self._conn.execute(
            f"""
            SELECT {_LIBRARY_COLUMNS} FROM libraries
            WHERE id LIKE ?1 OR title LIKE ?1
            ORDER BY trust_score DESC, total_snippets DESC, id, version
            """,
            (pattern,),
        ).fetchall()
        return [_row_to_library(r) for r in rows]

    def set_total_snippets(self, library_id: str, version: str, total: int) -> None:
        self._conn.execute(
            "UPDATE libraries SET total_snippets = ? WHERE id = ? AND version = ?",
            (total, library_id, version),
        )
        self._conn.commit()

    def remove_library(self, library_id: str, version: str | None = None) -> int:
        """Delete one version (or every version) of a library with its snippets.

        Snippets are deleted explicitly before their library rows, inside the
        same transaction, so no orphan can survive even on a connection with
        foreign keys disabled.

        Returns:
            Number of library rows removed (0 if nothing matched).
        """
        with self.transaction() as conn:
            if version is None:
                conn.execute("DELETE FROM snippets WHERE library_id = ?", (library_id,))
                cur = conn.execute("DELETE FROM libraries WHERE id = ?", (library_id,))
            else:
                conn.execute(
                    "DELETE FROM snippets WHERE library_id = ? AND library_version = ?",
                    (library_id, version),
                )
                cur = conn.execute(
                    "DELETE FROM libraries WHERE id = ? AND version = ?",
                    (library_id, version),
                )
            return cur.rowcount

    # ------------------------------------------------------------------
    # Snippets
    # ------------------------------------------------------------------

    def add_snippet(self, snippet: Snippet) -> int:
        """Insert one snippet (FTS postings follow via trigger). Returns its id."""
        snippet_id = self._insert_snippet(snippet)
        self._conn.commit()
        return snippet_id

    def _insert_snippet(self, snippet: Snippet) -> int:
        cur = self._conn.execute(
            """
            INSERT INTO snippets (
                library_id, library_version, title, content, source_path,
                source_url, language, token_count, breadcrumb, embedding
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                snippet.library_id,
                snippet.library_version,
                snippet.title,
                snippet.content,
                snippet.source_path,
                snippet.source_url,
                snippet.language or "",
                snippet.token_count,
                snippet.breadcrumb,
                serialize(snippet.embedding) if snippet.embedding is not None else None,
            ),
        )
        snippet.id = cur.lastrowid
        return cur.lastrowid

    def get_snippet(self, snippet_id: int) -> Snippet | None:
        row = self._conn.execute(
            f"SELECT {_SNIPPET_COLUMNS} FROM snippets s WHERE s.id = ?", (snippet_id,)
        ).fetchone()
        return _row_to_snippet(row) if row else None

    def list_snippets(self, library_id: str, version: str = "latest") -> list[Snippet]:
        """Return every snippet of (library_id, version) in insertion order."""
        rows = self._conn.execute(
            f"""
            SELECT {_SNIPPET_COLUMNS} FROM snippets s
            WHERE s.library_id = ? AND s.library_version = ?
            ORDER BY s.id
            """,
            (library_id, version),
        ).fetchall()
        return [_row_to_snippet(r) for r in rows]

    def count_snippets(self, library_id: str | None = None, version: str | None = None) -> int:
        sql, params = _scoped("SELECT COUNT(*) FROM snippets s", library_id, version)
        return self._conn.execute(sql, params).fetchone()[0]

    def delete_snippets(self, library_id: str, version: str = "latest") -> int:
        """Delete all snippets of (library_id, version). Returns the row count."""
        cur = self._conn.execute(
            "DELETE FROM snippets WHERE library_id = ? AND library_version = ?",
            (library_id, version),
        )
        self._conn.commit()
        return cur.rowcount

    def replace_generation(self, library: Library, snippets: list[Snippet]) -> int:
        """Atomically replace everything stored for (library.id, library.version).

        The library row is upserted, prior snippets are deleted, the new ones
        inserted, and ``total_snippets`` set, all in one transaction. On any
        failure the previous generation stays intact.

        Raises:
            EmbeddingDimensionError: If the new snippets carry embeddings of
                more than one length.
            sqlite3.Error: On storage failure (after rollback).

        Returns:
            Number of snippets written.
        """
        dims = {len(s.embedding) for s in snippets if s.embedding is not None}
        if len(dims) > 1:
            raise EmbeddingDimensionError(
                f"Mixed embedding dimensions {sorted(dims)} for "
                f"{library.id}@{library.version}"
            )
        if dims and library.embedding_dims is None:
            library.embedding_dims = dims.pop()

        with self.transaction() as conn:
            self._upsert_library(library)
            conn.execute(
                "DELETE FROM snippets WHERE library_id = ? AND library_version = ?",
                (library.id, library.version),
            )
            for snippet in snippets:
                snippet.library_id = library.id
                snippet.library_version = library.version
                self._insert_snippet(snippet)
            conn.execute(
                "UPDATE libraries SET total_snippets = ? WHERE id = ? AND version = ?",
                (len(snippets), library.id, library.version),
            )
        library.total_snippets = len(snippets)
        return len(snippets)

    # ------------------------------------------------------------------
    # Embeddings
    # ------------------------------------------------------------------

    def list_snippets_for_embedding(
        self,
        library_id: str | None = None,
        version: str | None = None,
        force: bool = False,
    ) -> list[Snippet]:
        """Return snippets to (re)vectorize; without *force* only those lacking one."""
        sql, params = _scoped(
            f"SELECT {_SNIPPET_COLUMNS} FROM snippets s", library_id, version
        )
        if not force:
            sql += " AND s.embedding IS NULL"
        sql += " ORDER BY s.id"
        return [_row_to_snippet(r) for r in self._conn.execute(sql, params).fetchall()]

    def clear_embeddings(self, library_id: str | None = None, version: str | None = None) -> int:
        """Null out embeddings (and recorded model/dims) in scope."""
        sql, params = _scoped("UPDATE snippets SET embedding = NULL", library_id, version, alias="")
        with self.transaction() as conn:
            cur = conn.execute(sql, params)
            lib_sql, lib_params = _scoped(
                "UPDATE libraries SET embedding_model = NULL, embedding_dims = NULL",
                library_id,
                version,
                alias="",
                id_col="id",
                version_col="version",
            )
            conn.execute(lib_sql, lib_params)
        return cur.rowcount

    def set_embeddings(
        self,
        updates: Iterable[tuple[int, list[float] | None]],
        *,
        model: str | None = None,
    ) -> int:
        """Store embeddings for existing snippets in one transaction.

        Each touched library records *model* and the vector length on first
        use; a later vector of a different length is rejected.

        Raises:
            EmbeddingDimensionError: On a length mismatch with the library's
                recorded dimensionality (nothing from this call is kept).

        Returns:
            Number of snippets that received a vector.
        """
        updated = 0
        with self.transaction() as conn:
            known: dict[tuple[str, str], int | None] = {}
            for snippet_id, embedding in updates:
                if embedding is None:
                    continue
                row = conn.execute(
                    "SELECT library_id, library_version FROM snippets WHERE id = ?",
                    (snippet_id,),
                ).fetchone()
                if row is None:
                    continue
                key = (row["library_id"], row["library_version"])
                if key not in known:
                    lib = conn.execute(
                        "SELECT embedding_dims FROM libraries WHERE id = ? AND version = ?",
                        key,
                    ).fetchone()
                    known[key] = lib["embedding_dims"] if lib else None
                dims = known[key]
                if dims is None:
                    conn.execute(
                        "UPDATE libraries SET embedding_dims = ?, embedding_model = ? "
                        "WHERE id = ? AND version = ?",
                        (len(embedding), model, *key),
                    )
                    known[key] = len(embedding)
                elif dims != len(embedding):
                    raise EmbeddingDimensionError(
                        f"{key[0]}@{key[1]} stores {dims}-dimensional embeddings; "
                        f"got {len(embedding)}. Re-vectorize with --force."
                    )
                conn.execute(
                    "UPDATE snippets SET embedding = ? WHERE id = ?",
                    (serialize(embedding), snippet_id),
                )
                updated += 1
        return updated

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search_keyword(
        self,
        query: str,
        library_id: str,
        version: str = "latest",
        limit: int = 20,
    ) -> list[tuple[Snippet, float]]:
        """BM25 full-text search scoped to one library version.

        Returns (snippet, relevance) best-first. bm25() is negative with lower
        meaning better; relevance is its negation so higher is better. Ties
        fall back to snippet id ascending.
        """
        fts_query = build_fts_query(query)
        if not fts_query:
            return []
        rows = self._conn.execute(
            f"""
            SELECT {_SNIPPET_COLUMNS}, bm25(snippets_fts) AS bm25_score
            FROM snippets_fts
            JOIN snippets s ON s.id = snippets_fts.rowid
            WHERE snippets_fts MATCH ?
              AND s.library_id = ?
              AND s.library_version = ?
            ORDER BY bm25_score, s.id
            LIMIT ?
            """,
            (fts_query, library_id, version, limit),
        ).fetchall()
        return [(_row_to_snippet(r), -r["bm25_score"]) for r in rows]

    def search_vector(
        self,
        embedding: list[float],
        library_id: str,
        version: str = "latest",
        limit: int | None = None,
    ) -> list[tuple[Snippet, float]]:
        """Cosine-similarity search over stored embeddings in one library version.

        Rows without an embedding, with a different vector length, or with
        similarity <= 0 are excluded. Sorted by similarity desc, then id.
        """
        # float32 blobs: byte length is 4 per dimension; NULL never matches.
        sql = f"""
            SELECT * FROM (
                SELECT {_SNIPPET_COLUMNS},
                       CASE WHEN length(s.embedding) = ?
                            THEN 1.0 - vec_distance_cosine(s.embedding, ?)
                       END AS similarity
                FROM snippets s
                WHERE s.library_id = ?
                  AND s.library_version = ?
                  AND length(s.embedding) = ?
            )
            WHERE similarity > 0
            ORDER BY similarity DESC, id
        """
        nbytes = 4 * len(embedding)
        params: list[object] = [nbytes, serialize(embedding), library_id, version, nbytes]
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        rows = self._conn.execute(sql, params).fetchall()
        return [(_row_to_snippet(r), r["similarity"]) for r in rows]


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------


def _scoped(
    sql: str,
    library_id: str | None,
    version: str | None,
    *,
    alias: str = "s.",
    id_col: str = "library_id",
    version_col: str = "library_version",
) -> tuple[str, list[object]]:
    clauses = ["1=1"]
    params: list[object] = []
    if library_id is not None:
        clauses.append(f"{alias}{id_col} = ?")
        params.append(library_id)
    if version is not None:
        clauses.append(f"{alias}{version_col} = ?")
        params.append(version)
    return f"{sql} WHERE {' AND '.join(clauses)}", params


def _row_to_library(row: sqlite3.Row) -> Library:
    return Library(
        id=row["id"],
        version=row["version"],
        title=row["title"],
        description=row["description"],
        source_repo=row["source_repo"],
        total_snippets=row["total_snippets"],
        trust_score=row["trust_score"],
        benchmark_score=row["benchmark_score"],
        embedding_model=row["embedding_model"],
        embedding_dims=row["embedding_dims"],
        ingested_at=row["ingested_at"],
    )


def _row_to_snippet(row: sqlite3.Row) -> Snippet:
    return Snippet(
        id=row["id"],
        library_id=row["library_id"],
        library_version=row["library_version"],
        title=row["title"],
        content=row["content"],
        source_path=row["source_path"],
        source_url=row["source_url"],
        language=row["language"],
        token_count=row["token_count"],
        breadcrumb=row["breadcrumb"],
        embedding=deserialize(row["embedding"]),
    )
