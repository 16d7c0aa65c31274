"""Tests for the Repository pattern."""

from __future__ import annotations

import sqlite3

import pytest

from libcontext.db.models import Library, Snippet
from libcontext.db.repository import Repository, build_fts_query
from libcontext.errors import EmbeddingDimensionError


@pytest.fixture
def repo(tmp_db):
    return Repository(tmp_db)


def _library(id="/facebook/react", version="latest", title="react", **kw):
    return Library(id=id, version=version, title=title, **kw)


def _snippet(title="Intro", content="hello world", library_id="/facebook/react",
             version="latest", embedding=None, source_path="README.md"):
    return Snippet(
        library_id=library_id,
        library_version=version,
        title=title,
        content=content,
        source_path=source_path,
        token_count=len(content) // 4 + 1,
        embedding=embedding,
    )


def _fts_count(conn, term: str) -> int:
    return conn.execute(
        "SELECT COUNT(*) FROM snippets_fts WHERE snippets_fts MATCH ?", (f'"{term}"',)
    ).fetchone()[0]


# ------------------------------------------------------------------
# Libraries
# ------------------------------------------------------------------


def test_upsert_and_get_library(repo):
    repo.upsert_library(_library(description="UI library"))
    lib = repo.get_library("/facebook/react")
    assert lib is not None
    assert lib.title == "react"
    assert lib.description == "UI library"
    assert lib.trust_score == 5.0
    assert lib.ingested_at


def test_get_library_unknown_version(repo):
    repo.upsert_library(_library())
    assert repo.get_library("/facebook/react", "18.2.0") is None


def test_upsert_library_replaces_fields(repo):
    repo.upsert_library(_library(title="old"))
    repo.upsert_library(_library(title="new"))
    libs = repo.list_libraries()
    assert len(libs) == 1
    assert libs[0].title == "new"


def test_list_libraries_ordered(repo):
    repo.upsert_library(_library(id="/vercel/next.js", title="next"))
    repo.upsert_library(_library(version="18.2.0"))
    repo.upsert_library(_library())
    keys = [(lib.id, lib.version) for lib in repo.list_libraries()]
    assert keys == [
        ("/facebook/react", "18.2.0"),
        ("/facebook/react", "latest"),
        ("/vercel/next.js", "latest"),
    ]


def test_search_libraries_orders_by_trust_then_snippets(repo):
    repo.upsert_library(_library(id="/a/react-router", title="react-router", trust_score=4.0))
    repo.upsert_library(_library(id="/b/react-dom", title="react-dom", trust_score=8.0, total_snippets=1))
    repo.upsert_library(_library(id="/c/preact", title="preact", trust_score=8.0, total_snippets=50))
    repo.upsert_library(_library(id="/d/vue", title="vue"))
    ids = [lib.id for lib in repo.search_libraries("react")]
    assert ids == ["/c/preact", "/b/react-dom", "/a/react-router"]


def test_set_total_snippets(repo):
    repo.upsert_library(_library())
    repo.set_total_snippets("/facebook/react", "latest", 42)
    assert repo.get_library("/facebook/react").total_snippets == 42


# ------------------------------------------------------------------
# Snippets + FTS sync
# ------------------------------------------------------------------


def test_add_snippet_returns_id_and_round_trips(repo):
    repo.upsert_library(_library())
    snippet = _snippet(embedding=[0.25, 0.5])
    snippet_id = repo.add_snippet(snippet)
    assert snippet.id == snippet_id

    stored = repo.get_snippet(snippet_id)
    assert stored.title == "Intro"
    assert stored.source_path == "README.md"
    assert stored.embedding == pytest.approx([0.25, 0.5])


def test_snippet_requires_library(repo):
    with pytest.raises(sqlite3.IntegrityError):
        repo.add_snippet(_snippet(library_id="/missing/lib"))


def test_insert_indexes_snippet_in_fts(repo, tmp_db):
    repo.upsert_library(_library())
    repo.add_snippet(_snippet(content="the reconciler walks fibers"))
    assert _fts_count(tmp_db, "reconciler") == 1


def test_update_reindexes_fts(repo, tmp_db):
    repo.upsert_library(_library())
    snippet_id = repo.add_snippet(_snippet(content="alpha"))
    tmp_db.execute("UPDATE snippets SET content = 'omega' WHERE id = ?", (snippet_id,))
    tmp_db.commit()
    assert _fts_count(tmp_db, "alpha") == 0
    assert _fts_count(tmp_db, "omega") == 1


def test_delete_snippets_removes_postings(repo, tmp_db):
    repo.upsert_library(_library())
    repo.add_snippet(_snippet(content="ephemeral words"))
    assert repo.delete_snippets("/facebook/react") == 1
    assert repo.count_snippets("/facebook/react") == 0
    assert _fts_count(tmp_db, "ephemeral") == 0


def test_count_snippets_scoped(repo):
    repo.upsert_library(_library())
    repo.upsert_library(_library(version="1.0"))
    repo.add_snippet(_snippet())
    repo.add_snippet(_snippet(version="1.0"))
    repo.add_snippet(_snippet(version="1.0"))
    assert repo.count_snippets() == 3
    assert repo.count_snippets("/facebook/react", "1.0") == 2


# ------------------------------------------------------------------
# Generations
# ------------------------------------------------------------------


def test_replace_generation_sets_total(repo):
    written = repo.replace_generation(_library(), [_snippet(), _snippet(title="Two")])
    assert written == 2
    assert repo.get_library("/facebook/react").total_snippets == 2


def test_replace_generation_is_idempotent(repo, tmp_db):
    snippets = lambda: [_snippet(content="useState returns state"), _snippet(title="B", content="b")]  # noqa: E731
    repo.replace_generation(_library(), snippets())
    first = [(s.title, s.content) for s in repo.list_snippets("/facebook/react")]
    repo.replace_generation(_library(), snippets())
    second = [(s.title, s.content) for s in repo.list_snippets("/facebook/react")]

    assert first == second
    assert repo.count_snippets() == 2
    assert _fts_count(tmp_db, "usestate") == 1


def test_replace_generation_keeps_other_versions(repo):
    repo.replace_generation(_library(version="1.0"), [_snippet(version="1.0")])
    repo.replace_generation(_library(), [_snippet(), _snippet()])
    repo.replace_generation(_library(), [_snippet()])
    assert repo.count_snippets("/facebook/react", "1.0") == 1
    assert repo.count_snippets("/facebook/react", "latest") == 1


def test_replace_generation_failure_keeps_previous(repo, tmp_db):
    repo.replace_generation(_library(), [_snippet(content="original")])
    bad = _snippet()
    bad.title = None  # NOT NULL violation mid-transaction

    with pytest.raises(sqlite3.IntegrityError):
        repo.replace_generation(_library(), [_snippet(content="replacement"), bad])

    contents = [s.content for s in repo.list_snippets("/facebook/react")]
    assert contents == ["original"]
    assert repo.get_library("/facebook/react").total_snippets == 1
    assert _fts_count(tmp_db, "replacement") == 0


def test_replace_generation_rejects_mixed_dimensions(repo):
    with pytest.raises(EmbeddingDimensionError):
        repo.replace_generation(
            _library(), [_snippet(embedding=[1.0, 0.0]), _snippet(embedding=[1.0, 0.0, 0.0])]
        )


def test_replace_generation_records_dimensions(repo):
    repo.replace_generation(_library(embedding_model="m"), [_snippet(embedding=[1.0, 0.0, 0.0])])
    lib = repo.get_library("/facebook/react")
    assert lib.embedding_dims == 3
    assert lib.embedding_model == "m"


# ------------------------------------------------------------------
# Removal
# ------------------------------------------------------------------


def test_remove_library_leaves_no_orphans(repo, tmp_db):
    repo.replace_generation(_library(), [_snippet(content="removable text")])
    repo.replace_generation(_library(version="1.0"), [_snippet(version="1.0")])

    assert repo.remove_library("/facebook/react") == 2
    assert repo.list_libraries() == []
    assert repo.count_snippets() == 0
    assert tmp_db.execute("SELECT COUNT(*) FROM snippets_fts").fetchone()[0] == 0


def test_remove_single_version(repo):
    repo.replace_generation(_library(), [_snippet()])
    repo.replace_generation(_library(version="1.0"), [_snippet(version="1.0")])

    assert repo.remove_library("/facebook/react", "1.0") == 1
    assert [lib.version for lib in repo.list_libraries()] == ["latest"]
    assert repo.count_snippets("/facebook/react", "latest") == 1


def test_remove_unknown_library_returns_zero(repo):
    assert repo.remove_library("/nobody/nothing") == 0


def test_cascade_removes_snippets(repo, tmp_db):
    repo.replace_generation(_library(), [_snippet()])
    tmp_db.execute("DELETE FROM libraries WHERE id = '/facebook/react'")
    tmp_db.commit()
    assert repo.count_snippets() == 0


# ------------------------------------------------------------------
# Embeddings
# ------------------------------------------------------------------


def test_list_snippets_for_embedding_only_missing(repo):
    repo.replace_generation(_library(), [_snippet(embedding=[1.0, 0.0]), _snippet(title="B")])
    pending = repo.list_snippets_for_embedding()
    assert [s.title for s in pending] == ["B"]
    assert len(repo.list_snippets_for_embedding(force=True)) == 2


def test_set_embeddings_records_model_and_dims(repo):
    repo.replace_generation(_library(), [_snippet(), _snippet(title="B")])
    ids = [s.id for s in repo.list_snippets("/facebook/react")]

    updated = repo.set_embeddings([(ids[0], [0.6, 0.8]), (ids[1], None)], model="local-model")

    assert updated == 1
    lib = repo.get_library("/facebook/react")
    assert lib.embedding_dims == 2
    assert lib.embedding_model == "local-model"
    assert repo.get_snippet(ids[1]).embedding is None


def test_set_embeddings_dimension_mismatch_rolls_back(repo):
    repo.replace_generation(_library(), [_snippet(embedding=[1.0, 0.0]), _snippet(title="B")])
    pending = repo.list_snippets_for_embedding()

    with pytest.raises(EmbeddingDimensionError):
        repo.set_embeddings([(pending[0].id, [1.0, 0.0, 0.0])])
    assert repo.get_snippet(pending[0].id).embedding is None


def test_clear_embeddings_resets_library(repo):
    repo.replace_generation(_library(), [_snippet(embedding=[1.0, 0.0])])
    assert repo.clear_embeddings("/facebook/react") == 1
    lib = repo.get_library("/facebook/react")
    assert lib.embedding_dims is None
    assert lib.embedding_model is None
    assert len(repo.list_snippets_for_embedding()) == 1


# ------------------------------------------------------------------
# Search
# ------------------------------------------------------------------


def test_build_fts_query_quotes_terms():
    assert build_fts_query("useState hook") == '"useState" OR "hook"'
    assert build_fts_query("a-b (c)") == '"a" OR "b" OR "c"'
    assert build_fts_query("  ?! ") == ""


def test_search_keyword_best_first(repo):
    repo.replace_generation(
        _library(),
        [
            _snippet(title="Effects", content="useEffect runs after render"),
            _snippet(title="State", content="The useState hook. useState returns a state hook pair."),
            _snippet(title="Other", content="nothing relevant here"),
        ],
    )
    hits = repo.search_keyword("useState hook", "/facebook/react")
    assert [s.title for s, _ in hits] == ["State"]
    assert hits[0][1] > 0


def test_search_keyword_scoped_to_version(repo):
    repo.replace_generation(_library(), [_snippet(content="portal api")])
    repo.replace_generation(_library(version="1.0"), [_snippet(version="1.0", content="portal api")])
    hits = repo.search_keyword("portal", "/facebook/react", "1.0")
    assert len(hits) == 1
    assert hits[0][0].library_version == "1.0"


def test_search_keyword_punctuation_only(repo):
    repo.replace_generation(_library(), [_snippet()])
    assert repo.search_keyword("()!", "/facebook/react") == []


def test_search_vector_filters_and_orders(repo):
    repo.replace_generation(
        _library(),
        [
            _snippet(title="same", embedding=[1.0, 0.0, 0.0]),
            _snippet(title="orthogonal-ish", embedding=[0.2, 1.0, 0.0]),
            _snippet(title="opposite", embedding=[-1.0, 0.0, 0.0]),
            _snippet(title="none"),
        ],
    )
    repo.replace_generation(
        _library(id="/other/lib"),
        [_snippet(title="foreign", library_id="/other/lib", embedding=[1.0, 0.0, 0.0])],
    )

    hits = repo.search_vector([1.0, 0.0, 0.0], "/facebook/react")

    assert [s.title for s, _ in hits] == ["same", "orthogonal-ish"]
    assert hits[0][1] == pytest.approx(1.0, abs=1e-6)
    assert 0 < hits[1][1] < hits[0][1]


def test_search_vector_ignores_other_dimensions(repo):
    repo.replace_generation(_library(), [_snippet(embedding=[1.0, 0.0])])
    assert repo.search_vector([1.0, 0.0, 0.0], "/facebook/react") == []


def test_search_vector_limit(repo):
    repo.replace_generation(
        _library(),
        [_snippet(title=str(i), embedding=[1.0, 0.1 * i]) for i in range(5)],
    )
    hits = repo.search_vector([1.0, 0.0], "/facebook/react", limit=2)
    assert [s.title for s, _ in hits] == ["0", "1"]
