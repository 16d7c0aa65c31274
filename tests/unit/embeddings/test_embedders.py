"""Tests for the embedding providers and their factory."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import litellm
import pytest

from libcontext.config import EmbeddingSettings
from libcontext.embeddings.base import Embedder
from libcontext.embeddings.factory import create_embedder
from libcontext.embeddings.local import LocalEmbedder
from libcontext.embeddings.openai import OpenAIEmbedder
from libcontext.errors import ConfigError, EmbeddingAuthenticationError, EmbeddingError


class RecordingEmbedder(Embedder):
    def __init__(self, max_tokens=256):
        super().__init__("rec", 2, max_tokens)
        self.seen = []

    def _embed_many(self, texts):
        self.seen.append(list(texts))
        return [[float(len(t)), 1.0] for t in texts]


class FakeModel:
    def __init__(self, dims=384):
        self.dims = dims
        self.calls = 0

    def encode(self, texts, **kwargs):
        self.calls += 1
        return [[0.5] * self.dims for _ in texts]


def _response(vectors):
    return MagicMock(data=[{"embedding": v, "index": i} for i, v in enumerate(vectors)])


# ------------------------------------------------------------------
# Base behaviour
# ------------------------------------------------------------------


def test_blank_input_is_none_and_never_sent():
    embedder = RecordingEmbedder()
    assert embedder.embed_batch(["", "abc", "   ", "de"]) == [None, [3.0, 1.0], None, [2.0, 1.0]]
    assert embedder.seen == [["abc", "de"]]


def test_all_blank_skips_backend():
    embedder = RecordingEmbedder()
    assert embedder.embed_batch(["", " \n"]) == [None, None]
    assert embedder.embed("") is None
    assert embedder.seen == []


def test_long_text_truncated_to_token_budget():
    embedder = RecordingEmbedder(max_tokens=2)
    assert embedder.embed("x" * 20) == [8.0, 1.0]


def test_invalid_dimensions_rejected():
    with pytest.raises(ValueError):
        LocalEmbedder(dimensions=0)


# ------------------------------------------------------------------
# LocalEmbedder
# ------------------------------------------------------------------


def test_local_model_loaded_lazily_once():
    model = FakeModel()
    with patch.object(LocalEmbedder, "_load", return_value=model) as load:
        embedder = LocalEmbedder()
        assert not embedder.is_loaded()
        vectors = embedder.embed_batch(["a", "b"])
        embedder.embed("c")

    assert load.call_count == 1
    assert embedder.is_loaded()
    assert len(vectors) == 2
    assert all(len(v) == 384 for v in vectors)
    assert model.calls == 2


def test_local_wrong_dimension_raises():
    with patch.object(LocalEmbedder, "_load", return_value=FakeModel(dims=10)):
        embedder = LocalEmbedder()
        with pytest.raises(EmbeddingError, match="Unexpected embedding"):
            embedder.embed("text")


def test_local_load_failure_wrapped_and_retried():
    with patch.object(LocalEmbedder, "_load", side_effect=[OSError("offline"), FakeModel()]):
        embedder = LocalEmbedder()
        with pytest.raises(EmbeddingError, match="offline"):
            embedder.embed("text")
        assert embedder.embed("text") is not None


# ------------------------------------------------------------------
# OpenAIEmbedder
# ------------------------------------------------------------------


def test_openai_requires_key():
    with pytest.raises(ConfigError, match="EMBEDDING_API_KEY"):
        OpenAIEmbedder(api_key=None)


def test_openai_request_shape():
    embedder = OpenAIEmbedder(api_key="sk-test", dimensions=2)
    with patch("libcontext.embeddings.openai.litellm.embedding", return_value=_response([[1, 2], [3, 4]])) as call:
        assert embedder.embed_batch(["a", "b"]) == [[1.0, 2.0], [3.0, 4.0]]

    kwargs = call.call_args.kwargs
    assert kwargs["model"] == "openai/text-embedding-3-small"
    assert kwargs["input"] == ["a", "b"]
    assert kwargs["api_key"] == "sk-test"
    assert "api_base" not in kwargs


def test_openai_api_url_override_passed_as_base():
    embedder = OpenAIEmbedder(api_key="k", dimensions=2, api_url="http://proxy/v1")
    with patch("libcontext.embeddings.openai.litellm.embedding", return_value=_response([[1, 1]])) as call:
        embedder.embed("a")
    assert call.call_args.kwargs["api_base"] == "http://proxy/v1"


def test_openai_response_reordered_by_index():
    embedder = OpenAIEmbedder(api_key="k", dimensions=1)
    response = MagicMock(data=[{"embedding": [2.0], "index": 1}, {"embedding": [1.0], "index": 0}])
    with patch("libcontext.embeddings.openai.litellm.embedding", return_value=response):
        assert embedder.embed_batch(["a", "b"]) == [[1.0], [2.0]]


def test_openai_failed_sub_batch_yields_none():
    embedder = OpenAIEmbedder(api_key="k", dimensions=1, batch_size=2)
    responses = [_response([[1.0], [2.0]]), RuntimeError("502"), _response([[5.0]])]
    with patch("libcontext.embeddings.openai.litellm.embedding", side_effect=responses):
        assert embedder.embed_batch(["a", "b", "c", "d", "e"]) == [[1.0], [2.0], None, None, [5.0]]


def test_openai_wrong_dimension_discarded():
    embedder = OpenAIEmbedder(api_key="k", dimensions=3)
    with patch("libcontext.embeddings.openai.litellm.embedding", return_value=_response([[1.0, 2.0]])):
        assert embedder.embed("a") is None


def test_openai_auth_error_aborts():
    embedder = OpenAIEmbedder(api_key="bad", dimensions=1)
    error = litellm.AuthenticationError(message="invalid key", llm_provider="openai", model="m")
    with patch("libcontext.embeddings.openai.litellm.embedding", side_effect=error):
        with pytest.raises(EmbeddingAuthenticationError):
            embedder.embed_batch(["a"])


# ------------------------------------------------------------------
# Factory
# ------------------------------------------------------------------


def test_factory_local_default():
    embedder = create_embedder(EmbeddingSettings())
    assert isinstance(embedder, LocalEmbedder)
    assert embedder.dimensions == 384
    assert not embedder.is_loaded()


def test_factory_openai_with_model():
    embedder = create_embedder(
        EmbeddingSettings(provider="openai", api_key="k", model="text-embedding-3-large")
    )
    assert isinstance(embedder, OpenAIEmbedder)
    assert embedder.model_name == "text-embedding-3-large"


def test_factory_openai_without_key():
    with pytest.raises(ConfigError):
        create_embedder(EmbeddingSettings(provider="openai"))


def test_factory_unknown_provider():
    with pytest.raises(ConfigError, match="Valid providers"):
        create_embedder(EmbeddingSettings(provider="bogus"))
