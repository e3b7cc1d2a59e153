"""Tests for the embedding provider and its result type."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from conftest import DIM, FakeEmbedder

from crafty.src.core.embedding_provider import EmbeddingProvider, EmbeddingResult, EmbeddingStatus, build_embedder


class TestEmbeddingProvider:
    def test_ok_result_carries_vector(self, provider):
        result = provider.embed("How do I tame a dragon?")
        assert result.is_ok
        assert result.status is EmbeddingStatus.OK
        assert result.vector == [1.0, 1.0, 1.0, 1.0]

    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    def test_blank_text_never_reaches_backend(self, provider, fake_embedder, text):
        result = provider.embed(text)
        assert result.status is EmbeddingStatus.NO_EMBEDDING
        assert result.vector is None
        assert fake_embedder.calls == []

    def test_long_text_is_truncated(self, fake_embedder):
        provider = EmbeddingProvider(fake_embedder, dimension=DIM, max_chars=10_000)
        provider.embed("x" * 10_050)
        assert len(fake_embedder.calls[0]) == 10_000

    def test_text_at_limit_is_untouched(self, fake_embedder):
        provider = EmbeddingProvider(fake_embedder, dimension=DIM, max_chars=10_000)
        provider.embed("y" * 10_000)
        assert fake_embedder.calls[0] == "y" * 10_000

    def test_backend_exception_becomes_fault(self):
        provider = EmbeddingProvider(FakeEmbedder(failing={"boom"}), dimension=DIM)
        result = provider.embed("boom")
        assert result.status is EmbeddingStatus.FAULT
        assert "RuntimeError" in result.detail
        assert result.vector is None

    def test_dimension_mismatch_is_fault(self):
        provider = EmbeddingProvider(FakeEmbedder(default=[1.0, 2.0]), dimension=DIM)
        result = provider.embed("short vector")
        assert result.status is EmbeddingStatus.FAULT
        assert "dimensions" in result.detail

    def test_empty_vector_is_fault(self):
        provider = EmbeddingProvider(FakeEmbedder(default=[]), dimension=DIM)
        assert provider.embed("nothing back").status is EmbeddingStatus.FAULT

    def test_unparseable_vector_is_fault(self):
        provider = EmbeddingProvider(FakeEmbedder(default=["a", "b", "c", "d"]), dimension=DIM)
        assert provider.embed("garbage").status is EmbeddingStatus.FAULT

    def test_embed_many_preserves_order(self):
        embedder = FakeEmbedder(vectors={"one": [1, 0, 0, 0], "two": [0, 1, 0, 0]})
        provider = EmbeddingProvider(embedder, dimension=DIM)
        results = provider.embed_many(["one", "", "two"])
        assert [r.status for r in results] == [EmbeddingStatus.OK, EmbeddingStatus.NO_EMBEDDING, EmbeddingStatus.OK]
        assert results[0].vector == [1.0, 0.0, 0.0, 0.0]
        assert results[2].vector == [0.0, 1.0, 0.0, 0.0]


class TestEmbeddingResult:
    def test_constructors(self):
        assert EmbeddingResult.ok([0.1]).is_ok
        assert not EmbeddingResult.no_embedding("blank").is_ok
        fault = EmbeddingResult.fault("timeout")
        assert fault.status is EmbeddingStatus.FAULT
        assert fault.detail == "timeout"


class TestBackends:
    def test_unknown_backend_raises(self):
        with pytest.raises(ValueError):
            build_embedder("openai")

    def test_genai_embedder_requests_configured_dimension(self):
        pytest.importorskip("google.genai")
        from crafty.src.core.embedding_provider import GenAIEmbedder

        captured: dict = {}

        def embed_content(model, contents, config):
            captured.update(model=model, contents=contents, config=config)
            return SimpleNamespace(embeddings=[SimpleNamespace(values=[0.1, 0.2, 0.3, 0.4])])

        client = SimpleNamespace(models=SimpleNamespace(embed_content=embed_content))
        embedder = GenAIEmbedder(client=client, model="gemini-embedding-001", dimension=DIM)

        assert embedder.embed_query("hello") == [0.1, 0.2, 0.3, 0.4]
        assert captured["model"] == "gemini-embedding-001"
        assert captured["contents"] == "hello"
        assert captured["config"].output_dimensionality == DIM

    def test_genai_embedder_empty_response_is_fault(self):
        pytest.importorskip("google.genai")
        from crafty.src.core.embedding_provider import GenAIEmbedder

        client = SimpleNamespace(models=SimpleNamespace(embed_content=lambda **_: SimpleNamespace(embeddings=[])))
        provider = EmbeddingProvider(GenAIEmbedder(client=client, dimension=DIM), dimension=DIM)
        assert provider.embed("hello").status is EmbeddingStatus.FAULT

    def test_langchain_embedder_requests_configured_dimension(self):
        from crafty.src.core.embedding_provider import LangChainEmbedder

        captured: dict = {}

        class Embeddings:
            def embed_query(self, text, output_dimensionality=None):
                captured.update(text=text, output_dimensionality=output_dimensionality)
                return [0.5] * output_dimensionality

        provider = EmbeddingProvider(LangChainEmbedder(Embeddings(), dimension=DIM), dimension=DIM)
        result = provider.embed("hello")

        assert result.is_ok
        assert captured == {"text": "hello", "output_dimensionality": DIM}

    def test_build_langchain_backend_matches_store_dimension(self, monkeypatch):
        pytest.importorskip("langchain_google_genai")
        from langchain_google_genai import GoogleGenerativeAIEmbeddings

        from crafty.config.settings import settings
        from crafty.src.core.embedding_provider import LangChainEmbedder

        def embed_query(self, text, task_type=None, title=None, output_dimensionality=None):
            return [0.1] * (output_dimensionality or 3072)

        monkeypatch.setattr(GoogleGenerativeAIEmbeddings, "embed_query", embed_query)
        embedder = build_embedder("langchain")

        assert isinstance(embedder, LangChainEmbedder)
        assert embedder.dimension == settings.EMBEDDING_DIMENSION
        assert EmbeddingProvider(embedder).embed("hello").is_ok


class TestConstruction:
    @pytest.mark.parametrize("kwargs", [{"dimension": 0}, {"max_chars": 0}])
    def test_zero_sizes_are_rejected_not_replaced(self, kwargs):
        with pytest.raises(ValueError):
            EmbeddingProvider(FakeEmbedder(), **{"dimension": DIM, "max_chars": 100, **kwargs})
