"""Tests for the retrieval engine and the availability gate."""

from __future__ import annotations

import pytest

from conftest import DIM, FakeEmbedder, make_chunk

from crafty.src.core.availability import AvailabilityGate
from crafty.src.core.embedding_provider import EmbeddingProvider
from crafty.src.core.errors import StoreError
from crafty.src.core.retriever import RetrievalEngine
from crafty.src.database.models import MetadataFilter, RetrievalQuery
from crafty.src.database.vector_store import InMemoryChunkStore

QUERY = "Which mod adds dragons?"


class BrokenStore(InMemoryChunkStore):
    """Every read fails."""

    def count(self):
        raise StoreError("connection lost")

    def count_with_embedding(self):
        raise StoreError("connection lost")

    def find_top_k_by_similarity(self, query_vector, k, metadata_filter=None):
        raise StoreError("connection lost")


def _engine(store, embedder=None, **kwargs):
    embedder = embedder or FakeEmbedder(vectors={QUERY: [0.0, 1.0, 0.0, 0.0]})
    return RetrievalEngine(store, EmbeddingProvider(embedder, dimension=DIM), **kwargs)


@pytest.fixture
def three_chunks(store):
    store.save(make_chunk("chunk-1", embedding=[1.0, 0.0, 0.0, 0.0], modpack="Alpha"))
    store.save(make_chunk("chunk-2", embedding=[0.0, 1.0, 0.25, 0.0], modpack="Beta"))
    store.save(make_chunk("chunk-3", embedding=[0.0, 0.0, 1.0, 0.0], modpack="Alpha"))
    return store


class TestRetrieval:
    def test_empty_store(self, store):
        assert _engine(store, enabled=True).retrieve_relevant_chunks("x") == []
        assert not AvailabilityGate(store, enabled=True).is_rag_available()

    def test_closest_chunk_wins(self, three_chunks):
        results = _engine(three_chunks, enabled=True).retrieve_relevant_chunks(QUERY, top_k=1)
        assert [c.external_id for c in results] == ["chunk-2"]

    def test_default_top_k(self, memory_store):
        for i in range(8):
            memory_store.save(make_chunk(f"c{i}", embedding=[1.0, float(i), 0.0, 0.0]))
        engine = _engine(memory_store, enabled=True, default_top_k=5)
        assert len(engine.retrieve_relevant_chunks(QUERY)) == 5

    def test_zero_default_top_k_is_kept(self, three_chunks):
        engine = _engine(three_chunks, enabled=True, default_top_k=0)
        assert engine.default_top_k == 0
        assert engine.retrieve_relevant_chunks(QUERY) == []
        assert len(engine.retrieve_relevant_chunks(QUERY, top_k=2)) == 2

    def test_non_positive_top_k(self, three_chunks):
        engine = _engine(three_chunks, enabled=True)
        assert engine.retrieve_relevant_chunks(QUERY, top_k=0) == []
        assert engine.retrieve_relevant_chunks(QUERY, top_k=-3) == []

    def test_metadata_filter_never_leaks_other_values(self, three_chunks):
        results = _engine(three_chunks, enabled=True).retrieve_relevant_chunks_by_metadata(QUERY, "modpack", "Alpha", top_k=5)
        assert {c.external_id for c in results} == {"chunk-1", "chunk-3"}
        assert all(c.modpack == "Alpha" for c in results)

    def test_unknown_metadata_field_returns_empty(self, three_chunks):
        assert _engine(three_chunks, enabled=True).retrieve_relevant_chunks_by_metadata(QUERY, "author", "x") == []

    def test_threshold_mode(self, three_chunks):
        engine = _engine(three_chunks, enabled=True, similarity_threshold=0.9)
        assert [c.external_id for c in engine.retrieve_above_threshold(QUERY)] == ["chunk-2"]
        assert engine.retrieve_above_threshold(QUERY, threshold=0.999) == []

    def test_disabled_short_circuits(self, three_chunks):
        embedder = FakeEmbedder()
        engine = _engine(three_chunks, embedder=embedder, enabled=False)
        assert engine.retrieve_relevant_chunks(QUERY) == []
        assert embedder.calls == []

    def test_failed_query_embedding_returns_empty(self, three_chunks):
        engine = _engine(three_chunks, embedder=FakeEmbedder(failing={QUERY}), enabled=True)
        assert engine.retrieve_relevant_chunks(QUERY) == []

    def test_blank_query_returns_empty(self, three_chunks):
        assert _engine(three_chunks, enabled=True).retrieve_relevant_chunks("  ") == []

    def test_store_error_returns_empty(self):
        assert _engine(BrokenStore(dimension=DIM), enabled=True).retrieve_relevant_chunks(QUERY) == []


class TestRetrievalQuery:
    def test_plain_query(self, three_chunks):
        results = _engine(three_chunks, enabled=True).retrieve(RetrievalQuery(text=QUERY, top_k=2))
        assert [c.external_id for c in results][0] == "chunk-2"
        assert len(results) == 2

    def test_filtered_query(self, three_chunks):
        query = RetrievalQuery(text=QUERY, top_k=5, metadata_filter=MetadataFilter(field="modpack", value="Beta"))
        assert [c.external_id for c in _engine(three_chunks, enabled=True).retrieve(query)] == ["chunk-2"]

    def test_threshold_query(self, three_chunks):
        query = RetrievalQuery(text=QUERY, top_k=5, similarity_threshold=0.5, metadata_filter=MetadataFilter(field="modpack", value="Alpha"))
        assert _engine(three_chunks, enabled=True).retrieve(query) == []


class TestAvailabilityGate:
    def test_available_with_embedded_chunks(self, three_chunks):
        assert AvailabilityGate(three_chunks, enabled=True).is_rag_available()

    def test_unembedded_chunks_do_not_count(self, memory_store):
        memory_store.save(make_chunk("bare"))
        assert not AvailabilityGate(memory_store, enabled=True).is_rag_available()

    def test_disabled_is_unavailable(self, three_chunks):
        assert not AvailabilityGate(three_chunks, enabled=False).is_rag_available()

    def test_store_error_fails_closed(self):
        assert not AvailabilityGate(BrokenStore(dimension=DIM), enabled=True).is_rag_available()

    def test_stats(self, memory_store):
        memory_store.save(make_chunk("a", embedding=[1.0, 0.0, 0.0, 0.0]))
        memory_store.save(make_chunk("b"))
        stats = AvailabilityGate(memory_store, enabled=True, default_top_k=3, similarity_threshold=0.6).get_stats()
        assert stats.enabled
        assert stats.total_chunks == 2
        assert stats.chunks_with_embedding == 1
        assert stats.default_top_k == 3
        assert stats.similarity_threshold == 0.6

    def test_stats_keep_explicit_zero_top_k(self, memory_store):
        assert AvailabilityGate(memory_store, enabled=True, default_top_k=0).get_stats().default_top_k == 0

    def test_stats_zero_on_store_error(self):
        stats = AvailabilityGate(BrokenStore(dimension=DIM), enabled=True).get_stats()
        assert stats.total_chunks == 0
        assert stats.chunks_with_embedding == 0
