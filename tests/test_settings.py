"""Tests for configuration loading and the data models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from crafty.config.settings import Settings
from crafty.src.database.models import Chunk, MetadataFilter, RawChunk


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, GOOGLE_API_KEY="AIza-test-1234", **overrides)


class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in ("RAG_TOP_K", "RAG_SIMILARITY_THRESHOLD", "RAG_BATCH_SIZE", "EMBEDDING_DIMENSION", "RAG_AUTO_LOAD"):
            monkeypatch.delenv(name, raising=False)
        config = _settings()
        assert config.RAG_TOP_K == 5
        assert config.RAG_SIMILARITY_THRESHOLD == 0.7
        assert config.RAG_BATCH_SIZE == 10
        assert config.EMBEDDING_DIMENSION == 768
        assert config.RAG_AUTO_LOAD is False

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("RAG_TOP_K", "8")
        monkeypatch.setenv("CHUNK_STORE_BACKEND", "memory")
        config = _settings()
        assert config.RAG_TOP_K == 8
        assert config.CHUNK_STORE_BACKEND == "memory"

    def test_api_key_is_secret(self):
        config = _settings()
        assert "AIza-test-1234" not in repr(config)
        assert config.GOOGLE_API_KEY.get_secret_value() == "AIza-test-1234"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"RAG_TOP_K": 0},
            {"RAG_BATCH_SIZE": 0},
            {"EMBEDDING_DIMENSION": 0},
            {"RAG_ITEM_DELAY_MS": -1},
            {"RAG_INTER_BATCH_DELAY_MS": -5},
            {"RAG_SIMILARITY_THRESHOLD": 1.5},
            {"RAG_SIMILARITY_THRESHOLD": -0.1},
            {"EMBEDDING_BACKEND": "openai"},
            {"CHUNK_STORE_BACKEND": "redis"},
        ],
    )
    def test_invalid_values_rejected(self, overrides):
        with pytest.raises(ValidationError):
            _settings(**overrides)


class TestModels:
    def test_raw_chunk_maps_metadata(self):
        raw = RawChunk.model_validate({"id": "c1", "text": "hello", "metadata": {"modpack": "BetterMC", "doc_type": "faq"}})
        chunk = raw.to_chunk()
        assert chunk.external_id == "c1"
        assert chunk.modpack == "BetterMC"
        assert chunk.doc_type == "faq"
        assert chunk.surrogate_id is None
        assert not chunk.has_embedding

    def test_blank_text_rejected(self):
        with pytest.raises(ValidationError):
            Chunk(external_id="c1", text="  ")

    def test_empty_external_id_rejected(self):
        with pytest.raises(ValidationError):
            Chunk(external_id="", text="hello")

    def test_metadata_filter_field_must_be_known(self):
        assert MetadataFilter(field="modpack", value="BetterMC").field == "modpack"
        with pytest.raises(ValidationError):
            MetadataFilter(field="owner", value="x")
