"""
Shared test fixtures.

Every test runs against a small embedding dimension (``DIM``) and a fake
embedding backend, so no Gemini key or network access is needed.
LanceDB tests get a fresh database under ``tmp_path``.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Callable, Iterable, Sequence

# Settings are loaded at import time and GOOGLE_API_KEY is required.
os.environ.setdefault("GOOGLE_API_KEY", "test-key")

import pytest

from crafty.src.core.embedding_provider import EmbeddingProvider
from crafty.src.database.models import Chunk

DIM = 4


class FakeEmbedder:
    """Maps known texts to fixed vectors and everything else to ``default``."""

    def __init__(self, vectors: dict[str, Sequence[float]] | None = None, default: Sequence[float] = (1.0, 1.0, 1.0, 1.0), failing: Iterable[str] = ()) -> None:
        self.vectors = dict(vectors or {})
        self.default = list(default)
        self.failing = set(failing)
        self.calls: list[str] = []

    def embed_query(self, text: str) -> list[float]:
        self.calls.append(text)
        if text in self.failing:
            raise RuntimeError("quota exceeded")
        return list(self.vectors.get(text, self.default))


def make_chunk(external_id: str, text: str | None = None, embedding: Sequence[float] | None = None, **metadata: str) -> Chunk:
    return Chunk(external_id=external_id, text=text or f"text of {external_id}", embedding=list(embedding) if embedding is not None else None, **metadata)


def raw_record(index: int, **metadata: str) -> dict:
    return {"id": f"chunk-{index:03d}", "text": f"Knowledge chunk number {index}", "metadata": metadata or {"modpack": "BetterMC"}}


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def provider(fake_embedder: FakeEmbedder) -> EmbeddingProvider:
    return EmbeddingProvider(fake_embedder, dimension=DIM, max_chars=10_000)


@pytest.fixture
def memory_store():
    from crafty.src.database.vector_store import InMemoryChunkStore

    return InMemoryChunkStore(dimension=DIM)


@pytest.fixture
def lance_store(tmp_path: Path):
    pytest.importorskip("lancedb")
    from crafty.src.database.vector_store import LanceChunkStore

    return LanceChunkStore(db_path=tmp_path / "lancedb", table_name="test_chunks", dimension=DIM)


@pytest.fixture(params=["memory", "lance"])
def store(request):
    """Each store variant in turn."""
    return request.getfixturevalue(f"{request.param}_store")


@pytest.fixture
def write_source(tmp_path: Path) -> Callable[[list[dict]], Path]:
    """Write records as a JSON chunk source and return its path."""

    def _write(records: list[dict], name: str = "data.json") -> Path:
        path = tmp_path / name
        path.write_text(json.dumps(records), encoding="utf-8")
        return path

    return _write
