"""
Crafty - Data Models
=====================
Pydantic models shared by the chunk store, the ingestion pipeline and
the retrieval side.

``RawChunk``
    One record of the bulk source (``data.json``)::

        {"id": "create-001", "text": "...",
         "metadata": {"modpack": "BetterMC", "mod_name": "Create",
                      "mod_version": "0.5.1", "category": "machines",
                      "doc_type": "guide", "language": "en"}}

``Chunk``
    The persisted unit of knowledge.  Metadata is flattened onto the
    chunk so that every field can be filtered on directly.
"""

from __future__ import annotations

from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ChunkMetadata(BaseModel):
    """Optional labels attached to a source record.  All fields nullable."""

    model_config = ConfigDict(extra="ignore")

    modpack: str | None = None
    mod_name: str | None = None
    mod_version: str | None = None
    category: str | None = None
    doc_type: str | None = None
    language: str | None = None


class RawChunk(BaseModel):
    """A chunk definition as read from the bulk source."""

    model_config = ConfigDict(extra="ignore")

    id: str
    text: str
    metadata: ChunkMetadata | None = None

    def to_chunk(self) -> "Chunk":
        """Map the definition onto a new, not yet embedded ``Chunk``."""
        meta = self.metadata or ChunkMetadata()
        return Chunk(external_id=self.id, text=self.text, **meta.model_dump())


class Chunk(BaseModel):
    """A knowledge chunk, optionally carrying its embedding."""

    METADATA_FIELDS: ClassVar[tuple[str, ...]] = ("modpack", "mod_name", "mod_version", "category", "doc_type", "language")

    surrogate_id: int | None = None
    external_id: str = Field(min_length=1)
    text: str
    modpack: str | None = None
    mod_name: str | None = None
    mod_version: str | None = None
    category: str | None = None
    doc_type: str | None = None
    language: str | None = None
    embedding: list[float] | None = None

    @field_validator("text")
    @classmethod
    def _text_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("chunk text must not be empty")
        return v

    @property
    def has_embedding(self) -> bool:
        return self.embedding is not None


class MetadataFilter(BaseModel):
    """Exact match on a single metadata field, e.g. ``modpack = 'BetterMC'``."""

    field: str
    value: str

    @field_validator("field")
    @classmethod
    def _known_field(cls, v: str) -> str:
        if v not in Chunk.METADATA_FIELDS:
            raise ValueError(f"unknown metadata field {v!r}; expected one of {Chunk.METADATA_FIELDS}")
        return v


class RetrievalQuery(BaseModel):
    """A single retrieval request.  ``None`` means "use the configured default"."""

    text: str
    top_k: int | None = None
    metadata_filter: MetadataFilter | None = None
    similarity_threshold: float | None = None


class RagStats(BaseModel):
    """Snapshot of the RAG configuration and store counts."""

    enabled: bool
    total_chunks: int
    chunks_with_embedding: int
    default_top_k: int
    similarity_threshold: float


class LoadReport(BaseModel):
    """Outcome of one ingestion run."""

    processed: int = 0
    failed: int = 0
    total_in_store: int = 0
    total_with_embedding: int = 0
    skipped: bool = False
    elapsed_seconds: float = 0.0
