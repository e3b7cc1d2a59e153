"""
Crafty - Availability Gate
===========================
Answers "can retrieval contribute anything right now?" and reports
store statistics.  Both checks fail closed: a store error means RAG is
unavailable and all counts are zero.
"""

from __future__ import annotations

from crafty.config.settings import settings
from crafty.src.database.models import RagStats
from crafty.src.database.vector_store import ChunkStore
from crafty.src.utils.logger import get_logger

logger = get_logger(__name__)


class AvailabilityGate:
    """Read-only view over a ``ChunkStore`` and the RAG configuration."""

    __slots__ = ("_store", "enabled", "default_top_k", "similarity_threshold")

    def __init__(self, store: ChunkStore, enabled: bool | None = None, default_top_k: int | None = None, similarity_threshold: float | None = None) -> None:
        self._store = store
        self.enabled: bool = settings.RAG_ENABLED if enabled is None else enabled
        self.default_top_k: int = settings.RAG_TOP_K if default_top_k is None else default_top_k
        self.similarity_threshold: float = settings.RAG_SIMILARITY_THRESHOLD if similarity_threshold is None else similarity_threshold


    def is_rag_available(self) -> bool:
        """True when RAG is enabled and at least one chunk has an embedding."""
        if not self.enabled:
            return False
        try:
            return self._store.count_with_embedding() > 0
        except Exception as exc:
            logger.error("Error checking RAG availability: %s", exc)
            return False


    def get_stats(self) -> RagStats:
        try:
            total = self._store.count()
            embedded = self._store.count_with_embedding()
        except Exception as exc:
            logger.error("Error reading RAG stats: %s", exc)
            total = embedded = 0

        return RagStats(
            enabled=self.enabled,
            total_chunks=total,
            chunks_with_embedding=embedded,
            default_top_k=self.default_top_k,
            similarity_threshold=self.similarity_threshold,
        )
