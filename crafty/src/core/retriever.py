"""
Crafty - Retrieval Engine
==========================
Embeds a user query and runs nearest-neighbour search against the
``ChunkStore``.

Retrieval never fails its caller.  RAG disabled by configuration, an
embedding that could not be produced, or any store error all degrade
to an empty list, which downstream means "answer without context".

The engine holds no mutable state and is safe to share between
concurrent requests.

Usage:
    retriever = RetrievalEngine(store, provider)
    chunks = retriever.retrieve_relevant_chunks("How do I tame a dragon?", top_k=3)
"""

from __future__ import annotations

from typing import Callable, Sequence

from crafty.config.settings import settings
from crafty.src.core.embedding_provider import EmbeddingProvider
from crafty.src.database.models import Chunk, MetadataFilter, RetrievalQuery
from crafty.src.database.vector_store import ChunkStore
from crafty.src.utils.logger import get_logger
from crafty.src.utils.text_utils import text_preview

logger = get_logger(__name__)

StoreQuery = Callable[[Sequence[float]], list[Chunk]]


class RetrievalEngine:
    """
    Query-side RAG component.

    Parameters
    ----------
    store
        The ``ChunkStore`` to search.
    provider
        ``EmbeddingProvider`` used for query text.
    enabled
        Master switch.  Defaults to ``settings.RAG_ENABLED``.
    default_top_k
        Fan-out when the caller passes none.  Defaults to ``settings.RAG_TOP_K``.
    similarity_threshold
        Default minimum similarity for threshold mode.
    """

    __slots__ = ("_store", "_provider", "enabled", "default_top_k", "similarity_threshold")

    def __init__(self, store: ChunkStore, provider: EmbeddingProvider, enabled: bool | None = None, default_top_k: int | None = None, similarity_threshold: float | None = None) -> None:
        self._store = store
        self._provider = provider
        self.enabled: bool = settings.RAG_ENABLED if enabled is None else enabled
        self.default_top_k: int = settings.RAG_TOP_K if default_top_k is None else default_top_k
        self.similarity_threshold: float = settings.RAG_SIMILARITY_THRESHOLD if similarity_threshold is None else similarity_threshold

    # ══════════════════════════════════════════════════════════════════
    #  PUBLIC API
    # ══════════════════════════════════════════════════════════════════

    def retrieve_relevant_chunks(self, query: str, top_k: int | None = None) -> list[Chunk]:
        """Top-k chunks most similar to *query*, best first."""
        k = self._resolve_k(top_k)
        return self._search(query, k, "top-k", lambda vector: self._store.find_top_k_by_similarity(vector, k))


    def retrieve_relevant_chunks_by_metadata(self, query: str, field: str, value: str, top_k: int | None = None) -> list[Chunk]:
        """
        Same as ``retrieve_relevant_chunks`` restricted to chunks whose
        metadata *field* equals *value* (e.g. ``modpack = "BetterMC"``).
        """
        try:
            metadata_filter = MetadataFilter(field=field, value=value)
        except ValueError as exc:
            logger.error("Rejected metadata filter %s=%r: %s", field, value, exc)
            return []

        k = self._resolve_k(top_k)
        return self._search(query, k, f"{field}={value!r}", lambda vector: self._store.find_top_k_by_similarity(vector, k, metadata_filter))


    def retrieve_above_threshold(self, query: str, threshold: float | None = None, top_k: int | None = None, metadata_filter: MetadataFilter | None = None) -> list[Chunk]:
        """Top-k chunks whose cosine similarity to *query* is at least *threshold*."""
        k = self._resolve_k(top_k)
        minimum = self.similarity_threshold if threshold is None else threshold
        return self._search(query, k, f"threshold≥{minimum:.2f}", lambda vector: self._store.find_above_threshold(vector, minimum, k, metadata_filter))


    def retrieve(self, query: RetrievalQuery) -> list[Chunk]:
        """Dispatch a ``RetrievalQuery`` to the matching retrieval mode."""
        if query.similarity_threshold is not None:
            return self.retrieve_above_threshold(query.text, query.similarity_threshold, query.top_k, query.metadata_filter)
        if query.metadata_filter is not None:
            return self.retrieve_relevant_chunks_by_metadata(query.text, query.metadata_filter.field, query.metadata_filter.value, query.top_k)
        return self.retrieve_relevant_chunks(query.text, query.top_k)

    # ══════════════════════════════════════════════════════════════════
    #  INTERNALS
    # ══════════════════════════════════════════════════════════════════

    def _resolve_k(self, top_k: int | None) -> int:
        return self.default_top_k if top_k is None else top_k


    def _search(self, query: str, k: int, mode: str, run: StoreQuery) -> list[Chunk]:
        if not self.enabled:
            logger.debug("RAG is disabled.")
            return []
        if k <= 0:
            return []

        try:
            logger.debug("Retrieving chunks (%s, k=%d) for query: %s", mode, k, text_preview(query, 80))
            result = self._provider.embed(query)
            if not result.is_ok:
                logger.warning("Failed to generate embedding for query (%s).", result.status.value)
                return []

            chunks = run(result.vector)  # type: ignore[arg-type]
        except Exception as exc:
            logger.error("Error retrieving relevant chunks: %s", exc)
            return []

        logger.debug("Retrieved %d relevant chunk(s).", len(chunks))
        return chunks[:k]
