"""
Crafty - RAG Engine
====================
One object that wires the RAG core together for the chat layer.

Architecture
------------
``IngestionPipeline``
    Bulk load of the knowledge base (run once per store).

``RetrievalEngine``
    Query embedding + nearest-neighbour search.

``PromptBuilder``
    Context rendering and prompt composition.

``AvailabilityGate``
    Fail-closed availability check and store statistics.

``RAGManager``
    Facade over the four above.  ``compose_prompt`` is the full
    query-side flow:
        1. Availability check → fallback prompt when RAG is unusable
        2. Retrieve → optionally restricted to one modpack
        3. Build prompt → augmented, or fallback when nothing matched

    Generation itself (calling the chat model) happens outside this
    package; ``compose_prompt`` returns the string to send.

Usage:
    from crafty.src.core.rag_engine import RAGManager
    rag = RAGManager(store, provider)
    rag.load_all()
    prompt = rag.compose_prompt("How do I tame a dragon?", modpack="BetterMC")
"""

from __future__ import annotations

import time
from typing import Sequence

from crafty.src.core.availability import AvailabilityGate
from crafty.src.core.embedding_provider import EmbeddingProvider
from crafty.src.core.ingestor import ChunkSource, IngestionPipeline, JsonChunkSource
from crafty.src.core.prompt_builder import PromptBuilder
from crafty.src.core.retriever import RetrievalEngine
from crafty.src.database.models import Chunk, LoadReport, RagStats
from crafty.src.database.vector_store import ChunkStore
from crafty.src.utils.logger import get_logger

logger = get_logger(__name__)


class RAGManager:
    """
    Orchestrates ingestion, retrieval and augmentation over one store.

    Parameters
    ----------
    store
        The shared ``ChunkStore``.
    provider
        ``EmbeddingProvider`` used on both the ingestion and query side.
    pipeline, retriever, prompt_builder, gate
        Optional pre-built components; built from configuration when omitted.
    """

    __slots__ = ("_store", "_provider", "_pipeline", "_retriever", "_prompts", "_gate")

    def __init__(self, store: ChunkStore, provider: EmbeddingProvider, pipeline: IngestionPipeline | None = None, retriever: RetrievalEngine | None = None, prompt_builder: PromptBuilder | None = None, gate: AvailabilityGate | None = None) -> None:
        self._store = store
        self._provider = provider
        self._pipeline = pipeline or IngestionPipeline(store, provider)
        self._retriever = retriever or RetrievalEngine(store, provider)
        self._prompts = prompt_builder or PromptBuilder()
        self._gate = gate or AvailabilityGate(store)

    @property
    def store(self) -> ChunkStore:
        return self._store

    # ══════════════════════════════════════════════════════════════════
    #  INGESTION
    # ══════════════════════════════════════════════════════════════════

    def load_all(self, source: ChunkSource | None = None) -> LoadReport:
        """Run the ingestion pipeline against *source* (default: ``RAG_DATA_PATH``)."""
        return self._pipeline.load_all(source or JsonChunkSource())


    def cancel_loading(self) -> None:
        self._pipeline.cancel()


    def get_loading_stats(self) -> str:
        return self._pipeline.get_loading_stats()

    # ══════════════════════════════════════════════════════════════════
    #  RETRIEVAL & AUGMENTATION
    # ══════════════════════════════════════════════════════════════════

    def retrieve_relevant_chunks(self, query: str, top_k: int | None = None, modpack: str | None = None) -> list[Chunk]:
        """Top-k chunks for *query*, restricted to *modpack* when given."""
        if modpack:
            return self._retriever.retrieve_relevant_chunks_by_metadata(query, "modpack", modpack, top_k)
        return self._retriever.retrieve_relevant_chunks(query, top_k)


    def build_augmented_prompt(self, query: str, chunks: Sequence[Chunk]) -> str:
        return self._prompts.build_augmented_prompt(query, chunks)


    def is_rag_available(self) -> bool:
        return self._gate.is_rag_available()


    def get_stats(self) -> RagStats:
        return self._gate.get_stats()


    def compose_prompt(self, query: str, top_k: int | None = None, modpack: str | None = None) -> str:
        """
        Build the prompt for *query*, augmented with retrieved context when
        possible.  Never raises; every failure path yields the fallback prompt.
        """
        t_start = time.perf_counter()
        try:
            if not self.is_rag_available():
                logger.debug("[RAG] Not available, using fallback prompt.")
                return self._prompts.build_fallback_prompt(query)

            chunks = self.retrieve_relevant_chunks(query, top_k, modpack)
            if not chunks:
                logger.info("[RAG] No relevant chunks found, using fallback prompt.")
                return self._prompts.build_fallback_prompt(query)

            prompt = self._prompts.build_augmented_prompt(query, chunks)
            logger.info("[RAG] Augmented prompt with %d chunk(s) in %.1fms", len(chunks), (time.perf_counter() - t_start) * 1000)
            return prompt

        except Exception:
            logger.exception("[RAG] Prompt composition failed, using fallback prompt.")
            return self._prompts.build_fallback_prompt(query)
