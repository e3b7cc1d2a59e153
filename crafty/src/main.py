"""
crafty/src/main.py - Application Entry Point

Responsibility:
    Builds the RAG core once from configuration and runs the startup
    hook.  The chat layer (HTTP routes, LLM calls) imports
    ``create_rag_manager`` and calls ``RAGManager.compose_prompt`` per
    request.

    Backend variants are selected here and only here:
        EMBEDDING_BACKEND    → ``build_embedder``
        CHUNK_STORE_BACKEND  → ``build_chunk_store``

Related Files:
    - crafty/config/settings.py           → configuration source
    - crafty/src/core/rag_engine.py       → the facade built here
    - crafty/src/database/vector_store.py → store variants

Run:
    python -m crafty.src.main
"""

from __future__ import annotations

from crafty.config.settings import Settings, settings
from crafty.src.core.availability import AvailabilityGate
from crafty.src.core.embedding_provider import EmbeddingProvider, build_embedder
from crafty.src.core.errors import CraftyError
from crafty.src.core.ingestor import IngestionPipeline
from crafty.src.core.rag_engine import RAGManager
from crafty.src.core.retriever import RetrievalEngine
from crafty.src.database.vector_store import build_chunk_store
from crafty.src.utils.logger import get_logger

logger = get_logger(__name__)


def create_rag_manager(config: Settings = settings) -> RAGManager:
    """Build store, embedder and engines from *config*."""
    store_kwargs: dict[str, object] = {"dimension": config.EMBEDDING_DIMENSION}
    if config.CHUNK_STORE_BACKEND == "lancedb":
        store_kwargs.update(db_path=config.LANCEDB_PATH, table_name=config.LANCEDB_TABLE_NAME)
    store = build_chunk_store(config.CHUNK_STORE_BACKEND, **store_kwargs)

    provider = EmbeddingProvider(build_embedder(config.EMBEDDING_BACKEND), dimension=config.EMBEDDING_DIMENSION, max_chars=config.EMBEDDING_MAX_CHARS)

    pipeline = IngestionPipeline(
        store,
        provider,
        batch_size=config.RAG_BATCH_SIZE,
        item_delay_ms=config.RAG_ITEM_DELAY_MS,
        inter_batch_delay_ms=config.RAG_INTER_BATCH_DELAY_MS,
    )
    retriever = RetrievalEngine(store, provider, enabled=config.RAG_ENABLED, default_top_k=config.RAG_TOP_K, similarity_threshold=config.RAG_SIMILARITY_THRESHOLD)
    gate = AvailabilityGate(store, enabled=config.RAG_ENABLED, default_top_k=config.RAG_TOP_K, similarity_threshold=config.RAG_SIMILARITY_THRESHOLD)

    logger.info("RAG core ready: store=%r, embedding=%s/%s", store, config.EMBEDDING_BACKEND, config.EMBEDDING_MODEL)
    return RAGManager(store, provider, pipeline=pipeline, retriever=retriever, gate=gate)


def on_startup(manager: RAGManager, config: Settings = settings) -> None:
    """
    Auto-load the knowledge base when ``RAG_AUTO_LOAD`` is set.

    A failed load is logged and does not stop the application; the
    availability gate keeps RAG switched off until chunks exist.
    """
    if not config.RAG_AUTO_LOAD:
        logger.info("RAG auto-load disabled. Run 'python -m crafty.scripts.setup_db' to load data.")
        return

    logger.info("Auto-loading RAG data on startup ...")
    try:
        report = manager.load_all()
        logger.info("RAG data loaded: %d processed, %d failed (skipped=%s).", report.processed, report.failed, report.skipped)
        logger.info(manager.get_loading_stats())
    except CraftyError as exc:
        logger.error("Failed to load RAG data on startup: %s", exc)


def main() -> None:
    manager = create_rag_manager()
    on_startup(manager)
    stats = manager.get_stats()
    logger.info("RAG available: %s (%d/%d chunks embedded)", manager.is_rag_available(), stats.chunks_with_embedding, stats.total_chunks)


if __name__ == "__main__":
    main()
