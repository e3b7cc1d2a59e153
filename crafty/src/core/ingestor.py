"""
Crafty - IngestionPipeline
===========================
Loads chunk definitions from a bulk source, embeds them through the
``EmbeddingProvider`` in paced batches, and persists every chunk into
the ``ChunkStore``.

Key design decisions:
    • **Dependency Injection** – receives the store and the provider.
    • **Run once per store** – if the store already holds chunks the
      run is skipped entirely; there is no per-chunk dedup.
    • **Exclusive runs** – the store's ``load_lock`` is taken without
      blocking, so a second trigger fails fast instead of double-loading.
    • **Per-item isolation** – an embedding failure, an invalid
      definition or a failed write only marks that item as failed.
      Earlier saves are never rolled back.  A chunk whose embedding
      failed is still saved, without a vector.
    • **Pacing** – a ``Pacer`` spaces embedding calls by
      ``RAG_ITEM_DELAY_MS`` and holds ``RAG_INTER_BATCH_DELAY_MS``
      between batches.
    • **Whole-run faults propagate** – an unreadable source
      (``SourceReadError``) or a cancelled wait
      (``IngestionInterruptedError``) aborts the run.

Usage:
    from crafty.src.core.ingestor import IngestionPipeline, JsonChunkSource
    pipeline = IngestionPipeline(store, provider)
    report   = pipeline.load_all(JsonChunkSource(settings.RAG_DATA_PATH))
"""

from __future__ import annotations

import math
import time
from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import TypeAdapter, ValidationError

from crafty.config.settings import settings
from crafty.src.core.embedding_provider import EmbeddingProvider
from crafty.src.core.errors import IngestionInProgressError, SourceReadError, StoreError
from crafty.src.database.models import LoadReport, RawChunk
from crafty.src.database.vector_store import ChunkStore
from crafty.src.utils.logger import get_logger
from crafty.src.utils.pacing import Pacer

logger = get_logger(__name__)

_RAW_CHUNKS = TypeAdapter(list[RawChunk])


# ══════════════════════════════════════════════════════════════════════
#  SOURCES
# ══════════════════════════════════════════════════════════════════════


@runtime_checkable
class ChunkSource(Protocol):
    """Anything that yields the full, ordered list of chunk definitions."""

    def read(self) -> list[RawChunk]: ...


class JsonChunkSource:
    """
    Reads a JSON array of ``{"id", "text", "metadata"}`` records.

    Records are only checked for shape here (``id`` and ``text`` must be
    strings); content rules such as non-empty text are enforced per item
    by the pipeline so that one bad record does not sink the whole file.
    """

    __slots__ = ("path",)

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path or settings.RAG_DATA_PATH)


    def read(self) -> list[RawChunk]:
        try:
            payload = self.path.read_bytes()
        except OSError as exc:
            logger.error("Failed to read %s: %s", self.path, exc)
            raise SourceReadError(f"Cannot read chunk source {self.path}: {exc}") from exc

        try:
            return _RAW_CHUNKS.validate_json(payload)
        except ValidationError as exc:
            logger.error("Malformed chunk source %s: %d error(s).", self.path, exc.error_count())
            raise SourceReadError(f"Malformed chunk source {self.path}: {exc}") from exc


    def __repr__(self) -> str:
        return f"JsonChunkSource('{self.path}')"


# ══════════════════════════════════════════════════════════════════════
#  PIPELINE
# ══════════════════════════════════════════════════════════════════════


class IngestionPipeline:
    """
    Batch ingestion: read → map → embed → save, one chunk at a time.

    Parameters
    ----------
    store
        Target ``ChunkStore`` (injected).
    provider
        ``EmbeddingProvider`` used for every chunk text.
    batch_size
        Definitions per batch.  Defaults to ``settings.RAG_BATCH_SIZE``.
    item_delay_ms
        Minimum spacing between embedding calls.
    inter_batch_delay_ms
        Pause held between two batches.
    pacer
        Override the pacer (tests inject one with a fake clock).
    """

    def __init__(self, store: ChunkStore, provider: EmbeddingProvider, batch_size: int | None = None, item_delay_ms: int | None = None, inter_batch_delay_ms: int | None = None, pacer: Pacer | None = None) -> None:
        self._store = store
        self._provider = provider
        self._batch_size: int = settings.RAG_BATCH_SIZE if batch_size is None else batch_size
        self._inter_batch_delay_ms: int = settings.RAG_INTER_BATCH_DELAY_MS if inter_batch_delay_ms is None else inter_batch_delay_ms
        item_delay = settings.RAG_ITEM_DELAY_MS if item_delay_ms is None else item_delay_ms
        self._pacer = pacer or Pacer(item_delay)

        if self._batch_size < 1:
            raise ValueError(f"batch_size must be ≥ 1, got {self._batch_size}")

    # ══════════════════════════════════════════════════════════════════
    #  PUBLIC ENTRY POINTS
    # ══════════════════════════════════════════════════════════════════

    def load_all(self, source: ChunkSource) -> LoadReport:
        """
        Ingest every definition of *source* unless the store is non-empty.

        Returns
        -------
        LoadReport
            ``processed`` counts chunks saved with an embedding,
            ``failed`` counts chunks saved without one or not saved.

        Raises
        ------
        IngestionInProgressError
            Another run on the same store is active.
        SourceReadError
            The source could not be read.
        IngestionInterruptedError
            ``cancel()`` was called during the run.
        StoreError
            The initial store count failed.
        """
        if not self._store.load_lock.acquire(blocking=False):
            raise IngestionInProgressError("An ingestion run is already in progress for this store.")
        try:
            return self._run(source)
        finally:
            self._pacer.reset()
            self._store.load_lock.release()


    def cancel(self) -> None:
        """Interrupt the current (or next) run at its next pacing wait."""
        logger.warning("Ingestion cancellation requested.")
        self._pacer.cancel()


    def get_loading_stats(self) -> str:
        """Human-readable store summary, e.g. ``Total chunks: 12, Chunks with embeddings: 11 (91.7%)``."""
        total = self._store.count()
        embedded = self._store.count_with_embedding()
        percentage = embedded * 100.0 / total if total > 0 else 0.0
        return f"Total chunks: {total}, Chunks with embeddings: {embedded} ({percentage:.1f}%)"

    # ══════════════════════════════════════════════════════════════════
    #  RUN
    # ══════════════════════════════════════════════════════════════════

    def _run(self, source: ChunkSource) -> LoadReport:
        t_start = time.perf_counter()

        existing = self._store.count()
        if existing > 0:
            logger.info("Found %d existing chunks in the store. Skipping load.", existing)
            logger.info("To reload, drop the chunk table first.")
            return self._report(0, 0, skipped=True, elapsed=time.perf_counter() - t_start)

        logger.info("Loading RAG chunks from %r ...", source)
        definitions = source.read()
        logger.info("Loaded %d chunk definition(s). Starting embedding generation.", len(definitions))

        total = len(definitions)
        batch_count = math.ceil(total / self._batch_size)
        processed = 0
        failed = 0

        for batch_no, start in enumerate(range(0, total, self._batch_size), 1):
            end = min(start + self._batch_size, total)
            logger.info("Processing batch %d/%d (%d-%d of %d)", batch_no, batch_count, start + 1, end, total)

            for raw in definitions[start:end]:
                if self._ingest_one(raw):
                    processed += 1
                else:
                    failed += 1

            if end < total and self._inter_batch_delay_ms > 0:
                logger.info("Waiting %dms before next batch ...", self._inter_batch_delay_ms)
                self._pacer.hold(self._inter_batch_delay_ms)

        report = self._report(processed, failed, skipped=False, elapsed=time.perf_counter() - t_start)
        logger.info(
            "Ingestion complete: %d chunk(s) embedded, %d failed, %d in store (%d with embeddings) in %.2fs.",
            report.processed,
            report.failed,
            report.total_in_store,
            report.total_with_embedding,
            report.elapsed_seconds,
        )
        return report


    def _ingest_one(self, raw: RawChunk) -> bool:
        """
        Map, embed and save a single definition.

        Returns True only when the chunk was saved *with* an embedding.
        ``IngestionInterruptedError`` from the pacer is not caught.
        """
        self._pacer.wait()

        try:
            chunk = raw.to_chunk()
        except ValidationError as exc:
            logger.error("Invalid chunk definition '%s': %s", raw.id, exc.errors()[0]["msg"])
            return False

        result = self._provider.embed(chunk.text)
        if result.is_ok:
            chunk.embedding = result.vector
        else:
            logger.warning("Failed to generate embedding for chunk '%s' (%s: %s).", raw.id, result.status.value, result.detail)

        try:
            self._store.save(chunk)
        except StoreError as exc:
            logger.error("Error saving chunk '%s': %s", raw.id, exc)
            return False

        return result.is_ok


    def _report(self, processed: int, failed: int, skipped: bool, elapsed: float) -> LoadReport:
        return LoadReport(
            processed=processed,
            failed=failed,
            total_in_store=self._store.count(),
            total_with_embedding=self._store.count_with_embedding(),
            skipped=skipped,
            elapsed_seconds=round(elapsed, 2),
        )
