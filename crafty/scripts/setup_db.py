"""
Crafty - Database Setup & Ingestion Script
============================================
CLI entry point that orchestrates:
    1. Validate that ``GOOGLE_API_KEY`` is set (fail-fast).
    2. Build the RAG core (optionally drop the existing chunk table).
    3. Run the ``IngestionPipeline`` over the bulk source.
    4. Print a structured execution summary with timing breakdown.

Flags:
    --drop         Drop the chunk table before loading (full reload).
    --stats-only   Print the loading stats and exit (no ingestion).
    --source PATH  Load from PATH instead of ``RAG_DATA_PATH``.

Observability:
    Settings load and RAG core construction are timed independently,
    so the final summary separates **Startup Time** from
    **Processing Time**.

Usage:
    python -m crafty.scripts.setup_db                   # Load if the store is empty
    python -m crafty.scripts.setup_db --drop            # Drop table, reload everything
    python -m crafty.scripts.setup_db --stats-only      # Show store counts
    python -m crafty.scripts.setup_db --source my.json  # Load a different file
"""

from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path

# ── Ensure project root is importable when run directly ────────────────
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))


# ── CLI Argument Parsing ───────────────────────────────────────────────

def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="setup_db", description="Crafty: initialise the chunk store and load the RAG knowledge base.")
    parser.add_argument("--drop", action="store_true", default=False, help="Drop the chunk table before loading (full reload).")
    parser.add_argument("--stats-only", action="store_true", default=False, help="Print the loading stats and exit (no ingestion).")
    parser.add_argument("--source", type=Path, default=None, help="JSON file to load instead of RAG_DATA_PATH.")
    return parser.parse_args(argv)


# ── Main Orchestration ─────────────────────────────────────────────────

def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    t_start = time.perf_counter()

    # ── 0. Load settings + .env (timed) ────────────────────────────────
    t_settings = time.perf_counter()
    try:
        from crafty.config.settings import settings
    except Exception as exc:
        print("\n[FATAL] Configuration error, check your .env file:\n")
        print(f"  {exc}")
        print()
        return 1
    settings_ms = (time.perf_counter() - t_settings) * 1000

    # Now that settings is loaded, we can safely import the logger
    from crafty.src.utils.logger import get_logger
    logger = get_logger(__name__)

    logger.info("Settings loaded in %.1fms", settings_ms)

    source_path = args.source or settings.RAG_DATA_PATH
    _print_header(settings, source_path)

    # ── 1. Build the RAG core (timed) ──────────────────────────────────
    from crafty.src.core.errors import CraftyError
    from crafty.src.core.ingestor import JsonChunkSource
    from crafty.src.main import create_rag_manager

    t_core = time.perf_counter()
    try:
        manager = create_rag_manager(settings)
    except (CraftyError, ImportError, ValueError):
        logger.exception("Failed to initialise the RAG core.")
        return 1
    core_ms = (time.perf_counter() - t_core) * 1000
    logger.info("RAG core initialised in %.1fms", core_ms)

    startup_ms = settings_ms + core_ms

    if args.stats_only:
        print(f"  {manager.get_loading_stats()}")
        _print_footer(None, time.perf_counter() - t_start, settings_ms, core_ms, startup_ms)
        return 0

    if args.drop:
        logger.warning("Dropping table '%s' as requested.", settings.LANCEDB_TABLE_NAME)
        manager.store.drop()

    # ── 2. Run IngestionPipeline ───────────────────────────────────────
    try:
        report = manager.load_all(JsonChunkSource(source_path))
    except CraftyError as exc:
        logger.error("Ingestion aborted: %s", exc)
        _print_footer(None, time.perf_counter() - t_start, settings_ms, core_ms, startup_ms)
        return 1

    # ── 3. Print execution summary ─────────────────────────────────────
    print(f"  {manager.get_loading_stats()}")
    _print_footer(report, time.perf_counter() - t_start, settings_ms, core_ms, startup_ms)
    return 0


# ── Pretty-print helpers ──────────────────────────────────────────────

def _print_header(settings: object, source_path: Path) -> None:
    api_key_val = settings.GOOGLE_API_KEY.get_secret_value()  # type: ignore[attr-defined]
    masked = f"****{api_key_val[-4:]}" if len(api_key_val) > 4 else "****"

    print()
    print("=" * 60)
    print("  CRAFTY: Chunk Store Setup & RAG Ingestion")
    print("=" * 60)
    print(f"  Environment  : {settings.ENV}")                                                 # type: ignore[attr-defined]
    print(f"  Embedding    : {settings.EMBEDDING_BACKEND} / {settings.EMBEDDING_MODEL}")       # type: ignore[attr-defined]
    print(f"  Dimension    : {settings.EMBEDDING_DIMENSION}")                                  # type: ignore[attr-defined]
    print(f"  Store        : {settings.CHUNK_STORE_BACKEND}")                                  # type: ignore[attr-defined]
    print(f"  LanceDB path : {settings.LANCEDB_PATH} (table: {settings.LANCEDB_TABLE_NAME})")  # type: ignore[attr-defined]
    print(f"  Source file  : {source_path}")
    print(f"  Batch size   : {settings.RAG_BATCH_SIZE}")                                       # type: ignore[attr-defined]
    print(f"  Pacing       : {settings.RAG_ITEM_DELAY_MS}ms/item, {settings.RAG_INTER_BATCH_DELAY_MS}ms/batch")  # type: ignore[attr-defined]
    print(f"  API Key      : {masked}")
    print("=" * 60)
    print()


def _print_footer(report: object | None, elapsed: float, settings_ms: float, core_ms: float, startup_ms: float) -> None:
    processing_s = elapsed - (startup_ms / 1000)

    print()
    print("=" * 60)
    print("  EXECUTION SUMMARY")
    print("-" * 60)
    if report is not None:
        if report.skipped:  # type: ignore[attr-defined]
            print("  Store already populated: load skipped (use --drop to reload)")
        print(f"  Chunks embedded      : {report.processed}")             # type: ignore[attr-defined]
        print(f"  Chunks failed        : {report.failed}")                # type: ignore[attr-defined]
        print(f"  Total in store       : {report.total_in_store}")        # type: ignore[attr-defined]
        print(f"  With embeddings      : {report.total_with_embedding}")  # type: ignore[attr-defined]
        print("-" * 60)
    print("  TIMING BREAKDOWN")
    print("-" * 60)
    print(f"  Settings + .env load : {settings_ms:>8.1f}ms")
    print(f"  RAG core init        : {core_ms:>8.1f}ms")
    print(f"  Startup time (total) : {startup_ms:>8.1f}ms")
    print(f"  Processing time      : {processing_s:>8.2f}s")
    print(f"  Total elapsed        : {elapsed:>8.2f}s")
    print("=" * 60)
    print()


# ── Entry point ────────────────────────────────────────────────────────

if __name__ == "__main__":
    sys.exit(main())
