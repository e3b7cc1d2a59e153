"""
verify_rag.py - RAG Retrieval Verification

Runs a similarity search against the chunk store and displays the
matching chunks with their metadata.  Used to check that retrieval
separates mods and modpacks before wiring it into the chat layer.

Run:
    python -m crafty.scripts.verify_rag --query "How do I tame a dragon?"
    python -m crafty.scripts.verify_rag --query "best armor" --modpack BetterMC --limit 3
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

from crafty.src.main import create_rag_manager
from crafty.src.utils.text_utils import text_preview


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="verify_rag", description="Crafty: run a similarity search and print the matching chunks.")
    parser.add_argument("--query", required=True, help="Question to search for.")
    parser.add_argument("--modpack", default=None, help="Restrict results to one modpack.")
    parser.add_argument("--limit", type=int, default=5, help="Maximum number of results (default: 5).")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    # -- Init --
    manager = create_rag_manager()
    stats = manager.get_stats()
    print(f"Store holds {stats.total_chunks} chunk(s), {stats.chunks_with_embedding} with embeddings.\n")

    if not manager.is_rag_available():
        print("RAG is not available. Run 'python -m crafty.scripts.setup_db' first.")
        return 1

    # -- Query --
    print(f"Query:   {args.query}")
    if args.modpack:
        print(f"Modpack: {args.modpack}")
    print("=" * 60)

    results = manager.retrieve_relevant_chunks(args.query, top_k=args.limit, modpack=args.modpack)
    if not results:
        print("\nNo matching chunks.")
        return 0

    for i, chunk in enumerate(results, 1):
        print(f"\n--- Result {i} ---")
        print(f"  Id:        {chunk.external_id}")
        print(f"  Modpack:   {chunk.modpack or 'N/A'}")
        print(f"  Mod:       {chunk.mod_name or 'N/A'} {chunk.mod_version or ''}".rstrip())
        print(f"  Category:  {chunk.category or 'N/A'}")
        print("  Text:")
        print(f"    {text_preview(chunk.text)}")

    # -- Analysis --
    print("\n" + "=" * 60)
    print("MODPACK ISOLATION CHECK:")
    modpacks = sorted({c.modpack or "N/A" for c in results})
    for modpack in modpacks:
        ids = [c.external_id for c in results if (c.modpack or "N/A") == modpack]
        print(f"  [{modpack}] {', '.join(ids)}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
