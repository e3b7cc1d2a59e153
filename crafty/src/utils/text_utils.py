"""
Crafty - Text Utilities
========================
Small helpers for preparing text before it is embedded and for
rendering short previews in logs and admin output.

These utilities are consumed by the ``EmbeddingProvider``, the
``IngestionPipeline`` and the admin scripts, and should remain
stateless and side-effect-free.
"""

from __future__ import annotations

import re

_WHITESPACE_RE = re.compile(r"\s+")


def is_blank(text: str | None) -> bool:
    """Return True for ``None``, the empty string, or whitespace only."""
    return text is None or not text.strip()


def truncate_text(text: str, max_chars: int) -> str:
    """
    Cut *text* to at most *max_chars* characters.

    The cut is a plain prefix: the embedding API counts characters,
    not words, so there is nothing to gain from a word boundary.
    """
    if len(text) <= max_chars:
        return text
    return text[:max_chars]


def text_preview(text: str, limit: int = 200) -> str:
    """
    Collapse whitespace and shorten *text* for one-line display.

    Examples::

        text_preview("Dragons\\n\\ncan be tamed", 10)  → "Dragons ca..."
        text_preview("short")                        → "short"
    """
    flat = _WHITESPACE_RE.sub(" ", text).strip()
    if len(flat) <= limit:
        return flat
    return flat[:limit] + "..."
