"""
Crafty - Error Taxonomy
========================
Exceptions raised by the RAG core.

Only faults that concern a whole operation are raised.  Expected
degradation (an embedding that could not be produced, RAG disabled by
configuration) is expressed as a value, see
``crafty.src.core.embedding_provider.EmbeddingResult``.
"""

from __future__ import annotations


class CraftyError(Exception):
    """Base class for every error raised by Crafty."""


class StoreError(CraftyError):
    """A read or write against the chunk store failed."""


class SourceReadError(CraftyError):
    """The bulk chunk source could not be read or parsed."""


class IngestionInterruptedError(CraftyError):
    """A pacing wait was cancelled while an ingestion run was in progress."""


class IngestionInProgressError(CraftyError):
    """Another ingestion run already holds the store's load lock."""
