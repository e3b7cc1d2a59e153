"""
Crafty - Centralized Configuration
===================================
Uses ``pydantic-settings`` (``BaseSettings``) to load *all* configuration
from environment variables and the project-level ``.env`` file.

Security
--------
- ``GOOGLE_API_KEY`` is typed as ``SecretStr`` and has **no default value**.
  If the key is missing at startup, Pydantic will raise a ``ValidationError``
  with a clear error message.  The raw value is never exposed in repr,
  logs, or tracebacks.

Backends
--------
``EMBEDDING_BACKEND`` and ``CHUNK_STORE_BACKEND`` name the variant that is
built once at startup (see ``crafty.src.main``).  Nothing else in the
codebase branches on them.

Pacing
------
``RAG_ITEM_DELAY_MS`` is the minimum spacing between two embedding calls
during ingestion, ``RAG_INTER_BATCH_DELAY_MS`` the pause held between
batches.  Together they bound the request rate against the Gemini quota.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application-wide settings.

    Every field is loaded from environment variables (or ``.env``).
    Fields *without* a default are **required**.

    Attributes
    ----------
    GOOGLE_API_KEY : SecretStr
        API key for Google AI Studio (Gemini).  **Required.**
    EMBEDDING_BACKEND : Literal["genai", "langchain"]
        Which Gemini client produces embeddings.
    EMBEDDING_DIMENSION : int
        Fixed vector dimension of every stored embedding.
    EMBEDDING_MAX_CHARS : int
        Input longer than this is truncated before it is embedded.
    CHUNK_STORE_BACKEND : Literal["lancedb", "memory"]
        Persistent LanceDB table or the in-process store.
    RAG_ENABLED : bool
        Gates retrieval and the availability check.
    RAG_TOP_K : int
        Retrieval fan-out when the caller does not pass one.
    RAG_SIMILARITY_THRESHOLD : float
        Minimum cosine similarity for threshold-mode queries.
    RAG_BATCH_SIZE : int
        Ingestion batch width.
    RAG_AUTO_LOAD : bool
        Run ingestion when the process starts.
    """

    # ── Resolved Absolute Paths ────────────────────────────────────────
    BASE_DIR: Path = Path(__file__).resolve().parent.parent
    LANCEDB_PATH: Path = BASE_DIR / "data" / "lancedb"
    RAG_DATA_PATH: Path = BASE_DIR / "data" / "data.json"

    # ── Environment Mode ───────────────────────────────────────────────
    ENV: Literal["dev", "prod"] = "dev"

    # ── API Keys (REQUIRED, no default) ───────────────────────────────
    GOOGLE_API_KEY: SecretStr

    # ── Embedding Provider ─────────────────────────────────────────────
    EMBEDDING_BACKEND: Literal["genai", "langchain"] = "genai"
    EMBEDDING_MODEL: str = "gemini-embedding-001"
    EMBEDDING_DIMENSION: int = 768
    EMBEDDING_MAX_CHARS: int = 10_000
    EMBEDDING_TIMEOUT_MS: int = 30_000

    # ── Chunk Store ────────────────────────────────────────────────────
    CHUNK_STORE_BACKEND: Literal["lancedb", "memory"] = "lancedb"
    LANCEDB_TABLE_NAME: str = "rag_chunks"

    # ── Retrieval ──────────────────────────────────────────────────────
    RAG_ENABLED: bool = True
    RAG_TOP_K: int = 5
    RAG_SIMILARITY_THRESHOLD: float = 0.7

    # ── Ingestion ──────────────────────────────────────────────────────
    RAG_BATCH_SIZE: int = 10
    RAG_ITEM_DELAY_MS: int = 100
    RAG_INTER_BATCH_DELAY_MS: int = 1000
    RAG_AUTO_LOAD: bool = False

    # ── Validators ─────────────────────────────────────────────────────

    @field_validator("RAG_TOP_K", "RAG_BATCH_SIZE", "EMBEDDING_DIMENSION", "EMBEDDING_MAX_CHARS")
    @classmethod
    def _at_least_one(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"must be ≥ 1, got {v}")
        return v


    @field_validator("RAG_ITEM_DELAY_MS", "RAG_INTER_BATCH_DELAY_MS", "EMBEDDING_TIMEOUT_MS")
    @classmethod
    def _non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"delay must be ≥ 0 ms, got {v}")
        return v


    @field_validator("RAG_SIMILARITY_THRESHOLD")
    @classmethod
    def _threshold_range(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"RAG_SIMILARITY_THRESHOLD must be within [0, 1], got {v}")
        return v

    # ── Pydantic Settings Configuration ────────────────────────────────
    model_config = SettingsConfigDict(env_file=Path(__file__).resolve().parent.parent / ".env", env_file_encoding="utf-8", extra="ignore")


# ── Singleton Instance ─────────────────────────────────────────────────
# Import this throughout the project:
#     from crafty.config.settings import settings
settings = Settings()
