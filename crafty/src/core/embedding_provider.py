"""
Crafty - Embedding Provider
============================
Turns text into fixed-dimension vectors through Gemini and reports the
outcome as a value instead of an exception.

``EmbeddingResult``
    ``OK`` with the vector, ``NO_EMBEDDING`` when there was nothing to
    embed (blank text), or ``FAULT`` with a detail message when the
    backend failed or returned unusable data.

``EmbeddingProvider``
    Adapter over any ``Embedder`` backend.  Truncates long input,
    rejects blank input locally, validates the returned dimension and
    converts every backend error into a ``FAULT`` result.

Backends (selected once by ``build_embedder``):
    ``"genai"``      direct ``google-genai`` client (``embed_content``)
    ``"langchain"``  ``GoogleGenerativeAIEmbeddings`` from LangChain,
                     wrapped by ``LangChainEmbedder``

Usage:
    provider = EmbeddingProvider(build_embedder())
    result = provider.embed("How do I power a Create mechanical press?")
    if result.is_ok:
        store.find_top_k_by_similarity(result.vector, k=5)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, Sequence, runtime_checkable

from crafty.config.settings import settings
from crafty.src.utils.logger import get_logger
from crafty.src.utils.text_utils import is_blank, truncate_text

logger = get_logger(__name__)


# ── Result Type ───────────────────────────────────────────────────────

class EmbeddingStatus(str, Enum):
    OK = "ok"
    NO_EMBEDDING = "no_embedding"
    FAULT = "fault"


@dataclass(frozen=True, slots=True)
class EmbeddingResult:
    """Outcome of a single embedding request."""

    status: EmbeddingStatus
    vector: list[float] | None = None
    detail: str = ""

    @classmethod
    def ok(cls, vector: list[float]) -> "EmbeddingResult":
        return cls(EmbeddingStatus.OK, vector=vector)

    @classmethod
    def no_embedding(cls, reason: str) -> "EmbeddingResult":
        return cls(EmbeddingStatus.NO_EMBEDDING, detail=reason)

    @classmethod
    def fault(cls, detail: str) -> "EmbeddingResult":
        return cls(EmbeddingStatus.FAULT, detail=detail)

    @property
    def is_ok(self) -> bool:
        return self.status is EmbeddingStatus.OK


# ── Embedder Protocol ─────────────────────────────────────────────────

@runtime_checkable
class Embedder(Protocol):
    """Structural type for any backend that embeds a single text."""

    def embed_query(self, text: str) -> list[float]: ...


# ── Backends ──────────────────────────────────────────────────────────

class GenAIEmbedder:
    """
    Embedding backend using the ``google-genai`` SDK directly.

    The output dimension is requested explicitly so that models with a
    larger native size (``gemini-embedding-001``) still fit the store.
    """

    __slots__ = ("_client", "_model", "_config")

    def __init__(self, client: Any = None, model: str | None = None, dimension: int | None = None, timeout_ms: int | None = None) -> None:
        from google import genai
        from google.genai import types

        if client is None:
            timeout = timeout_ms if timeout_ms is not None else settings.EMBEDDING_TIMEOUT_MS
            client = genai.Client(api_key=settings.GOOGLE_API_KEY.get_secret_value(), http_options=types.HttpOptions(timeout=timeout or None))
        self._client = client
        self._model: str = model or settings.EMBEDDING_MODEL
        self._config = types.EmbedContentConfig(output_dimensionality=settings.EMBEDDING_DIMENSION if dimension is None else dimension)


    def embed_query(self, text: str) -> list[float]:
        response = self._client.models.embed_content(model=self._model, contents=text, config=self._config)
        if not response.embeddings:
            raise ValueError("No embedding values in response")
        return list(response.embeddings[0].values or [])


class LangChainEmbedder:
    """``GoogleGenerativeAIEmbeddings`` pinned to a fixed output dimension."""

    __slots__ = ("_embeddings", "dimension")

    def __init__(self, embeddings: Any = None, dimension: int | None = None) -> None:
        if embeddings is None:
            from langchain_google_genai import GoogleGenerativeAIEmbeddings

            embeddings = GoogleGenerativeAIEmbeddings(model=settings.EMBEDDING_MODEL, google_api_key=settings.GOOGLE_API_KEY.get_secret_value())
        self._embeddings = embeddings
        self.dimension: int = settings.EMBEDDING_DIMENSION if dimension is None else dimension


    def embed_query(self, text: str) -> list[float]:
        return list(self._embeddings.embed_query(text, output_dimensionality=self.dimension))


def build_embedder(backend: str | None = None, dimension: int | None = None) -> Embedder:
    """
    Create the embedding backend named by *backend*.

    Both backends request *dimension* from the model, so models with a
    larger native size (``gemini-embedding-001`` returns 3072) still
    match the store.

    Args:
        backend:   ``"genai"`` or ``"langchain"``.  Defaults to
                   ``settings.EMBEDDING_BACKEND``.
        dimension: Output size.  Defaults to ``settings.EMBEDDING_DIMENSION``.

    Raises:
        ValueError: Unknown backend.
    """
    backend = backend or settings.EMBEDDING_BACKEND
    dimension = settings.EMBEDDING_DIMENSION if dimension is None else dimension
    if backend == "genai":
        logger.info("Embedding backend: google-genai (%s, %d dims)", settings.EMBEDDING_MODEL, dimension)
        return GenAIEmbedder(dimension=dimension)
    if backend == "langchain":
        logger.info("Embedding backend: langchain-google-genai (%s, %d dims)", settings.EMBEDDING_MODEL, dimension)
        return LangChainEmbedder(dimension=dimension)
    raise ValueError(f"Unknown embedding backend: {backend!r}. Supported: 'genai', 'langchain'")


# ══════════════════════════════════════════════════════════════════════
#  PROVIDER
# ══════════════════════════════════════════════════════════════════════


class EmbeddingProvider:
    """
    Failure-free front for an ``Embedder``.

    Parameters
    ----------
    embedder
        Backend exposing ``embed_query``.
    dimension
        Expected vector length.  Defaults to ``settings.EMBEDDING_DIMENSION``.
    max_chars
        Truncation cap.  Defaults to ``settings.EMBEDDING_MAX_CHARS``.
    """

    __slots__ = ("_embedder", "_dimension", "_max_chars")

    def __init__(self, embedder: Embedder, dimension: int | None = None, max_chars: int | None = None) -> None:
        self._embedder = embedder
        self._dimension: int = settings.EMBEDDING_DIMENSION if dimension is None else dimension
        self._max_chars: int = settings.EMBEDDING_MAX_CHARS if max_chars is None else max_chars

        if self._dimension < 1 or self._max_chars < 1:
            raise ValueError(f"dimension and max_chars must be ≥ 1, got {self._dimension} and {self._max_chars}")


    @property
    def dimension(self) -> int:
        return self._dimension


    def embed(self, text: str) -> EmbeddingResult:
        """
        Embed one text.  Never raises.

        Blank input is answered locally with ``NO_EMBEDDING``; the
        backend is not called.
        """
        if is_blank(text):
            logger.warning("Empty text provided for embedding generation.")
            return EmbeddingResult.no_embedding("blank text")

        submitted = truncate_text(text, self._max_chars)
        if len(submitted) < len(text):
            logger.debug("Truncated embedding input from %d to %d chars.", len(text), len(submitted))

        try:
            raw = self._embedder.embed_query(submitted)
        except Exception as exc:
            logger.error("Failed to generate embedding: %s", exc)
            return EmbeddingResult.fault(f"{type(exc).__name__}: {exc}")

        return self._validate(raw)


    def embed_many(self, texts: Sequence[str]) -> list[EmbeddingResult]:
        """Embed *texts* one after another, preserving input order."""
        return [self.embed(text) for text in texts]


    def _validate(self, raw: Any) -> EmbeddingResult:
        try:
            vector = [float(v) for v in raw]
        except (TypeError, ValueError) as exc:
            logger.error("Failed to extract embedding from response: %s", exc)
            return EmbeddingResult.fault(f"unparseable embedding: {exc}")

        if not vector:
            logger.error("No embedding values in response.")
            return EmbeddingResult.fault("empty embedding")
        if len(vector) != self._dimension:
            logger.error("Embedding has %d dimensions, expected %d.", len(vector), self._dimension)
            return EmbeddingResult.fault(f"expected {self._dimension} dimensions, got {len(vector)}")

        logger.debug("Generated embedding with %d dimensions.", len(vector))
        return EmbeddingResult.ok(vector)
