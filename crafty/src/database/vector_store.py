"""
Crafty - Chunk Store
=====================
Persistent collection of knowledge chunks with similarity search.

Two variants implement the ``ChunkStore`` protocol:

``LanceChunkStore``
    LanceDB table with a strict PyArrow schema.  Similarity search uses
    LanceDB's cosine distance (``1 − cosine_similarity``) with a
    ``has_embedding`` pre-filter, so chunks whose embedding is still
    missing never take part in a ranking.  Those rows carry an all-zero
    placeholder vector because the vector column is fixed-size.

``InMemoryChunkStore``
    Exact numpy ranking over an in-process dict.  Used for development
    and tests; contents are lost with the process.

Design decisions:
  • **Dependency Injection**: the LanceDB connection can be injected,
    otherwise one is opened for ``db_path``.  No process-wide cache.
  • **Atomic writes**: each ``save()`` is a single LanceDB commit
    (``add`` for a new chunk, ``merge_insert`` keyed on ``external_id``
    for an existing one).  No write spans two chunks.
  • **Error boundary**: every backend failure surfaces as ``StoreError``.

Usage:
    from crafty.src.database.vector_store import build_chunk_store
    store = build_chunk_store("lancedb")
    store.save(chunk)
    hits = store.find_top_k_by_similarity(query_vector, k=5)
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Protocol, Sequence, runtime_checkable

import lancedb
import numpy as np
import pyarrow as pa
import pyarrow.compute as pc

from crafty.config.settings import settings
from crafty.src.core.errors import StoreError
from crafty.src.database.models import Chunk, MetadataFilter
from crafty.src.utils.logger import get_logger

logger = get_logger(__name__)

# ── Type Aliases ──────────────────────────────────────────────────────
ChunkRecord = dict[str, str | int | bool | list[float] | None]


# ── Store Protocol ────────────────────────────────────────────────────

@runtime_checkable
class ChunkStore(Protocol):
    """Structural type shared by every chunk store variant."""

    load_lock: threading.Lock

    def find_by_external_id(self, external_id: str) -> Chunk | None: ...

    def find_by_metadata_field(self, field: str, value: str) -> list[Chunk]: ...

    def find_top_k_by_similarity(self, query_vector: Sequence[float], k: int, metadata_filter: MetadataFilter | None = None) -> list[Chunk]: ...

    def find_above_threshold(self, query_vector: Sequence[float], threshold: float, k: int, metadata_filter: MetadataFilter | None = None) -> list[Chunk]: ...

    def count(self) -> int: ...

    def count_with_embedding(self) -> int: ...

    def save(self, chunk: Chunk) -> Chunk: ...

    def drop(self) -> None: ...


# ── Helpers ───────────────────────────────────────────────────────────

def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between *a* and *b*; 0.0 if either has zero norm."""
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    norm = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if norm == 0.0:
        return 0.0
    return float(np.dot(va, vb) / norm)


def _check_field(field: str) -> str:
    if field not in Chunk.METADATA_FIELDS:
        raise ValueError(f"Unknown metadata field {field!r}. Supported: {', '.join(Chunk.METADATA_FIELDS)}")
    return field


def _sql_literal(value: str) -> str:
    """Quote *value* as a LanceDB SQL string literal."""
    return "'" + value.replace("'", "''") + "'"


def _check_dimension(chunk: Chunk, dimension: int) -> None:
    if chunk.embedding is not None and len(chunk.embedding) != dimension:
        raise StoreError(f"Chunk '{chunk.external_id}' has a {len(chunk.embedding)}-dim embedding, store expects {dimension}.")


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    """Re-raise any backend failure inside the block as ``StoreError``."""
    try:
        yield
    except StoreError:
        raise
    except Exception as exc:
        logger.error("Chunk store %s failed: %s", operation, exc)
        raise StoreError(f"{operation} failed: {exc}") from exc


def chunk_schema(dimension: int) -> pa.Schema:
    """PyArrow schema of the LanceDB chunk table for a given vector dimension."""
    return pa.schema([
        pa.field("surrogate_id", pa.int64(), nullable=False),
        pa.field("external_id", pa.utf8(), nullable=False),
        pa.field("text", pa.utf8(), nullable=False),
        pa.field("modpack", pa.utf8()),
        pa.field("mod_name", pa.utf8()),
        pa.field("mod_version", pa.utf8()),
        pa.field("category", pa.utf8()),
        pa.field("doc_type", pa.utf8()),
        pa.field("language", pa.utf8()),
        pa.field("has_embedding", pa.bool_(), nullable=False),
        pa.field("vector", pa.list_(pa.float32(), dimension)),
    ])


# ══════════════════════════════════════════════════════════════════════
#  LANCEDB STORE
# ══════════════════════════════════════════════════════════════════════


class LanceChunkStore:
    """
    Chunk store backed by a LanceDB table.

    Parameters
    ----------
    db_path
        Database directory.  Defaults to ``settings.LANCEDB_PATH``.
    table_name
        Table name.  Defaults to ``settings.LANCEDB_TABLE_NAME``.
    dimension
        Embedding dimension.  Defaults to ``settings.EMBEDDING_DIMENSION``.
    db
        An already open ``lancedb.DBConnection``; ``db_path`` is ignored
        when given.

    Embeddings are stored as float32, so a chunk read back carries its
    vector at float32 precision rather than the exact floats it was
    saved with.
    """

    __slots__ = ("_db_path", "_table_name", "_dimension", "_schema", "_write_lock", "_next_id", "load_lock", "db", "table")

    def __init__(self, db_path: str | Path | None = None, table_name: str | None = None, dimension: int | None = None, db: lancedb.DBConnection | None = None) -> None:
        self._db_path: str = str(db_path or settings.LANCEDB_PATH)
        self._table_name: str = table_name or settings.LANCEDB_TABLE_NAME
        self._dimension: int = settings.EMBEDDING_DIMENSION if dimension is None else dimension
        self._schema: pa.Schema = chunk_schema(self._dimension)
        self._write_lock = threading.Lock()
        self._next_id: int = 1
        self.load_lock = threading.Lock()
        self.db: lancedb.DBConnection | None = db
        self.table: lancedb.table.Table | None = None
        self._connect()


    def _connect(self) -> None:
        """Open the LanceDB connection and create or open the chunk table."""
        try:
            if self.db is None:
                Path(self._db_path).mkdir(parents=True, exist_ok=True)
                logger.info("Opening LanceDB connection: %s", self._db_path)
                self.db = lancedb.connect(self._db_path)

            self.table = self.db.create_table(self._table_name, schema=self._schema, exist_ok=True)
            logger.info("Opened table '%s' (dimension=%d, %d rows).", self._table_name, self._dimension, self.table.count_rows())

            self._next_id = self._max_surrogate_id() + 1

        except OSError as exc:
            logger.error("LanceDB filesystem error at %s: %s", self._db_path, exc)
            raise StoreError(f"Cannot open LanceDB at {self._db_path}: {exc}") from exc


    def _require_table(self) -> lancedb.table.Table:
        if self.table is None:
            raise StoreError("Chunk table is not initialised.")
        return self.table


    def _max_surrogate_id(self) -> int:
        arrow = self._require_table().to_arrow()
        if arrow.num_rows == 0:
            return 0
        return int(pc.max(arrow["surrogate_id"]).as_py())

    # ── Record mapping ────────────────────────────────────────────────

    def _to_record(self, chunk: Chunk) -> ChunkRecord:
        record: ChunkRecord = {"surrogate_id": chunk.surrogate_id, "external_id": chunk.external_id, "text": chunk.text}
        for name in Chunk.METADATA_FIELDS:
            record[name] = getattr(chunk, name)
        record["has_embedding"] = chunk.has_embedding
        record["vector"] = list(chunk.embedding) if chunk.embedding is not None else [0.0] * self._dimension
        return record


    @staticmethod
    def _to_chunk(row: dict) -> Chunk:
        embedding = [float(v) for v in row["vector"]] if row["has_embedding"] else None
        metadata = {name: row.get(name) for name in Chunk.METADATA_FIELDS}
        return Chunk(surrogate_id=row["surrogate_id"], external_id=row["external_id"], text=row["text"], embedding=embedding, **metadata)


    @staticmethod
    def _where(metadata_filter: MetadataFilter | None) -> str:
        clauses = ["has_embedding = true"]
        if metadata_filter is not None:
            clauses.append(f"{_check_field(metadata_filter.field)} = {_sql_literal(metadata_filter.value)}")
        return " AND ".join(clauses)

    # ── Reads ─────────────────────────────────────────────────────────

    def find_by_external_id(self, external_id: str) -> Chunk | None:
        with _store_errors("find_by_external_id"):
            matches = self._require_table().search().where(f"external_id = {_sql_literal(external_id)}").limit(1).to_list()
        return self._to_chunk(matches[0]) if matches else None


    def find_by_metadata_field(self, field: str, value: str) -> list[Chunk]:
        _check_field(field)
        with _store_errors("find_by_metadata_field"):
            arrow = self._require_table().to_arrow()
            rows = arrow.filter(pc.equal(arrow[field], value)).to_pylist()
        return [self._to_chunk(row) for row in sorted(rows, key=lambda r: r["surrogate_id"])]


    def _nearest(self, query_vector: Sequence[float], k: int, metadata_filter: MetadataFilter | None) -> list[dict]:
        if k <= 0 or self.count_with_embedding() == 0:
            return []

        if len(query_vector) != self._dimension:
            raise StoreError(f"Query vector has {len(query_vector)} dims, store expects {self._dimension}.")

        where = self._where(metadata_filter)
        with _store_errors("similarity search"):
            query = self._require_table().search(list(query_vector), vector_column_name="vector").distance_type("cosine").where(where, prefilter=True).limit(k)
            rows: list[dict] = query.to_list()
        logger.debug("Similarity search (k=%d, where=%s) returned %d rows.", k, where, len(rows))
        return rows


    def find_top_k_by_similarity(self, query_vector: Sequence[float], k: int, metadata_filter: MetadataFilter | None = None) -> list[Chunk]:
        return [self._to_chunk(row) for row in self._nearest(query_vector, k, metadata_filter)]


    def find_above_threshold(self, query_vector: Sequence[float], threshold: float, k: int, metadata_filter: MetadataFilter | None = None) -> list[Chunk]:
        # Rows arrive by ascending distance, so everything above the
        # threshold is a prefix of the top-k list.
        rows = self._nearest(query_vector, k, metadata_filter)
        return [self._to_chunk(row) for row in rows if 1.0 - float(row["_distance"]) >= threshold]


    def count(self) -> int:
        with _store_errors("count"):
            return self._require_table().count_rows()


    def count_with_embedding(self) -> int:
        with _store_errors("count_with_embedding"):
            return self._require_table().count_rows("has_embedding = true")

    # ── Writes ────────────────────────────────────────────────────────

    def save(self, chunk: Chunk) -> Chunk:
        """
        Insert or update one chunk in a single commit.

        A new ``external_id`` gets the next ``surrogate_id``; an existing
        one keeps its id and has every column replaced.

        Raises
        ------
        StoreError
            If the embedding has the wrong dimension or the write fails.
        """
        _check_dimension(chunk, self._dimension)
        table = self._require_table()

        with self._write_lock:
            existing = self.find_by_external_id(chunk.external_id)
            if existing is not None:
                stored = chunk.model_copy(update={"surrogate_id": existing.surrogate_id})
                data = pa.Table.from_pylist([self._to_record(stored)], schema=self._schema)
                with _store_errors("save"):
                    table.merge_insert("external_id").when_matched_update_all().when_not_matched_insert_all().execute(data)
                logger.debug("Updated chunk '%s' (id=%d).", stored.external_id, stored.surrogate_id)
                return stored

            stored = chunk.model_copy(update={"surrogate_id": self._next_id})
            data = pa.Table.from_pylist([self._to_record(stored)], schema=self._schema)
            with _store_errors("save"):
                table.add(data)
            self._next_id += 1
            logger.debug("Inserted chunk '%s' (id=%d).", stored.external_id, stored.surrogate_id)
            return stored


    def drop(self) -> None:
        """Drop the chunk table and start again with an empty one."""
        if self.db is None:
            logger.warning("No database connection; nothing to drop.")
            return
        with self._write_lock, _store_errors("drop"):
            self.db.drop_table(self._table_name, ignore_missing=True)
            logger.info("Dropped table '%s'.", self._table_name)
            self.table = self.db.create_table(self._table_name, schema=self._schema)
            self._next_id = 1


    def __repr__(self) -> str:
        return f"LanceChunkStore(db='{self._db_path}', table='{self._table_name}', dimension={self._dimension})"


# ══════════════════════════════════════════════════════════════════════
#  IN-MEMORY STORE
# ══════════════════════════════════════════════════════════════════════


class InMemoryChunkStore:
    """
    Process-local chunk store with exact cosine ranking.

    Ties in similarity are broken by ``surrogate_id`` so repeated queries
    return the same order.  Reads and writes hand out copies; mutating a
    returned chunk never changes the stored one.
    """

    __slots__ = ("_dimension", "_chunks", "_write_lock", "_next_id", "load_lock")

    def __init__(self, dimension: int | None = None) -> None:
        self._dimension: int = settings.EMBEDDING_DIMENSION if dimension is None else dimension
        self._chunks: dict[str, Chunk] = {}
        self._write_lock = threading.Lock()
        self._next_id: int = 1
        self.load_lock = threading.Lock()


    def _snapshot(self) -> list[Chunk]:
        with self._write_lock:
            return [c.model_copy(deep=True) for c in self._chunks.values()]


    def find_by_external_id(self, external_id: str) -> Chunk | None:
        with self._write_lock:
            chunk = self._chunks.get(external_id)
            return chunk.model_copy(deep=True) if chunk is not None else None


    def find_by_metadata_field(self, field: str, value: str) -> list[Chunk]:
        _check_field(field)
        return [c for c in self._snapshot() if getattr(c, field) == value]


    def _ranked(self, query_vector: Sequence[float], metadata_filter: MetadataFilter | None) -> list[tuple[float, Chunk]]:
        if len(query_vector) != self._dimension:
            raise StoreError(f"Query vector has {len(query_vector)} dims, store expects {self._dimension}.")

        candidates = [c for c in self._snapshot() if c.embedding is not None]
        if metadata_filter is not None:
            field = _check_field(metadata_filter.field)
            candidates = [c for c in candidates if getattr(c, field) == metadata_filter.value]

        scored = [(cosine_similarity(c.embedding, query_vector), c) for c in candidates]  # type: ignore[arg-type]
        scored.sort(key=lambda pair: (1.0 - pair[0], pair[1].surrogate_id))
        return scored


    def find_top_k_by_similarity(self, query_vector: Sequence[float], k: int, metadata_filter: MetadataFilter | None = None) -> list[Chunk]:
        if k <= 0:
            return []
        return [c for _, c in self._ranked(query_vector, metadata_filter)[:k]]


    def find_above_threshold(self, query_vector: Sequence[float], threshold: float, k: int, metadata_filter: MetadataFilter | None = None) -> list[Chunk]:
        if k <= 0:
            return []
        above = [c for sim, c in self._ranked(query_vector, metadata_filter) if sim >= threshold]
        return above[:k]


    def count(self) -> int:
        with self._write_lock:
            return len(self._chunks)


    def count_with_embedding(self) -> int:
        with self._write_lock:
            return sum(1 for c in self._chunks.values() if c.embedding is not None)


    def save(self, chunk: Chunk) -> Chunk:
        _check_dimension(chunk, self._dimension)
        with self._write_lock:
            existing = self._chunks.get(chunk.external_id)
            if existing is not None:
                stored = chunk.model_copy(update={"surrogate_id": existing.surrogate_id}, deep=True)
            else:
                stored = chunk.model_copy(update={"surrogate_id": self._next_id}, deep=True)
                self._next_id += 1
            self._chunks[stored.external_id] = stored
        return stored.model_copy(deep=True)


    def drop(self) -> None:
        with self._write_lock:
            self._chunks.clear()
            self._next_id = 1


    def __repr__(self) -> str:
        return f"InMemoryChunkStore(dimension={self._dimension}, rows={self.count()})"


# ── Factory ───────────────────────────────────────────────────────────

def build_chunk_store(backend: str | None = None, **kwargs: object) -> ChunkStore:
    """
    Create the chunk store variant named by *backend*.

    Args:
        backend: ``"lancedb"`` or ``"memory"``.  Defaults to
                 ``settings.CHUNK_STORE_BACKEND``.
        **kwargs: Passed to the store constructor.

    Raises:
        ValueError: Unknown backend.
    """
    backend = backend or settings.CHUNK_STORE_BACKEND
    if backend == "lancedb":
        return LanceChunkStore(**kwargs)  # type: ignore[arg-type]
    if backend == "memory":
        return InMemoryChunkStore(**kwargs)  # type: ignore[arg-type]
    raise ValueError(f"Unknown chunk store backend: {backend!r}. Supported: 'lancedb', 'memory'")
