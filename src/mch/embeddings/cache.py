"""Persistent embedding cache.

Vectors are keyed by (model, sha256 of the embedded text) and stored as raw
float64 blobs next to their dimensionality, so a read can refuse vectors that
do not match the dimension the caller expects. Cache location:
{store_root}/.cache/embedding_cache.sqlite
"""

from __future__ import annotations

import hashlib
import sqlite3
from collections.abc import Iterator
from contextlib import closing
from datetime import UTC, datetime
from pathlib import Path

import numpy as np

from ..config import get_store_root

CACHE_DIRNAME = ".cache"
CACHE_FILENAME = "embedding_cache.sqlite"
SCHEMA_VERSION = 2

# SQLite's default limit on bound parameters is 999
_MAX_KEYS_PER_QUERY = 900


def hash_embedding_text(text: str) -> str:
    """Cache key for a piece of embedded text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def _batches(keys: list[str]) -> Iterator[list[str]]:
    for start in range(0, len(keys), _MAX_KEYS_PER_QUERY):
        yield keys[start : start + _MAX_KEYS_PER_QUERY]


def _decode(blob: bytes, dim: int) -> list[float] | None:
    vector = np.frombuffer(blob, dtype=np.float64)
    if vector.size != dim:
        return None
    return vector.tolist()


class EmbeddingCache:
    """SQLite-backed vector store for one embedding model."""

    def __init__(self, model_name: str, cache_dir: Path | None = None) -> None:
        self._path = (cache_dir or get_store_root() / CACHE_DIRNAME) / CACHE_FILENAME
        self._model_name = model_name

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self._path))
        conn.execute("PRAGMA journal_mode=WAL")
        (version,) = conn.execute("PRAGMA user_version").fetchone()
        if version != SCHEMA_VERSION:
            # Older layouts only hold recomputable data
            with conn:
                conn.execute("DROP TABLE IF EXISTS vectors")
                conn.execute(
                    """
                    CREATE TABLE vectors (
                        model TEXT NOT NULL,
                        text_hash TEXT NOT NULL,
                        dim INTEGER NOT NULL,
                        vector BLOB NOT NULL,
                        stored_at TEXT NOT NULL,
                        PRIMARY KEY (model, text_hash)
                    )
                    """
                )
                conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
        return conn

    def get_many(self, hashes: list[str], dimension: int | None = None) -> dict[str, list[float]]:
        """Look up cached vectors.

        Args:
            hashes: Keys from `hash_embedding_text`.
            dimension: Expected vector length. Rows of any other length are
                treated as misses.

        Returns:
            Mapping of the hashes that hit to their vectors.
        """
        if not hashes:
            return {}

        found: dict[str, list[float]] = {}
        with closing(self._connect()) as conn:
            for batch in _batches(hashes):
                placeholders = ",".join("?" * len(batch))
                rows = conn.execute(
                    f"SELECT text_hash, dim, vector FROM vectors WHERE model = ? AND text_hash IN ({placeholders})",
                    [self._model_name, *batch],
                )
                for text_hash, dim, blob in rows:
                    if dimension is not None and dim != dimension:
                        continue
                    vector = _decode(blob, dim)
                    if vector is not None:
                        found[text_hash] = vector
        return found

    def set_many(self, embeddings: dict[str, list[float]]) -> None:
        """Store vectors, which must all share one dimension.

        Raises:
            ValueError: If the vectors disagree on dimension or one is empty.
        """
        if not embeddings:
            return

        arrays = {key: np.asarray(vector, dtype=np.float64) for key, vector in embeddings.items()}
        dims = {array.size for array in arrays.values()}
        if len(dims) != 1 or 0 in dims:
            raise ValueError(f"Cannot cache vectors of mixed or empty dimensions: {sorted(dims)}")

        stored_at = datetime.now(tz=UTC).isoformat()
        rows = [(self._model_name, key, array.size, array.tobytes(), stored_at) for key, array in arrays.items()]
        with closing(self._connect()) as conn, conn:
            conn.executemany(
                "INSERT OR REPLACE INTO vectors (model, text_hash, dim, vector, stored_at) VALUES (?, ?, ?, ?, ?)",
                rows,
            )
