"""Sentence-transformers embedding provider with a persistent cache."""

from __future__ import annotations

import importlib.util
import logging
from typing import TYPE_CHECKING

from ..config import EMBEDDING_BATCH_SIZE, EMBEDDING_MODEL
from ..errors import MchError
from .cache import EmbeddingCache, hash_embedding_text

log = logging.getLogger(__name__)

if TYPE_CHECKING:
    from sentence_transformers import SentenceTransformer


def semantic_deps_available() -> bool:
    return importlib.util.find_spec("sentence_transformers") is not None


class SentenceTransformerEmbedder:
    """Embeds text locally with sentence-transformers.

    The model is loaded lazily on first use. Vectors are looked up in the
    cache before encoding, keyed by (model, sha256(text)). Once the vector
    dimension is known, cached vectors of another length are ignored.
    """

    def __init__(self, model_name: str = EMBEDDING_MODEL, cache: EmbeddingCache | None = None) -> None:
        self._model_name = model_name
        self._model: SentenceTransformer | None = None
        self._cache = cache
        self._dimension: int | None = None

    @property
    def model_name(self) -> str:
        return self._model_name

    def _get_model(self) -> SentenceTransformer:
        """Lazy-load the embedding model."""
        if self._model is None:
            try:
                from sentence_transformers import SentenceTransformer
            except ImportError as exc:
                raise MchError.dependency_missing(
                    "embeddings",
                    ["sentence-transformers"],
                    suggestion="pip install 'mch[semantic]'",
                ) from exc

            self._model = SentenceTransformer(self._model_name)
            self._dimension = self._model.get_sentence_embedding_dimension()
        return self._model

    def _encode(self, texts: list[str]) -> list[list[float]]:
        model = self._get_model()
        embeddings = model.encode(texts, batch_size=EMBEDDING_BATCH_SIZE, convert_to_numpy=True)
        return embeddings.tolist()

    def _load_cached(self, hashes: list[str]) -> dict[str, list[float]]:
        if self._cache is None:
            return {}
        try:
            return self._cache.get_many(hashes, dimension=self._dimension)
        except Exception as e:
            log.warning("Embedding cache read failed: %s", e)
            return {}

    def _store_cached(self, embeddings: dict[str, list[float]]) -> None:
        if self._cache is None:
            return
        try:
            self._cache.set_many(embeddings)
        except Exception as e:
            log.warning("Embedding cache write failed: %s", e)

    def embed(self, text: str) -> list[float]:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        hashes = [hash_embedding_text(text) for text in texts]
        cached = self._load_cached(list(dict.fromkeys(hashes)))

        missing = [(h, text) for h, text in dict(zip(hashes, texts)).items() if h not in cached]
        if missing:
            vectors = self._encode([text for _, text in missing])
            self._dimension = len(vectors[0])
            fresh = {h: vector for (h, _), vector in zip(missing, vectors)}
            self._store_cached(fresh)
            cached.update(fresh)
            log.debug("Encoded %d of %d texts (%d cached)", len(missing), len(texts), len(texts) - len(missing))

        return [cached[h] for h in hashes]
