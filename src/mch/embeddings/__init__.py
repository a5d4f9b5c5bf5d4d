"""Embedding providers."""

from .base import EmbeddingProvider, try_embed
from .cache import EmbeddingCache
from .sentence_transformer import SentenceTransformerEmbedder, semantic_deps_available

__all__ = [
    "EmbeddingCache",
    "EmbeddingProvider",
    "SentenceTransformerEmbedder",
    "semantic_deps_available",
    "try_embed",
]
