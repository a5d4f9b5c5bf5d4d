"""Embedding provider protocol and graceful degradation helper."""

import logging
from typing import Protocol, runtime_checkable

from ..errors import EmbeddingUnavailable

log = logging.getLogger(__name__)


@runtime_checkable
class EmbeddingProvider(Protocol):
    """
    Generates vector embeddings from text.

    The same provider (and model) must be used for every context in a store;
    vectors of a different dimensionality are never compared.
    """

    @property
    def model_name(self) -> str: ...

    def embed(self, text: str) -> list[float]:
        """Embed a single text. May raise on provider failure."""
        ...

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed several texts, preserving order."""
        ...


def try_embed(provider: EmbeddingProvider | None, text: str) -> list[float] | None:
    """Embed `text`, returning None instead of failing.

    An absent provider, a provider error, or an empty vector all mean the
    embedding is unavailable; linking then degrades to "no links" instead of
    failing the surrounding operation. Provider errors are not retried here.

    Args:
        provider: Embedding provider, or None when none is configured.
        text: Text to embed.

    Returns:
        The embedding vector, or None if unavailable.
    """
    if provider is None:
        log.debug("No embedding provider configured; skipping embedding")
        return None

    try:
        vector = provider.embed(text)
    except EmbeddingUnavailable as e:
        log.warning("Embedding unavailable: %s", e.message)
        return None
    except Exception as e:
        log.warning("Embedding provider failed (%s): %s", type(e).__name__, e)
        return None

    if not vector:
        log.warning("Embedding provider returned an empty vector")
        return None
    return [float(v) for v in vector]
