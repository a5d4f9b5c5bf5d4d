"""Related-link selection for newly added contexts.

Given a new context's embedding and a caller-supplied candidate pool, pick the
most similar predecessors. This module has no knowledge of storage; which
contexts make up the pool (typically the same project) is decided by the
orchestration layer.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from .config import MAX_RELATED_LINKS, SIMILARITY_THRESHOLD, CoreConfig
from .errors import ValidationError
from .models import Context, RelatedLink
from .vector_math import similarity

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class LinkCandidate:
    """An existing context offered as a possible link target."""

    id: UUID
    embedding: Sequence[float] | None
    created_at: datetime

    @classmethod
    def from_context(cls, context: Context) -> LinkCandidate:
        return cls(id=context.id, embedding=context.embedding, created_at=context.created_at)


def build_links(
    new_embedding: Sequence[float] | None,
    candidates: Iterable[LinkCandidate],
    threshold: float = SIMILARITY_THRESHOLD,
    max_links: int = MAX_RELATED_LINKS,
) -> list[RelatedLink]:
    """Select and rank the candidates most similar to a new embedding.

    Selection rules:
    1. Score every candidate with cosine similarity
    2. Drop candidates scoring strictly below `threshold`
    3. Sort by score descending; ties go to the more recently created candidate
    4. Truncate to `max_links`

    A candidate id offered more than once is linked once, with its best score.
    Candidates without an embedding, or with a different dimensionality, score
    0 and only survive a threshold of 0.

    Args:
        new_embedding: Embedding of the new context. None or empty means the
            embedding provider was unavailable, so no links are produced.
        candidates: Existing contexts to compare against.
        threshold: Minimum similarity score (0.0-1.0).
        max_links: Maximum links to return.

    Returns:
        Links sorted by score (non-increasing), at most `max_links` long.

    Raises:
        ValidationError: If threshold is outside [0, 1].
    """
    if not 0.0 <= threshold <= 1.0:
        raise ValidationError(f"threshold must be between 0 and 1, got {threshold}")

    if new_embedding is None or len(new_embedding) == 0 or max_links <= 0:
        return []

    best: dict[UUID, tuple[float, datetime]] = {}
    for candidate in candidates:
        score = similarity(new_embedding, candidate.embedding) if candidate.embedding is not None else 0.0
        if score < threshold:
            continue
        previous = best.get(candidate.id)
        if previous is None or score > previous[0]:
            best[candidate.id] = (score, candidate.created_at)

    # Sort ascending on id first so the stable sort below leaves exact ties in id order
    ranked = sorted(best.items(), key=lambda item: str(item[0]))
    ranked.sort(key=lambda item: (item[1][0], item[1][1]), reverse=True)

    links = [RelatedLink(target_id=target_id, score=score) for target_id, (score, _) in ranked[:max_links]]
    log.debug("Selected %d of %d scored candidates (threshold=%.2f)", len(links), len(best), threshold)
    return links


class RelatedLinksBuilder:
    """build_links bound to the configured threshold and link limit."""

    def __init__(self, config: CoreConfig | None = None) -> None:
        config = config or CoreConfig()
        self.threshold = config.similarity_threshold
        self.max_links = config.max_related_links

    def build(
        self,
        new_embedding: Sequence[float] | None,
        candidates: Iterable[LinkCandidate],
        threshold: float | None = None,
        max_links: int | None = None,
    ) -> list[RelatedLink]:
        return build_links(
            new_embedding,
            candidates,
            threshold=self.threshold if threshold is None else threshold,
            max_links=self.max_links if max_links is None else max_links,
        )

    def links_for(self, context: Context, pool: Iterable[Context]) -> list[RelatedLink]:
        """Links for `context` against `pool`, never linking a context to itself."""
        candidates = (LinkCandidate.from_context(other) for other in pool if other.id != context.id)
        return self.build(context.embedding, candidates)
