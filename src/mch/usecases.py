"""Add and search orchestration.

These use cases wire storage, embeddings, the hierarchy and the link builder
together. They hold no state of their own beyond their collaborators.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from uuid import UUID

from .config import DEFAULT_SEARCH_LIMIT, MAX_SEARCH_LIMIT
from .embeddings.base import EmbeddingProvider, try_embed
from .errors import InvalidHierarchyError, NotFoundError, ValidationError
from .hierarchy import HierarchyService, build_model
from .models import AddContextInput, Context, ListOptions, SearchResponse, SearchResult
from .related_links import RelatedLinksBuilder
from .storage.base import StorageProvider
from .vector_math import similarity

log = logging.getLogger(__name__)


class AddContextUseCase:
    """Store a new context, file it in the hierarchy and link it to its neighbours."""

    def __init__(
        self,
        storage: StorageProvider,
        embedder: EmbeddingProvider | None,
        hierarchy: HierarchyService,
        linker: RelatedLinksBuilder,
    ) -> None:
        self._storage = storage
        self._embedder = embedder
        self._hierarchy = hierarchy
        self._linker = linker

    async def execute(self, data: AddContextInput) -> Context:
        """Add a context.

        Steps:
        1. Resolve the placement: ids must exist, names are created on first use
        2. Embed the content (an unavailable embedder yields no embedding)
        3. Save the context
        4. Link it to similar contexts of the same project (other unfiled
           contexts when it has no project) and save again

        Links are computed for the new context only; existing contexts are
        not updated.

        Raises:
            ValidationError: If the content is empty or a sprint is given
                without a project.
            NotFoundError: If an explicit project or sprint id does not exist.
            InvalidHierarchyError: If the sprint belongs to another project.
        """
        # Validate before any side effect (embedding, node creation)
        context = build_model(
            Context,
            type=data.type,
            content=data.content,
            summary=data.summary,
            tags=data.tags,
            source=data.source,
        )
        project_id, sprint_id = await self._resolve_placement(data)

        embedding = try_embed(self._embedder, data.content)
        context = build_model(
            Context,
            **context.model_dump(exclude={"embedding", "project_id", "sprint_id"}),
            embedding=embedding,
            project_id=project_id,
            sprint_id=sprint_id,
        )
        await self._storage.save_context(context)

        if context.embedding is None:
            log.info("Added context %s without related links (no embedding)", context.id)
            return context

        # Unfiled contexts form their own scope
        scope = ListOptions(project_id=context.project_id, unassigned_only=context.project_id is None)
        pool = await self._storage.list_contexts(scope)
        links = self._linker.links_for(context, pool)
        if links:
            context = context.with_links(links)
            await self._storage.save_context(context)

        log.info("Added context %s with %d related links", context.id, len(links))
        return context

    async def _resolve_placement(self, data: AddContextInput) -> tuple[UUID | None, UUID | None]:
        if data.project_id is not None or data.sprint_id is not None:
            if data.project is not None or data.sprint is not None:
                raise ValidationError("Give the placement by id or by name, not both")
            if data.project_id is None:
                raise ValidationError("A sprint requires a project")
            await self._hierarchy.get_project(data.project_id)
            if data.sprint_id is not None:
                sprint = await self._hierarchy.get_sprint(data.sprint_id)
                if sprint.project_id != data.project_id:
                    # Same check and error as assign_context
                    raise InvalidHierarchyError(
                        f'Sprint "{sprint.name}" does not belong to project {data.project_id}',
                        {"sprint_id": str(sprint.id), "project_id": str(data.project_id)},
                    )
            return data.project_id, data.sprint_id

        if data.project is None:
            if data.sprint is not None:
                raise ValidationError("A sprint requires a project")
            return None, None

        placement = await self._hierarchy.resolve_placement(data.project, data.sprint)
        return placement.project_id, placement.sprint_id


def _clamp_limit(limit: int) -> int:
    if limit < 1:
        raise ValidationError(f"limit must be at least 1, got {limit}")
    return min(limit, MAX_SEARCH_LIMIT)


class SearchContextUseCase:
    """Keyword, tag and similarity lookups over stored contexts."""

    def __init__(
        self,
        storage: StorageProvider,
        embedder: EmbeddingProvider | None,
    ) -> None:
        self._storage = storage
        self._embedder = embedder

    async def search_by_keyword(self, keyword: str, options: ListOptions | None = None) -> SearchResponse:
        """Case-insensitive substring match over content, summary and tags.

        Results are newest first. The filters in `options` apply as in
        list_contexts; its limit/offset page the matches.
        """
        needle = keyword.strip().lower()
        if not needle:
            raise ValidationError("keyword cannot be empty")

        options = options or ListOptions()
        contexts = await self._storage.list_contexts(options.model_copy(update={"limit": None, "offset": 0}))

        hits = [
            ctx
            for ctx in reversed(contexts)
            if needle in ctx.content.lower()
            or (ctx.summary and needle in ctx.summary.lower())
            or any(needle in tag.lower() for tag in ctx.tags)
        ]
        end = None if options.limit is None else options.offset + options.limit
        return SearchResponse(results=[SearchResult(context=ctx) for ctx in hits[options.offset : end]])

    async def search_by_tags(self, tags: Iterable[str]) -> SearchResponse:
        """Contexts carrying any of `tags`, newest first."""
        wanted = [tag.strip() for tag in tags if tag.strip()]
        if not wanted:
            raise ValidationError("at least one tag is required")
        contexts = await self._storage.list_contexts(ListOptions(tags=wanted))
        return SearchResponse(results=[SearchResult(context=ctx) for ctx in reversed(contexts)])

    async def search_similar(
        self,
        context_id: UUID,
        limit: int = DEFAULT_SEARCH_LIMIT,
        project_id: UUID | None = None,
    ) -> SearchResponse:
        """Contexts most similar to an existing one (never the context itself).

        Raises:
            NotFoundError: If the context does not exist.
        """
        limit = _clamp_limit(limit)
        context = await self._storage.get_context(context_id)
        if context is None:
            raise NotFoundError("context", context_id)

        if not context.embedding:
            return SearchResponse(warnings=[f"Context {context_id} has no embedding; similarity search unavailable"])

        pool = await self._storage.list_contexts(ListOptions(project_id=project_id))
        return SearchResponse(results=self._rank(context.embedding, pool, limit, exclude=context.id))

    async def search_by_text(
        self,
        text: str,
        limit: int = DEFAULT_SEARCH_LIMIT,
        project_id: UUID | None = None,
        min_score: float | None = None,
    ) -> SearchResponse:
        """Contexts most similar to free text.

        An unavailable embedder yields an empty response with a warning.
        """
        if not text.strip():
            raise ValidationError("query cannot be empty")
        limit = _clamp_limit(limit)

        embedding = try_embed(self._embedder, text)
        if embedding is None:
            return SearchResponse(warnings=["Embedding provider unavailable; semantic search skipped"])

        pool = await self._storage.list_contexts(ListOptions(project_id=project_id))
        return SearchResponse(results=self._rank(embedding, pool, limit, min_score=min_score))

    def _rank(
        self,
        query: Sequence[float],
        pool: Iterable[Context],
        limit: int,
        exclude: UUID | None = None,
        min_score: float | None = None,
    ) -> list[SearchResult]:
        scored = [
            (similarity(query, ctx.embedding), ctx)
            for ctx in pool
            if ctx.id != exclude and ctx.embedding
        ]
        if min_score is not None:
            scored = [(score, ctx) for score, ctx in scored if score >= min_score]

        # Most similar first; ties go to the newer context
        scored.sort(key=lambda item: (item[0], item[1].created_at), reverse=True)
        return [SearchResult(context=ctx, score=score) for score, ctx in scored[:limit]]
