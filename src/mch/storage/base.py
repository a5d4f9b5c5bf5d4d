"""Storage provider protocol.

The core depends only on these signatures, never on a concrete backend.
Using Protocol for structural subtyping - no explicit inheritance required.

Adapters raise ``mch.errors.StorageError`` for backend failures and return
``None`` (never raise) for lookups that find nothing.
"""

from typing import Protocol, runtime_checkable
from uuid import UUID

from ..models import Context, ListOptions, Project, Sprint, UnreadableRecord


@runtime_checkable
class StorageProvider(Protocol):
    """Persists and retrieves Context, Project and Sprint records."""

    # Contexts

    async def get_context(self, context_id: UUID) -> Context | None: ...

    async def list_contexts(self, options: ListOptions | None = None) -> list[Context]:
        """List contexts matching `options`, ordered by (created_at, id) ascending."""
        ...

    async def get_context_count(self, project_id: UUID | None = None) -> int: ...

    async def save_context(self, context: Context) -> None:
        """Insert or fully overwrite a context."""
        ...

    async def delete_context(self, context_id: UUID) -> None: ...

    async def list_unreadable(self) -> list[UnreadableRecord]:
        """Stored contexts that exist but cannot be parsed (left out of list_contexts)."""
        ...

    # Projects

    async def save_project(self, project: Project) -> None: ...

    async def get_project(self, project_id: UUID) -> Project | None: ...

    async def get_project_by_name(self, name: str) -> Project | None:
        """Case-sensitive exact-name lookup."""
        ...

    async def list_projects(self) -> list[Project]: ...

    # Sprints

    async def save_sprint(self, sprint: Sprint) -> None: ...

    async def get_sprint(self, sprint_id: UUID) -> Sprint | None: ...

    async def list_sprints(self, project_id: UUID | None = None) -> list[Sprint]: ...


def matches(context: Context, options: ListOptions) -> bool:
    """Whether a context passes the filters in `options` (ignores paging)."""
    if options.unassigned_only and context.project_id is not None:
        return False
    if options.project_id is not None and context.project_id != options.project_id:
        return False
    if options.sprint_id is not None and context.sprint_id != options.sprint_id:
        return False
    if options.type is not None and context.type != options.type:
        return False
    if options.tags and not set(options.tags) & set(context.tags):
        return False
    return True


def apply_options(contexts: list[Context], options: ListOptions | None) -> list[Context]:
    """Filter, order by (created_at, id) and page a list of contexts."""
    options = options or ListOptions()
    selected = [ctx for ctx in contexts if matches(ctx, options)]
    selected.sort(key=lambda ctx: (ctx.created_at, str(ctx.id)))
    end = None if options.limit is None else options.offset + options.limit
    return selected[options.offset : end]
