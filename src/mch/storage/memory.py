"""Dict-backed storage provider.

Records are copied on the way in and out, so callers can never mutate stored
state without going through save_*.
"""

from uuid import UUID

from ..models import Context, ListOptions, Project, Sprint, UnreadableRecord
from .base import apply_options


class InMemoryStorage:
    """StorageProvider kept entirely in process memory."""

    def __init__(self) -> None:
        self._contexts: dict[UUID, Context] = {}
        self._projects: dict[UUID, Project] = {}
        self._sprints: dict[UUID, Sprint] = {}

    async def get_context(self, context_id: UUID) -> Context | None:
        context = self._contexts.get(context_id)
        return context.model_copy(deep=True) if context else None

    async def list_contexts(self, options: ListOptions | None = None) -> list[Context]:
        return [ctx.model_copy(deep=True) for ctx in apply_options(list(self._contexts.values()), options)]

    async def get_context_count(self, project_id: UUID | None = None) -> int:
        if project_id is None:
            return len(self._contexts)
        return sum(1 for ctx in self._contexts.values() if ctx.project_id == project_id)

    async def save_context(self, context: Context) -> None:
        self._contexts[context.id] = context.model_copy(deep=True)

    async def delete_context(self, context_id: UUID) -> None:
        self._contexts.pop(context_id, None)

    async def list_unreadable(self) -> list[UnreadableRecord]:
        return []

    async def save_project(self, project: Project) -> None:
        self._projects[project.id] = project.model_copy(deep=True)

    async def get_project(self, project_id: UUID) -> Project | None:
        project = self._projects.get(project_id)
        return project.model_copy(deep=True) if project else None

    async def get_project_by_name(self, name: str) -> Project | None:
        for project in self._projects.values():
            if project.name == name:
                return project.model_copy(deep=True)
        return None

    async def list_projects(self) -> list[Project]:
        return [p.model_copy(deep=True) for p in self._projects.values()]

    async def save_sprint(self, sprint: Sprint) -> None:
        self._sprints[sprint.id] = sprint.model_copy(deep=True)

    async def get_sprint(self, sprint_id: UUID) -> Sprint | None:
        sprint = self._sprints.get(sprint_id)
        return sprint.model_copy(deep=True) if sprint else None

    async def list_sprints(self, project_id: UUID | None = None) -> list[Sprint]:
        return [
            s.model_copy(deep=True)
            for s in self._sprints.values()
            if project_id is None or s.project_id == project_id
        ]
