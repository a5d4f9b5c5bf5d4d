"""Project → Sprint hierarchy management.

HierarchyService owns the structural invariants of the two-level tree:

- project names are unique (case-sensitive exact match)
- sprint names are unique within their project
- a sprint always references an existing project
- a context filed under a sprint is filed under that sprint's project

``assign_context`` is the single place where a context's project/sprint pair
is changed outside migration. It performs every check before writing, so a
failed call leaves the context untouched. Concurrent assignments of the same
context must be serialized by the caller; the service holds no locks.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, TypeVar
from uuid import UUID

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .errors import DuplicateNameError, InvalidHierarchyError, NotFoundError, ValidationError
from .models import Context, Project, ProjectTree, Sprint
from .storage.base import StorageProvider

log = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def build_model(model_cls: type[ModelT], **values: Any) -> ModelT:
    """Construct a model, converting pydantic errors to ValidationError."""
    try:
        return model_cls(**values)
    except PydanticValidationError as e:
        messages = [error["msg"].removeprefix("Value error, ") for error in e.errors()]
        raise ValidationError("; ".join(messages)) from e


@dataclass
class Placement:
    """Resolved hierarchy nodes for a project (and optional sprint) name."""

    project: Project
    sprint: Sprint | None = None
    created_project: bool = False
    created_sprint: bool = False

    @property
    def project_id(self) -> UUID:
        return self.project.id

    @property
    def sprint_id(self) -> UUID | None:
        return self.sprint.id if self.sprint else None


class HierarchyService:
    """Lifecycle and lookup operations for projects and sprints."""

    def __init__(self, storage: StorageProvider) -> None:
        self._storage = storage

    # ─────────────────────────────────────────────────────────────────────
    # Projects
    # ─────────────────────────────────────────────────────────────────────

    async def create_project(self, name: str, description: str | None = None) -> Project:
        """Create a new project.

        Raises:
            ValidationError: If the name is empty or too long.
            DuplicateNameError: If a project with the same name exists.
        """
        project = build_model(Project, name=name, description=description)
        if await self._storage.get_project_by_name(project.name) is not None:
            raise DuplicateNameError("project", project.name)

        await self._storage.save_project(project)
        log.info("Created project %s (%s)", project.name, project.id)
        return project

    async def get_project(self, project_id: UUID) -> Project:
        project = await self._storage.get_project(project_id)
        if project is None:
            raise NotFoundError("project", project_id)
        return project

    async def get_project_by_name(self, name: str) -> Project | None:
        return await self._storage.get_project_by_name(name.strip())

    async def ensure_project(self, name: str) -> tuple[Project, bool]:
        """Return the project called `name`, creating it on first reference.

        Returns:
            Tuple of (project, created).
        """
        existing = await self.get_project_by_name(name)
        if existing is not None:
            return existing, False
        return await self.create_project(name), True

    # ─────────────────────────────────────────────────────────────────────
    # Sprints
    # ─────────────────────────────────────────────────────────────────────

    async def create_sprint(self, project_id: UUID, name: str, order: int | None = None) -> Sprint:
        """Create a sprint under a project.

        When `order` is omitted the sprint is appended after its siblings
        (max sibling order + 1, or 0 for the first sprint).

        Raises:
            NotFoundError: If the project does not exist.
            ValidationError: If the name is empty/too long or order is negative.
            DuplicateNameError: If a sibling sprint has the same name.
        """
        project = await self.get_project(project_id)
        siblings = await self._storage.list_sprints(project.id)

        if order is None:
            order = max((s.order for s in siblings), default=-1) + 1

        sprint = build_model(Sprint, project_id=project.id, name=name, order=order)
        if any(s.name == sprint.name for s in siblings):
            raise DuplicateNameError("sprint", sprint.name, scope=f'project "{project.name}"')

        await self._storage.save_sprint(sprint)
        log.info("Created sprint %s/%s (order %d)", project.name, sprint.name, sprint.order)
        return sprint

    async def get_sprint(self, sprint_id: UUID) -> Sprint:
        sprint = await self._storage.get_sprint(sprint_id)
        if sprint is None:
            raise NotFoundError("sprint", sprint_id)
        return sprint

    async def find_sprint(self, project_id: UUID, name: str) -> Sprint | None:
        name = name.strip()
        for sprint in await self._storage.list_sprints(project_id):
            if sprint.name == name:
                return sprint
        return None

    async def ensure_sprint(self, project: Project, name: str) -> tuple[Sprint, bool]:
        """Return the sprint called `name` in `project`, creating it on first reference."""
        existing = await self.find_sprint(project.id, name)
        if existing is not None:
            return existing, False
        return await self.create_sprint(project.id, name), True

    async def resolve_placement(self, project_name: str, sprint_name: str | None = None) -> Placement:
        """Resolve (and create when missing) the nodes for a named placement."""
        project, created_project = await self.ensure_project(project_name)
        placement = Placement(project=project, created_project=created_project)
        if sprint_name:
            placement.sprint, placement.created_sprint = await self.ensure_sprint(project, sprint_name)
        return placement

    async def lookup_placement(
        self, project_name: str, sprint_name: str | None = None
    ) -> tuple[Project | None, Sprint | None]:
        """Look up a named placement without creating anything."""
        project = await self.get_project_by_name(project_name)
        if project is None or not sprint_name:
            return project, None
        return project, await self.find_sprint(project.id, sprint_name)

    # ─────────────────────────────────────────────────────────────────────
    # Assignment
    # ─────────────────────────────────────────────────────────────────────

    async def validate_assignment(
        self, context_id: UUID, project_id: UUID, sprint_id: UUID | None = None
    ) -> Context:
        """Run every assign_context check without mutating anything.

        Returns:
            The current (unmodified) context.

        Raises:
            NotFoundError: If the context, project or sprint does not exist.
            InvalidHierarchyError: If the sprint belongs to another project.
        """
        context = await self._storage.get_context(context_id)
        if context is None:
            raise NotFoundError("context", context_id)

        project = await self.get_project(project_id)

        if sprint_id is not None:
            sprint = await self.get_sprint(sprint_id)
            if sprint.project_id != project.id:
                raise InvalidHierarchyError(
                    f'Sprint "{sprint.name}" does not belong to project "{project.name}"',
                    {
                        "sprint_id": str(sprint.id),
                        "sprint_project_id": str(sprint.project_id),
                        "project_id": str(project.id),
                    },
                )
        return context

    async def assign_context(
        self, context_id: UUID, project_id: UUID, sprint_id: UUID | None = None
    ) -> Context:
        """File a context under a project and optional sprint.

        Both fields are overwritten together; there is no partial update.
        All checks run before the write, so on error the stored context is
        unchanged.

        Returns:
            The updated context.

        Raises:
            NotFoundError: If the context, project or sprint does not exist.
            InvalidHierarchyError: If the sprint belongs to another project.
        """
        context = await self.validate_assignment(context_id, project_id, sprint_id)
        updated = context.reassigned(project_id, sprint_id)
        await self._storage.save_context(updated)
        log.debug("Assigned context %s to project %s sprint %s", context_id, project_id, sprint_id)
        return updated

    # ─────────────────────────────────────────────────────────────────────
    # Read path
    # ─────────────────────────────────────────────────────────────────────

    async def list_hierarchy(self) -> list[ProjectTree]:
        """All projects sorted by name, each with its sprints sorted by order."""
        projects = sorted(await self._storage.list_projects(), key=lambda p: (p.name, p.created_at))
        sprints_by_project: dict[UUID, list[Sprint]] = {}
        for sprint in await self._storage.list_sprints():
            sprints_by_project.setdefault(sprint.project_id, []).append(sprint)

        return [
            ProjectTree(
                project=project,
                sprints=sorted(
                    sprints_by_project.get(project.id, []),
                    key=lambda s: (s.order, s.created_at, s.name),
                ),
            )
            for project in projects
        ]
