"""Pydantic models for the context hub.

Invariants (non-empty names, timezone-aware timestamps, sprint-implies-project,
no duplicate or self-referencing links) are enforced here, once, at
construction time.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, computed_field, field_validator, model_validator

from .config import MAX_NAME_LENGTH

ContextType = Literal["text", "meeting", "image", "document"]
CONTEXT_TYPES: tuple[str, ...] = ("text", "meeting", "image", "document")

MigrationState = Literal["pending", "processing", "migrated", "skipped", "failed"]


def utcnow() -> datetime:
    return datetime.now(UTC)


def _ensure_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _clean_name(value: str, kind: str) -> str:
    name = value.strip()
    if not name:
        raise ValueError(f"{kind} name cannot be empty")
    if len(name) > MAX_NAME_LENGTH:
        raise ValueError(f"{kind} name cannot exceed {MAX_NAME_LENGTH} characters")
    return name


class RelatedLink(BaseModel):
    """A directional similarity edge from the owning context to another one."""

    target_id: UUID
    score: float = Field(ge=0.0, le=1.0)  # Cosine similarity (0-1)


class Context(BaseModel):
    """A stored knowledge entry (note, meeting, document, image)."""

    id: UUID = Field(default_factory=uuid4)
    type: ContextType = "text"
    content: str
    summary: str | None = None
    embedding: list[float] | None = None
    tags: list[str] = Field(default_factory=list)
    project_id: UUID | None = None
    sprint_id: UUID | None = None
    related_links: list[RelatedLink] = Field(default_factory=list)
    source: str | None = None  # Input file path for image/document contexts
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("content")
    @classmethod
    def _content_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("content cannot be empty")
        return value

    @field_validator("embedding")
    @classmethod
    def _empty_embedding_is_absent(cls, value: list[float] | None) -> list[float] | None:
        if value is not None and len(value) == 0:
            return None
        return value

    @field_validator("tags")
    @classmethod
    def _dedupe_tags(cls, value: list[str]) -> list[str]:
        seen: set[str] = set()
        tags = []
        for tag in value:
            tag = tag.strip()
            if tag and tag not in seen:
                seen.add(tag)
                tags.append(tag)
        return tags

    @field_validator("created_at", "updated_at")
    @classmethod
    def _aware_timestamps(cls, value: datetime) -> datetime:
        return _ensure_aware(value)

    @model_validator(mode="after")
    def _check_invariants(self) -> Context:
        if self.sprint_id is not None and self.project_id is None:
            raise ValueError("sprint_id requires project_id")
        targets = [link.target_id for link in self.related_links]
        if self.id in targets:
            raise ValueError("related_links cannot reference the context itself")
        if len(set(targets)) != len(targets):
            raise ValueError("related_links cannot reference the same target twice")
        return self

    @property
    def is_assigned(self) -> bool:
        return self.project_id is not None

    def reassigned(self, project_id: UUID, sprint_id: UUID | None) -> Context:
        """Return a validated copy filed under the given project/sprint."""
        data = self.model_dump()
        data.update(project_id=project_id, sprint_id=sprint_id, updated_at=utcnow())
        return Context.model_validate(data)

    def with_links(self, links: list[RelatedLink]) -> Context:
        """Return a validated copy with related_links replaced."""
        data = self.model_dump()
        data.update(related_links=[link.model_dump() for link in links], updated_at=utcnow())
        return Context.model_validate(data)


class Project(BaseModel):
    """Top level of the hierarchy."""

    id: UUID = Field(default_factory=uuid4)
    name: str
    description: str | None = None
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("name")
    @classmethod
    def _valid_name(cls, value: str) -> str:
        return _clean_name(value, "Project")

    @field_validator("created_at")
    @classmethod
    def _aware_created(cls, value: datetime) -> datetime:
        return _ensure_aware(value)


class Sprint(BaseModel):
    """Second level of the hierarchy; always owned by exactly one project."""

    id: UUID = Field(default_factory=uuid4)
    project_id: UUID
    name: str
    order: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("name")
    @classmethod
    def _valid_name(cls, value: str) -> str:
        return _clean_name(value, "Sprint")

    @field_validator("created_at")
    @classmethod
    def _aware_created(cls, value: datetime) -> datetime:
        return _ensure_aware(value)


class ProjectTree(BaseModel):
    """A project with its ordered sprints (read model for list_hierarchy)."""

    project: Project
    sprints: list[Sprint] = Field(default_factory=list)


class ListOptions(BaseModel):
    """Filters for StorageProvider.list_contexts."""

    project_id: UUID | None = None
    sprint_id: UUID | None = None
    type: ContextType | None = None
    tags: list[str] = Field(default_factory=list)  # Match any
    unassigned_only: bool = False
    limit: int | None = Field(default=None, ge=0)
    offset: int = Field(default=0, ge=0)


class AddContextInput(BaseModel):
    """Input to AddContextUseCase.execute."""

    type: ContextType = "text"
    content: str
    summary: str | None = None
    tags: list[str] = Field(default_factory=list)
    source: str | None = None
    # Placement by name (created on first reference) ...
    project: str | None = None
    sprint: str | None = None
    # ... or by id (must already exist)
    project_id: UUID | None = None
    sprint_id: UUID | None = None


class SearchResult(BaseModel):
    """A search hit; score is set for similarity searches only."""

    context: Context
    score: float | None = None


class SearchResponse(BaseModel):
    """Response wrapper for search results with optional warnings."""

    results: list[SearchResult] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total(self) -> int:
        return len(self.results)


class MigrationTarget(BaseModel):
    """Placement chosen for one context by a classification strategy."""

    project: str
    sprint: str | None = None

    @field_validator("project")
    @classmethod
    def _valid_project(cls, value: str) -> str:
        return _clean_name(value, "Project")

    @field_validator("sprint")
    @classmethod
    def _valid_sprint(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return _clean_name(value, "Sprint")

    @property
    def label(self) -> str:
        return f"{self.project}/{self.sprint}" if self.sprint else self.project


class MigrationEntry(BaseModel):
    """Outcome for one context considered by a migration run."""

    context_id: UUID | None  # None for an unreadable record whose id is unknown
    record: str | None = None  # Set only for unreadable stored records
    state: MigrationState = "pending"
    project: str | None = None
    sprint: str | None = None
    reason: str | None = None


class MigrationFailure(BaseModel):
    """A context that could not be migrated, with a typed reason string."""

    context_id: UUID | None
    record: str | None = None
    reason: str

    @property
    def label(self) -> str:
        return str(self.context_id) if self.context_id else str(self.record)


class UnreadableRecord(BaseModel):
    """A stored context the storage adapter could not parse."""

    record: str
    context_id: UUID | None = None
    reason: str


class MigrationResult(BaseModel):
    """Report of one migration run. Ephemeral, never persisted."""

    migrated: int = 0
    skipped: int = 0
    failed: list[MigrationFailure] = Field(default_factory=list)
    dry_run: bool = False
    entries: list[MigrationEntry] = Field(default_factory=list)
    created_projects: list[str] = Field(default_factory=list)  # Would-create in dry runs
    created_sprints: list[str] = Field(default_factory=list)  # "Project/Sprint"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total(self) -> int:
        return self.migrated + self.skipped + len(self.failed)
