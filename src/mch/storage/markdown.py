"""Markdown-file storage provider.

Layout under the store root:

    contexts/<context-id>.md   one context per file, YAML frontmatter + content
    hierarchy.json             projects and sprints (versioned payload)

Writes go through a temporary file and ``os.replace`` so a crash never leaves
a half-written record behind.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from uuid import UUID

import frontmatter
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from ..errors import StorageError
from ..frontmatter import render_context
from ..models import Context, ListOptions, Project, Sprint, UnreadableRecord
from .base import apply_options

log = logging.getLogger(__name__)

CONTEXTS_DIRNAME = "contexts"
HIERARCHY_FILENAME = "hierarchy.json"
HIERARCHY_VERSION = 1


class ContextParseError(Exception):
    """Raised when a context file cannot be parsed."""

    def __init__(self, path: Path, message: str) -> None:
        self.path = path
        self.message = message
        super().__init__(f"{path}: {message}")


class _HierarchyFile(BaseModel):
    version: int = HIERARCHY_VERSION
    projects: list[Project] = Field(default_factory=list)
    sprints: list[Sprint] = Field(default_factory=list)


def _atomic_write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_name, path)
    except OSError:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def _stem_id(path: Path) -> UUID | None:
    try:
        return UUID(path.stem)
    except ValueError:
        return None


def parse_context(path: Path) -> Context:
    """Parse a context file with YAML frontmatter.

    Args:
        path: Path to the markdown file.

    Returns:
        The validated Context.

    Raises:
        ContextParseError: If the file cannot be read or has invalid frontmatter.
    """
    try:
        post = frontmatter.load(str(path))
    except Exception as e:
        raise ContextParseError(path, f"Failed to parse frontmatter: {e}") from e

    if not post.metadata:
        raise ContextParseError(path, "Missing frontmatter (YAML block required at start of file)")

    try:
        return Context.model_validate({**post.metadata, "content": post.content})
    except PydanticValidationError as e:
        errors = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            errors.append(f"  - {loc}: {error['msg']}")
        raise ContextParseError(path, "Invalid frontmatter:\n" + "\n".join(errors)) from e


class MarkdownStorage:
    """StorageProvider persisting contexts as markdown files on disk."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self._contexts_dir = self.root / CONTEXTS_DIRNAME
        self._hierarchy_path = self.root / HIERARCHY_FILENAME

    def _context_path(self, context_id: UUID) -> Path:
        return self._contexts_dir / f"{context_id}.md"

    # ─────────────────────────────────────────────────────────────────────
    # Contexts
    # ─────────────────────────────────────────────────────────────────────

    def _scan_contexts(self) -> tuple[list[Context], list[UnreadableRecord]]:
        if not self._contexts_dir.exists():
            return [], []
        contexts: list[Context] = []
        unreadable: list[UnreadableRecord] = []
        for md_file in sorted(self._contexts_dir.glob("*.md")):
            try:
                contexts.append(parse_context(md_file))
            except ContextParseError as e:
                log.warning("Skipping unreadable context %s: %s", md_file.name, e.message)
                unreadable.append(
                    UnreadableRecord(record=md_file.name, context_id=_stem_id(md_file), reason=e.message)
                )
        return contexts, unreadable

    async def list_unreadable(self) -> list[UnreadableRecord]:
        return self._scan_contexts()[1]

    async def get_context(self, context_id: UUID) -> Context | None:
        path = self._context_path(context_id)
        if not path.exists():
            return None
        try:
            return parse_context(path)
        except ContextParseError as e:
            raise StorageError(str(e), {"id": str(context_id)}) from e

    async def list_contexts(self, options: ListOptions | None = None) -> list[Context]:
        return apply_options(self._scan_contexts()[0], options)

    async def get_context_count(self, project_id: UUID | None = None) -> int:
        return len(await self.list_contexts(ListOptions(project_id=project_id)))

    async def save_context(self, context: Context) -> None:
        try:
            _atomic_write(self._context_path(context.id), render_context(context))
        except OSError as e:
            raise StorageError(f"Failed to write context {context.id}: {e}") from e

    async def delete_context(self, context_id: UUID) -> None:
        try:
            self._context_path(context_id).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to delete context {context_id}: {e}") from e

    # ─────────────────────────────────────────────────────────────────────
    # Hierarchy (projects + sprints)
    # ─────────────────────────────────────────────────────────────────────

    def _load_hierarchy(self) -> _HierarchyFile:
        if not self._hierarchy_path.exists():
            return _HierarchyFile()
        try:
            payload = json.loads(self._hierarchy_path.read_text(encoding="utf-8"))
            return _HierarchyFile.model_validate(payload)
        except (OSError, json.JSONDecodeError, PydanticValidationError) as e:
            raise StorageError(f"Failed to read {self._hierarchy_path}: {e}") from e

    def _save_hierarchy(self, hierarchy: _HierarchyFile) -> None:
        try:
            _atomic_write(self._hierarchy_path, json.dumps(hierarchy.model_dump(mode="json"), indent=2))
        except OSError as e:
            raise StorageError(f"Failed to write {self._hierarchy_path}: {e}") from e

    async def save_project(self, project: Project) -> None:
        hierarchy = self._load_hierarchy()
        hierarchy.projects = [p for p in hierarchy.projects if p.id != project.id] + [project]
        self._save_hierarchy(hierarchy)

    async def get_project(self, project_id: UUID) -> Project | None:
        return next((p for p in self._load_hierarchy().projects if p.id == project_id), None)

    async def get_project_by_name(self, name: str) -> Project | None:
        return next((p for p in self._load_hierarchy().projects if p.name == name), None)

    async def list_projects(self) -> list[Project]:
        return self._load_hierarchy().projects

    async def save_sprint(self, sprint: Sprint) -> None:
        hierarchy = self._load_hierarchy()
        hierarchy.sprints = [s for s in hierarchy.sprints if s.id != sprint.id] + [sprint]
        self._save_hierarchy(hierarchy)

    async def get_sprint(self, sprint_id: UUID) -> Sprint | None:
        return next((s for s in self._load_hierarchy().sprints if s.id == sprint_id), None)

    async def list_sprints(self, project_id: UUID | None = None) -> list[Sprint]:
        return [
            s for s in self._load_hierarchy().sprints if project_id is None or s.project_id == project_id
        ]
