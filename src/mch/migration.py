"""One-shot migration of flat contexts into the project/sprint hierarchy.

Each context moves through ``pending → processing → migrated | skipped |
failed``. A run walks contexts in (created_at, id) order, so results are
reproducible for the same snapshot.

Properties of a run:

- Idempotent: contexts that already have a project are skipped, so a second
  run over an unchanged store performs no mutations.
- Isolated failures: a context that cannot be classified or assigned is
  recorded in ``failed`` with a typed reason and the run continues.
  Records the store cannot read are reported in ``failed`` as well.
- Resumable: there is no cross-context transaction. A run stopped early
  (``limit`` reached, or the task cancelled between contexts) leaves finished
  contexts migrated and the rest pending for the next run.
- Dry runs classify and check every invariant but write nothing.

Where targets come from is pluggable (``ClassificationStrategy``); this module
never invents a placement beyond what its classifier returns.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Protocol, runtime_checkable
from uuid import UUID

import yaml
from pydantic import ValidationError as PydanticValidationError

from .config import GENERAL_SPRINT, UNCATEGORIZED_PROJECT
from .errors import ClassificationError, ConfigurationError, MchError, StorageError
from .hierarchy import HierarchyService
from .models import (
    Context,
    ListOptions,
    MigrationEntry,
    MigrationFailure,
    MigrationResult,
    MigrationTarget,
)
from .related_links import RelatedLinksBuilder
from .storage.base import StorageProvider

log = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Classification strategies
# ─────────────────────────────────────────────────────────────────────────────


@runtime_checkable
class ClassificationStrategy(Protocol):
    """Derives a hierarchy target for a legacy context.

    Returning None means "no classification input for this context", which
    the migration records as a failure for that context only.
    """

    async def classify(self, context: Context) -> MigrationTarget | None: ...


def _to_target(value: Any) -> MigrationTarget:
    if isinstance(value, MigrationTarget):
        return value
    if isinstance(value, str):
        project, _, sprint = value.partition("/")
        return MigrationTarget(project=project, sprint=sprint or None)
    if isinstance(value, Mapping):
        return MigrationTarget.model_validate(dict(value))
    raise TypeError(f"Unsupported mapping value: {value!r}")


class MappingClassifier:
    """Explicit context-id → placement mapping.

    Values may be a MigrationTarget, a ``{"project": ..., "sprint": ...}``
    mapping, or a ``"Project"`` / ``"Project/Sprint"`` string.
    """

    def __init__(self, mapping: Mapping[UUID | str, Any]) -> None:
        self._targets: dict[UUID, MigrationTarget] = {}
        for key, value in mapping.items():
            try:
                context_id = key if isinstance(key, UUID) else UUID(str(key))
                self._targets[context_id] = _to_target(value)
            except (ValueError, TypeError) as e:
                raise ConfigurationError(f"Invalid mapping entry for {key}: {e}") from e

    @classmethod
    def from_file(cls, path: Path) -> MappingClassifier:
        """Load a YAML (or JSON) mapping file."""
        try:
            data = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to read mapping file {path}: {e}") from e
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Mapping file {path} must contain a mapping of context ids")
        return cls(data)

    def __len__(self) -> int:
        return len(self._targets)

    async def classify(self, context: Context) -> MigrationTarget | None:
        return self._targets.get(context.id)


class TagClassifier:
    """Derives a placement from tags such as ``project:Alpha`` and ``sprint:S1``."""

    def __init__(self, project_prefix: str = "project:", sprint_prefix: str = "sprint:") -> None:
        self.project_prefix = project_prefix
        self.sprint_prefix = sprint_prefix

    def _first_value(self, tags: list[str], prefix: str) -> str | None:
        for tag in tags:
            if tag.startswith(prefix):
                value = tag[len(prefix) :].strip()
                if value:
                    return value
        return None

    async def classify(self, context: Context) -> MigrationTarget | None:
        project = self._first_value(context.tags, self.project_prefix)
        if project is None:
            return None
        return MigrationTarget(project=project, sprint=self._first_value(context.tags, self.sprint_prefix))


class UncategorizedClassifier:
    """Files every context under the fallback Uncategorized/General placement."""

    async def classify(self, context: Context) -> MigrationTarget | None:
        return MigrationTarget(project=UNCATEGORIZED_PROJECT, sprint=GENERAL_SPRINT)


# ─────────────────────────────────────────────────────────────────────────────
# Use case
# ─────────────────────────────────────────────────────────────────────────────


class MigrationUseCase:
    """Reassigns legacy flat contexts into hierarchy nodes."""

    def __init__(
        self,
        storage: StorageProvider,
        hierarchy: HierarchyService,
        classifier: ClassificationStrategy,
        linker: RelatedLinksBuilder | None = None,
    ) -> None:
        self._storage = storage
        self._hierarchy = hierarchy
        self._classifier = classifier
        self._linker = linker or RelatedLinksBuilder()

    async def preview(self) -> list[Context]:
        """Contexts a run would try to migrate (not yet assigned), in run order."""
        return await self._storage.list_contexts(ListOptions(unassigned_only=True))

    async def execute(
        self,
        dry_run: bool = False,
        limit: int | None = None,
        relink: bool = False,
    ) -> MigrationResult:
        """Run the migration.

        Args:
            dry_run: Classify and validate only; perform no storage mutation.
            limit: Maximum number of unassigned contexts to process. Contexts
                beyond the limit stay pending and are not counted.
            relink: Recompute related links of each migrated context against
                the other contexts of its new project. Best-effort: a failure
                is noted in the entry reason and the context stays migrated.

        Returns:
            MigrationResult whose counts sum to the contexts considered.
        """
        result = MigrationResult(dry_run=dry_run)
        contexts = await self._storage.list_contexts()
        log.info("Migration running over %d contexts%s", len(contexts), " (dry run)" if dry_run else "")

        for record in await self._storage.list_unreadable():
            reason = StorageError(f"Unreadable record {record.record}: {record.reason}").reason
            result.entries.append(
                MigrationEntry(context_id=record.context_id, record=record.record, state="failed", reason=reason)
            )
            result.failed.append(MigrationFailure(context_id=record.context_id, record=record.record, reason=reason))
            log.warning("Migration cannot read %s", record.record)

        processed = 0
        for context in contexts:
            if context.is_assigned:
                result.skipped += 1
                result.entries.append(MigrationEntry(context_id=context.id, state="skipped"))
                continue

            if limit is not None and processed >= limit:
                log.info("Migration limit of %d reached; remaining contexts stay pending", limit)
                break
            processed += 1

            entry = MigrationEntry(context_id=context.id, state="processing")
            result.entries.append(entry)
            try:
                target = await self._classify(context)
                entry.project, entry.sprint = target.project, target.sprint
                if dry_run:
                    await self._plan(context, target, result)
                    updated = None
                else:
                    updated = await self._apply(context, target, result)
            except MchError as e:
                entry.state = "failed"
                entry.reason = e.reason
                result.failed.append(MigrationFailure(context_id=context.id, reason=e.reason))
                log.warning("Migration failed for %s: %s", context.id, e.reason)
                continue

            entry.state = "migrated"
            result.migrated += 1

            if relink and updated is not None:
                # The assignment is already stored; a relink failure does not undo it
                try:
                    await self._relink(updated)
                except MchError as e:
                    entry.reason = f"relink skipped: {e.reason}"
                    log.warning("Relink failed for %s: %s", context.id, e.reason)

        log.info(
            "Migration complete: %d migrated, %d skipped, %d failed",
            result.migrated,
            result.skipped,
            len(result.failed),
        )
        return result

    async def _classify(self, context: Context) -> MigrationTarget:
        try:
            target = await self._classifier.classify(context)
        except MchError:
            raise
        except PydanticValidationError as e:
            messages = [error["msg"].removeprefix("Value error, ") for error in e.errors()]
            raise ClassificationError("; ".join(messages)) from e
        except Exception as e:
            raise ClassificationError(f"{type(e).__name__}: {e}") from e

        if target is None:
            raise ClassificationError("No classification input for context")
        return target

    async def _plan(self, context: Context, target: MigrationTarget, result: MigrationResult) -> None:
        project, sprint = await self._hierarchy.lookup_placement(target.project, target.sprint)

        if project is None:
            if target.project not in result.created_projects:
                result.created_projects.append(target.project)
        if target.sprint and sprint is None:
            if target.label not in result.created_sprints:
                result.created_sprints.append(target.label)

        if project is not None:
            await self._hierarchy.validate_assignment(context.id, project.id, sprint.id if sprint else None)

    async def _apply(
        self,
        context: Context,
        target: MigrationTarget,
        result: MigrationResult,
    ) -> Context:
        placement = await self._hierarchy.resolve_placement(target.project, target.sprint)
        if placement.created_project:
            result.created_projects.append(placement.project.name)
        if placement.created_sprint and placement.sprint is not None:
            result.created_sprints.append(f"{placement.project.name}/{placement.sprint.name}")

        return await self._hierarchy.assign_context(context.id, placement.project_id, placement.sprint_id)

    async def _relink(self, context: Context) -> None:
        if not context.embedding:
            return
        pool = await self._storage.list_contexts(ListOptions(project_id=context.project_id))
        links = self._linker.links_for(context, pool)
        if links != context.related_links:
            await self._storage.save_context(context.with_links(links))
