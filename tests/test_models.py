"""Tests for model-level invariants."""

from datetime import datetime
from uuid import uuid4

import pytest
from pydantic import ValidationError

from mch.models import Context, MigrationResult, MigrationTarget, Project, RelatedLink, SearchResponse, Sprint


class TestContext:
    def test_defaults(self):
        ctx = Context(content="hello")
        assert ctx.type == "text"
        assert ctx.tags == []
        assert ctx.related_links == []
        assert ctx.created_at.tzinfo is not None
        assert not ctx.is_assigned

    def test_blank_content_rejected(self):
        with pytest.raises(ValidationError):
            Context(content="   ")

    def test_sprint_requires_project(self):
        with pytest.raises(ValidationError, match="sprint_id requires project_id"):
            Context(content="x", sprint_id=uuid4())

    def test_empty_embedding_is_absent(self):
        assert Context(content="x", embedding=[]).embedding is None

    def test_tags_deduplicated_in_order(self):
        ctx = Context(content="x", tags=["b", " a ", "b", "", "a"])
        assert ctx.tags == ["b", "a"]

    def test_naive_timestamps_become_utc(self):
        ctx = Context(content="x", created_at=datetime(2024, 1, 1))
        assert ctx.created_at.utcoffset().total_seconds() == 0

    def test_self_link_rejected(self):
        ctx_id = uuid4()
        with pytest.raises(ValidationError):
            Context(id=ctx_id, content="x", related_links=[RelatedLink(target_id=ctx_id, score=0.9)])

    def test_duplicate_link_rejected(self):
        target = uuid4()
        links = [RelatedLink(target_id=target, score=0.9), RelatedLink(target_id=target, score=0.8)]
        with pytest.raises(ValidationError):
            Context(content="x", related_links=links)

    def test_reassigned_returns_copy(self):
        ctx = Context(content="x")
        project_id, sprint_id = uuid4(), uuid4()

        moved = ctx.reassigned(project_id, sprint_id)

        assert (moved.project_id, moved.sprint_id) == (project_id, sprint_id)
        assert ctx.project_id is None
        assert moved.id == ctx.id
        assert moved.updated_at >= ctx.updated_at


class TestHierarchyModels:
    @pytest.mark.parametrize("name", ["", "   ", "x" * 101])
    def test_invalid_project_names(self, name):
        with pytest.raises(ValidationError):
            Project(name=name)

    def test_project_name_stripped(self):
        assert Project(name="  Alpha ").name == "Alpha"

    def test_name_at_length_limit_allowed(self):
        assert len(Project(name="x" * 100).name) == 100

    def test_sprint_order_non_negative(self):
        with pytest.raises(ValidationError):
            Sprint(project_id=uuid4(), name="S1", order=-1)

    def test_link_score_range(self):
        with pytest.raises(ValidationError):
            RelatedLink(target_id=uuid4(), score=1.5)


class TestResultModels:
    def test_migration_target_blank_sprint(self):
        target = MigrationTarget(project="Alpha", sprint="  ")
        assert target.sprint is None
        assert target.label == "Alpha"
        assert MigrationTarget(project="Alpha", sprint="S1").label == "Alpha/S1"

    def test_migration_result_total(self):
        result = MigrationResult(migrated=9, skipped=3)
        assert result.total == 12
        assert result.model_dump()["total"] == 12

    def test_search_response_total(self):
        assert SearchResponse().total == 0
