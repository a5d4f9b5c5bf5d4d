"""Tests for HierarchyService: project/sprint lifecycle and assignment."""

from uuid import uuid4

import pytest

from mch.errors import (
    DuplicateNameError,
    ErrorCode,
    InvalidHierarchyError,
    NotFoundError,
    ValidationError,
)

from conftest import make_context


class TestProjects:
    @pytest.mark.asyncio
    async def test_create_project(self, hierarchy, storage):
        project = await hierarchy.create_project("Alpha", "first")

        assert project.name == "Alpha"
        assert await storage.get_project(project.id) == project

    @pytest.mark.asyncio
    async def test_duplicate_name_rejected(self, hierarchy):
        await hierarchy.create_project("Alpha")
        with pytest.raises(DuplicateNameError):
            await hierarchy.create_project("Alpha")

    @pytest.mark.asyncio
    async def test_names_are_case_sensitive(self, hierarchy):
        await hierarchy.create_project("Alpha")
        assert (await hierarchy.create_project("alpha")).name == "alpha"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["", "   ", "x" * 101])
    async def test_invalid_name(self, hierarchy, name):
        with pytest.raises(ValidationError):
            await hierarchy.create_project(name)

    @pytest.mark.asyncio
    async def test_get_missing_project(self, hierarchy):
        with pytest.raises(NotFoundError) as exc_info:
            await hierarchy.get_project(uuid4())
        assert exc_info.value.code == ErrorCode.PROJECT_NOT_FOUND

    @pytest.mark.asyncio
    async def test_ensure_project_creates_once(self, hierarchy):
        first, created = await hierarchy.ensure_project("Alpha")
        again, created_again = await hierarchy.ensure_project("Alpha")

        assert created and not created_again
        assert first.id == again.id


class TestSprints:
    @pytest.mark.asyncio
    async def test_order_appends(self, hierarchy):
        project = await hierarchy.create_project("Alpha")

        s1 = await hierarchy.create_sprint(project.id, "S1")
        s2 = await hierarchy.create_sprint(project.id, "S2")

        assert (s1.order, s2.order) == (0, 1)

    @pytest.mark.asyncio
    async def test_explicit_order(self, hierarchy):
        project = await hierarchy.create_project("Alpha")
        await hierarchy.create_sprint(project.id, "Late", order=7)
        nxt = await hierarchy.create_sprint(project.id, "Next")
        assert nxt.order == 8

    @pytest.mark.asyncio
    async def test_unknown_project(self, hierarchy):
        with pytest.raises(NotFoundError):
            await hierarchy.create_sprint(uuid4(), "S1")

    @pytest.mark.asyncio
    async def test_duplicate_within_project(self, hierarchy):
        project = await hierarchy.create_project("Alpha")
        await hierarchy.create_sprint(project.id, "S1")
        with pytest.raises(DuplicateNameError, match='project "Alpha"'):
            await hierarchy.create_sprint(project.id, "S1")

    @pytest.mark.asyncio
    async def test_same_name_in_other_project_allowed(self, hierarchy):
        alpha = await hierarchy.create_project("Alpha")
        beta = await hierarchy.create_project("Beta")
        await hierarchy.create_sprint(alpha.id, "S1")
        assert (await hierarchy.create_sprint(beta.id, "S1")).project_id == beta.id


class TestAssignContext:
    @pytest.mark.asyncio
    async def test_assign(self, hierarchy, storage):
        project = await hierarchy.create_project("Alpha")
        sprint = await hierarchy.create_sprint(project.id, "S1")
        ctx = make_context("note")
        await storage.save_context(ctx)

        updated = await hierarchy.assign_context(ctx.id, project.id, sprint.id)

        stored = await storage.get_context(ctx.id)
        assert stored == updated
        assert (stored.project_id, stored.sprint_id) == (project.id, sprint.id)

    @pytest.mark.asyncio
    async def test_assign_without_sprint_clears_sprint(self, hierarchy, storage):
        project = await hierarchy.create_project("Alpha")
        sprint = await hierarchy.create_sprint(project.id, "S1")
        ctx = make_context("note", project_id=project.id, sprint_id=sprint.id)
        await storage.save_context(ctx)

        updated = await hierarchy.assign_context(ctx.id, project.id)

        assert updated.sprint_id is None

    @pytest.mark.asyncio
    async def test_sprint_from_other_project_rejected(self, hierarchy, storage):
        p1 = await hierarchy.create_project("P1")
        p2 = await hierarchy.create_project("P2")
        s2 = await hierarchy.create_sprint(p2.id, "S")
        ctx = make_context("note")
        await storage.save_context(ctx)

        with pytest.raises(InvalidHierarchyError):
            await hierarchy.assign_context(ctx.id, p1.id, s2.id)

        stored = await storage.get_context(ctx.id)
        assert stored.project_id is None and stored.sprint_id is None

    @pytest.mark.asyncio
    async def test_missing_context(self, hierarchy):
        project = await hierarchy.create_project("Alpha")
        with pytest.raises(NotFoundError) as exc_info:
            await hierarchy.assign_context(uuid4(), project.id)
        assert exc_info.value.code == ErrorCode.CONTEXT_NOT_FOUND

    @pytest.mark.asyncio
    async def test_missing_sprint(self, hierarchy, storage):
        project = await hierarchy.create_project("Alpha")
        ctx = make_context("note")
        await storage.save_context(ctx)

        with pytest.raises(NotFoundError) as exc_info:
            await hierarchy.assign_context(ctx.id, project.id, uuid4())
        assert exc_info.value.code == ErrorCode.SPRINT_NOT_FOUND


class TestListHierarchy:
    @pytest.mark.asyncio
    async def test_sorted_by_name_then_order(self, hierarchy):
        beta = await hierarchy.create_project("Beta")
        alpha = await hierarchy.create_project("Alpha")
        await hierarchy.create_sprint(alpha.id, "Second", order=2)
        await hierarchy.create_sprint(alpha.id, "First", order=1)
        await hierarchy.create_sprint(beta.id, "Only")

        trees = await hierarchy.list_hierarchy()

        assert [t.project.name for t in trees] == ["Alpha", "Beta"]
        assert [s.name for s in trees[0].sprints] == ["First", "Second"]
        assert [s.name for s in trees[1].sprints] == ["Only"]

    @pytest.mark.asyncio
    async def test_empty(self, hierarchy):
        assert await hierarchy.list_hierarchy() == []


class TestPlacement:
    @pytest.mark.asyncio
    async def test_resolve_creates_on_first_reference(self, hierarchy):
        first = await hierarchy.resolve_placement("Alpha", "S1")
        second = await hierarchy.resolve_placement("Alpha", "S1")

        assert first.created_project and first.created_sprint
        assert not second.created_project and not second.created_sprint
        assert (first.project_id, first.sprint_id) == (second.project_id, second.sprint_id)

    @pytest.mark.asyncio
    async def test_lookup_creates_nothing(self, hierarchy, storage):
        assert await hierarchy.lookup_placement("Ghost", "S1") == (None, None)
        assert await storage.list_projects() == []
