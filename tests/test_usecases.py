"""Tests for the add and search orchestration."""

from uuid import uuid4

import pytest

from mch.errors import InvalidHierarchyError, NotFoundError, ValidationError
from mch.models import AddContextInput, ListOptions
from mch.usecases import AddContextUseCase, SearchContextUseCase

from conftest import FakeEmbedder, make_context


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder(
        vectors={
            "postgres decision": [1.0, 0.0, 0.0],
            "database choice": [0.95, 0.05, 0.0],
            "lunch menu": [0.0, 0.0, 1.0],
        },
        default=[0.0, 1.0, 0.0],
    )


@pytest.fixture
def add_use_case(storage, embedder, hierarchy, linker) -> AddContextUseCase:
    return AddContextUseCase(storage, embedder, hierarchy, linker)


@pytest.fixture
def search_use_case(storage, embedder) -> SearchContextUseCase:
    return SearchContextUseCase(storage, embedder)


class TestAddContext:
    @pytest.mark.asyncio
    async def test_links_similar_predecessor(self, add_use_case, storage):
        first = await add_use_case.execute(AddContextInput(content="postgres decision"))
        await add_use_case.execute(AddContextInput(content="lunch menu"))

        second = await add_use_case.execute(AddContextInput(content="database choice"))

        assert [link.target_id for link in second.related_links] == [first.id]
        assert (await storage.get_context(second.id)).related_links == second.related_links

    @pytest.mark.asyncio
    async def test_existing_contexts_not_updated(self, add_use_case, storage):
        first = await add_use_case.execute(AddContextInput(content="postgres decision"))
        await add_use_case.execute(AddContextInput(content="database choice"))

        assert (await storage.get_context(first.id)).related_links == []

    @pytest.mark.asyncio
    async def test_pool_limited_to_project(self, add_use_case):
        await add_use_case.execute(AddContextInput(content="postgres decision", project="Alpha"))

        other = await add_use_case.execute(AddContextInput(content="database choice", project="Beta"))

        assert other.related_links == []

    @pytest.mark.asyncio
    async def test_unfiled_context_links_only_unfiled(self, add_use_case):
        await add_use_case.execute(AddContextInput(content="filed", project="Alpha"))
        loose = await add_use_case.execute(AddContextInput(content="loose"))

        newest = await add_use_case.execute(AddContextInput(content="another loose"))

        assert [link.target_id for link in newest.related_links] == [loose.id]

    @pytest.mark.asyncio
    async def test_embedding_failure_degrades(self, storage, hierarchy, linker):
        use_case = AddContextUseCase(storage, FakeEmbedder(fail=True), hierarchy, linker)

        context = await use_case.execute(AddContextInput(content="anything"))

        assert context.embedding is None
        assert context.related_links == []
        assert await storage.get_context(context.id) is not None

    @pytest.mark.asyncio
    async def test_no_embedder(self, storage, hierarchy, linker):
        context = await AddContextUseCase(storage, None, hierarchy, linker).execute(AddContextInput(content="x"))
        assert context.embedding is None

    @pytest.mark.asyncio
    async def test_names_created_on_first_reference(self, add_use_case, hierarchy):
        context = await add_use_case.execute(AddContextInput(content="x", project="Alpha", sprint="S1"))

        project = await hierarchy.get_project_by_name("Alpha")
        sprint = await hierarchy.find_sprint(project.id, "S1")
        assert (context.project_id, context.sprint_id) == (project.id, sprint.id)

    @pytest.mark.asyncio
    async def test_sprint_without_project(self, add_use_case, storage):
        with pytest.raises(ValidationError):
            await add_use_case.execute(AddContextInput(content="x", sprint="S1"))
        assert await storage.list_contexts() == []

    @pytest.mark.asyncio
    async def test_unknown_project_id(self, add_use_case):
        with pytest.raises(NotFoundError):
            await add_use_case.execute(AddContextInput(content="x", project_id=uuid4()))

    @pytest.mark.asyncio
    async def test_mismatched_sprint_id(self, add_use_case, hierarchy):
        p1 = await hierarchy.create_project("P1")
        p2 = await hierarchy.create_project("P2")
        s2 = await hierarchy.create_sprint(p2.id, "S")

        with pytest.raises(InvalidHierarchyError):
            await add_use_case.execute(AddContextInput(content="x", project_id=p1.id, sprint_id=s2.id))

    @pytest.mark.asyncio
    async def test_blank_content(self, add_use_case, embedder):
        with pytest.raises(ValidationError):
            await add_use_case.execute(AddContextInput(content="  "))
        assert embedder.calls == []


class TestSearch:
    @pytest.mark.asyncio
    async def test_keyword_matches_content_summary_and_tags(self, storage, search_use_case):
        a = make_context("Postgres migration", minutes=0)
        b = make_context("notes", summary="about POSTGRES", minutes=1)
        c = make_context("misc", tags=["postgres-ops"], minutes=2)
        d = make_context("unrelated", minutes=3)
        for ctx in (a, b, c, d):
            await storage.save_context(ctx)

        response = await search_use_case.search_by_keyword("postgres")

        assert [r.context.id for r in response.results] == [c.id, b.id, a.id]
        assert all(r.score is None for r in response.results)

    @pytest.mark.asyncio
    async def test_keyword_paging(self, storage, search_use_case):
        for i in range(5):
            await storage.save_context(make_context(f"item {i}", minutes=i))

        response = await search_use_case.search_by_keyword("item", ListOptions(limit=2, offset=1))

        assert [r.context.content for r in response.results] == ["item 3", "item 2"]

    @pytest.mark.asyncio
    async def test_empty_keyword(self, search_use_case):
        with pytest.raises(ValidationError):
            await search_use_case.search_by_keyword("  ")

    @pytest.mark.asyncio
    async def test_by_tags(self, storage, search_use_case):
        tagged = make_context("x", tags=["db"])
        await storage.save_context(tagged)
        await storage.save_context(make_context("y", tags=["ops"]))

        response = await search_use_case.search_by_tags(["db", "nope"])

        assert [r.context.id for r in response.results] == [tagged.id]

    @pytest.mark.asyncio
    async def test_similar_excludes_self_and_ranks(self, storage, search_use_case):
        query = make_context("q", embedding=[1.0, 0.0], minutes=0)
        close = make_context("close", embedding=[0.9, 0.1], minutes=1)
        far = make_context("far", embedding=[0.1, 0.9], minutes=2)
        bare = make_context("bare", minutes=3)
        for ctx in (query, close, far, bare):
            await storage.save_context(ctx)

        response = await search_use_case.search_similar(query.id)

        assert [r.context.id for r in response.results] == [close.id, far.id]
        assert response.results[0].score > response.results[1].score

    @pytest.mark.asyncio
    async def test_similar_unknown_id(self, search_use_case):
        with pytest.raises(NotFoundError):
            await search_use_case.search_similar(uuid4())

    @pytest.mark.asyncio
    async def test_similar_without_embedding_warns(self, storage, search_use_case):
        ctx = make_context("bare")
        await storage.save_context(ctx)

        response = await search_use_case.search_similar(ctx.id)

        assert response.results == []
        assert response.warnings

    @pytest.mark.asyncio
    async def test_by_text(self, storage, search_use_case):
        match = make_context("pg", embedding=[1.0, 0.0, 0.0])
        other = make_context("food", embedding=[0.0, 0.0, 1.0], minutes=1)
        await storage.save_context(match)
        await storage.save_context(other)

        response = await search_use_case.search_by_text("database choice", min_score=0.5)

        assert [r.context.id for r in response.results] == [match.id]

    @pytest.mark.asyncio
    async def test_by_text_without_embedder(self, storage):
        response = await SearchContextUseCase(storage, None).search_by_text("anything")
        assert response.results == []
        assert response.warnings

    @pytest.mark.asyncio
    async def test_invalid_limit(self, search_use_case):
        with pytest.raises(ValidationError):
            await search_use_case.search_by_text("x", limit=0)
