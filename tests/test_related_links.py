"""Tests for related-link selection and ranking."""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest

from mch.config import CoreConfig
from mch.errors import ValidationError
from mch.related_links import LinkCandidate, RelatedLinksBuilder, build_links

from conftest import make_context

T0 = datetime(2024, 1, 1, tzinfo=UTC)


def _candidate(embedding, minutes=0, id=None):
    return LinkCandidate(id=id or uuid4(), embedding=embedding, created_at=T0 + timedelta(minutes=minutes))


def _vector_with_similarity(score: float) -> list[float]:
    """Unit vector whose cosine with [1, 0] is exactly `score`."""
    return [score, (1 - score**2) ** 0.5]


class TestBuildLinks:
    """Selection rules: threshold, ordering, truncation."""

    def test_threshold_filters_and_sorts(self):
        b = _candidate(_vector_with_similarity(0.9))
        c = _candidate(_vector_with_similarity(0.2))
        d = _candidate(_vector_with_similarity(0.65))

        links = build_links([1.0, 0.0], [b, c, d])

        assert [link.target_id for link in links] == [b.id, d.id]
        assert links[0].score == pytest.approx(0.9)
        assert links[1].score == pytest.approx(0.65)

    def test_huge_magnitudes_link_with_valid_score(self):
        twin = _candidate([1e200, 1e200])

        links = build_links([1e200, 1e200], [twin])

        assert [link.target_id for link in links] == [twin.id]
        assert links[0].score == pytest.approx(1.0)

    def test_no_embedding_yields_no_links(self):
        candidates = [_candidate([1.0, 0.0])]
        assert build_links(None, candidates) == []
        assert build_links([], candidates) == []

    def test_score_equal_to_threshold_is_kept(self):
        same = _candidate([1.0, 0.0])
        links = build_links([1.0, 0.0], [same], threshold=1.0)
        assert [link.target_id for link in links] == [same.id]

    def test_truncates_to_max_links(self):
        candidates = [_candidate([1.0, 0.01 * i], minutes=i) for i in range(10)]
        links = build_links([1.0, 0.0], candidates, max_links=5)

        assert len(links) == 5
        scores = [link.score for link in links]
        assert scores == sorted(scores, reverse=True)

    def test_max_links_zero(self):
        assert build_links([1.0, 0.0], [_candidate([1.0, 0.0])], max_links=0) == []

    def test_ties_prefer_more_recent(self):
        older = _candidate([1.0, 0.0], minutes=0)
        newer = _candidate([2.0, 0.0], minutes=5)
        links = build_links([1.0, 0.0], [older, newer])
        assert [link.target_id for link in links] == [newer.id, older.id]

    def test_candidates_without_embedding_are_dropped(self):
        missing = _candidate(None)
        assert build_links([1.0, 0.0], [missing]) == []

    def test_dimension_mismatch_scores_zero(self):
        other_model = _candidate([1.0, 0.0, 0.0])
        assert build_links([1.0, 0.0], [other_model]) == []
        # ...but survives a zero threshold
        assert len(build_links([1.0, 0.0], [other_model], threshold=0.0)) == 1

    def test_duplicate_candidate_linked_once(self):
        shared = uuid4()
        weak = _candidate(_vector_with_similarity(0.7), id=shared)
        strong = _candidate(_vector_with_similarity(0.95), id=shared)

        links = build_links([1.0, 0.0], [weak, strong])

        assert len(links) == 1
        assert links[0].score == pytest.approx(0.95)

    def test_empty_pool(self):
        assert build_links([1.0, 0.0], []) == []

    @pytest.mark.parametrize("threshold", [-0.1, 1.5])
    def test_invalid_threshold_rejected(self, threshold):
        with pytest.raises(ValidationError):
            build_links([1.0, 0.0], [], threshold=threshold)

    def test_all_scores_meet_threshold(self):
        candidates = [_candidate(_vector_with_similarity(s / 10)) for s in range(11)]
        links = build_links([1.0, 0.0], candidates, threshold=0.6, max_links=20)
        assert all(link.score >= 0.6 for link in links)
        assert len({link.target_id for link in links}) == len(links)


class TestRelatedLinksBuilder:
    def test_uses_configured_defaults(self):
        builder = RelatedLinksBuilder(CoreConfig(similarity_threshold=0.3, max_related_links=2))
        candidates = [_candidate(_vector_with_similarity(s)) for s in (0.35, 0.5, 0.9)]

        links = builder.build([1.0, 0.0], candidates)

        assert [link.score for link in links] == pytest.approx([0.9, 0.5])

    def test_per_call_override(self):
        builder = RelatedLinksBuilder()
        candidates = [_candidate(_vector_with_similarity(0.4))]
        assert builder.build([1.0, 0.0], candidates) == []
        assert len(builder.build([1.0, 0.0], candidates, threshold=0.3)) == 1

    def test_links_for_excludes_self(self):
        builder = RelatedLinksBuilder()
        context = make_context("a", embedding=[1.0, 0.0])
        twin = make_context("b", embedding=[1.0, 0.0], minutes=1)

        links = builder.links_for(context, [context, twin])

        assert [link.target_id for link in links] == [twin.id]
