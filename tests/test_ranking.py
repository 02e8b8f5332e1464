"""Tests for the ranking aggregator: ordering, tie-breaks, filters and tiers."""

from __future__ import annotations

import random

import pytest

from yojana.models.enums import BenefitType, EligibilityStatus, Priority, SchemeCategory
from yojana.models.recommendation import EligibilityResult, ScoreBreakdown, ScoredScheme
from yojana.services.ranking import RankingAggregator, RankingThresholds, apply_view


def _scored(
    scheme_id: str,
    final_score: float,
    *,
    popularity: float = 0.5,
    match_score: float = 50.0,
    eligible: bool = False,
) -> ScoredScheme:
    return ScoredScheme(
        scheme_id=scheme_id,
        scheme_name=f"Scheme {scheme_id}",
        category=SchemeCategory.AGRICULTURE,
        benefit_type=BenefitType.CASH_TRANSFER,
        benefit_amount=6000.0,
        popularity=popularity,
        eligibility=EligibilityResult(scheme_id=scheme_id, eligible=eligible, match_score=match_score),
        score=ScoreBreakdown(
            eligibility=match_score,
            benefit=50.0,
            deadline=0.0,
            popularity=0.0,
            completeness_bonus=0.0,
            final_score=final_score,
        ),
    )


@pytest.fixture
def ranker() -> RankingAggregator:
    return RankingAggregator()


class TestOrdering:
    def test_sorted_by_final_score_descending(self, ranker: RankingAggregator) -> None:
        ranked = ranker.rank([_scored("a", 30), _scored("b", 90), _scored("c", 60)])
        assert [r.scheme.scheme_id for r in ranked] == ["b", "c", "a"]

    def test_popularity_breaks_ties(self, ranker: RankingAggregator) -> None:
        ranked = ranker.rank([_scored("low", 50, popularity=0.2), _scored("high", 50, popularity=0.9)])
        assert ranked[0].scheme.scheme_id == "high", "higher popularity should rank first on equal scores"

    def test_scheme_id_breaks_remaining_ties(self, ranker: RankingAggregator) -> None:
        ranked = ranker.rank([_scored("zeta", 50), _scored("alpha", 50), _scored("mu", 50)])
        assert [r.scheme.scheme_id for r in ranked] == ["alpha", "mu", "zeta"]

    def test_order_independent_of_input_order(self, ranker: RankingAggregator) -> None:
        items = [_scored(f"s{i}", float(i % 7) * 10, popularity=(i % 3) / 3) for i in range(30)]
        expected = [r.scheme.scheme_id for r in ranker.rank(items)]
        shuffled = items[:]
        random.Random(7).shuffle(shuffled)
        assert [r.scheme.scheme_id for r in ranker.rank(shuffled)] == expected

    def test_output_is_monotonic(self, ranker: RankingAggregator) -> None:
        items = [_scored(f"s{i}", (i * 37) % 100, popularity=(i * 13) % 10 / 10) for i in range(50)]
        scores = [r.final_score for r in ranker.rank(items)]
        assert all(a >= b for a, b in zip(scores, scores[1:]))


class TestFiltersAndLimit:
    def test_min_match_score_drops_low_matches(self, ranker: RankingAggregator) -> None:
        ranked = ranker.rank(
            [_scored("a", 80, match_score=90), _scored("b", 85, match_score=20)],
            min_match_score=50,
        )
        assert [r.scheme.scheme_id for r in ranked] == ["a"]

    def test_limit_truncates_after_sorting(self, ranker: RankingAggregator) -> None:
        ranked = ranker.rank([_scored("a", 10), _scored("b", 90), _scored("c", 50)], limit=2)
        assert [r.scheme.scheme_id for r in ranked] == ["b", "c"]

    def test_apply_view_matches_rank_arguments(self, ranker: RankingAggregator) -> None:
        items = [_scored(f"s{i}", i * 5, match_score=i * 5) for i in range(20)]
        direct = ranker.rank(items, min_match_score=30, limit=5)
        via_view = apply_view(ranker.rank(items), min_match_score=30, limit=5)
        assert direct == via_view, "filtering a cached full list must equal ranking with filters"


class TestTiers:
    @pytest.mark.parametrize(
        ("eligible", "match_score", "expected"),
        [
            (True, 100.0, EligibilityStatus.ELIGIBLE),
            (False, 100.0, EligibilityStatus.PARTIALLY_ELIGIBLE),
            (False, 40.0, EligibilityStatus.PARTIALLY_ELIGIBLE),
            (False, 39.99, EligibilityStatus.NOT_ELIGIBLE),
            (False, 0.0, EligibilityStatus.NOT_ELIGIBLE),
        ],
    )
    def test_eligibility_status(self, eligible: bool, match_score: float, expected: EligibilityStatus) -> None:
        result = EligibilityResult(scheme_id="s", eligible=eligible, match_score=match_score)
        assert RankingThresholds().status_for(result) is expected

    @pytest.mark.parametrize(
        ("final_score", "expected"),
        [(95.0, Priority.HIGH), (70.0, Priority.HIGH), (69.9, Priority.MEDIUM), (40.0, Priority.MEDIUM), (12.0, Priority.LOW)],
    )
    def test_priority(self, final_score: float, expected: Priority) -> None:
        assert RankingThresholds().priority_for(final_score) is expected

    def test_priority_never_rises_down_the_list(self, ranker: RankingAggregator) -> None:
        order = {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}
        ranked = ranker.rank([_scored(f"s{i}", i * 4.5) for i in range(23)])
        tiers = [order[r.priority] for r in ranked]
        assert tiers == sorted(tiers), "priority tiers must follow final score order"

    def test_inverted_thresholds_rejected(self) -> None:
        with pytest.raises(ValueError):
            RankingThresholds(high_priority=30, medium_priority=60)

    def test_reasoning_carries_score_breakdown(self, ranker: RankingAggregator) -> None:
        [rec] = ranker.rank([_scored("a", 72.5, popularity=0.8)])
        assert rec.reasoning.score_breakdown.final_score == 72.5
        assert rec.reasoning.popularity == 0.8
        assert rec.reasoning.benefit_value == 6000.0
