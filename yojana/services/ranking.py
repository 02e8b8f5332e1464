"""Ranking aggregator: order scored schemes and assign status / priority tiers.

Sort key: final score descending, then scheme popularity descending, then
``scheme_id`` ascending so equal inputs always produce the same order.
The 40 / 70 / 40 bands below are product decisions rather than published
rules; they live in settings so they can be tuned.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from config.settings import Settings
from yojana.models.enums import EligibilityStatus, Priority
from yojana.models.recommendation import (
    EligibilityResult,
    RecommendationReasoning,
    RecommendedScheme,
    SchemeSummary,
    ScoredScheme,
)


@dataclass(frozen=True, slots=True)
class RankingThresholds:
    partial_match: float = 40.0
    high_priority: float = 70.0
    medium_priority: float = 40.0

    def __post_init__(self) -> None:
        if self.high_priority < self.medium_priority:
            raise ValueError("high_priority threshold must be >= medium_priority")

    @classmethod
    def from_settings(cls, settings: Settings) -> RankingThresholds:
        return cls(
            partial_match=settings.partial_match_threshold,
            high_priority=settings.high_priority_threshold,
            medium_priority=settings.medium_priority_threshold,
        )

    def status_for(self, result: EligibilityResult) -> EligibilityStatus:
        if result.eligible:
            return EligibilityStatus.ELIGIBLE
        if result.match_score >= self.partial_match:
            return EligibilityStatus.PARTIALLY_ELIGIBLE
        return EligibilityStatus.NOT_ELIGIBLE

    def priority_for(self, final_score: float) -> Priority:
        if final_score >= self.high_priority:
            return Priority.HIGH
        if final_score >= self.medium_priority:
            return Priority.MEDIUM
        return Priority.LOW


def _sort_key(item: ScoredScheme) -> tuple[float, float, str]:
    return (-item.score.final_score, -item.popularity, item.scheme_id)


class RankingAggregator:
    __slots__ = ("_thresholds",)

    def __init__(self, thresholds: RankingThresholds | None = None) -> None:
        self._thresholds = thresholds or RankingThresholds()

    @property
    def thresholds(self) -> RankingThresholds:
        return self._thresholds

    def rank(
        self,
        scored: Iterable[ScoredScheme],
        *,
        min_match_score: float | None = None,
        limit: int | None = None,
    ) -> list[RecommendedScheme]:
        """Filter, sort and truncate *scored*, then build recommendations."""
        candidates = list(scored)
        if min_match_score is not None:
            candidates = [c for c in candidates if c.eligibility.match_score >= min_match_score]

        candidates.sort(key=_sort_key)
        if limit is not None:
            candidates = candidates[:limit]

        return [self._to_recommendation(c) for c in candidates]

    def _to_recommendation(self, item: ScoredScheme) -> RecommendedScheme:
        result = item.eligibility
        return RecommendedScheme(
            scheme=SchemeSummary(
                scheme_id=item.scheme_id,
                name=item.scheme_name,
                name_translations=item.name_translations,
                category=item.category,
                state=item.state,
                benefit_type=item.benefit_type,
                benefit_amount=item.benefit_amount,
                end_date=item.end_date,
            ),
            match_score=result.match_score,
            final_score=item.score.final_score,
            eligibility_status=self._thresholds.status_for(result),
            priority=self._thresholds.priority_for(item.score.final_score),
            reasoning=RecommendationReasoning(
                matched_attributes=result.matched_criteria,
                missing_attributes=result.missing_profile_data,
                benefit_value=item.benefit_amount,
                days_to_deadline=item.days_to_deadline,
                popularity=item.popularity,
                score_breakdown=item.score,
            ),
        )


def apply_view(
    recommendations: list[RecommendedScheme],
    *,
    min_match_score: float | None = None,
    limit: int | None = None,
) -> list[RecommendedScheme]:
    """Re-apply the post-ranking filters to an already ranked (e.g. cached) list."""
    view = recommendations
    if min_match_score is not None:
        view = [r for r in view if r.match_score >= min_match_score]
    if limit is not None:
        view = view[:limit]
    return view
