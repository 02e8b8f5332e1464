"""Relevance scorer: one composite 0-100 score per scheme.

::

    final = 0.50 * eligibility          (EligibilityResult.match_score)
          + 0.20 * benefit              (amount vs. largest amount in the batch)
          + 0.15 * deadline             (urgency, 100 at <= 7 days, 0 at >= 90)
          + 0.10 * popularity           (success_rate * 100)
          + 0.05 * completeness_bonus   (profile completeness / 10)

Benefit is scaled against the batch maximum with zero as the floor, not
min-max normalised::

    benefit = 100 * amount / max(amount over the batch)

A scheme without an amount, or a batch with no positive amount, scores
``NEUTRAL_BENEFIT_SCORE``.

Every component is clamped to [0, 100] before weighting and the final
value is clamped again afterwards.  Weights and deadline bounds come from
settings.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import Final

from config.settings import Settings
from yojana.models.recommendation import EligibilityResult, ScoreBreakdown
from yojana.models.scheme import SchemeDocument
from yojana.models.user_profile import CitizenProfile

# Non-financial benefits (services, training) sit in the middle of the range.
NEUTRAL_BENEFIT_SCORE: Final[float] = 50.0


@dataclass(frozen=True, slots=True)
class ScoringWeights:
    eligibility: float = 0.50
    benefit: float = 0.20
    deadline: float = 0.15
    popularity: float = 0.10
    completeness: float = 0.05

    @classmethod
    def from_settings(cls, settings: Settings) -> ScoringWeights:
        return cls(
            eligibility=settings.weight_eligibility,
            benefit=settings.weight_benefit,
            deadline=settings.weight_deadline,
            popularity=settings.weight_popularity,
            completeness=settings.weight_completeness,
        )


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return min(max(value, low), high)


def benefit_ceiling(schemes: Iterable[SchemeDocument]) -> float | None:
    """Largest positive benefit amount in a catalog batch, or ``None``."""
    amounts = [s.benefit.amount for s in schemes if s.benefit.amount]
    return max(amounts) if amounts else None


class RelevanceScorer:
    """Combines eligibility, benefit, deadline, popularity and completeness."""

    __slots__ = ("_horizon_days", "_urgent_days", "_weights")

    def __init__(
        self,
        weights: ScoringWeights | None = None,
        *,
        urgent_days: int = 7,
        horizon_days: int = 90,
    ) -> None:
        if urgent_days >= horizon_days:
            raise ValueError("urgent_days must be below horizon_days")
        self._weights = weights or ScoringWeights()
        self._urgent_days = urgent_days
        self._horizon_days = horizon_days

    @classmethod
    def from_settings(cls, settings: Settings) -> RelevanceScorer:
        return cls(
            ScoringWeights.from_settings(settings),
            urgent_days=settings.deadline_urgent_days,
            horizon_days=settings.deadline_horizon_days,
        )

    # ------------------------------------------------------------------
    # Components
    # ------------------------------------------------------------------

    @staticmethod
    def benefit_score(amount: float | None, ceiling: float | None) -> float:
        if amount is None:
            return NEUTRAL_BENEFIT_SCORE
        if not ceiling or ceiling <= 0:
            return NEUTRAL_BENEFIT_SCORE
        return _clamp(100.0 * amount / ceiling)

    def deadline_score(self, days_remaining: int | None) -> float:
        """Linear urgency between the urgent and horizon bounds."""
        if days_remaining is None:
            return 0.0
        if days_remaining <= self._urgent_days:
            return 100.0
        if days_remaining >= self._horizon_days:
            return 0.0
        span = self._horizon_days - self._urgent_days
        return _clamp(100.0 * (self._horizon_days - days_remaining) / span)

    @staticmethod
    def popularity_score(success_rate: float | None) -> float:
        if success_rate is None:
            return 0.0
        return _clamp(success_rate * 100.0)

    @staticmethod
    def completeness_bonus(completeness: float) -> float:
        # completeness is 0-100, so the bonus spans 0-10 before weighting
        return _clamp(completeness / 10.0)

    # ------------------------------------------------------------------
    # Composite
    # ------------------------------------------------------------------

    def score(
        self,
        scheme: SchemeDocument,
        result: EligibilityResult,
        profile: CitizenProfile,
        *,
        ceiling: float | None = None,
        today: date | None = None,
    ) -> ScoreBreakdown:
        """Score *scheme* for *profile*.

        *ceiling* is the batch maximum from :func:`benefit_ceiling`; when
        omitted the scheme is compared against itself.
        """
        today = today or datetime.now(UTC).date()
        if ceiling is None:
            ceiling = scheme.benefit.amount

        eligibility = _clamp(result.match_score)
        benefit = self.benefit_score(scheme.benefit.amount, ceiling)
        deadline = self.deadline_score(scheme.timeline.days_until_deadline(today))
        popularity = self.popularity_score(scheme.success_rate)
        bonus = self.completeness_bonus(profile.completeness)

        w = self._weights
        final = (
            w.eligibility * eligibility
            + w.benefit * benefit
            + w.deadline * deadline
            + w.popularity * popularity
            + w.completeness * bonus
        )

        return ScoreBreakdown(
            eligibility=round(eligibility, 2),
            benefit=round(benefit, 2),
            deadline=round(deadline, 2),
            popularity=round(popularity, 2),
            completeness_bonus=round(bonus, 2),
            final_score=round(_clamp(final), 4),
        )
