"""Recommendation engine: the facade callers talk to.

Request flow for ``get_recommendations``::

    cache hit? ──yes──> view (min score / limit / language) ──> response
        │no
        ▼
    per-user lock ─> re-check cache ─> fetch profile ─> fetch catalog
        ─> fork: assess + score each scheme (independent, pure)
        ─> join ─> rank (single sort) ─> atomic cache write ─> view

Only unfiltered requests read or write the per-user cache: the benefit
score is normalised against the batch that was fetched, so a
category-filtered list is a different computation and is served fresh.
Nothing is written until the full ranked list exists, so a cancelled
request leaves no partial state behind.
"""

from __future__ import annotations

import asyncio
import contextlib
import weakref
from collections.abc import Awaitable, Callable, Iterator
from datetime import UTC, date, datetime
from typing import TypeVar

import structlog

from config.settings import Settings
from yojana.models.recommendation import (
    RecommendationExplanation,
    RecommendationOptions,
    RecommendationSet,
    RecommendedScheme,
    SchemeFilters,
    ScoredScheme,
)
from yojana.models.scheme import SchemeDocument
from yojana.models.user_profile import CitizenProfile
from yojana.services.cache import DEFAULT_RECOMMENDATION_TTL, RecommendationCache
from yojana.services.eligibility import EligibilityAssessor
from yojana.services.errors import DependencyTimeoutError, SchemeNotFoundError
from yojana.services.explanation import ExplanationGenerator
from yojana.services.providers import ProfileProvider, SchemeProvider
from yojana.services.ranking import RankingAggregator, RankingThresholds, apply_view
from yojana.services.scoring import RelevanceScorer, benefit_ceiling

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(UTC)


class RecommendationEngine:
    """Eligibility assessment, scoring, ranking and caching for one catalog.

    Parameters
    ----------
    profiles, schemes:
        Read-only collaborators.
    cache:
        Per-user ranked-list cache.  ``None`` disables caching entirely.
    timeout_seconds:
        Bound on every collaborator call; exceeding it raises
        :class:`DependencyTimeoutError`.
    """

    def __init__(
        self,
        profiles: ProfileProvider,
        schemes: SchemeProvider,
        cache: RecommendationCache | None = None,
        *,
        assessor: EligibilityAssessor | None = None,
        scorer: RelevanceScorer | None = None,
        ranker: RankingAggregator | None = None,
        explainer: ExplanationGenerator | None = None,
        timeout_seconds: float = 5.0,
        cache_ttl_seconds: int = DEFAULT_RECOMMENDATION_TTL,
        default_limit: int = 20,
        max_limit: int = 100,
        chunk_size: int = 64,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._profiles = profiles
        self._schemes = schemes
        self._cache = cache
        self._assessor = assessor or EligibilityAssessor()
        self._scorer = scorer or RelevanceScorer()
        self._ranker = ranker or RankingAggregator()
        self._explainer = explainer or ExplanationGenerator(self._assessor, self._ranker.thresholds)
        self._timeout = timeout_seconds
        self._ttl = cache_ttl_seconds
        self._default_limit = default_limit
        self._max_limit = max_limit
        self._chunk_size = max(chunk_size, 1)
        self._clock = clock
        # Locks live only while some request holds or waits on them.
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()
        # Per-user invalidation counters, kept only while a computation for
        # that user is in flight. A computation whose counter moved is not cached.
        self._generations: dict[str, int] = {}
        self._inflight: dict[str, int] = {}

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        profiles: ProfileProvider,
        schemes: SchemeProvider,
        cache: RecommendationCache | None = None,
    ) -> RecommendationEngine:
        thresholds = RankingThresholds.from_settings(settings)
        return cls(
            profiles,
            schemes,
            cache,
            scorer=RelevanceScorer.from_settings(settings),
            ranker=RankingAggregator(thresholds),
            timeout_seconds=settings.dependency_timeout_seconds,
            cache_ttl_seconds=settings.recommendation_cache_ttl,
            default_limit=settings.default_limit,
            max_limit=settings.max_limit,
            chunk_size=settings.scoring_chunk_size,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_recommendations(
        self,
        user_id: str,
        options: RecommendationOptions | None = None,
    ) -> RecommendationSet:
        """Ranked recommendations for *user_id*.

        Raises
        ------
        ProfileNotFoundError
            The profile collaborator has no such user.
        DependencyTimeoutError
            The profile or catalog fetch exceeded the time bound.
        """
        options = options or RecommendationOptions()
        filters = options.filters

        if self._cache is None or not filters.is_empty:
            ranked = await self._compute(user_id, filters)
            return self._view(user_id, ranked, options, generated_at=self._clock(), expires_at=None)

        entry = await self._cache.get(user_id)
        if entry is not None:
            logger.info("recommendation.cache_hit", user_id=user_id)
        else:
            async with self._lock_for(user_id):
                # A concurrent request may have filled the cache meanwhile.
                entry = await self._cache.get(user_id)
                if entry is None:
                    logger.info("recommendation.cache_miss", user_id=user_id)
                    with self._tracked(user_id) as generation:
                        ranked = await self._compute(user_id, filters)
                        if not self._is_current(user_id, generation):
                            return self._view(user_id, ranked, options, generated_at=self._clock(), expires_at=None)
                        entry = await self._cache.put(user_id, ranked, self._ttl)

        return self._view(
            user_id,
            entry.recommendations,
            options,
            generated_at=entry.generated_at,
            expires_at=entry.expires_at,
        )

    async def explain_recommendation(
        self,
        user_id: str,
        scheme_id: str,
        language: str = "en",
    ) -> RecommendationExplanation:
        """Criterion-by-criterion breakdown of one scheme against the current profile.

        Raises
        ------
        SchemeNotFoundError
            *scheme_id* is not in the catalog.
        ProfileNotFoundError
            The profile collaborator has no such user.
        """
        scheme = await self._bounded(self._schemes.get_scheme(scheme_id), "scheme_catalog")
        if scheme is None:
            raise SchemeNotFoundError(scheme_id)
        profile = await self._bounded(self._profiles.get_profile(user_id), "profile_service")
        return self._explainer.explain(scheme, profile, language)

    async def refresh_recommendations(self, user_id: str) -> None:
        """Drop the cached list for *user_id* and recompute it now."""
        await self.invalidate(user_id)
        async with self._lock_for(user_id):
            with self._tracked(user_id) as generation:
                ranked = await self._compute(user_id, SchemeFilters())
                if self._cache is not None and self._is_current(user_id, generation):
                    await self._cache.put(user_id, ranked, self._ttl)
        logger.info("recommendation.refreshed", user_id=user_id, count=len(ranked))

    async def invalidate(self, user_id: str) -> None:
        """Push hook for the profile collaborator: the profile changed materially."""
        if user_id in self._generations:
            self._generations[user_id] += 1
        if self._cache is not None:
            await self._cache.invalidate(user_id)

    # ------------------------------------------------------------------
    # Computation
    # ------------------------------------------------------------------

    async def _compute(self, user_id: str, filters: SchemeFilters) -> list[RecommendedScheme]:
        """Fetch, score and rank the full list (no min-score / limit applied)."""
        profile = await self._bounded(self._profiles.get_profile(user_id), "profile_service")
        schemes = await self._bounded(self._schemes.get_schemes(filters), "scheme_catalog")

        today = self._clock().date()
        open_schemes = [s for s in schemes if not s.timeline.is_closed(today)]
        scored = await self._score_all(open_schemes, profile, today)
        ranked = self._ranker.rank(scored)

        logger.info(
            "recommendation.computed",
            user_id=user_id,
            catalog_size=len(schemes),
            closed_skipped=len(schemes) - len(open_schemes),
            ranked=len(ranked),
        )
        return ranked

    async def _score_all(
        self,
        schemes: list[SchemeDocument],
        profile: CitizenProfile,
        today: date,
    ) -> list[ScoredScheme]:
        """Fork-join: score chunks of the catalog in worker threads, then merge."""
        if not schemes:
            return []
        ceiling = benefit_ceiling(schemes)
        chunks = [schemes[i : i + self._chunk_size] for i in range(0, len(schemes), self._chunk_size)]
        parts = await asyncio.gather(
            *(asyncio.to_thread(self._score_chunk, chunk, profile, ceiling, today) for chunk in chunks)
        )
        return [item for part in parts for item in part]

    def _score_chunk(
        self,
        schemes: list[SchemeDocument],
        profile: CitizenProfile,
        ceiling: float | None,
        today: date,
    ) -> list[ScoredScheme]:
        return [self._score_one(scheme, profile, ceiling, today) for scheme in schemes]

    def _score_one(
        self,
        scheme: SchemeDocument,
        profile: CitizenProfile,
        ceiling: float | None,
        today: date,
    ) -> ScoredScheme:
        result = self._assessor.assess(scheme, profile)
        breakdown = self._scorer.score(scheme, result, profile, ceiling=ceiling, today=today)
        return ScoredScheme(
            scheme_id=scheme.scheme_id,
            scheme_name=scheme.name,
            name_translations=scheme.name_translations,
            category=scheme.category,
            state=scheme.state,
            benefit_type=scheme.benefit.type,
            benefit_amount=scheme.benefit.amount,
            end_date=None if scheme.timeline.is_ongoing else scheme.timeline.end_date,
            days_to_deadline=scheme.timeline.days_until_deadline(today),
            popularity=scheme.popularity,
            eligibility=result,
            score=breakdown,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @contextlib.contextmanager
    def _tracked(self, user_id: str) -> Iterator[int]:
        """Register an in-flight computation and yield the generation it started at."""
        self._inflight[user_id] = self._inflight.get(user_id, 0) + 1
        generation = self._generations.setdefault(user_id, 0)
        try:
            yield generation
        finally:
            remaining = self._inflight.pop(user_id) - 1
            if remaining:
                self._inflight[user_id] = remaining
            else:
                self._generations.pop(user_id, None)

    def _is_current(self, user_id: str, generation: int) -> bool:
        """False when the user was invalidated after *generation* was read."""
        if self._generations.get(user_id, 0) == generation:
            return True
        logger.info("recommendation.stale_result_not_cached", user_id=user_id)
        return False

    async def _bounded(self, awaitable: Awaitable[T], dependency: str) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except TimeoutError as exc:
            logger.warning(
                "recommendation.dependency_timeout",
                dependency=dependency,
                timeout_seconds=self._timeout,
            )
            raise DependencyTimeoutError(dependency, self._timeout) from exc

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    def _view(
        self,
        user_id: str,
        ranked: list[RecommendedScheme],
        options: RecommendationOptions,
        *,
        generated_at: datetime,
        expires_at: datetime | None,
    ) -> RecommendationSet:
        limit = min(options.limit or self._default_limit, self._max_limit)
        view = apply_view(ranked, min_match_score=options.min_match_score, limit=limit)
        localized = [
            rec.model_copy(update={"scheme": rec.scheme.localized(options.language)}) for rec in view
        ]
        return RecommendationSet(
            user_id=user_id,
            recommendations=localized,
            generated_at=generated_at,
            expires_at=expires_at,
        )
