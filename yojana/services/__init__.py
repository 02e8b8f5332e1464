"""Yojana service layer -- rule evaluation, scoring, ranking, caching and collaborators."""

from __future__ import annotations

from yojana.services.cache import CacheManager, InMemoryCacheBackend, RecommendationCache, RedisCacheBackend
from yojana.services.eligibility import EligibilityAssessor
from yojana.services.errors import (
    DependencyTimeoutError,
    MalformedRuleError,
    ProfileNotFoundError,
    RecommendationError,
    SchemeNotFoundError,
)
from yojana.services.explanation import ExplanationGenerator
from yojana.services.providers import (
    HttpProfileProvider,
    HttpSchemeProvider,
    InMemoryProfileStore,
    InMemorySchemeCatalog,
    ProfileProvider,
    SchemeProvider,
)
from yojana.services.ranking import RankingAggregator, RankingThresholds
from yojana.services.recommendation import RecommendationEngine
from yojana.services.rules import RuleEvaluation, evaluate_rule
from yojana.services.scoring import RelevanceScorer, ScoringWeights, benefit_ceiling

__all__ = [
    "CacheManager",
    "DependencyTimeoutError",
    "EligibilityAssessor",
    "ExplanationGenerator",
    "HttpProfileProvider",
    "HttpSchemeProvider",
    "InMemoryCacheBackend",
    "InMemoryProfileStore",
    "InMemorySchemeCatalog",
    "MalformedRuleError",
    "ProfileNotFoundError",
    "ProfileProvider",
    "RankingAggregator",
    "RankingThresholds",
    "RecommendationCache",
    "RecommendationEngine",
    "RecommendationError",
    "RedisCacheBackend",
    "RelevanceScorer",
    "RuleEvaluation",
    "SchemeNotFoundError",
    "SchemeProvider",
    "ScoringWeights",
    "benefit_ceiling",
    "evaluate_rule",
]
