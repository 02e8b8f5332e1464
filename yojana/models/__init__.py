from yojana.models.enums import (
    BenefitType,
    EligibilityStatus,
    Priority,
    RuleOperator,
    RuleOutcome,
    SchemeCategory,
)
from yojana.models.recommendation import (
    CriterionExplanation,
    EligibilityResult,
    RecommendationCacheEntry,
    RecommendationExplanation,
    RecommendationOptions,
    RecommendationReasoning,
    RecommendationSet,
    RecommendedScheme,
    SchemeFilters,
    SchemeSummary,
    ScoreBreakdown,
    ScoredScheme,
)
from yojana.models.scheme import (
    Benefit,
    DocumentRequirement,
    EligibilityRule,
    SchemeDocument,
    SchemeTimeline,
)
from yojana.models.user_profile import CitizenProfile

__all__ = [
    "Benefit",
    "BenefitType",
    "CitizenProfile",
    "CriterionExplanation",
    "DocumentRequirement",
    "EligibilityResult",
    "EligibilityRule",
    "EligibilityStatus",
    "Priority",
    "RecommendationCacheEntry",
    "RecommendationExplanation",
    "RecommendationOptions",
    "RecommendationReasoning",
    "RecommendationSet",
    "RecommendedScheme",
    "RuleOperator",
    "RuleOutcome",
    "SchemeCategory",
    "SchemeDocument",
    "SchemeFilters",
    "SchemeSummary",
    "SchemeTimeline",
    "ScoreBreakdown",
    "ScoredScheme",
]
