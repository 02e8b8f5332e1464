"""Result, option and cache models produced by the recommendation engine."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field

from yojana.models.enums import (
    BenefitType,
    EligibilityStatus,
    Priority,
    RuleOperator,
    RuleOutcome,
    SchemeCategory,
)
from yojana.models.scheme import RuleValue
from yojana.models.user_profile import ProfileValue


# ---------------------------------------------------------------------------
# Request options
# ---------------------------------------------------------------------------


class SchemeFilters(BaseModel):
    """Catalog query filters, passed through unchanged to the scheme provider."""

    category: SchemeCategory | None = None
    state: str | None = None
    benefit_type: BenefitType | None = None

    @property
    def is_empty(self) -> bool:
        return self.category is None and self.state is None and self.benefit_type is None


class RecommendationOptions(BaseModel):
    limit: int | None = Field(default=None, ge=1)
    category: SchemeCategory | None = None
    state: str | None = None
    benefit_type: BenefitType | None = None
    min_match_score: float | None = Field(default=None, ge=0, le=100)
    language: str = "en"

    @property
    def filters(self) -> SchemeFilters:
        return SchemeFilters(
            category=self.category,
            state=self.state,
            benefit_type=self.benefit_type,
        )


# ---------------------------------------------------------------------------
# Per-scheme results
# ---------------------------------------------------------------------------


class EligibilityResult(BaseModel):
    """Rule-by-rule eligibility verdict for one profile-scheme pair."""

    scheme_id: str
    eligible: bool
    match_score: float = Field(ge=0, le=100)
    matched_criteria: list[str] = Field(default_factory=list)
    unmatched_criteria: list[str] = Field(default_factory=list)
    missing_profile_data: list[str] = Field(default_factory=list)
    malformed_rules: int = 0
    explanation: str = ""


class ScoreBreakdown(BaseModel):
    eligibility: float
    benefit: float
    deadline: float
    popularity: float
    completeness_bonus: float
    final_score: float = Field(ge=0, le=100)


class ScoredScheme(BaseModel):
    """Intermediate value joined after the per-scheme fan-out, before ranking."""

    scheme_id: str
    scheme_name: str
    name_translations: dict[str, str] = Field(default_factory=dict)
    category: SchemeCategory
    state: str | None = None
    benefit_type: BenefitType
    benefit_amount: float | None = None
    end_date: date | None = None
    days_to_deadline: int | None = None
    popularity: float = 0.0
    eligibility: EligibilityResult
    score: ScoreBreakdown


class SchemeSummary(BaseModel):
    scheme_id: str
    name: str
    name_translations: dict[str, str] = Field(default_factory=dict)
    category: SchemeCategory
    state: str | None = None
    benefit_type: BenefitType
    benefit_amount: float | None = None
    end_date: date | None = None

    def localized(self, language: str | None) -> SchemeSummary:
        name = self.name_translations.get(language or "", self.name)
        if name == self.name:
            return self
        return self.model_copy(update={"name": name})


class RecommendationReasoning(BaseModel):
    matched_attributes: list[str] = Field(default_factory=list)
    missing_attributes: list[str] = Field(default_factory=list)
    benefit_value: float | None = None
    days_to_deadline: int | None = None
    popularity: float = 0.0
    score_breakdown: ScoreBreakdown


class RecommendedScheme(BaseModel):
    scheme: SchemeSummary
    match_score: float = Field(ge=0, le=100)
    final_score: float = Field(ge=0, le=100)
    eligibility_status: EligibilityStatus
    priority: Priority
    reasoning: RecommendationReasoning


class RecommendationCacheEntry(BaseModel):
    """The full ranked list for one user, as stored in the cache."""

    user_id: str
    recommendations: list[RecommendedScheme] = Field(default_factory=list)
    generated_at: datetime
    expires_at: datetime


class RecommendationSet(BaseModel):
    """What callers of ``get_recommendations`` receive."""

    user_id: str
    recommendations: list[RecommendedScheme] = Field(default_factory=list)
    generated_at: datetime
    expires_at: datetime | None = None  # None when the list was not cached


# ---------------------------------------------------------------------------
# Explanations
# ---------------------------------------------------------------------------


class CriterionExplanation(BaseModel):
    criterion: str
    user_value: ProfileValue = None
    user_value_present: bool
    required_value: RuleValue
    operator: RuleOperator
    weight: float
    status: RuleOutcome
    matched: bool


class RecommendationExplanation(BaseModel):
    user_id: str
    scheme_id: str
    scheme_name: str
    language: str = "en"
    eligible: bool
    match_score: float = Field(ge=0, le=100)
    eligibility_status: EligibilityStatus
    criteria: list[CriterionExplanation] = Field(default_factory=list)
    missing_profile_data: list[str] = Field(default_factory=list)
    documents_required: list[str] = Field(default_factory=list)
    summary: str = ""
