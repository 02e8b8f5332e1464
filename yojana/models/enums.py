from __future__ import annotations

from enum import StrEnum


class RuleOperator(StrEnum):
    __slots__ = ()

    EQ = "eq"
    LT = "lt"
    LTE = "lte"
    GT = "gt"
    GTE = "gte"
    IN = "in"
    CONTAINS = "contains"


class RuleOutcome(StrEnum):
    """Result of evaluating one eligibility rule against one profile."""

    __slots__ = ()

    MATCHED = "matched"
    UNMATCHED = "unmatched"
    MISSING = "missing"


class EligibilityStatus(StrEnum):
    __slots__ = ()

    ELIGIBLE = "eligible"
    PARTIALLY_ELIGIBLE = "partially_eligible"
    NOT_ELIGIBLE = "not_eligible"


class Priority(StrEnum):
    __slots__ = ()

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class BenefitType(StrEnum):
    __slots__ = ()

    CASH_TRANSFER = "cash_transfer"
    SUBSIDY = "subsidy"
    LOAN = "loan"
    INSURANCE = "insurance"
    PENSION = "pension"
    SCHOLARSHIP = "scholarship"
    SERVICE = "service"
    TRAINING = "training"
    IN_KIND = "in_kind"
    OTHER = "other"


class SchemeCategory(StrEnum):
    __slots__ = ()

    AGRICULTURE = "agriculture"
    HEALTH = "health"
    EDUCATION = "education"
    HOUSING = "housing"
    EMPLOYMENT = "employment"
    SOCIAL_SECURITY = "social_security"
    FINANCIAL_INCLUSION = "financial_inclusion"
    WOMEN_CHILD = "women_child"
    TRIBAL = "tribal"
    DISABILITY = "disability"
    SENIOR_CITIZEN = "senior_citizen"
    SKILL_DEVELOPMENT = "skill_development"
    OTHER = "other"
