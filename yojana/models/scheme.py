from __future__ import annotations

from datetime import date

from pydantic import BaseModel, ConfigDict, Field

from yojana.models.enums import BenefitType, RuleOperator, SchemeCategory

# Closed variant of literal rule values: number, text, boolean, or a set
# (serialised as a list) of numbers/text.  ``bool`` is listed first so
# pydantic's smart union keeps ``True`` from being coerced to ``1``.
RuleScalar = bool | int | float | str
RuleValue = RuleScalar | list[RuleScalar]


class EligibilityRule(BaseModel):
    """Weighted predicate over a single profile field.

    The weight only contributes to scoring.  Operator/value compatibility
    is deliberately not validated here; incompatible combinations are
    evaluated as mismatches by :mod:`yojana.services.rules`.
    """

    model_config = ConfigDict(frozen=True)

    field: str = Field(min_length=1)
    operator: RuleOperator
    value: RuleValue
    weight: float = Field(default=1.0, gt=0)


class DocumentRequirement(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    mandatory: bool = True
    description: str | None = None


class Benefit(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: BenefitType = BenefitType.OTHER
    amount: float | None = Field(default=None, ge=0)  # INR; None for non-financial benefits
    description: str = ""


class SchemeTimeline(BaseModel):
    model_config = ConfigDict(frozen=True)

    start_date: date | None = None
    end_date: date | None = None
    is_ongoing: bool = True

    def days_until_deadline(self, today: date) -> int | None:
        """Whole days from *today* until ``end_date``; ``None`` when open-ended."""
        if self.is_ongoing or self.end_date is None:
            return None
        return (self.end_date - today).days

    def is_closed(self, today: date) -> bool:
        days = self.days_until_deadline(today)
        return days is not None and days < 0


class SchemeDocument(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    scheme_id: str
    name: str
    name_translations: dict[str, str] = Field(default_factory=dict)
    description: str = ""
    category: SchemeCategory = SchemeCategory.OTHER
    ministry: str = ""
    state: str | None = None  # None for central schemes
    rules: list[EligibilityRule] = Field(default_factory=list)
    documents_required: list[DocumentRequirement] = Field(default_factory=list)
    benefit: Benefit = Field(default_factory=Benefit)
    timeline: SchemeTimeline = Field(default_factory=SchemeTimeline)
    popularity: float = Field(default=0.0, ge=0)
    success_rate: float | None = Field(default=None, ge=0, le=1)
    helpline: str | None = None
    website: str | None = None

    @property
    def rule_fields(self) -> list[str]:
        """Distinct profile fields referenced by this scheme's rules, in rule order."""
        return list(dict.fromkeys(rule.field for rule in self.rules))

    def localized_name(self, language: str | None) -> str:
        if language and language in self.name_translations:
            return self.name_translations[language]
        return self.name
