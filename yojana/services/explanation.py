"""On-demand explanation of one scheme's eligibility for one citizen.

Explanations are never cached: they are rarely requested and must always
reflect the latest profile, so the assessor is simply re-run.
"""

from __future__ import annotations

import structlog

from yojana.models.enums import EligibilityStatus
from yojana.models.recommendation import CriterionExplanation, RecommendationExplanation
from yojana.models.scheme import SchemeDocument
from yojana.models.user_profile import CitizenProfile
from yojana.services.eligibility import EligibilityAssessor
from yojana.services.ranking import RankingThresholds

logger = structlog.get_logger(__name__)


class ExplanationGenerator:
    __slots__ = ("_assessor", "_thresholds")

    def __init__(
        self,
        assessor: EligibilityAssessor | None = None,
        thresholds: RankingThresholds | None = None,
    ) -> None:
        self._assessor = assessor or EligibilityAssessor()
        self._thresholds = thresholds or RankingThresholds()

    def explain(
        self,
        scheme: SchemeDocument,
        profile: CitizenProfile,
        language: str = "en",
    ) -> RecommendationExplanation:
        result, evaluations = self._assessor.assess_with_evaluations(scheme, profile)

        # One entry per rule, in rule order; only rule fields are ever echoed back.
        criteria = [
            CriterionExplanation(
                criterion=ev.rule.field,
                user_value=ev.user_value,
                user_value_present=ev.user_value is not None,
                required_value=ev.rule.value,
                operator=ev.rule.operator,
                weight=ev.rule.weight,
                status=ev.outcome,
                matched=ev.matched,
            )
            for ev in evaluations
        ]

        name = scheme.localized_name(language)
        status = self._thresholds.status_for(result)

        logger.debug(
            "explanation.generated",
            scheme_id=scheme.scheme_id,
            user_id=profile.user_id,
            status=status.value,
        )

        return RecommendationExplanation(
            user_id=profile.user_id,
            scheme_id=scheme.scheme_id,
            scheme_name=name,
            language=language,
            eligible=result.eligible,
            match_score=result.match_score,
            eligibility_status=status,
            criteria=criteria,
            missing_profile_data=result.missing_profile_data,
            documents_required=[doc.name for doc in scheme.documents_required],
            summary=_summarise(name, status, result.unmatched_criteria, result.missing_profile_data),
        )


def _summarise(
    name: str,
    status: EligibilityStatus,
    unmatched: list[str],
    missing: list[str],
) -> str:
    if status is EligibilityStatus.ELIGIBLE:
        return f"You meet every eligibility criterion for {name}."

    sentences: list[str] = []
    if status is EligibilityStatus.PARTIALLY_ELIGIBLE:
        sentences.append(f"You meet some of the eligibility criteria for {name}.")
    elif not unmatched:
        sentences.append(f"More information is needed to check your eligibility for {name}.")
    else:
        sentences.append(f"You do not currently meet the eligibility criteria for {name}.")
    if unmatched:
        sentences.append("Criteria not met: " + ", ".join(unmatched) + ".")
    if missing:
        sentences.append(
            "Add these details to your profile for a complete check: " + ", ".join(missing) + "."
        )
    return " ".join(sentences)
