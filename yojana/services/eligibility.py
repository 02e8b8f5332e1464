"""Eligibility assessor: aggregates rule evaluations for one scheme.

Scoring contract:

* ``match_score = 100 * matched_weight / (matched_weight + unmatched_weight)``
* Rules whose profile field is absent are left out of both sides, so an
  incomplete profile is not penalised for data it has not supplied yet.
  Those fields are reported in ``missing_profile_data`` instead.
* ``eligible`` is strict: every rule was evaluated and every rule
  matched.  The ranking layer derives a softer status from the score.

Criteria are reported per profile field.  A field is *missing* when the
profile has no value for it, *matched* when every rule on it matched,
and *unmatched* otherwise, so the three lists always partition the
scheme's rule field set.
"""

from __future__ import annotations

import math

import structlog

from yojana.models.enums import RuleOutcome
from yojana.models.recommendation import EligibilityResult
from yojana.models.scheme import SchemeDocument
from yojana.models.user_profile import CitizenProfile
from yojana.services.rules import RuleEvaluation, evaluate_rule

logger = structlog.get_logger(__name__)


class EligibilityAssessor:
    """Stateless; one instance can be shared across requests and threads."""

    __slots__ = ()

    def assess(self, scheme: SchemeDocument, profile: CitizenProfile) -> EligibilityResult:
        result, _ = self.assess_with_evaluations(scheme, profile)
        return result

    def assess_with_evaluations(
        self,
        scheme: SchemeDocument,
        profile: CitizenProfile,
    ) -> tuple[EligibilityResult, list[RuleEvaluation]]:
        """Assess *scheme* and also return the per-rule evaluations, in rule order."""
        evaluations = [evaluate_rule(rule, profile) for rule in scheme.rules]

        matched_weight = 0.0
        unmatched_weight = 0.0
        field_outcomes: dict[str, RuleOutcome] = {}

        for ev in evaluations:
            if ev.outcome is RuleOutcome.MATCHED:
                matched_weight += ev.rule.weight
            elif ev.outcome is RuleOutcome.UNMATCHED:
                unmatched_weight += ev.rule.weight

            # A single unmatched rule makes the whole field unmatched.
            previous = field_outcomes.get(ev.rule.field)
            if previous is None or previous is RuleOutcome.MATCHED:
                field_outcomes[ev.rule.field] = ev.outcome

        matched = sorted(f for f, o in field_outcomes.items() if o is RuleOutcome.MATCHED)
        unmatched = sorted(f for f, o in field_outcomes.items() if o is RuleOutcome.UNMATCHED)
        missing = sorted(f for f, o in field_outcomes.items() if o is RuleOutcome.MISSING)
        malformed = sum(1 for ev in evaluations if ev.malformed)

        if not evaluations:
            # No restrictions at all: open to everyone.
            match_score = 100.0
            eligible = True
        else:
            denominator = matched_weight + unmatched_weight
            if denominator <= 0:
                match_score = 0.0
            else:
                match_score = _round_score(matched_weight, denominator, unmatched_weight)
            eligible = unmatched_weight == 0 and not missing and denominator > 0

        result = EligibilityResult(
            scheme_id=scheme.scheme_id,
            eligible=eligible,
            match_score=match_score,
            matched_criteria=matched,
            unmatched_criteria=unmatched,
            missing_profile_data=missing,
            malformed_rules=malformed,
            explanation=_describe(len(scheme.rules), matched, unmatched, missing),
        )

        if malformed:
            logger.info(
                "eligibility.malformed_rules_skipped",
                scheme_id=scheme.scheme_id,
                malformed=malformed,
            )

        return result, evaluations


def _round_score(matched_weight: float, denominator: float, unmatched_weight: float) -> float:
    raw = min(max(100.0 * matched_weight / denominator, 0.0), 100.0)
    if unmatched_weight > 0:
        # Any unmatched weight keeps the score strictly below 100.
        return min(math.floor(raw * 100) / 100, 99.99)
    return round(raw, 2)


def _describe(
    rule_count: int,
    matched: list[str],
    unmatched: list[str],
    missing: list[str],
) -> str:
    if rule_count == 0:
        return "No eligibility restrictions."

    parts: list[str] = []
    evaluated = len(matched) + len(unmatched)
    if evaluated:
        parts.append(f"Meets {len(matched)} of {evaluated} evaluated criteria")
    else:
        parts.append("No criteria could be evaluated")
    if unmatched:
        parts.append("does not meet: " + ", ".join(unmatched))
    if missing:
        parts.append("information needed: " + ", ".join(missing))
    return "; ".join(parts) + "."
