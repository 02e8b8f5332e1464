"""Rule evaluator: one eligibility rule against one profile field.

Pure and side-effect free apart from logging.  A rule whose operator
cannot be applied to the values involved (``lt`` against a text field,
``in`` with a scalar rule value, ...) is *malformed*: it is logged and
reported as a mismatch so that one bad rule never aborts the scoring of
an otherwise valid scheme.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Final

import structlog

from yojana.models.enums import RuleOperator, RuleOutcome
from yojana.models.scheme import EligibilityRule
from yojana.models.user_profile import CitizenProfile, ProfileValue
from yojana.services.errors import MalformedRuleError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class RuleEvaluation:
    rule: EligibilityRule
    outcome: RuleOutcome
    user_value: ProfileValue = None
    malformed: bool = False

    @property
    def matched(self) -> bool:
        return self.outcome is RuleOutcome.MATCHED


def _is_number(value: Any) -> bool:
    # bool is an int subclass but is its own kind here
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _kind(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if _is_number(value):
        return "number"
    if isinstance(value, str):
        return "text"
    if isinstance(value, (list, tuple, set, frozenset)):
        return "set"
    return type(value).__name__


def _same_kind_equal(left: Any, right: Any) -> bool:
    """Equality that never lets ``True == 1`` or ``"5" == 5`` through."""
    if _kind(left) != _kind(right):
        return False
    return left == right


# ---------------------------------------------------------------------------
# Operators
# ---------------------------------------------------------------------------


def _op_eq(rule: EligibilityRule, actual: Any) -> bool:
    expected = rule.value
    if _kind(expected) == "set" or _kind(actual) == "set":
        raise MalformedRuleError(rule.field, rule.operator, "eq needs scalar values")
    if _kind(actual) != _kind(expected):
        raise MalformedRuleError(
            rule.field,
            rule.operator,
            f"cannot compare {_kind(actual)} with {_kind(expected)}",
        )
    return actual == expected


def _numeric(compare: Callable[[float, float], bool]) -> Callable[[EligibilityRule, Any], bool]:
    def _op(rule: EligibilityRule, actual: Any) -> bool:
        if not _is_number(rule.value):
            raise MalformedRuleError(rule.field, rule.operator, "rule value is not numeric")
        if not _is_number(actual):
            raise MalformedRuleError(
                rule.field, rule.operator, f"profile value is {_kind(actual)}, not a number"
            )
        return compare(actual, rule.value)

    return _op


def _op_in(rule: EligibilityRule, actual: Any) -> bool:
    if _kind(rule.value) != "set":
        raise MalformedRuleError(rule.field, rule.operator, "in needs a set of values")
    if _kind(actual) == "set":
        raise MalformedRuleError(rule.field, rule.operator, "profile value must be a scalar")
    return any(_same_kind_equal(actual, option) for option in rule.value)


def _op_contains(rule: EligibilityRule, actual: Any) -> bool:
    expected = rule.value
    if _kind(expected) == "set":
        raise MalformedRuleError(rule.field, rule.operator, "contains needs a scalar value")
    if _kind(actual) == "set":
        return any(_same_kind_equal(item, expected) for item in actual)
    if isinstance(actual, str):
        if not isinstance(expected, str):
            raise MalformedRuleError(rule.field, rule.operator, "substring must be text")
        return expected in actual
    raise MalformedRuleError(
        rule.field, rule.operator, f"{_kind(actual)} profile value is not a collection"
    )


_OPERATORS: Final[dict[RuleOperator, Callable[[EligibilityRule, Any], bool]]] = {
    RuleOperator.EQ: _op_eq,
    RuleOperator.LT: _numeric(lambda a, b: a < b),
    RuleOperator.LTE: _numeric(lambda a, b: a <= b),
    RuleOperator.GT: _numeric(lambda a, b: a > b),
    RuleOperator.GTE: _numeric(lambda a, b: a >= b),
    RuleOperator.IN: _op_in,
    RuleOperator.CONTAINS: _op_contains,
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def evaluate_value(rule: EligibilityRule, value: ProfileValue) -> RuleEvaluation:
    """Evaluate *rule* against a single profile value (``None`` = absent)."""
    if value is None:
        return RuleEvaluation(rule=rule, outcome=RuleOutcome.MISSING)

    try:
        matched = _OPERATORS[rule.operator](rule, value)
    except MalformedRuleError as exc:
        logger.warning(
            "rules.malformed_rule",
            field=exc.field,
            operator=str(exc.operator),
            reason=exc.reason,
        )
        return RuleEvaluation(
            rule=rule,
            outcome=RuleOutcome.UNMATCHED,
            user_value=value,
            malformed=True,
        )

    return RuleEvaluation(
        rule=rule,
        outcome=RuleOutcome.MATCHED if matched else RuleOutcome.UNMATCHED,
        user_value=value,
    )


def evaluate_rule(rule: EligibilityRule, profile: CitizenProfile) -> RuleEvaluation:
    return evaluate_value(rule, profile.get_field(rule.field))
