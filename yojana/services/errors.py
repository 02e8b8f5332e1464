"""Error taxonomy for the recommendation engine.

``ProfileNotFoundError``, ``SchemeNotFoundError`` and
``DependencyTimeoutError`` are surfaced to callers as-is.
``MalformedRuleError`` never leaves the rule evaluator: it is logged and
the rule counts as a mismatch.
"""

from __future__ import annotations


class RecommendationError(Exception):
    """Base class for all engine errors."""


class ProfileNotFoundError(RecommendationError):
    def __init__(self, user_id: str) -> None:
        super().__init__(f"No profile found for user '{user_id}'.")
        self.user_id = user_id


class SchemeNotFoundError(RecommendationError):
    def __init__(self, scheme_id: str) -> None:
        super().__init__(f"Scheme '{scheme_id}' not found.")
        self.scheme_id = scheme_id


class DependencyTimeoutError(RecommendationError):
    """A collaborator call exceeded its time bound.  Safe to retry."""

    def __init__(self, dependency: str, timeout_seconds: float) -> None:
        super().__init__(f"{dependency} did not respond within {timeout_seconds:g}s.")
        self.dependency = dependency
        self.timeout_seconds = timeout_seconds


class MalformedRuleError(RecommendationError):
    def __init__(self, field: str, operator: str, reason: str) -> None:
        super().__init__(f"rule on '{field}' ({operator}): {reason}")
        self.field = field
        self.operator = operator
        self.reason = reason
