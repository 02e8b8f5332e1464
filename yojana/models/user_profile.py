"""Citizen profile as seen by the recommendation engine.

The engine treats the profile as a flat mapping of named attributes
(``annualIncome``, ``category``, ``age``, ``state`` ...).  A field that
the citizen has not supplied is *absent*: either the key is missing or
it maps to ``None``.  ``0``, ``False`` and ``""`` are real answers and
are never treated as absent.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Final

from pydantic import BaseModel, Field

ProfileScalar = bool | int | float | str
ProfileValue = ProfileScalar | list[ProfileScalar] | None

# Attributes used to estimate how complete a profile is when the
# profile service does not supply a completeness figure itself.
TRACKED_PROFILE_FIELDS: Final[tuple[str, ...]] = (
    "age",
    "gender",
    "state",
    "district",
    "annualIncome",
    "category",
    "occupation",
    "isBpl",
    "landHoldingAcres",
    "disability",
    "education",
    "maritalStatus",
)


class CitizenProfile(BaseModel):
    """Read-only snapshot of a citizen profile for one scoring pass."""

    user_id: str
    attributes: dict[str, ProfileValue] = Field(default_factory=dict)
    completeness: float = Field(default=0.0, ge=0, le=100)
    preferred_language: str = "en"
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def has_field(self, name: str) -> bool:
        return self.attributes.get(name) is not None

    def get_field(self, name: str) -> ProfileValue:
        """Return the value of *name*, or ``None`` when the field is absent."""
        return self.attributes.get(name)

    @property
    def present_fields(self) -> set[str]:
        return {name for name, value in self.attributes.items() if value is not None}


def estimate_completeness(fields: dict[str, ProfileValue]) -> float:
    """Percentage of :data:`TRACKED_PROFILE_FIELDS` that carry a value."""
    have = sum(1 for name in TRACKED_PROFILE_FIELDS if fields.get(name) is not None)
    return round(100.0 * have / len(TRACKED_PROFILE_FIELDS), 2)
