"""Citizen profile endpoints for Yojana API v1.

Backed by the in-process :class:`InMemoryProfileStore`.  When the app is
configured against an external profile service these endpoints answer
503: profiles are then owned by that service.
"""

from __future__ import annotations

from datetime import datetime

import structlog
from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from yojana.models.user_profile import CitizenProfile, ProfileValue
from yojana.services.providers import InMemoryProfileStore

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/profiles", tags=["profiles"])


# ---------------------------------------------------------------------------
# Request / Response schemas
# ---------------------------------------------------------------------------


class UpsertProfileRequest(BaseModel):
    """Request body for creating or replacing a profile."""

    attributes: dict[str, ProfileValue] = Field(default_factory=dict)
    completeness: float | None = Field(default=None, ge=0, le=100)
    preferred_language: str = "en"


class ProfileResponse(BaseModel):
    user_id: str
    attributes: dict[str, ProfileValue]
    completeness: float
    preferred_language: str
    updated_at: datetime
    changed_fields: list[str] = Field(default_factory=list)


class DeleteProfileResponse(BaseModel):
    user_id: str
    deleted: bool


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _store(request: Request) -> InMemoryProfileStore:
    store: InMemoryProfileStore | None = getattr(request.app.state, "profile_store", None)
    if store is None:
        raise HTTPException(
            status_code=503,
            detail="Profiles are managed by the external profile service.",
        )
    return store


def _to_response(profile: CitizenProfile, changed: set[str] | None = None) -> ProfileResponse:
    return ProfileResponse(
        user_id=profile.user_id,
        attributes=profile.attributes,
        completeness=profile.completeness,
        preferred_language=profile.preferred_language,
        updated_at=profile.updated_at,
        changed_fields=sorted(changed or ()),
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.put("/{user_id}", response_model=ProfileResponse)
async def upsert_profile(
    user_id: str,
    body: UpsertProfileRequest,
    request: Request,
) -> ProfileResponse:
    """Create or replace a profile.

    A change to any attribute that an open scheme's rules look at drops
    the user's cached recommendations.
    """
    profile, changed = await _store(request).upsert(
        user_id,
        body.attributes,
        completeness=body.completeness,
        preferred_language=body.preferred_language,
    )
    return _to_response(profile, changed)


@router.get("/{user_id}", response_model=ProfileResponse)
async def get_profile(user_id: str, request: Request) -> ProfileResponse:
    profile = await _store(request).get_profile(user_id)
    return _to_response(profile)


@router.delete("/{user_id}", response_model=DeleteProfileResponse)
async def delete_profile(user_id: str, request: Request) -> DeleteProfileResponse:
    deleted = await _store(request).delete(user_id)
    if not deleted:
        raise HTTPException(status_code=404, detail=f"Profile '{user_id}' not found.")
    return DeleteProfileResponse(user_id=user_id, deleted=True)
