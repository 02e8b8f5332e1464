"""Recommendation endpoints for Yojana API v1.

Thin HTTP layer over :class:`RecommendationEngine`.  Domain errors
(``ProfileNotFoundError``, ``SchemeNotFoundError``,
``DependencyTimeoutError``) propagate to the exception handlers
registered in :mod:`yojana.main`.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Query, Request
from pydantic import BaseModel

from yojana.models.enums import BenefitType, SchemeCategory
from yojana.models.recommendation import (
    RecommendationExplanation,
    RecommendationOptions,
    RecommendationSet,
)
from yojana.services.recommendation import RecommendationEngine

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/recommendations", tags=["recommendations"])


class RefreshResponse(BaseModel):
    user_id: str
    status: str


def _engine(request: Request) -> RecommendationEngine:
    return request.app.state.engine


@router.get("/{user_id}", response_model=RecommendationSet)
async def get_recommendations(
    user_id: str,
    request: Request,
    limit: int | None = Query(default=None, ge=1, description="Maximum number of schemes to return"),
    category: SchemeCategory | None = Query(default=None, description="Restrict to one scheme category"),
    state: str | None = Query(default=None, description="State of residence; central schemes always included"),
    benefit_type: BenefitType | None = Query(default=None, description="Restrict to one benefit type"),
    min_match_score: float | None = Query(default=None, ge=0, le=100, description="Drop schemes below this match score"),
    language: str = Query(default="en", description="Language code for scheme names"),
) -> RecommendationSet:
    """Ranked scheme recommendations for a citizen.

    Unfiltered requests are served from the per-user cache when a fresh
    entry exists; repeated calls within the TTL return the same list.
    """
    options = RecommendationOptions(
        limit=limit,
        category=category,
        state=state,
        benefit_type=benefit_type,
        min_match_score=min_match_score,
        language=language,
    )
    result = await _engine(request).get_recommendations(user_id, options)

    logger.info(
        "api.recommendations.served",
        user_id=user_id,
        count=len(result.recommendations),
        cached=result.expires_at is not None,
    )
    return result


@router.get("/{user_id}/explain/{scheme_id}", response_model=RecommendationExplanation)
async def explain_recommendation(
    user_id: str,
    scheme_id: str,
    request: Request,
    language: str = Query(default="en", description="Language code for the explanation"),
) -> RecommendationExplanation:
    """Criterion-by-criterion breakdown of one scheme against the current profile."""
    return await _engine(request).explain_recommendation(user_id, scheme_id, language)


@router.post("/{user_id}/refresh", response_model=RefreshResponse, status_code=202)
async def refresh_recommendations(user_id: str, request: Request) -> RefreshResponse:
    """Discard the cached list and recompute it."""
    await _engine(request).refresh_recommendations(user_id)
    return RefreshResponse(user_id=user_id, status="refreshed")
