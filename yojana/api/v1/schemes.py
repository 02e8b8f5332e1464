"""Scheme catalog browse endpoints for Yojana API v1."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Query, Request
from pydantic import BaseModel

from yojana.models.enums import BenefitType, SchemeCategory
from yojana.models.recommendation import SchemeFilters
from yojana.models.scheme import SchemeDocument
from yojana.services.errors import SchemeNotFoundError
from yojana.services.providers import SchemeProvider

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/schemes", tags=["schemes"])


class SchemeListResponse(BaseModel):
    """Paginated list of schemes."""

    schemes: list[dict[str, Any]]
    total: int
    page: int
    page_size: int


def _catalog(request: Request) -> SchemeProvider:
    return request.app.state.catalog


@router.get("", response_model=SchemeListResponse)
async def list_schemes(
    request: Request,
    category: SchemeCategory | None = Query(default=None, description="Filter by scheme category"),
    state: str | None = Query(default=None, description="Filter by state; central schemes always included"),
    benefit_type: BenefitType | None = Query(default=None, description="Filter by benefit type"),
    page: int = Query(default=1, ge=1, description="Page number"),
    page_size: int = Query(default=20, ge=1, le=100, description="Results per page"),
) -> SchemeListResponse:
    """List catalog schemes with optional filters."""
    filters = SchemeFilters(category=category, state=state, benefit_type=benefit_type)
    schemes = await _catalog(request).get_schemes(filters)

    start = (page - 1) * page_size
    page_schemes = schemes[start : start + page_size]

    return SchemeListResponse(
        schemes=[
            {
                "scheme_id": s.scheme_id,
                "name": s.name,
                "category": s.category.value,
                "state": s.state,
                "benefit_type": s.benefit.type.value,
                "benefit_amount": s.benefit.amount,
                "popularity": s.popularity,
            }
            for s in page_schemes
        ],
        total=len(schemes),
        page=page,
        page_size=page_size,
    )


@router.get("/{scheme_id}", response_model=SchemeDocument)
async def get_scheme(scheme_id: str, request: Request) -> SchemeDocument:
    scheme = await _catalog(request).get_scheme(scheme_id)
    if scheme is None:
        raise SchemeNotFoundError(scheme_id)
    return scheme
