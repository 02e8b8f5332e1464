"""Health check endpoints for Yojana API v1.

Liveness and readiness probes.  Readiness verifies the cache round-trip
and that a scheme catalog is available.
"""

from __future__ import annotations

import time

import structlog
from fastapi import APIRouter, Request
from pydantic import BaseModel

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


class HealthResponse(BaseModel):
    """Basic health check response."""

    status: str
    version: str
    uptime_seconds: float


class ReadinessResponse(BaseModel):
    """Readiness check response with individual component statuses."""

    status: str
    checks: dict[str, str]


@router.get("", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Liveness probe.  Does *not* check downstream dependencies."""
    start_time: float = getattr(request.app.state, "start_time", time.time())
    return HealthResponse(
        status="healthy",
        version=request.app.version,
        uptime_seconds=round(time.time() - start_time, 2),
    )


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check(request: Request) -> ReadinessResponse:
    """Readiness probe: cache round-trip, catalog loaded, engine wired."""
    checks: dict[str, str] = {}
    all_ok = True

    # -- Cache ---------------------------------------------------------------
    cache = getattr(request.app.state, "cache", None)
    if cache is not None:
        await cache.set("_health_check", "ok", ttl_seconds=10)
        if await cache.get("_health_check") == "ok":
            checks["cache"] = f"ok ({cache.backend_name})"
        else:
            checks["cache"] = "degraded"
            all_ok = False
    else:
        checks["cache"] = "not_configured"

    # -- Scheme catalog ------------------------------------------------------
    catalog = getattr(request.app.state, "catalog", None)
    if catalog is None:
        checks["catalog"] = "not_initialised"
        all_ok = False
    elif hasattr(catalog, "__len__"):
        if len(catalog) > 0:
            checks["catalog"] = f"ok ({len(catalog)} schemes loaded)"
        else:
            checks["catalog"] = "no_data"
            all_ok = False
    else:
        checks["catalog"] = "remote"

    # -- Engine --------------------------------------------------------------
    if getattr(request.app.state, "engine", None) is not None:
        checks["engine"] = "ok"
    else:
        checks["engine"] = "not_initialised"
        all_ok = False

    status = "ready" if all_ok else "degraded"
    logger.info("health.readiness_check", status=status, checks=checks)
    return ReadinessResponse(status=status, checks=checks)
