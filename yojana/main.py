"""Yojana FastAPI application entry point.

Creates the FastAPI app, registers the domain exception handlers,
includes routers, and manages the lifecycle of the recommendation
engine and its collaborators (cache, scheme catalog, profile store).
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import ORJSONResponse

from config.settings import settings
from yojana.api.router import api_router
from yojana.services.errors import (
    DependencyTimeoutError,
    ProfileNotFoundError,
    SchemeNotFoundError,
)

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Structured logging configuration
# ---------------------------------------------------------------------------


def _configure_logging() -> None:
    """Set up structlog with JSON or console rendering based on settings."""
    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            settings.log_level,
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Application lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage startup and shutdown of the recommendation service.

    On startup:
      1. Initialise the recommendation cache
      2. Load the scheme catalog (bundled JSON or remote service)
      3. Initialise the profile collaborator (in-process store or remote)
      4. Build the engine and subscribe it to profile changes
      5. Store everything on ``app.state``

    On shutdown:
      - Close HTTP clients and caches gracefully.
    """
    _configure_logging()
    logger.info("app.startup", env=settings.env)

    app.state.start_time = time.time()
    redis_url = settings.redis_url or None

    # -- 1. Cache -------------------------------------------------------------
    from yojana.services.cache import CacheManager, RecommendationCache

    cache = CacheManager.for_namespace("recommendations:", redis_url=redis_url)
    app.state.cache = cache
    recommendation_cache = RecommendationCache(
        cache,
        default_ttl_seconds=settings.recommendation_cache_ttl,
    )
    logger.info("app.cache_initialised")

    # -- 2. Scheme catalog ----------------------------------------------------
    from yojana.services.providers import (
        HttpProfileProvider,
        HttpSchemeProvider,
        InMemoryProfileStore,
        InMemorySchemeCatalog,
    )

    catalog_cache: CacheManager | None = None
    if settings.scheme_service_url:
        catalog_cache = CacheManager.for_namespace("catalog:", redis_url=redis_url)
        catalog: InMemorySchemeCatalog | HttpSchemeProvider = HttpSchemeProvider(
            settings.scheme_service_url,
            cache=catalog_cache,
            cache_ttl_seconds=settings.scheme_cache_ttl,
            timeout=settings.dependency_timeout_seconds,
        )
        logger.info("app.remote_catalog_configured", url=settings.scheme_service_url)
    else:
        from yojana.data.seed import load_schemes

        catalog = InMemorySchemeCatalog()
        try:
            catalog.replace(load_schemes(Path(settings.catalog_path) if settings.catalog_path else None))
        except (OSError, ValueError):
            logger.warning("app.scheme_data_load_failed", exc_info=True)
        logger.info("app.scheme_data_loaded", count=len(catalog))
    app.state.catalog = catalog

    # -- 3. Profiles ----------------------------------------------------------
    profile_store: InMemoryProfileStore | None = None
    if settings.profile_service_url:
        profiles: InMemoryProfileStore | HttpProfileProvider = HttpProfileProvider(
            settings.profile_service_url,
            timeout=settings.dependency_timeout_seconds,
        )
        logger.info("app.remote_profiles_configured", url=settings.profile_service_url)
    else:
        relevant = catalog.active_rule_fields if isinstance(catalog, InMemorySchemeCatalog) else None
        profile_store = InMemoryProfileStore(relevant_fields=relevant)
        profiles = profile_store
    app.state.profile_store = profile_store

    # -- 4. Engine ------------------------------------------------------------
    from yojana.services.recommendation import RecommendationEngine

    engine = RecommendationEngine.from_settings(settings, profiles, catalog, recommendation_cache)
    if profile_store is not None:
        profile_store.subscribe(engine.invalidate)
    app.state.engine = engine
    logger.info("app.engine_initialised")

    logger.info("app.startup_complete")

    yield

    # -- Shutdown -------------------------------------------------------------
    logger.info("app.shutdown_start")

    if isinstance(catalog, HttpSchemeProvider):
        await catalog.close()
    if isinstance(profiles, HttpProfileProvider):
        await profiles.close()
    if catalog_cache is not None:
        await catalog_cache.close()
    await cache.close()

    logger.info("app.shutdown_complete")


# ---------------------------------------------------------------------------
# FastAPI application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Yojana Recommender API",
    description=(
        "Eligibility assessment and ranked welfare scheme recommendations "
        "for citizen profiles."
    ),
    version="0.1.0",
    lifespan=lifespan,
    default_response_class=ORJSONResponse,
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
)


# -- Domain error handlers --------------------------------------------------


@app.exception_handler(ProfileNotFoundError)
async def _profile_not_found(request: Request, exc: ProfileNotFoundError) -> ORJSONResponse:
    return ORJSONResponse(status_code=404, content={"detail": str(exc), "user_id": exc.user_id})


@app.exception_handler(SchemeNotFoundError)
async def _scheme_not_found(request: Request, exc: SchemeNotFoundError) -> ORJSONResponse:
    return ORJSONResponse(status_code=404, content={"detail": str(exc), "scheme_id": exc.scheme_id})


@app.exception_handler(DependencyTimeoutError)
async def _dependency_timeout(request: Request, exc: DependencyTimeoutError) -> ORJSONResponse:
    logger.warning("api.dependency_timeout", path=request.url.path, dependency=exc.dependency)
    return ORJSONResponse(
        status_code=504,
        content={"detail": str(exc), "dependency": exc.dependency},
    )


# -- Include routers -------------------------------------------------------
app.include_router(api_router)


@app.get("/api", response_class=ORJSONResponse)
async def api_info() -> dict:
    """API information endpoint."""
    return {
        "name": "Yojana Recommender API",
        "version": app.version,
        "docs": "/docs",
        "endpoints": {
            "recommendations": "/api/v1/recommendations/{user_id}",
            "explain": "/api/v1/recommendations/{user_id}/explain/{scheme_id}",
            "refresh": "/api/v1/recommendations/{user_id}/refresh",
            "profiles": "/api/v1/profiles/{user_id}",
            "schemes": "/api/v1/schemes",
            "health": "/api/v1/health",
        },
    }

