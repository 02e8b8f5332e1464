"""Collaborator interfaces consumed by the recommendation engine.

The engine only *reads* profiles and schemes.  Two implementations of
each interface are provided:

* in-process stores, used by the bundled API and the test-suite;
* thin ``httpx`` clients for deployments where the profile service and
  the scheme catalog run elsewhere.

The profile store also implements the push side of the cache contract:
whenever a profile changes a field that at least one active rule looks
at, every registered listener (normally
:meth:`RecommendationEngine.invalidate`) is called for that user.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import httpx
import orjson
import structlog

from yojana.models.recommendation import SchemeFilters
from yojana.models.scheme import SchemeDocument
from yojana.models.user_profile import CitizenProfile, ProfileValue, estimate_completeness
from yojana.services.errors import DependencyTimeoutError, ProfileNotFoundError

if TYPE_CHECKING:
    from yojana.services.cache import CacheManager

logger = structlog.get_logger(__name__)

InvalidationListener = Callable[[str], Awaitable[None]]


@runtime_checkable
class ProfileProvider(Protocol):
    async def get_profile(self, user_id: str) -> CitizenProfile: ...


@runtime_checkable
class SchemeProvider(Protocol):
    async def get_schemes(self, filters: SchemeFilters | None = None) -> list[SchemeDocument]: ...

    async def get_scheme(self, scheme_id: str) -> SchemeDocument | None: ...


def _matches_filters(scheme: SchemeDocument, filters: SchemeFilters) -> bool:
    if filters.category is not None and scheme.category != filters.category:
        return False
    if filters.benefit_type is not None and scheme.benefit.type != filters.benefit_type:
        return False
    # Central schemes (state=None) apply in every state.
    if filters.state is not None and scheme.state is not None:
        return scheme.state.lower() == filters.state.lower()
    return True


# ---------------------------------------------------------------------------
# In-process scheme catalog
# ---------------------------------------------------------------------------


class InMemorySchemeCatalog:
    """Scheme catalog held in memory, loaded once at startup."""

    __slots__ = ("_by_id", "_schemes")

    def __init__(self, schemes: Iterable[SchemeDocument] = ()) -> None:
        self._schemes: list[SchemeDocument] = []
        self._by_id: dict[str, SchemeDocument] = {}
        self.replace(schemes)

    def replace(self, schemes: Iterable[SchemeDocument]) -> None:
        """Swap in a new catalog snapshot in one assignment."""
        snapshot = list(schemes)
        self._by_id = {s.scheme_id: s for s in snapshot}
        self._schemes = snapshot

    def __len__(self) -> int:
        return len(self._schemes)

    async def get_schemes(self, filters: SchemeFilters | None = None) -> list[SchemeDocument]:
        snapshot = self._schemes
        if filters is None or filters.is_empty:
            return list(snapshot)
        return [s for s in snapshot if _matches_filters(s, filters)]

    async def get_scheme(self, scheme_id: str) -> SchemeDocument | None:
        return self._by_id.get(scheme_id)

    def active_rule_fields(self, today: date | None = None) -> set[str]:
        """Profile fields referenced by at least one rule of an open scheme."""
        today = today or datetime.now(UTC).date()
        return {
            field
            for scheme in self._schemes
            if not scheme.timeline.is_closed(today)
            for field in scheme.rule_fields
        }


# ---------------------------------------------------------------------------
# In-process profile store
# ---------------------------------------------------------------------------


class InMemoryProfileStore:
    """Dict-backed profile store (production: the profile service).

    Parameters
    ----------
    relevant_fields:
        Returns the set of profile fields that active rules reference.
        A change to any of them is *material* and triggers invalidation.
        When omitted, every change is material.
    """

    __slots__ = ("_listeners", "_profiles", "_relevant_fields")

    def __init__(self, *, relevant_fields: Callable[[], set[str]] | None = None) -> None:
        self._profiles: dict[str, CitizenProfile] = {}
        self._listeners: list[InvalidationListener] = []
        self._relevant_fields = relevant_fields

    def subscribe(self, listener: InvalidationListener) -> None:
        self._listeners.append(listener)

    async def get_profile(self, user_id: str) -> CitizenProfile:
        profile = self._profiles.get(user_id)
        if profile is None:
            raise ProfileNotFoundError(user_id)
        return profile

    async def upsert(
        self,
        user_id: str,
        attributes: dict[str, ProfileValue],
        *,
        completeness: float | None = None,
        preferred_language: str = "en",
    ) -> tuple[CitizenProfile, set[str]]:
        """Create or replace a profile; return it with the set of changed fields."""
        previous = self._profiles.get(user_id)
        old_attrs = previous.attributes if previous is not None else {}

        changed = {
            name
            for name in set(old_attrs) | set(attributes)
            if old_attrs.get(name) != attributes.get(name)
        }

        profile = CitizenProfile(
            user_id=user_id,
            attributes=dict(attributes),
            completeness=completeness if completeness is not None else estimate_completeness(attributes),
            preferred_language=preferred_language,
            updated_at=datetime.now(UTC),
        )
        self._profiles[user_id] = profile

        if previous is not None and self._is_material(changed, previous, profile):
            await self._notify(user_id)

        logger.info(
            "profiles.upserted",
            user_id=user_id,
            created=previous is None,
            changed_fields=sorted(changed),
        )
        return profile, changed

    async def delete(self, user_id: str) -> bool:
        removed = self._profiles.pop(user_id, None)
        if removed is None:
            return False
        await self._notify(user_id)
        logger.info("profiles.deleted", user_id=user_id)
        return True

    def _is_material(self, changed: set[str], previous: CitizenProfile, current: CitizenProfile) -> bool:
        # completeness feeds the score directly, so it is always material
        if previous.completeness != current.completeness:
            return True
        if self._relevant_fields is None:
            return bool(changed)
        return bool(changed & self._relevant_fields())

    async def _notify(self, user_id: str) -> None:
        for listener in self._listeners:
            await listener(user_id)


# ---------------------------------------------------------------------------
# HTTP collaborators
# ---------------------------------------------------------------------------


async def _bounded_get(client: httpx.AsyncClient, dependency: str, path: str, **kwargs: Any) -> httpx.Response:
    try:
        return await client.get(path, **kwargs)
    except httpx.TimeoutException as exc:
        timeout = client.timeout.read or 0.0
        logger.warning("provider.timeout", dependency=dependency, path=path)
        raise DependencyTimeoutError(dependency, timeout) from exc


class HttpProfileProvider:
    """Reads profiles from an external profile service.

    Expects ``GET {base_url}/profiles/{user_id}`` to return a JSON body
    compatible with :class:`CitizenProfile`; 404 means no such user.
    """

    def __init__(self, base_url: str, *, timeout: float = 5.0) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={"Accept": "application/json"},
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def get_profile(self, user_id: str) -> CitizenProfile:
        response = await _bounded_get(self._client, "profile_service", f"/profiles/{user_id}")
        if response.status_code == 404:
            raise ProfileNotFoundError(user_id)
        response.raise_for_status()
        return CitizenProfile.model_validate(response.json())


class HttpSchemeProvider:
    """Reads the scheme catalog from an external service.

    Catalog listings are cached for ``cache_ttl_seconds`` so that a burst
    of recommendation requests scores against one snapshot.
    """

    def __init__(
        self,
        base_url: str,
        *,
        cache: CacheManager | None = None,
        cache_ttl_seconds: int = 14_400,
        timeout: float = 5.0,
    ) -> None:
        self._cache = cache
        self._cache_ttl = cache_ttl_seconds
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={"Accept": "application/json"},
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def get_schemes(self, filters: SchemeFilters | None = None) -> list[SchemeDocument]:
        params: dict[str, Any] = filters.model_dump(mode="json", exclude_none=True) if filters else {}
        cache_key = "schemes:" + orjson.dumps(params, option=orjson.OPT_SORT_KEYS).decode()

        payload: list[dict[str, Any]] | None = None
        if self._cache is not None:
            payload = await self._cache.get(cache_key)

        if payload is None:
            response = await _bounded_get(self._client, "scheme_catalog", "/schemes", params=params)
            response.raise_for_status()
            body = response.json()
            payload = body["schemes"] if isinstance(body, dict) else body
            if self._cache is not None:
                await self._cache.set(cache_key, payload, ttl_seconds=self._cache_ttl)
            logger.info("scheme_provider.fetched", count=len(payload), filters=params)

        return [SchemeDocument.model_validate(item) for item in payload]

    async def get_scheme(self, scheme_id: str) -> SchemeDocument | None:
        response = await _bounded_get(self._client, "scheme_catalog", f"/schemes/{scheme_id}")
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return SchemeDocument.model_validate(response.json())
