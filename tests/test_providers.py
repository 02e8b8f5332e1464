"""Tests for the profile and scheme collaborators (in-process and HTTP)."""

from __future__ import annotations

from datetime import date

import httpx
import pytest

from yojana.models.enums import BenefitType, RuleOperator, SchemeCategory
from yojana.models.recommendation import SchemeFilters
from yojana.models.scheme import Benefit, EligibilityRule, SchemeDocument, SchemeTimeline
from yojana.services.errors import DependencyTimeoutError, ProfileNotFoundError
from yojana.services.providers import (
    HttpProfileProvider,
    HttpSchemeProvider,
    InMemoryProfileStore,
    InMemorySchemeCatalog,
    ProfileProvider,
    SchemeProvider,
)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeCache:
    """Minimal in-memory cache matching the CacheManager interface."""

    def __init__(self) -> None:
        self._store: dict[str, object] = {}

    async def get(self, key: str) -> object | None:
        return self._store.get(key)

    async def set(self, key: str, value: object, ttl_seconds: int | None = None) -> None:
        self._store[key] = value

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)


def _scheme(scheme_id: str, **kwargs) -> SchemeDocument:
    return SchemeDocument(scheme_id=scheme_id, name=scheme_id.title(), **kwargs)


@pytest.fixture
def schemes() -> list[SchemeDocument]:
    return [
        _scheme(
            "kisan",
            category=SchemeCategory.AGRICULTURE,
            benefit=Benefit(type=BenefitType.CASH_TRANSFER, amount=6000),
            rules=[EligibilityRule(field="occupation", operator=RuleOperator.EQ, value="farmer")],
        ),
        _scheme(
            "mh-women",
            category=SchemeCategory.WOMEN_CHILD,
            state="Maharashtra",
            benefit=Benefit(type=BenefitType.CASH_TRANSFER, amount=18000),
            rules=[EligibilityRule(field="gender", operator=RuleOperator.EQ, value="female")],
        ),
        _scheme(
            "old-housing",
            category=SchemeCategory.HOUSING,
            benefit=Benefit(type=BenefitType.SUBSIDY, amount=120000),
            timeline=SchemeTimeline(end_date=date(2020, 1, 1), is_ongoing=False),
            rules=[EligibilityRule(field="ownsPuccaHouse", operator=RuleOperator.EQ, value=False)],
        ),
    ]


def _mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url="http://collaborator.test", transport=httpx.MockTransport(handler))


# ---------------------------------------------------------------------------
# InMemorySchemeCatalog
# ---------------------------------------------------------------------------


class TestInMemorySchemeCatalog:
    def test_satisfies_protocol(self, schemes: list[SchemeDocument]) -> None:
        assert isinstance(InMemorySchemeCatalog(schemes), SchemeProvider)

    async def test_unfiltered_returns_everything(self, schemes: list[SchemeDocument]) -> None:
        catalog = InMemorySchemeCatalog(schemes)
        assert len(await catalog.get_schemes()) == 3
        assert len(await catalog.get_schemes(SchemeFilters())) == 3

    async def test_category_filter(self, schemes: list[SchemeDocument]) -> None:
        catalog = InMemorySchemeCatalog(schemes)
        result = await catalog.get_schemes(SchemeFilters(category=SchemeCategory.HOUSING))
        assert [s.scheme_id for s in result] == ["old-housing"]

    async def test_benefit_type_filter(self, schemes: list[SchemeDocument]) -> None:
        catalog = InMemorySchemeCatalog(schemes)
        result = await catalog.get_schemes(SchemeFilters(benefit_type=BenefitType.CASH_TRANSFER))
        assert {s.scheme_id for s in result} == {"kisan", "mh-women"}

    async def test_state_filter_is_case_insensitive_and_keeps_central(self, schemes: list[SchemeDocument]) -> None:
        catalog = InMemorySchemeCatalog(schemes)
        mh = {s.scheme_id for s in await catalog.get_schemes(SchemeFilters(state="maharashtra"))}
        kl = {s.scheme_id for s in await catalog.get_schemes(SchemeFilters(state="Kerala"))}
        assert mh == {"kisan", "mh-women", "old-housing"}
        assert kl == {"kisan", "old-housing"}

    async def test_get_scheme(self, schemes: list[SchemeDocument]) -> None:
        catalog = InMemorySchemeCatalog(schemes)
        assert (await catalog.get_scheme("kisan")).name == "Kisan"
        assert await catalog.get_scheme("missing") is None

    async def test_replace_swaps_snapshot(self, schemes: list[SchemeDocument]) -> None:
        catalog = InMemorySchemeCatalog(schemes)
        catalog.replace(schemes[:1])
        assert len(catalog) == 1
        assert await catalog.get_scheme("mh-women") is None

    def test_active_rule_fields_skip_closed_schemes(self, schemes: list[SchemeDocument]) -> None:
        fields = InMemorySchemeCatalog(schemes).active_rule_fields(date(2026, 3, 1))
        assert fields == {"occupation", "gender"}, "closed schemes do not make fields material"


# ---------------------------------------------------------------------------
# InMemoryProfileStore
# ---------------------------------------------------------------------------


class TestInMemoryProfileStore:
    def test_satisfies_protocol(self) -> None:
        assert isinstance(InMemoryProfileStore(), ProfileProvider)

    async def test_get_unknown_raises(self) -> None:
        with pytest.raises(ProfileNotFoundError) as exc_info:
            await InMemoryProfileStore().get_profile("ghost")
        assert exc_info.value.user_id == "ghost"

    async def test_upsert_estimates_completeness(self) -> None:
        store = InMemoryProfileStore()
        profile, changed = await store.upsert("u1", {"age": 30, "gender": "female", "state": "goa"})
        assert profile.completeness == 25.0, "3 of 12 tracked fields"
        assert changed == {"age", "gender", "state"}

    async def test_explicit_completeness_wins(self) -> None:
        profile, _ = await InMemoryProfileStore().upsert("u1", {"age": 30}, completeness=80)
        assert profile.completeness == 80

    async def test_creation_does_not_notify(self) -> None:
        store = InMemoryProfileStore()
        seen: list[str] = []

        async def listener(user_id: str) -> None:
            seen.append(user_id)

        store.subscribe(listener)
        await store.upsert("u1", {"age": 30})
        assert seen == [], "there is nothing cached for a brand new profile"

    async def test_material_change_notifies(self) -> None:
        store = InMemoryProfileStore(relevant_fields=lambda: {"age"})
        seen: list[str] = []

        async def listener(user_id: str) -> None:
            seen.append(user_id)

        store.subscribe(listener)
        await store.upsert("u1", {"age": 30, "hobby": "chess"}, completeness=50)
        await store.upsert("u1", {"age": 30, "hobby": "cricket"}, completeness=50)
        assert seen == [], "hobby is not referenced by any rule"

        await store.upsert("u1", {"age": 31, "hobby": "cricket"}, completeness=50)
        assert seen == ["u1"]

    async def test_completeness_change_is_material(self) -> None:
        store = InMemoryProfileStore(relevant_fields=set)
        seen: list[str] = []

        async def listener(user_id: str) -> None:
            seen.append(user_id)

        store.subscribe(listener)
        await store.upsert("u1", {"hobby": "chess"}, completeness=50)
        await store.upsert("u1", {"hobby": "chess"}, completeness=70)
        assert seen == ["u1"], "completeness feeds the score, so it always counts"

    async def test_delete_notifies(self) -> None:
        store = InMemoryProfileStore()
        seen: list[str] = []

        async def listener(user_id: str) -> None:
            seen.append(user_id)

        store.subscribe(listener)
        await store.upsert("u1", {"age": 30})
        assert await store.delete("u1") is True
        assert await store.delete("u1") is False
        assert seen == ["u1"]
        with pytest.raises(ProfileNotFoundError):
            await store.get_profile("u1")


# ---------------------------------------------------------------------------
# HTTP collaborators
# ---------------------------------------------------------------------------


class TestHttpProfileProvider:
    async def test_parses_profile(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/profiles/u1"
            return httpx.Response(200, json={"user_id": "u1", "attributes": {"age": 40}, "completeness": 30})

        provider = HttpProfileProvider("http://collaborator.test")
        provider._client = _mock_client(handler)
        profile = await provider.get_profile("u1")
        await provider.close()

        assert profile.get_field("age") == 40
        assert profile.completeness == 30

    async def test_404_maps_to_profile_not_found(self) -> None:
        provider = HttpProfileProvider("http://collaborator.test")
        provider._client = _mock_client(lambda request: httpx.Response(404))
        with pytest.raises(ProfileNotFoundError):
            await provider.get_profile("ghost")
        await provider.close()

    async def test_timeout_maps_to_dependency_timeout(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("too slow", request=request)

        provider = HttpProfileProvider("http://collaborator.test")
        provider._client = _mock_client(handler)
        with pytest.raises(DependencyTimeoutError) as exc_info:
            await provider.get_profile("u1")
        await provider.close()
        assert exc_info.value.dependency == "profile_service"


class TestHttpSchemeProvider:
    async def test_fetches_and_caches_listing(self, schemes: list[SchemeDocument]) -> None:
        calls: list[dict[str, str]] = []
        payload = [s.model_dump(mode="json") for s in schemes]

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(dict(request.url.params))
            return httpx.Response(200, json={"schemes": payload})

        provider = HttpSchemeProvider("http://collaborator.test", cache=FakeCache())
        provider._client = _mock_client(handler)

        first = await provider.get_schemes(SchemeFilters(category=SchemeCategory.AGRICULTURE))
        second = await provider.get_schemes(SchemeFilters(category=SchemeCategory.AGRICULTURE))
        await provider.close()

        assert [s.scheme_id for s in first] == [s.scheme_id for s in second] == ["kisan", "mh-women", "old-housing"]
        assert calls == [{"category": "agriculture"}], "filters pass straight through; repeat hits the cache"

    async def test_accepts_bare_list_body(self, schemes: list[SchemeDocument]) -> None:
        payload = [s.model_dump(mode="json") for s in schemes[:1]]
        provider = HttpSchemeProvider("http://collaborator.test")
        provider._client = _mock_client(lambda request: httpx.Response(200, json=payload))
        result = await provider.get_schemes()
        await provider.close()
        assert [s.scheme_id for s in result] == ["kisan"]

    async def test_get_scheme_404_is_none(self) -> None:
        provider = HttpSchemeProvider("http://collaborator.test")
        provider._client = _mock_client(lambda request: httpx.Response(404))
        assert await provider.get_scheme("missing") is None
        await provider.close()

    async def test_server_error_propagates(self) -> None:
        provider = HttpSchemeProvider("http://collaborator.test")
        provider._client = _mock_client(lambda request: httpx.Response(503))
        with pytest.raises(httpx.HTTPStatusError):
            await provider.get_schemes()
        await provider.close()
