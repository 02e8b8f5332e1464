"""Tests for the HTTP API (profiles, recommendations, schemes, health).

Runs the real application lifespan against the bundled catalog with Redis
disabled, so the cache uses the in-memory fallback.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from config.settings import settings
from yojana.models.user_profile import CitizenProfile
from yojana.services.recommendation import RecommendationEngine

FARMER = {
    "attributes": {
        "age": 45,
        "gender": "male",
        "state": "maharashtra",
        "annualIncome": 60000,
        "category": "sc",
        "occupation": "farmer",
        "landHoldingAcres": 2.0,
        "isBpl": True,
        "isIncomeTaxPayer": False,
    },
    "preferred_language": "hi",
}


class _SlowProfiles:
    async def get_profile(self, user_id: str) -> CitizenProfile:
        await asyncio.sleep(5)
        return CitizenProfile(user_id=user_id)


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch) -> Iterator[TestClient]:
    """Test client with the full lifespan and Redis disabled."""
    monkeypatch.setattr(settings, "redis_url", "")
    monkeypatch.setattr(settings, "profile_service_url", "")
    monkeypatch.setattr(settings, "scheme_service_url", "")
    monkeypatch.setattr(settings, "log_format", "console")

    from yojana.main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def farmer(client: TestClient) -> str:
    response = client.put("/api/v1/profiles/farmer-1", json=FARMER)
    assert response.status_code == 200, response.text
    return "farmer-1"


class TestHealth:
    def test_liveness(self, client: TestClient) -> None:
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_readiness(self, client: TestClient) -> None:
        data = client.get("/api/v1/health/ready").json()
        assert data["status"] == "ready", data
        assert data["checks"]["cache"] == "ok (inmemory)"
        assert data["checks"]["catalog"].startswith("ok")


class TestProfiles:
    def test_put_and_get(self, client: TestClient, farmer: str) -> None:
        data = client.get(f"/api/v1/profiles/{farmer}").json()
        assert data["attributes"]["occupation"] == "farmer"
        assert data["preferred_language"] == "hi"
        assert 0 < data["completeness"] <= 100

    def test_put_reports_changed_fields(self, client: TestClient, farmer: str) -> None:
        body = {"attributes": {**FARMER["attributes"], "age": 46}}
        data = client.put(f"/api/v1/profiles/{farmer}", json=body).json()
        assert data["changed_fields"] == ["age"]

    def test_get_unknown_profile(self, client: TestClient) -> None:
        response = client.get("/api/v1/profiles/ghost")
        assert response.status_code == 404
        assert response.json()["user_id"] == "ghost"

    def test_delete(self, client: TestClient, farmer: str) -> None:
        assert client.delete(f"/api/v1/profiles/{farmer}").status_code == 200
        assert client.delete(f"/api/v1/profiles/{farmer}").status_code == 404
        assert client.get(f"/api/v1/recommendations/{farmer}").status_code == 404

    def test_invalid_completeness_rejected(self, client: TestClient) -> None:
        response = client.put("/api/v1/profiles/u", json={"attributes": {}, "completeness": 150})
        assert response.status_code == 422


class TestRecommendations:
    def test_ranked_list(self, client: TestClient, farmer: str) -> None:
        response = client.get(f"/api/v1/recommendations/{farmer}")
        assert response.status_code == 200
        data = response.json()

        scores = [r["final_score"] for r in data["recommendations"]]
        assert scores, "the bundled catalog should produce recommendations"
        assert scores == sorted(scores, reverse=True)
        assert data["expires_at"] is not None, "unfiltered lists are cached"

        kisan = next(r for r in data["recommendations"] if r["scheme"]["scheme_id"] == "pm-kisan")
        assert kisan["eligibility_status"] == "eligible"
        assert kisan["match_score"] == 100.0

    def test_repeat_calls_identical(self, client: TestClient, farmer: str) -> None:
        first = client.get(f"/api/v1/recommendations/{farmer}")
        second = client.get(f"/api/v1/recommendations/{farmer}")
        assert first.content == second.content, "responses within the TTL must be byte-identical"

    def test_query_options(self, client: TestClient, farmer: str) -> None:
        data = client.get(
            f"/api/v1/recommendations/{farmer}",
            params={"limit": 2, "min_match_score": 50, "language": "hi"},
        ).json()
        assert len(data["recommendations"]) <= 2
        assert all(r["match_score"] >= 50 for r in data["recommendations"])
        names = {r["scheme"]["scheme_id"]: r["scheme"]["name"] for r in data["recommendations"]}
        if "pm-kisan" in names:
            assert names["pm-kisan"] == "प्रधानमंत्री किसान सम्मान निधि"

    def test_category_filter(self, client: TestClient, farmer: str) -> None:
        data = client.get(f"/api/v1/recommendations/{farmer}", params={"category": "agriculture"}).json()
        assert [r["scheme"]["scheme_id"] for r in data["recommendations"]] == ["pm-kisan"]
        assert data["expires_at"] is None

    def test_invalid_category_rejected(self, client: TestClient, farmer: str) -> None:
        response = client.get(f"/api/v1/recommendations/{farmer}", params={"category": "spaceflight"})
        assert response.status_code == 422

    def test_unknown_user(self, client: TestClient) -> None:
        response = client.get("/api/v1/recommendations/ghost")
        assert response.status_code == 404
        assert "ghost" in response.json()["detail"]

    def test_profile_update_changes_recommendations(self, client: TestClient, farmer: str) -> None:
        before = client.get(f"/api/v1/recommendations/{farmer}").json()
        body = {"attributes": {**FARMER["attributes"], "occupation": "laborer"}}
        client.put(f"/api/v1/profiles/{farmer}", json=body)
        after = client.get(f"/api/v1/recommendations/{farmer}").json()

        assert after != before
        kisan = next(r for r in after["recommendations"] if r["scheme"]["scheme_id"] == "pm-kisan")
        assert kisan["eligibility_status"] != "eligible", "stale cached list must not be served"

    def test_refresh(self, client: TestClient, farmer: str) -> None:
        response = client.post(f"/api/v1/recommendations/{farmer}/refresh")
        assert response.status_code == 202
        assert response.json() == {"user_id": farmer, "status": "refreshed"}

    def test_refresh_unknown_user(self, client: TestClient) -> None:
        assert client.post("/api/v1/recommendations/ghost/refresh").status_code == 404

    def test_dependency_timeout_returns_504(self, client: TestClient, farmer: str) -> None:
        client.app.state.engine = RecommendationEngine(
            _SlowProfiles(),
            client.app.state.catalog,
            None,
            timeout_seconds=0.01,
        )
        response = client.get(f"/api/v1/recommendations/{farmer}")
        assert response.status_code == 504
        assert response.json()["dependency"] == "profile_service"


class TestExplain:
    def test_explain(self, client: TestClient, farmer: str) -> None:
        response = client.get(f"/api/v1/recommendations/{farmer}/explain/pm-kisan", params={"language": "hi"})
        assert response.status_code == 200
        data = response.json()
        assert data["eligible"] is True
        assert [c["criterion"] for c in data["criteria"]] == ["occupation", "landHoldingAcres", "isIncomeTaxPayer"]
        assert data["scheme_name"] == "प्रधानमंत्री किसान सम्मान निधि"

    def test_unknown_scheme(self, client: TestClient, farmer: str) -> None:
        response = client.get(f"/api/v1/recommendations/{farmer}/explain/nope")
        assert response.status_code == 404
        assert response.json()["scheme_id"] == "nope"


class TestSchemes:
    def test_list(self, client: TestClient) -> None:
        data = client.get("/api/v1/schemes", params={"page_size": 3}).json()
        assert data["total"] >= 10
        assert len(data["schemes"]) == 3

    def test_state_filter_includes_central(self, client: TestClient) -> None:
        data = client.get("/api/v1/schemes", params={"state": "kerala", "page_size": 100}).json()
        ids = {s["scheme_id"] for s in data["schemes"]}
        assert "mh-ladki-bahin" not in ids
        assert "pm-kisan" in ids

    def test_detail(self, client: TestClient) -> None:
        data = client.get("/api/v1/schemes/pmjay").json()
        assert data["benefit"]["type"] == "insurance"
        assert data["rules"][0]["field"] == "annualIncome"

    def test_unknown_scheme(self, client: TestClient) -> None:
        assert client.get("/api/v1/schemes/nope").status_code == 404
