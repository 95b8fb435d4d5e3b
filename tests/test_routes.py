"""
Tests for the HTTP surface: recommendation, feedback and search routes.
"""

import asyncio
import json

import pytest

from conftest import FakeDataSource, RecordingSleep
from app.main import create_app
from config_manager import ConfigManager
from politician_service.circuit_breaker import CircuitBreakerManager
from politician_service.errors import transient_error
from politician_service.retry import RetryExecutor


class SlowDataSource(FakeDataSource):
    async def fetch_candidates(self, kind, limit=None):
        await asyncio.sleep(5)
        return await super().fetch_candidates(kind, limit)


def _make_app(tmp_path, data_source, circuit_breakers=None, **app_settings):
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps({"app": app_settings, "paths": {"data_dir": str(tmp_path)}}))
    app = create_app(
        ConfigManager(str(config_path)),
        data_source=data_source,
        retry_executor=RetryExecutor(sleep=RecordingSleep()),
        circuit_breakers=circuit_breakers,
    )
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(tmp_path, fake_source):
    return _make_app(tmp_path, fake_source).test_client()


def test_health(client):
    response = client.get("/health")
    data = response.get_json()
    assert response.status_code == 200
    assert data["status"] == "ok"
    assert data["circuits"]["recommendations"]["state"] == "closed"
    assert data["circuits"]["search"]["state"] == "closed"


def test_health_without_circuit_breakers(tmp_path, fake_source, monkeypatch):
    monkeypatch.setenv("CIRCUIT_BREAKER_ENABLED", "false")
    app = _make_app(tmp_path, fake_source)
    assert app.test_client().get("/health").get_json() == {"status": "ok"}


class TestRecommendationRoutes:
    """Test recommendation endpoints."""

    def test_get_recommendations(self, client):
        response = client.get("/recommendations?userId=u1&limit=2&exclude=p1")
        data = response.get_json()

        assert response.status_code == 200
        assert data["success"] is True
        ids = [item["entityId"] for item in data["data"]["recommendations"]]
        assert ids == ["p2", "p3"]
        assert data["data"]["userId"] == "u1"
        assert data["request"]["excludeIds"] == ["p1"]

    def test_post_recommendations(self, client):
        response = client.post("/recommendations", json={"userId": "u1", "limit": 1})
        assert response.status_code == 200
        assert [i["entityId"] for i in response.get_json()["data"]["recommendations"]] == ["p1"]

    def test_missing_user_id_is_validation_error(self, client):
        response = client.post("/recommendations", data="not json", content_type="text/plain")
        data = response.get_json()
        assert response.status_code == 400
        assert data == {"success": False, "error": "userId is required", "code": "VALIDATION_ERROR"}

    def test_non_integer_limit_rejected(self, client):
        response = client.get("/recommendations?userId=u1&limit=ten")
        assert response.status_code == 400
        assert response.get_json()["code"] == "VALIDATION_ERROR"

    def test_exhausted_retries_are_transient(self, client, fake_source):
        fake_source.fail("fetch_candidates", *[transient_error("down") for _ in range(3)])
        response = client.get("/recommendations?userId=u1")

        assert response.status_code == 500
        data = response.get_json()
        assert data["code"] == "TRANSIENT_BACKEND_ERROR"
        assert "down" not in data["error"]
        assert fake_source.calls["fetch_candidates"] == 3

    def test_deadline_expiry_is_transient(self, tmp_path, politicians):
        app = _make_app(tmp_path, SlowDataSource(politicians), request_timeout_seconds=0.05)
        response = app.test_client().get("/recommendations?userId=u1")

        assert response.status_code == 500
        assert response.get_json()["code"] == "TRANSIENT_BACKEND_ERROR"

    def test_feedback_reranks(self, client):
        response = client.post(
            "/recommendations/feedback",
            json={"userId": "u1", "recommendationId": "p4", "feedback": "like"},
        )
        data = response.get_json()
        assert response.status_code == 200
        assert data["success"] is True
        assert data["message"] == "Feedback recorded"
        assert data["data"]["feedback"] == "like"

        ranked = client.get("/recommendations?userId=u1").get_json()["data"]["recommendations"]
        assert ranked[0]["entityId"] == "p4"
        assert "liked_before" in ranked[0]["reasons"]

    def test_invalid_feedback_lists_allowed_values(self, client, fake_source):
        response = client.post(
            "/recommendations/feedback",
            json={"userId": "u1", "recommendationId": "p1", "feedback": "invalid"},
        )
        data = response.get_json()

        assert response.status_code == 400
        assert data["code"] == "VALIDATION_ERROR"
        for kind in ("like", "dislike", "not_interested", "clicked"):
            assert kind in data["error"]
        assert fake_source.calls["record_feedback"] == 0

    def test_feedback_without_body(self, client):
        response = client.post("/recommendations/feedback")
        assert response.status_code == 400
        assert response.get_json()["error"] == "userId is required"

    def test_feedback_history(self, client):
        client.post(
            "/recommendations/feedback",
            json={"userId": "u1", "recommendationId": "p2", "feedback": "like"},
        )
        response = client.get("/recommendations/feedback?userId=u1")
        data = response.get_json()

        assert response.status_code == 200
        assert data["total"] == 1
        assert data["userId"] == "u1"
        assert data["data"][0]["recommendationId"] == "p2"
        assert data["data"][0]["feedback"] == "like"

        assert client.get("/recommendations/feedback?userId=u2").get_json()["total"] == 0

    def test_feedback_history_requires_user(self, client):
        response = client.get("/recommendations/feedback")
        assert response.status_code == 400
        assert response.get_json()["code"] == "VALIDATION_ERROR"

    def test_open_circuit_fails_fast(self, tmp_path, fake_source):
        breakers = CircuitBreakerManager()
        breakers.get("recommendations").force_open()
        client = _make_app(tmp_path, fake_source, circuit_breakers=breakers).test_client()

        response = client.get("/recommendations?userId=u1")
        data = response.get_json()

        assert response.status_code == 500
        assert data["code"] == "TRANSIENT_BACKEND_ERROR"
        assert "temporarily unavailable" in data["error"]
        assert fake_source.total_calls == 0
        assert client.get("/health").get_json()["circuits"]["recommendations"]["state"] == "open"


class TestSearchRoutes:
    """Test search endpoints."""

    def test_short_suggestion_query(self, client, fake_source):
        data = client.get("/search/suggestions?q=a").get_json()
        assert data["success"] is True
        assert data["data"] == []
        assert "at least 2 characters" in data["message"]
        assert fake_source.total_calls == 0

    def test_suggestions(self, client):
        data = client.get("/search/suggestions?q=p1").get_json()
        assert data["success"] is True
        assert data["data"] == ["P1"]

    def test_suggestion_failure_returns_empty_data(self, client, fake_source):
        fake_source.fail("list_search_terms", transient_error("a"), transient_error("b"))
        response = client.get("/search/suggestions?q=p1")
        data = response.get_json()

        assert response.status_code == 500
        assert data["success"] is False
        assert data["data"] == []

    def test_related(self, client):
        data = client.get("/search/related?id=p1").get_json()

        assert data["success"] is True
        assert data["politicianId"] == "p1"
        assert data["total"] == 2
        assert data["data"][0]["id"] == "p2"
        assert data["data"][0]["matchType"] == "same_party"
        assert data["data"][0]["similarity"] == pytest.approx(0.7)

    def test_related_without_id(self, client):
        response = client.get("/search/related")
        assert response.status_code == 400
        assert response.get_json()["code"] == "VALIDATION_ERROR"

    def test_related_unknown_id(self, client):
        response = client.get("/search/related?id=nobody")
        assert response.get_json()["code"] == "NOT_FOUND"

    def test_fuzzy(self, client):
        data = client.get("/search/fuzzy?q=P1&threshold=0.9").get_json()
        assert data["success"] is True
        assert data["threshold"] == 0.9
        assert [m["id"] for m in data["data"]] == ["p1"]
        assert data["data"][0]["matchType"] == "name_fuzzy"

    @pytest.mark.parametrize("query", ["q=a", "q=green&threshold=abc", "q=green&threshold=2"])
    def test_fuzzy_validation(self, client, query):
        response = client.get(f"/search/fuzzy?{query}")
        assert response.status_code == 400
        assert response.get_json()["code"] == "VALIDATION_ERROR"
