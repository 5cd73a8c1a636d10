"""Unit tests for the learning API endpoints."""

from unittest.mock import patch

import pytest


@pytest.fixture
def client():
    """Create a TestClient with logging configuration left untouched."""
    with patch("adaptive_learning.main.configure_logging"):
        from fastapi.testclient import TestClient
        from adaptive_learning.main import app

        with TestClient(app) as tc:
            yield tc


@pytest.fixture
def lunch_payload(lunch_events):
    return [event.model_dump(mode="json", by_alias=True) for event in lunch_events]


def _feedback(reason="frequency"):
    return {
        "suggestionId": "frequency-food_ordered-day",
        "relevant": False,
        "helpful": False,
        "reasonIfIrrelevant": reason,
        "timestamp": "2026-03-10T12:00:00Z",
    }


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "version": "0.1.0"}


class TestDetectPatterns:
    """Tests for POST /learning/patterns."""

    def test_returns_camel_case_patterns(self, client, lunch_payload):
        response = client.post("/learning/patterns", json={"events": lunch_payload})

        assert response.status_code == 200
        patterns = response.json()["patterns"]
        daily = [p for p in patterns if p["patternType"] == "time" and p["timeOfDay"]]
        assert len(daily) == 1
        assert daily[0]["eventType"] == "food_ordered"
        assert daily[0]["timeOfDay"] == {"hour": 12, "minute": 0, "toleranceMinutes": 30}

    def test_empty_events(self, client):
        response = client.post("/learning/patterns", json={"events": []})
        assert response.status_code == 200
        assert response.json() == {"patterns": []}

    def test_malformed_events_are_skipped(self, client, lunch_payload):
        payload = lunch_payload + [{"eventType": "food_ordered"}, {"garbage": True}]
        response = client.post("/learning/patterns", json={"events": payload})

        assert response.status_code == 200
        assert len(response.json()["patterns"]) >= 1


class TestGetSuggestions:
    """Tests for POST /learning/suggestions."""

    def test_returns_ranked_suggestions(self, client, lunch_payload):
        response = client.post("/learning/suggestions", json={"events": lunch_payload})

        assert response.status_code == 200
        suggestions = response.json()["suggestions"]
        assert [s["id"] for s in suggestions] == [
            "frequency-food_ordered-day",
            "time-food_ordered-tod1200",
        ]
        assert suggestions[0]["description"] == (
            "You order food about 1 time per day. Would you like to create a meal plan?"
        )
        assert suggestions[0]["relevanceScore"] >= suggestions[1]["relevanceScore"]

    def test_dismissed_ids_are_excluded(self, client, lunch_payload):
        response = client.post(
            "/learning/suggestions",
            json={"events": lunch_payload, "dismissed": ["frequency-food_ordered-day"]},
        )
        assert [s["id"] for s in response.json()["suggestions"]] == ["time-food_ordered-tod1200"]

    def test_disabled_category_returns_nothing(self, client, lunch_payload):
        response = client.post(
            "/learning/suggestions",
            json={
                "events": lunch_payload,
                "preferences": {"categoriesEnabled": {"food": False}},
            },
        )
        assert response.status_code == 200
        assert response.json() == {"suggestions": []}


class TestFeedback:
    """Tests for POST /learning/feedback."""

    def test_frequency_feedback_lowers_cap(self, client):
        response = client.post(
            "/learning/feedback",
            json={"preferences": {"maxSuggestionsPerDay": 10}, "feedback": _feedback()},
        )
        assert response.status_code == 200
        assert response.json()["preferences"]["maxSuggestionsPerDay"] == 8

    def test_other_reason_keeps_preferences(self, client):
        response = client.post(
            "/learning/feedback",
            json={"preferences": {"maxSuggestionsPerDay": 10}, "feedback": _feedback("timing")},
        )
        assert response.json()["preferences"]["maxSuggestionsPerDay"] == 10


class TestMergePreferences:
    """Tests for POST /learning/preferences/merge."""

    def test_merges_partial_update(self, client):
        response = client.post(
            "/learning/preferences/merge",
            json={"preferences": {}, "update": {"maxSuggestionsVisible": 5}},
        )
        assert response.status_code == 200
        prefs = response.json()["preferences"]
        assert prefs["maxSuggestionsVisible"] == 5
        assert prefs["minRelevanceThreshold"] == 0.6


class TestValidationErrors:
    def test_missing_field_returns_400(self, client):
        response = client.post("/learning/feedback", json={"preferences": {}})

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Validation error"
        assert "feedback" in body["detail"]
        assert response.headers["X-Correlation-Id"] == body["correlation_id"]

    def test_out_of_range_threshold_returns_400(self, client):
        response = client.post(
            "/learning/preferences/merge",
            json={"preferences": {}, "update": {"minRelevanceThreshold": 2}},
        )
        assert response.status_code == 400
