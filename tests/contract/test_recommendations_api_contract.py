"""Contract tests for the /recommendations endpoints.

Verifies that records are serialized with their wire names, that every
operation is scoped to the caller, and the error bodies for 400/401/404.
"""

import pytest
from fastapi.testclient import TestClient

from feedback_recs.api.dependencies import get_app_runtime
from feedback_recs.lib.feedback.models import RecommendationRecord

AUTH = {"X-Authenticated-User": "user-1"}
MAY_1 = 1714521600000
DAY = 24 * 60 * 60 * 1000

RECORD_KEYS = {
    "userId",
    "timestamp",
    "feedbackType",
    "originalFeedback",
    "recommendations",
    "tags",
    "completed",
    "generatedAt",
    "updatedAt",
    "modelId",
}


def make_record(owner="user-1", submitted_at=MAY_1, **overrides):
    data = {
        "userId": owner,
        "timestamp": submitted_at,
        "feedbackType": "general",
        "originalFeedback": "Search is slow",
        "recommendations": [
            {"id": "rec-1-0", "title": "Index titles", "description": "Add an index", "priority": "high", "category": "performance"}
        ],
        "tags": [],
        "completed": False,
        "generatedAt": "2024-04-30T12:00:00.000Z",
        "updatedAt": "2024-04-30T12:00:00.000Z",
        "modelId": "test-model",
    }
    data.update(overrides)
    return RecommendationRecord.model_validate(data)


@pytest.fixture
def client(runtime):
    from main import app

    app.dependency_overrides[get_app_runtime] = lambda: runtime
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


@pytest.fixture
def seeded(store):
    store.put_record(make_record(submitted_at=MAY_1, tags=["ui"], completed=True))
    store.put_record(make_record(submitted_at=MAY_1 + DAY, tags=["api"], feedbackType="bug"))
    store.put_record(make_record(submitted_at=MAY_1 + 2 * DAY, originalFeedback="Login fails"))
    store.put_record(make_record(owner="someone-else"))
    return store


class TestList:
    def test_list_returns_callers_records_newest_first(self, client, seeded):
        response = client.get("/recommendations", headers=AUTH)

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 3
        assert [r["timestamp"] for r in data["recommendations"]] == [MAY_1 + 2 * DAY, MAY_1 + DAY, MAY_1]
        assert set(data["recommendations"][0]) == RECORD_KEYS
        assert all(r["userId"] == "user-1" for r in data["recommendations"])

    def test_empty_list(self, client):
        assert client.get("/recommendations", headers=AUTH).json() == {"recommendations": [], "count": 0}

    def test_requires_identity(self, client):
        response = client.get("/recommendations")

        assert response.status_code == 401
        assert response.json()["error"] == "Unauthorized"


class TestSearch:
    def test_filters_combine_and_are_echoed(self, client, seeded):
        response = client.get(
            "/recommendations/search",
            params={"tags": "ui,api", "completed": "false"},
            headers=AUTH,
        )

        data = response.json()
        assert response.status_code == 200
        assert [r["timestamp"] for r in data["recommendations"]] == [MAY_1 + DAY]
        assert data["filters"] == {
            "search": None,
            "tags": "ui,api",
            "completed": "false",
            "feedbackType": None,
            "fromDate": None,
            "toDate": None,
        }

    def test_text_and_category(self, client, seeded):
        by_text = client.get("/recommendations/search", params={"search": "login"}, headers=AUTH).json()
        by_type = client.get("/recommendations/search", params={"feedbackType": "bug"}, headers=AUTH).json()

        assert by_text["count"] == 1
        assert by_type["recommendations"][0]["feedbackType"] == "bug"

    def test_date_range(self, client, seeded):
        response = client.get(
            "/recommendations/search",
            params={"fromDate": "2024-05-02", "toDate": "2024-05-02T00:00:00.000Z"},
            headers=AUTH,
        )
        assert [r["timestamp"] for r in response.json()["recommendations"]] == [MAY_1 + DAY]

    def test_no_filters_returns_everything(self, client, seeded):
        assert client.get("/recommendations/search", headers=AUTH).json()["count"] == 3


class TestUpdate:
    def test_update_completed(self, client, seeded):
        response = client.put(f"/recommendations/{MAY_1 + DAY}", json={"completed": True}, headers=AUTH)

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Recommendation updated successfully"
        assert data["recommendation"]["completed"] is True
        assert data["recommendation"]["updatedAt"] > data["recommendation"]["generatedAt"]
        assert seeded.get_record("user-1", MAY_1 + DAY).completed is True

    def test_update_recommendations_and_type(self, client, seeded):
        items = [{"id": "rec-9", "title": "Rewrite query", "description": "", "priority": "low", "category": "db"}]

        response = client.put(
            f"/recommendations/{MAY_1}",
            json={"recommendations": items, "feedbackType": "performance", "originalFeedback": "ignored"},
            headers=AUTH,
        )

        record = response.json()["recommendation"]
        assert record["recommendations"] == items
        assert record["feedbackType"] == "performance"
        assert record["originalFeedback"] == "Search is slow"

    def test_unknown_record_is_404(self, client, seeded):
        response = client.put("/recommendations/42", json={"completed": True}, headers=AUTH)

        assert response.status_code == 404
        assert response.json() == {"error": "Not Found", "message": "Recommendation not found"}

    def test_other_owners_record_is_404(self, client, seeded):
        response = client.put(
            f"/recommendations/{MAY_1}",
            json={"completed": True},
            headers={"X-Authenticated-User": "intruder"},
        )
        assert response.status_code == 404

    def test_no_updatable_fields_is_400(self, client, seeded):
        response = client.put(f"/recommendations/{MAY_1}", json={"tags": "not-a-list"}, headers=AUTH)

        assert response.status_code == 400
        assert response.json()["message"] == "No valid fields to update"

    @pytest.mark.parametrize("key", ["abc", "0", "-5", "1.5", "12abc"])
    def test_invalid_path_key_is_400(self, client, key):
        response = client.put(f"/recommendations/{key}", json={"completed": True}, headers=AUTH)

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid or missing timestamp in path"

    def test_non_boolean_completed_is_400(self, client, seeded):
        response = client.put(f"/recommendations/{MAY_1}", json={"completed": "yes"}, headers=AUTH)
        assert response.status_code == 400


class TestDelete:
    def test_delete_all_of_callers_records(self, client, seeded):
        response = client.delete("/recommendations", headers=AUTH)

        assert response.status_code == 200
        assert response.json() == {"message": "Recommendations deleted successfully", "deletedCount": 3}
        assert seeded.query_records("user-1") == []
        assert len(seeded.query_records("someone-else")) == 1

    def test_nothing_to_delete(self, client):
        response = client.delete("/recommendations", headers=AUTH)

        assert response.json() == {"message": "No recommendations to delete", "deletedCount": 0}
