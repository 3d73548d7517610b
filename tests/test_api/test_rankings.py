"""Integration tests for ranking API endpoints"""
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from main import app
from app.api.deps import get_notifier
from app.database import get_db
from app.core.logger import logger
from app.services.notification_service import RankingNotifier, EVENT_CREATED, EVENT_DEMOTED, EVENT_DELETED
from conftest import make_token


@pytest.fixture
def sent_events():
    return []


@pytest.fixture
def client(session_factory, sent_events):
    """TestClient bound to the per-test database"""

    def _override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_notifier] = lambda: RankingNotifier([sent_events.append])
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth(user_id: str = "user-1") -> dict:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


def ranking_body(**overrides) -> dict:
    body = {
        "restaurant_id": "restaurant-1",
        "dish_type": "Nasi Lemak",
        "dish_id": "dish-1",
        "rank": 1,
        "taste_status": None,
        "notes": "great",
        "photo_urls": ["p1"],
    }
    body.update(overrides)
    return body


class TestCreateRanking:

    def test_create(self, client):
        response = client.post("/api/v1/rankings", json=ranking_body(), headers=auth())

        assert response.status_code == 201
        data = response.json()
        assert data["created"] is True
        assert data["applied_value"] == {"rank": 1, "taste_status": None}
        assert data["demotions"] == []
        assert data["stats"]["total_rankings"] == 1

    def test_second_top_reports_demotion(self, client):
        first = client.post("/api/v1/rankings", json=ranking_body(), headers=auth()).json()
        second = client.post(
            "/api/v1/rankings",
            json=ranking_body(dish_id="dish-2", notes="better", photo_urls=["p2"]),
            headers=auth()
        ).json()

        assert second["demotions"] == [
            {"ranking_id": first["ranking_id"], "previous_rank": 1, "new_rank": 2}
        ]

        mine = client.get("/api/v1/rankings/me/dishes/dish-1", headers=auth()).json()
        assert mine["rank"] == 2

    def test_rank_and_status_rejected(self, client):
        response = client.post(
            "/api/v1/rankings",
            json=ranking_body(rank=3, taste_status="ACCEPTABLE"),
            headers=auth()
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "mutual_exclusivity_violation"

        listing = client.get("/api/v1/rankings/me", headers=auth()).json()
        assert listing["total"] == 0

    def test_missing_photos_rejected(self, client):
        response = client.post("/api/v1/rankings", json=ranking_body(photo_urls=[]), headers=auth())

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "missing_evidence"

    def test_requires_token(self, client):
        response = client.post("/api/v1/rankings", json=ranking_body())
        assert response.status_code in (401, 403)

    def test_invalid_token(self, client):
        response = client.post(
            "/api/v1/rankings",
            json=ranking_body(),
            headers={"Authorization": "Bearer not-a-token"}
        )
        assert response.status_code == 401


    def test_expired_token(self, client):
        token = make_token("user-1", expires_in=timedelta(minutes=-1))
        response = client.post(
            "/api/v1/rankings",
            json=ranking_body(),
            headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 401

    @pytest.mark.parametrize("flag", [True, False])
    def test_boolean_rank_rejected(self, client, flag):
        client.post("/api/v1/rankings", json=ranking_body(), headers=auth())

        response = client.post(
            "/api/v1/rankings",
            json=ranking_body(dish_id="dish-2", rank=flag),
            headers=auth()
        )

        assert response.status_code == 422
        # 기존 1위는 그대로
        assert client.get("/api/v1/rankings/me/dishes/dish-1", headers=auth()).json()["rank"] == 1
        assert client.get("/api/v1/rankings/me", headers=auth()).json()["total"] == 1

    def test_notifications_sent_after_response(self, client, sent_events):
        first = client.post("/api/v1/rankings", json=ranking_body(), headers=auth()).json()
        second = client.post(
            "/api/v1/rankings",
            json=ranking_body(dish_id="dish-2", notes="better", photo_urls=["p2"]),
            headers=auth()
        ).json()

        assert [(e.event_type, e.ranking_id) for e in sent_events] == [
            (EVENT_CREATED, first["ranking_id"]),
            (EVENT_CREATED, second["ranking_id"]),
            (EVENT_DEMOTED, first["ranking_id"]),
        ]

    def test_failed_submission_sends_nothing(self, client, sent_events):
        client.post("/api/v1/rankings", json=ranking_body(photo_urls=[]), headers=auth())
        assert sent_events == []


class TestDeleteRanking:

    def test_delete_own_ranking(self, client, sent_events):
        created = client.post("/api/v1/rankings", json=ranking_body(), headers=auth()).json()

        response = client.delete(f"/api/v1/rankings/{created['ranking_id']}", headers=auth())

        assert response.status_code == 204
        assert client.get("/api/v1/rankings/me/dishes/dish-1", headers=auth()).status_code == 404
        assert sent_events[-1].event_type == EVENT_DELETED

    def test_delete_other_users_ranking_forbidden(self, client):
        created = client.post("/api/v1/rankings", json=ranking_body(), headers=auth("owner")).json()

        response = client.delete(f"/api/v1/rankings/{created['ranking_id']}", headers=auth("intruder"))

        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "forbidden"
        assert client.get("/api/v1/rankings/me/dishes/dish-1", headers=auth("owner")).status_code == 200

    def test_delete_unknown_ranking(self, client):
        response = client.delete("/api/v1/rankings/does-not-exist", headers=auth())
        assert response.status_code == 404

    def test_delete_requires_token(self, client):
        response = client.delete("/api/v1/rankings/anything")
        assert response.status_code in (401, 403)


class TestUpdateRanking:

    def test_update(self, client):
        created = client.post("/api/v1/rankings", json=ranking_body(rank=3), headers=auth()).json()

        response = client.put(
            f"/api/v1/rankings/{created['ranking_id']}",
            json={"rank": None, "taste_status": "SECOND_CHANCE", "notes": "meh", "photo_urls": ["p3"]},
            headers=auth()
        )

        assert response.status_code == 200
        assert response.json()["applied_value"] == {"rank": None, "taste_status": "SECOND_CHANCE"}

    def test_update_other_users_ranking_forbidden(self, client):
        created = client.post("/api/v1/rankings", json=ranking_body(rank=3), headers=auth("owner")).json()

        response = client.put(
            f"/api/v1/rankings/{created['ranking_id']}",
            json={"rank": 1, "notes": "mine now", "photo_urls": ["p1"]},
            headers=auth("intruder")
        )

        assert response.status_code == 403
        mine = client.get("/api/v1/rankings/me/dishes/dish-1", headers=auth("owner")).json()
        assert mine["rank"] == 3
        assert mine["notes"] == "great"

    def test_update_unknown_ranking(self, client):
        response = client.put(
            "/api/v1/rankings/does-not-exist",
            json={"rank": 2, "notes": "x", "photo_urls": ["p1"]},
            headers=auth()
        )
        assert response.status_code == 404


class TestReadEndpoints:

    def test_dish_stats_public(self, client):
        client.post("/api/v1/rankings", json=ranking_body(rank=2), headers=auth("a"))
        client.post("/api/v1/rankings", json=ranking_body(rank=4), headers=auth("b"))

        response = client.get("/api/v1/rankings/dishes/dish-1/stats")

        assert response.status_code == 200
        stats = response.json()
        assert stats["total_rankings"] == 2
        assert stats["average_rank"] == 3.0
        assert stats["ranks"]["2"] == 1
        assert stats["ranks"]["4"] == 1

    def test_my_rankings_top_only(self, client):
        client.post("/api/v1/rankings", json=ranking_body(dish_type="Laksa", dish_id="d-1"), headers=auth())
        client.post("/api/v1/rankings", json=ranking_body(dish_type="Satay", dish_id="d-2", rank=4), headers=auth())

        everything = client.get("/api/v1/rankings/me", headers=auth()).json()
        tops = client.get("/api/v1/rankings/me?top_only=true", headers=auth()).json()

        assert everything["total"] == 2
        assert tops["total"] == 1
        assert tops["rankings"][0]["dish_type"] == "Laksa"

    def test_my_stats(self, client):
        client.post("/api/v1/rankings", json=ranking_body(rank=None, taste_status="DISSATISFIED"), headers=auth())

        stats = client.get("/api/v1/rankings/me/stats", headers=auth()).json()

        assert stats["total_rankings"] == 1
        assert stats["taste_statuses"]["DISSATISFIED"] == 1

    def test_my_ranking_for_unknown_dish(self, client):
        response = client.get("/api/v1/rankings/me/dishes/nope", headers=auth())
        assert response.status_code == 404

    def test_health(self, client):
        assert client.get("/health").json()["status"] == "healthy"

    def test_dish_rankings_list(self, client):
        client.post("/api/v1/rankings", json=ranking_body(rank=3), headers=auth("a"))
        client.post("/api/v1/rankings", json=ranking_body(rank=1), headers=auth("b"))
        client.post("/api/v1/rankings", json=ranking_body(rank=None, taste_status="ACCEPTABLE"), headers=auth("c"))

        response = client.get("/api/v1/rankings/dishes/dish-1", headers=auth())

        assert response.status_code == 200
        data = response.json()
        assert [(r["user_id"], r["rank"]) for r in data["rankings"]] == [("b", 1), ("a", 3), ("c", None)]
        assert data["stats"]["total_rankings"] == 3

    def test_dish_rankings_limit_capped(self, client):
        response = client.get("/api/v1/rankings/dishes/dish-1?limit=51", headers=auth())
        assert response.status_code == 422

    def test_other_users_rankings(self, client):
        client.post("/api/v1/rankings", json=ranking_body(dish_type="Laksa", dish_id="d-1"), headers=auth("friend"))
        client.post("/api/v1/rankings", json=ranking_body(dish_type="Satay", dish_id="d-2", rank=4), headers=auth("friend"))
        client.post("/api/v1/rankings", json=ranking_body(), headers=auth("someone-else"))

        response = client.get("/api/v1/rankings/users/friend")

        assert response.status_code == 200
        data = response.json()
        assert data["user_id"] == "friend"
        assert len(data["rankings"]) == 2
        assert [r["dish_type"] for r in data["top_rankings"]] == ["Laksa"]
        assert data["stats"]["ranks"]["4"] == 1

    def test_unknown_user_has_no_rankings(self, client):
        data = client.get("/api/v1/rankings/users/nobody").json()
        assert data["rankings"] == []
        assert data["stats"]["total_rankings"] == 0


class TestRequestLogging:

    def test_request_id_reaches_log_sinks(self, client):
        lines = []
        sink_id = logger.add(lines.append, format="{extra[request_id]} {message}")
        try:
            response = client.get("/health", headers={"X-Request-ID": "req-abc123"})
        finally:
            logger.remove(sink_id)

        assert response.headers["X-Request-ID"] == "req-abc123"
        assert any(line.startswith("req-abc123 ") for line in lines)

    def test_logs_outside_requests_use_placeholder(self):
        lines = []
        sink_id = logger.add(lines.append, format="{extra[request_id]} {message}")
        try:
            logger.info("startup")
        finally:
            logger.remove(sink_id)

        assert lines[0].startswith("- startup")
