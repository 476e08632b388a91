from datetime import datetime, timedelta, timezone

from scorecast.models import LeaderboardEntry


def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_save_and_read_prediction(client, make_match):
    kickoff = datetime.now(timezone.utc) + timedelta(days=1)
    match = make_match(1035001, None, None, status="NS", kickoff=kickoff)

    headers = {"X-User-Id": "alice"}
    response = client.put(f"/api/predictions/{match.id}", json={"home_goals": 2, "away_goals": 1}, headers=headers)
    assert response.status_code == 200
    data = response.json()
    assert data["match_id"] == match.id
    assert data["points"] == 0
    assert data["scored"] is False

    response = client.put(f"/api/predictions/{match.id}", json={"home_goals": 0, "away_goals": 0}, headers=headers)
    assert response.status_code == 200

    response = client.get("/api/predictions", headers=headers)
    assert response.status_code == 200
    data = response.json()
    assert len(data) == 1
    assert (data[0]["home_goals"], data[0]["away_goals"]) == (0, 0)


def test_prediction_after_kickoff_is_rejected(client, make_match):
    kickoff = datetime.now(timezone.utc) - timedelta(minutes=10)
    match = make_match(7, None, None, status="1H", kickoff=kickoff)

    response = client.put(f"/api/predictions/{match.id}", json={"home_goals": 1, "away_goals": 0},
                          headers={"X-User-Id": "alice"})
    assert response.status_code == 409


def test_prediction_validation(client, make_match):
    match = make_match(8, None, None, status="NS", kickoff=datetime.now(timezone.utc) + timedelta(days=1))
    headers = {"X-User-Id": "alice"}

    assert client.put(f"/api/predictions/{match.id}", json={"home_goals": -1, "away_goals": 0},
                      headers=headers).status_code == 422
    assert client.put("/api/predictions/999", json={"home_goals": 1, "away_goals": 0},
                      headers=headers).status_code == 404


def test_unauthorized_access(client):
    response = client.get("/api/predictions")
    assert response.status_code == 401


def test_admin_requires_token(client):
    response = client.post("/admin/recompute", json={"full_history": True})
    assert response.status_code == 403

    response = client.post("/admin/recompute", json={"full_history": True}, headers={"X-Admin-Token": "wrong"})
    assert response.status_code == 403


def test_recompute_flow(client, admin_headers, make_prediction):
    response = client.put("/admin/matches/55", json={
        "kickoff": "2026-10-16T18:00:00Z",
        "status": "ft",
        "home_goals": 2,
        "away_goals": 0
    }, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["scoreable"] is True

    make_prediction("alice", 55, 2, 0)
    make_prediction("bob", 55, 1, 0)

    response = client.post("/admin/recompute", json={"match_date": "2026-10-16"}, headers=admin_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "success"
    assert data["matches_processed"] == 1
    assert data["predictions_updated"] == 2
    assert data["leaderboard_entries_touched"] == 2

    response = client.get("/leaderboard", headers={"X-User-Id": "bob"})
    assert response.status_code == 200
    data = response.json()
    assert [row["user_id"] for row in data["entries"]] == ["alice", "bob"]
    assert [row["total_points"] for row in data["entries"]] == [5, 3]
    assert data["me"]["rank"] == 2
    assert data["me_in_page"] is True


def test_recompute_rejects_ambiguous_scope(client, admin_headers):
    response = client.post("/admin/recompute", json={"match_date": "2026-10-16", "full_history": True},
                           headers=admin_headers)
    assert response.status_code == 400

    response = client.post("/admin/recompute", json={"yesterday": True, "match_ids": [1]},
                           headers=admin_headers)
    assert response.status_code == 400


def test_leaderboard_pages_and_my_row(client, session):
    for i in range(5):
        session.add(LeaderboardEntry(user_id=f"u{i}", display_name=f"User {i}", total_points=100 - i))
    session.commit()

    response = client.get("/leaderboard", params={"per_page": 2}, headers={"X-User-Id": "u4"})
    data = response.json()
    assert [row["user_id"] for row in data["entries"]] == ["u0", "u1"]
    assert data["me"]["user_id"] == "u4"
    assert data["me"]["rank"] is None
    assert data["me_in_page"] is False

    response = client.get("/leaderboard/next", params={"cursor": data["next_cursor"], "per_page": 2})
    data = response.json()
    assert [row["user_id"] for row in data["entries"]] == ["u2", "u3"]
    assert [row["rank"] for row in data["entries"]] == [3, 4]

    response = client.get("/leaderboard/next", params={"cursor": "garbage"})
    assert response.status_code == 400


def test_leaderboard_me(client, session):
    session.add(LeaderboardEntry(user_id="alice", display_name="Alice", total_points=7))
    session.commit()

    response = client.get("/leaderboard/me", headers={"X-User-Id": "alice"})
    assert response.json()["total_points"] == 7

    response = client.get("/leaderboard/me", headers={"X-User-Id": "ghost"})
    assert response.status_code == 200
    assert response.json() is None


def test_leaderboard_me_permission_denied(client, session, monkeypatch):
    session.add(LeaderboardEntry(user_id="alice", display_name="Alice", total_points=7))
    session.commit()

    def deny_all(path, operation):
        return False

    monkeypatch.setattr("scorecast.services.leaderboard.default_policy", lambda: deny_all)

    response = client.get("/leaderboard/me", headers={"X-User-Id": "alice"})
    assert response.status_code == 403
    assert "insufficient permissions" in response.json()["detail"]
