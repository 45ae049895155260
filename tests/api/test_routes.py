"""Tests for the HTTP layer in bonusmalus/api/routes.py"""

from typing import Any, Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from bonusmalus.db.database import get_db
from bonusmalus.main import app

GAMES = "/api/games"


@pytest.fixture
def client(db_session_repo: Session) -> Generator[TestClient, None, None]:
    """Client bound to the in-memory test database. The lifespan is not run."""

    def override_get_db() -> Generator[Session, None, None]:
        yield db_session_repo

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def new_game(client: TestClient, **overrides: Any) -> dict:
    payload = {
        "name": "Cup",
        "initial_score": 100,
        "players": [{"username": "A", "is_creator": True}, {"username": "B"}],
        "rules": [
            {"name": "Late", "rule_type": "malus", "score_delta": -10},
            {"name": "Coffee", "rule_type": "bonus", "score_delta": 5},
        ],
    }
    payload.update(overrides)
    response = client.post(GAMES, json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def as_player(player_id: int) -> dict[str, str]:
    return {"X-Player-Id": str(player_id)}


def error_codes(response) -> list[str]:
    return [error["code"] for error in response.json()["errors"]]


def test_health(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "healthy"}


def test_create_and_read_game(client: TestClient) -> None:
    body = new_game(client)
    game_id = body["game_id"]
    assert [c["username"] for c in body["credentials"]] == ["A", "B"]
    assert all(c["access_code"] for c in body["credentials"])

    status = client.get(f"{GAMES}/{game_id}")
    assert status.status_code == 200
    assert status.json() == {"game_id": game_id, "status": "started", "winner_player_id": None}

    leaderboard = client.get(f"{GAMES}/{game_id}/leaderboard").json()
    assert [p["current_score"] for p in leaderboard] == [100, 100]

    rules = client.get(f"{GAMES}/{game_id}/rules").json()
    assert [r["rule"]["name"] for r in rules] == ["Late", "Coffee"]
    assert all(r["assignment"] is None for r in rules)


def test_invalid_game_is_bad_request(client: TestClient) -> None:
    response = client.post(
        GAMES,
        json={
            "name": "Cup",
            "players": [{"username": "A"}],
            "rules": [{"name": "Late", "rule_type": "malus", "score_delta": -1}],
        },
    )
    assert response.status_code == 400
    assert error_codes(response) == ["INVALID_CREATOR_COUNT"]


def test_malformed_body_is_rejected(client: TestClient) -> None:
    """Schema errors use the same error list as service failures."""
    response = client.post(GAMES, json={"name": "Cup", "rules": [{"name": "X", "rule_type": "weird", "score_delta": 1}]})
    assert response.status_code == 400
    assert response.json().keys() == {"errors"}
    assert error_codes(response) == ["VALIDATION_FAILED"]
    assert response.json()["errors"][0]["message"].startswith("body.rules.0.rule_type")


def test_invalid_access_code_keeps_its_message(client: TestClient) -> None:
    response = client.post(
        GAMES,
        json={
            "name": "Cup",
            "players": [{"username": "A", "is_creator": True, "access_code": "AB-CD"}],
            "rules": [{"name": "Late", "rule_type": "malus", "score_delta": -1}],
        },
    )
    assert response.status_code == 400
    assert error_codes(response) == ["VALIDATION_FAILED"]
    assert "letters and digits" in response.json()["errors"][0]["message"]


def test_unknown_game_is_not_found(client: TestClient) -> None:
    response = client.get(f"{GAMES}/404")
    assert response.status_code == 404
    assert error_codes(response) == ["GAME_NOT_FOUND"]
    assert response.json().keys() == {"errors"}


def test_unknown_route_uses_the_error_list(client: TestClient) -> None:
    response = client.get("/api/nothing-here")
    assert response.status_code == 404
    assert error_codes(response) == ["NOT_FOUND"]


def test_assign_rule_flow(client: TestClient) -> None:
    """Claims a rule, loses the second claim, then the last claim ends the game."""
    body = new_game(client)
    game_id = body["game_id"]
    a, b = (c["player_id"] for c in body["credentials"])
    late, coffee = (r["rule"]["id"] for r in client.get(f"{GAMES}/{game_id}/rules").json())

    first = client.post(f"{GAMES}/{game_id}/rules/{late}/assign", headers=as_player(a))
    assert first.status_code == 201
    assert first.json()["player"]["current_score"] == 90
    assert first.json()["assignment"]["score_delta_applied"] == -10
    assert first.json()["game_status"] == "started"

    second = client.post(f"{GAMES}/{game_id}/rules/{late}/assign", headers=as_player(b))
    assert second.status_code == 409
    assert error_codes(second) == ["RULE_ALREADY_ASSIGNED"]

    last = client.post(f"{GAMES}/{game_id}/rules/{coffee}/assign", headers=as_player(b))
    assert last.status_code == 201
    assert last.json()["game_status"] == "ended"

    status = client.get(f"{GAMES}/{game_id}").json()
    assert status["status"] == "ended"
    assert status["winner_player_id"] == b

    history = client.get(f"{GAMES}/{game_id}/assignments").json()
    assert [h["rule_id"] for h in history] == [coffee, late]


def test_assign_requires_player_header(client: TestClient) -> None:
    body = new_game(client)
    response = client.post(f"{GAMES}/{body['game_id']}/rules/1/assign")
    assert response.status_code == 400
    assert error_codes(response) == ["VALIDATION_FAILED"]


def test_rule_management(client: TestClient) -> None:
    body = new_game(client)
    game_id = body["game_id"]
    a, b = (c["player_id"] for c in body["credentials"])

    created = client.post(
        f"{GAMES}/{game_id}/rules",
        json={"name": "Early", "rule_type": "bonus", "score_delta": 3},
        headers=as_player(a),
    )
    assert created.status_code == 201
    rule_id = created.json()["id"]

    forbidden = client.put(
        f"{GAMES}/{game_id}/rules/{rule_id}",
        json={"name": "Mine", "rule_type": "bonus", "score_delta": 50},
        headers=as_player(b),
    )
    assert forbidden.status_code == 403
    assert error_codes(forbidden) == ["NOT_GAME_CREATOR"]

    updated = client.put(
        f"{GAMES}/{game_id}/rules/{rule_id}",
        json={"name": "Earlier", "rule_type": "bonus", "score_delta": 4},
        headers=as_player(a),
    )
    assert updated.status_code == 200
    assert updated.json()["name"] == "Earlier"

    deleted = client.delete(f"{GAMES}/{game_id}/rules/{rule_id}", headers=as_player(a))
    assert deleted.status_code == 200
    assert rule_id not in [r["rule"]["id"] for r in client.get(f"{GAMES}/{game_id}/rules").json()]


def test_end_game(client: TestClient) -> None:
    body = new_game(client)
    game_id = body["game_id"]
    a, b = (c["player_id"] for c in body["credentials"])

    forbidden = client.post(f"{GAMES}/{game_id}/end", headers=as_player(b))
    assert forbidden.status_code == 403

    ended = client.post(f"{GAMES}/{game_id}/end", headers=as_player(a))
    assert ended.status_code == 200
    result = ended.json()
    assert result["status"] == "ended"
    # tie at 100: lowest id wins
    assert result["winner"]["id"] == a
    assert result["leaderboard"][0] == result["winner"]

    again = client.post(f"{GAMES}/{game_id}/end", headers=as_player(a))
    assert again.status_code == 400
    assert error_codes(again) == ["GAME_ALREADY_ENDED"]
