"""
API integration tests.
Uses TestClient to avoid starting a server.
Requires: pip install httpx (for TestClient)
"""
from __future__ import annotations

from pathlib import Path

import pytest

try:
    from fastapi.testclient import TestClient
    HAS_HTTPX = True
except (ImportError, RuntimeError):
    HAS_HTTPX = False

# Ensure project root on path
import sys
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

pytestmark = pytest.mark.skipif(not HAS_HTTPX, reason="httpx required for TestClient")

from scorekeeper import api
from scorekeeper.api import app
from scorekeeper.persistence import match_to_record


@pytest.fixture(autouse=True)
def fresh_state():
    """Empty repositories with the default game modes for each test."""
    yield api.reset_state(seed_game_modes=True)


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def players(client):
    alice = client.post("/users", json={"name": "Alice", "color": "red"}).json()
    bob = client.post("/users", json={"name": "Bob"}).json()
    return alice, bob


def _mode_id(client, name="Standard 11"):
    modes = client.get("/game-modes").json()["game_modes"]
    return next(m["id"] for m in modes if m["name"] == name)


def _start(client, players, **extra):
    alice, bob = players
    body = {"player1_id": alice["id"], "player2_id": bob["id"], "game_mode_id": _mode_id(client)}
    body.update(extra)
    resp = client.post("/match/start", json=body)
    assert resp.status_code == 200, resp.text
    return resp.json()


def _point(client, match_id, player_id):
    return client.post(f"/match/{match_id}/point", json={"player_id": player_id})


def test_default_game_modes(client):
    modes = client.get("/game-modes").json()["game_modes"]
    assert [m["name"] for m in modes] == ["Standard 11", "Classic 21", "Turbo 7"]
    classic = modes[1]
    assert classic["points_to_win"] == 21
    assert classic["serves_before_change"] == 5


def test_create_game_mode(client):
    resp = client.post("/game-modes", json={"name": "Quick 5", "points_to_win": 5, "deuce_enabled": False})
    assert resp.status_code == 200
    assert resp.json()["points_to_win"] == 5
    bad = client.post("/game-modes", json={"name": "Broken", "points_to_win": 0})
    assert bad.status_code == 422


def test_users(client, players):
    alice, _ = players
    assert len(client.get("/users").json()["users"]) == 2
    resp = client.put(f"/users/{alice['id']}", json={"name": "Alicia"})
    assert resp.json()["name"] == "Alicia"
    assert resp.json()["color"] == "red"
    assert client.put("/users/missing", json={"name": "x"}).status_code == 404


def test_full_match_flow(client, players):
    alice, bob = players
    match = _start(client, players, first_server_id=alice["id"])
    assert match["status"] == "in_progress"
    assert match["server_id"] == alice["id"]
    assert match["game_mode_name"] == "Standard 11"
    assert match["player1"]["name"] == "Alice"

    for _ in range(10):
        resp = _point(client, match["id"], alice["id"])
        assert resp.status_code == 200
    assert resp.json()["score"] == {"p1": 10, "p2": 0}

    resp = _point(client, match["id"], alice["id"])
    body = resp.json()
    assert body["status"] == "finished"
    assert body["winner_id"] == alice["id"]

    stats = client.get(f"/users/{alice['id']}/statistics").json()
    assert (stats["matches_played"], stats["wins"]) == (1, 1)
    assert client.get(f"/users/{bob['id']}/statistics").json()["losses"] == 1

    assert _point(client, match["id"], bob["id"]).status_code == 409

    resp = client.post(f"/match/{match['id']}/undo")
    assert resp.json()["status"] == "in_progress"
    assert resp.json()["score"] == {"p1": 10, "p2": 0}
    assert client.get(f"/users/{alice['id']}/statistics").json()["wins"] == 0


def test_set_server_then_score(client, players):
    alice, bob = players
    match = _start(client, players)
    assert match["server"] is None
    assert _point(client, match["id"], alice["id"]).status_code == 400

    resp = client.post(f"/match/{match['id']}/server", json={"player_id": bob["id"]})
    assert resp.json()["server_id"] == bob["id"]
    assert _point(client, match["id"], alice["id"]).status_code == 200

    again = client.post(f"/match/{match['id']}/server", json={"player_id": alice["id"]})
    assert again.status_code == 409


def test_overrides(client, players):
    match = _start(client, players, overrides={"serves_in_deuce": 2, "serve_type": "fixed"})
    assert match["rules"]["serves_in_deuce"] == 2
    assert match["rules"]["serve_type"] == "fixed"


def test_cancel(client, players):
    alice, _ = players
    match = _start(client, players, first_server_id=alice["id"])
    _point(client, match["id"], alice["id"])
    resp = client.post(f"/match/{match['id']}/cancel")
    assert resp.json()["message"] == "Match cancelled"
    assert resp.json()["match"]["status"] == "cancelled"
    assert _point(client, match["id"], alice["id"]).status_code == 409
    assert client.post(f"/match/{match['id']}/undo").status_code == 409
    assert client.post(f"/match/{match['id']}/cancel").status_code == 409
    assert client.get(f"/match/{match['id']}").json()["events"] == ["p1"]


def test_error_codes(client, players):
    alice, _ = players
    match = _start(client, players, first_server_id=alice["id"])
    assert client.get("/match/missing").status_code == 404
    assert client.post("/match/missing/undo").status_code == 404
    assert client.post(f"/match/{match['id']}/undo").status_code == 400
    assert _point(client, match["id"], "stranger").status_code == 400
    assert client.get("/users/missing/statistics").status_code == 404

    same = client.post(
        "/match/start",
        json={"player1_id": alice["id"], "player2_id": alice["id"], "game_mode_id": _mode_id(client)},
    )
    assert same.status_code == 400
    no_mode = client.post(
        "/match/start",
        json={"player1_id": alice["id"], "player2_id": players[1]["id"], "game_mode_id": "nope"},
    )
    assert no_mode.status_code == 404
    outsider = client.post(
        "/match/start",
        json={
            "player1_id": alice["id"],
            "player2_id": players[1]["id"],
            "game_mode_id": _mode_id(client),
            "first_server_id": "someone-else",
        },
    )
    assert outsider.status_code == 400


def test_user_matches_newest_first(client, players):
    alice, _ = players
    first = _start(client, players)
    second = _start(client, players)
    matches = client.get(f"/match/user/{alice['id']}").json()["matches"]
    assert {m["id"] for m in matches} == {first["id"], second["id"]}
    assert matches[0]["start_time"] >= matches[1]["start_time"]


def test_new_user_gets_generated_nickname(client):
    user = client.post("/users", json={"name": "Cara"}).json()
    assert len(user["nickname"].split(" ")) == 2
    named = client.post("/users", json={"name": "Dev", "nickname": "Spin Doctor"}).json()
    assert named["nickname"] == "Spin Doctor"


def test_ensure_basic_game_mode_route(client):
    api.reset_state(seed_game_modes=False)
    assert client.get("/game-modes").json()["game_modes"] == []
    first = client.post("/game-modes/basic").json()
    assert first["name"] == "Standard 11"
    assert first["points_to_win"] == 11
    assert client.post("/game-modes/basic").json()["id"] == first["id"]
    assert len(client.get("/game-modes").json()["game_modes"]) == 1


def test_load_stored_matches_keeps_statistics_consistent(client, players):
    alice, bob = players
    match = _start(client, players, first_server_id=alice["id"])
    for _ in range(11):
        _point(client, match["id"], bob["id"])
    stored = match_to_record(api.get_state().matches.get(match["id"]))

    # Restart: users come back, statistics are rebuilt from the matches
    state = api.reset_state(seed_game_modes=True)
    state.players.create(alice["name"], id=alice["id"])
    state.players.create(bob["name"], id=bob["id"])
    api.load_matches(state, [stored])
    assert client.get(f"/users/{bob['id']}/statistics").json()["wins"] == 1

    resp = client.post(f"/match/{match['id']}/undo")
    assert resp.status_code == 200
    assert resp.json()["status"] == "in_progress"
    assert client.get(f"/users/{bob['id']}/statistics").json()["wins"] == 0
    assert _point(client, match["id"], bob["id"]).json()["status"] == "finished"
    assert client.get(f"/users/{alice['id']}/statistics").json()["matches_played"] == 1
