import pytest
from fastapi.testclient import TestClient

from crease.main import app

BASE = "/api/v0/matches"


@pytest.fixture
def client():
  with TestClient(app) as c:
    yield c


def _create(client, headers, **body):
  payload = {"team_a_id": "team-a", "team_b_id": "team-b", "overs": 2}
  payload.update(body)
  resp = client.post(BASE, json=payload, headers=headers)
  assert resp.status_code == 200, resp.text
  return resp.json()["id"]


def _start(client, headers, mid):
  resp = client.post(
    f"{BASE}/{mid}/start",
    json={
      "toss_winner_id": "team-a",
      "toss_decision": "bat",
      "striker_id": "a1",
      "non_striker_id": "a2",
      "bowler_id": "b1",
    },
    headers=headers,
  )
  assert resp.status_code == 200, resp.text
  return resp.json()


def test_mutations_require_scorer(client, squads, make_token):
  body = {"team_a_id": "team-a", "team_b_id": "team-b"}
  resp = client.post(BASE, json=body)
  assert resp.status_code == 401
  assert resp.json()["code"] == "auth_missing_token"

  resp = client.post(BASE, json=body, headers={"Authorization": "Bearer nope"})
  assert resp.status_code == 401
  assert resp.json()["code"] == "auth_invalid_token"

  viewer = {"Authorization": f"Bearer {make_token('viewer-1', roles=['viewer'])}"}
  resp = client.post(BASE, json=body, headers=viewer)
  assert resp.status_code == 403
  assert resp.json()["code"] == "scorer_required"

  admin = {"Authorization": f"Bearer {make_token('admin-1', is_admin=True)}"}
  resp = client.post(BASE, json=body, headers=admin)
  assert resp.status_code == 200


def test_scoring_flow(client, squads, scorer_headers):
  mid = _create(client, scorer_headers)
  resp = client.get(f"{BASE}/{mid}")
  assert resp.status_code == 200
  assert resp.json()["status"] == "SCHEDULED"

  state = _start(client, scorer_headers, mid)
  assert state["status"] == "LIVE"
  assert state["batting_team_id"] == "team-a"

  resp = client.post(f"{BASE}/{mid}/balls", json={"runs_scored": 4}, headers=scorer_headers)
  assert resp.status_code == 200, resp.text
  data = resp.json()
  assert data["event"]["over_number"] == 0
  assert data["event"]["ball_number"] == 1
  assert data["state"]["score"] == 4

  resp = client.post(
    f"{BASE}/{mid}/balls",
    json={"runs_scored": 0, "extra_type": "WD", "is_valid_ball": True},
    headers=scorer_headers,
  )
  assert resp.status_code == 200
  assert resp.json()["event"]["extra_type"] == "WIDE"
  assert resp.json()["event"]["is_valid_ball"] is False

  resp = client.post(f"{BASE}/{mid}/balls", json={"runs_scored": 1}, headers=scorer_headers)
  live = client.get(f"{BASE}/{mid}/live").json()
  assert live["score"] == 6
  assert live["overs"] == "0.2"
  assert live["this_over"] == ["4", "WD", "1"]
  assert live["striker_id"] == "a2"
  assert live["striker"]["player_id"] == "a2"
  assert live["non_striker"]["runs"] == 5

  events = client.get(f"{BASE}/{mid}/events", params={"innings": 1}).json()
  assert [e["seq"] for e in events] == [1, 2, 3]

  resp = client.delete(f"{BASE}/{mid}/balls/last", headers=scorer_headers)
  assert resp.status_code == 200
  assert resp.json()["ok"] is True
  assert resp.json()["removed"]["seq"] == 3
  assert resp.json()["state"]["score"] == 5

  stats = client.get(f"{BASE}/{mid}/stats").json()
  card = stats["innings"][0]
  assert card["score"] == 5
  assert card["batting"][0] == {
    "player_id": "a1",
    "name": "Player A1",
    "runs": 4,
    "balls": 1,
    "fours": 1,
    "sixes": 0,
  }
  assert card["bowling"][0]["name"] == "Player B1"

  resp = client.post(
    f"{BASE}/{mid}/complete",
    json={"winning_team_id": "team-a", "man_of_the_match_id": "a1"},
    headers=scorer_headers,
  )
  assert resp.status_code == 200
  assert resp.json()["status"] == "COMPLETED"
  assert resp.json()["is_completed"] is True

  listed = client.get(BASE, params={"status": "COMPLETED"}).json()
  assert [m["id"] for m in listed] == [mid]
  assert client.get(BASE, params={"status": "LIVE"}).json() == []
  assert [m["id"] for m in client.get(BASE, params={"tournamentId": "nope"}).json()] == []


def test_validation_errors_are_problem_details(client, squads, scorer_headers):
  mid = _create(client, scorer_headers)
  resp = client.post(f"{BASE}/{mid}/balls", json={"runs_scored": 1}, headers=scorer_headers)
  assert resp.status_code == 422
  assert resp.headers["content-type"].startswith("application/problem+json")
  assert resp.json()["code"] == "match_not_live"

  _start(client, scorer_headers, mid)
  resp = client.post(f"{BASE}/{mid}/bowler", json={"bowler_id": "a3"}, headers=scorer_headers)
  assert resp.status_code == 422
  body = resp.json()
  assert body["code"] == "invalid_bowler"
  assert body["detail"] == "bowler cannot be from the batting team"
  assert body["retryable"] is False

  resp = client.post(f"{BASE}/{mid}/balls", json={"runs_scored": -1}, headers=scorer_headers)
  assert resp.status_code == 422
  assert resp.json()["code"] == "validation_error"

  resp = client.post(f"{BASE}/{mid}/balls", json={"is_wicket": False}, headers=scorer_headers)
  assert resp.status_code == 422
  assert resp.json()["detail"].startswith("runs_scored")

  resp = client.post(
    f"{BASE}/{mid}/innings",
    json={"striker_id": "b1", "non_striker_id": "b2", "bowler_id": "a1", "batting_team_id": "team-b"},
    headers=scorer_headers,
  )
  assert resp.status_code == 422
  assert resp.json()["code"] == "validation_error"

  resp = client.delete(f"{BASE}/{mid}/balls/last", headers=scorer_headers)
  assert resp.status_code == 404
  assert resp.json()["code"] == "empty_log"

  resp = client.get(f"{BASE}/missing/live")
  assert resp.status_code == 404
  assert resp.json()["code"] == "match_not_found"


def test_stale_delivery_is_retryable_conflict(client, squads, scorer_headers):
  mid = _create(client, scorer_headers)
  _start(client, scorer_headers, mid)
  resp = client.post(
    f"{BASE}/{mid}/balls",
    json={"runs_scored": 1, "over_number": 0, "ball_number": 4},
    headers=scorer_headers,
  )
  assert resp.status_code == 409
  assert resp.json()["code"] == "stale_delivery"
  assert resp.json()["retryable"] is True
  assert client.get(f"{BASE}/{mid}/live").json()["deliveries"] == 0


def test_patch_update_and_selection_routes(client, squads, scorer_headers):
  mid = _create(client, scorer_headers, overs=None)
  resp = client.patch(f"{BASE}/{mid}", json={}, headers=scorer_headers)
  assert resp.status_code == 422

  resp = client.patch(
    f"{BASE}/{mid}",
    json={
      "status": "LIVE",
      "toss_winner_id": "team-b",
      "toss_decision": "BAT",
      "current_striker_id": "b1",
      "current_non_striker_id": "b2",
      "current_bowler_id": "a1",
    },
    headers=scorer_headers,
  )
  assert resp.status_code == 200, resp.text
  assert resp.json()["current_batting_team_id"] == "team-b"

  resp = client.post(
    f"{BASE}/{mid}/balls",
    json={"runs_scored": 0, "is_wicket": True, "wicket_type": "lbw"},
    headers=scorer_headers,
  )
  assert resp.json()["event"]["wicket_type"] == "LBW"
  assert resp.json()["state"]["awaiting_batsman"] is True

  resp = client.post(f"{BASE}/{mid}/batsman", json={"player_id": "b2"}, headers=scorer_headers)
  assert resp.status_code == 422
  assert resp.json()["code"] == "duplicate_batsman"

  resp = client.post(f"{BASE}/{mid}/batsman", json={"player_id": "b3"}, headers=scorer_headers)
  assert resp.status_code == 200
  assert resp.json()["striker_id"] == "b3"

  resp = client.put(
    f"{BASE}/{mid}/settings",
    json={"rebowl_wide_or_no_ball": False},
    headers=scorer_headers,
  )
  assert resp.json()["rebowl_wide_or_no_ball"] is False

  resp = client.put(f"{BASE}/{mid}/awards", json={"man_of_the_match_id": "b3"}, headers=scorer_headers)
  assert resp.json()["man_of_the_match_id"] == "b3"

  resp = client.delete(f"{BASE}/{mid}", headers=scorer_headers)
  assert resp.status_code == 204
  assert client.get(f"{BASE}/{mid}").status_code == 404


def test_ball_recording_notifies_stream(client, squads, scorer_headers):
  mid = _create(client, scorer_headers)
  _start(client, scorer_headers, mid)
  with client.websocket_connect(f"{BASE}/{mid}/stream") as ws:
    assert ws.receive_json() == {"type": "joined", "matchId": mid}
    resp = client.post(f"{BASE}/{mid}/balls", json={"runs_scored": 2}, headers=scorer_headers)
    assert resp.status_code == 200
    assert ws.receive_json() == {"type": "changed", "matchId": mid}
