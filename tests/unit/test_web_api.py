"""API tests for the admin and jury endpoints."""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from conftest import FIXED_NOW, make_round, make_sheet
from mootbracket.db.session import get_db
from mootbracket.web.main import app, get_clock


@pytest.fixture
def client(db_session):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: (lambda: FIXED_NOW)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _marks_body(round_id, team_id, jury_id, values=(18, 17, 12, 13, 9, 8, 9), **extra):
    names = [
        "knowledge_of_law",
        "application_of_law_to_facts",
        "ingenuity_and_ability_to_answer_questions",
        "persuasiveness",
        "time_management_and_organization",
        "style_poise_courtesy_and_demeanor",
        "language_and_presentation",
    ]
    body = {"round_id": round_id, "team_id": team_id, "jury_id": jury_id}
    body.update(dict(zip(names, values)))
    body.update(extra)
    return body


def test_create_round_and_list(client, roster):
    teams, judges = roster
    response = client.post(
        "/api/admin/rounds/",
        json={
            "round_name": "Prelims",
            "team1": teams[0].id,
            "team2": teams[1].id,
            "date": "2025-09-25",
            "time": "14:00",
            "round_type": "offline",
            "venue": "Court A",
            "jury_id": judges[0].id,
        },
    )
    assert response.status_code == 201
    created = response.json()
    assert created["round_name"] == "Prelims"
    assert created["status"] == "upcoming"
    assert created["team1_details"]["team_id"] == "JQ2025-001"
    assert created["jury"]["name"] == "Justice Rao"
    assert created["location"] == "Court A"

    listed = client.get("/api/admin/rounds/").json()
    assert [item["id"] for item in listed] == [created["id"]]

    searched = client.get("/api/admin/rounds/", params={"search": "jq2025-002"}).json()
    assert len(searched) == 1
    assert client.get("/api/admin/rounds/", params={"search": "JQ2025-005"}).json() == []
    assert client.get("/api/admin/rounds/", params={"status": "decided"}).json() == []


def test_list_rounds_by_status_group(client, db_session, roster):
    teams, _ = roster
    decided = make_round(db_session, "Prelims", teams[0], teams[1], winner=teams[0])
    evaluating = make_round(db_session, "Prelims", teams[2], teams[3])
    upcoming = make_round(
        db_session, "Prelims", teams[4], teams[5], scheduled_at=FIXED_NOW + timedelta(hours=3)
    )

    def listed(**params):
        return [item["id"] for item in client.get("/api/admin/rounds/", params=params).json()]

    assert listed(group="pending") == [upcoming.id]
    assert listed(group="awaiting_decision") == [evaluating.id]
    assert listed(group="terminal") == [decided.id]
    assert sorted(listed()) == sorted([decided.id, evaluating.id, upcoming.id])
    # Explicit statuses take precedence over the group
    assert listed(group="terminal", status="evaluating") == [evaluating.id]

    response = client.get("/api/admin/rounds/", params={"group": "finished"})
    assert response.status_code == 422
    assert response.json()["error"] == "VALIDATION_ERROR"


def test_create_round_with_same_team_is_422(client, roster):
    teams, _ = roster
    response = client.post(
        "/api/admin/rounds/",
        json={
            "round_name": "Prelims",
            "team1": teams[0].id,
            "team2": teams[0].id,
            "date": "2025-09-25",
            "time": "14:00",
            "venue": "Court A",
        },
    )
    assert response.status_code == 422
    assert response.json()["error"] == "VALIDATION_ERROR"


def test_eligible_teams_endpoint(client, db_session, roster):
    teams, _ = roster
    make_round(db_session, "Prelims", teams[0], teams[1], winner=teams[0])

    response = client.get("/api/admin/rounds/eligible_teams/", params={"round_name": "Quarter-Finals"})
    assert response.status_code == 200
    assert [team["id"] for team in response.json()] == [teams[0].id]


def test_eligible_teams_degrades_to_empty_on_inconsistency(client, db_session, roster):
    teams, _ = roster
    make_round(db_session, "Prelims", teams[0], teams[1], winner=teams[0])
    make_round(db_session, "Prelims", teams[0], teams[2], winner=teams[0])

    response = client.get("/api/admin/rounds/eligible_teams/", params={"round_name": "Quarter-Finals"})
    assert response.status_code == 200
    assert response.json() == []


def test_marks_then_set_winner_flow(client, db_session, roster):
    teams, judges = roster
    round_obj = make_round(db_session, "Prelims", teams[0], teams[1], judge=judges[0])

    early = client.post(f"/api/admin/rounds/{round_obj.id}/set_winner/", json={"winner_id": teams[0].id})
    assert early.status_code == 409
    assert early.json()["error"] == "MARKS_INCOMPLETE"

    for team in (teams[0], teams[1]):
        response = client.post("/api/oral-marks/", json=_marks_body(round_obj.id, team.id, judges[0].id))
        assert response.status_code == 201
        assert response.json()["total"] == 86.0

    marks = client.get(f"/api/admin/rounds/{round_obj.id}/marks/").json()
    assert marks["complete"] is True
    assert marks["max_total"] == 100.0
    assert marks["team1"]["total"] == 86.0

    outsider = client.post(f"/api/admin/rounds/{round_obj.id}/set_winner/", json={"winner_id": teams[4].id})
    assert outsider.status_code == 400
    assert outsider.json()["error"] == "INVALID_TEAM"

    decided = client.post(f"/api/admin/rounds/{round_obj.id}/set_winner/", json={"winner_id": teams[1].id})
    assert decided.status_code == 200
    assert decided.json()["status"] == "Winner: JQ2025-002"
    assert decided.json()["lifecycle_status"] == "decided"

    retry = client.post(f"/api/admin/rounds/{round_obj.id}/set_winner/", json={"winner_id": teams[1].id})
    assert retry.status_code == 200

    conflict = client.post(f"/api/admin/rounds/{round_obj.id}/set_winner/", json={"winner_id": teams[0].id})
    assert conflict.status_code == 409
    assert conflict.json()["error"] == "ALREADY_DECIDED"

    late = client.post("/api/oral-marks/", json=_marks_body(round_obj.id, teams[0].id, judges[0].id))
    assert late.status_code == 409


def test_submit_marks_out_of_range(client, db_session, roster):
    teams, judges = roster
    round_obj = make_round(db_session, "Prelims", teams[0], teams[1])

    response = client.post(
        "/api/oral-marks/",
        json=_marks_body(round_obj.id, teams[0].id, judges[0].id, values=(25, 17, 12, 13, 9, 8, 9)),
    )
    assert response.status_code == 422
    assert "knowledge_of_law" in response.json()["detail"]


def test_list_marks_filters_by_judge(client, db_session, roster):
    teams, judges = roster
    round_obj = make_round(db_session, "Prelims", teams[0], teams[1])
    make_sheet(db_session, round_obj, teams[0], judges[0])
    make_sheet(db_session, round_obj, teams[0], judges[1])

    everything = client.get("/api/oral-marks/", params={"round_id": round_obj.id}).json()
    assert len(everything) == 2
    mine = client.get("/api/oral-marks/", params={"round_id": round_obj.id, "jury_id": judges[1].id}).json()
    assert [sheet["jury_id"] for sheet in mine] == [judges[1].id]


def test_update_and_delete_round(client, db_session, roster):
    teams, _ = roster
    round_obj = make_round(db_session, "Prelims", teams[0], teams[1])

    response = client.patch(
        f"/api/admin/rounds/{round_obj.id}/",
        json={"time": "16:45", "round_type": "online", "meet_url": "https://meet.example.org/p-9"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["time"] == "16:45"
    assert body["date"] == FIXED_NOW.date().isoformat()
    assert body["venue"] is None
    assert body["meet_url"] == "https://meet.example.org/p-9"

    rejected = client.patch(f"/api/admin/rounds/{round_obj.id}/", json={"round_name": "Final"})
    assert rejected.status_code == 422

    assert client.delete(f"/api/admin/rounds/{round_obj.id}/").status_code == 200
    missing = client.get(f"/api/admin/rounds/{round_obj.id}/")
    assert missing.status_code == 404
    assert missing.json()["error"] == "NOT_FOUND"


def test_jury_missing_marks(client, db_session, roster):
    teams, judges = roster
    owed = make_round(db_session, "Prelims", teams[0], teams[1], judge=judges[0])
    make_sheet(db_session, owed, teams[0], judges[0])

    rounds = client.get(f"/api/jury/{judges[0].id}/rounds/").json()
    assert [r["id"] for r in rounds] == [owed.id]

    missing = client.get(f"/api/jury/{judges[0].id}/missing_marks/").json()
    assert [r["id"] for r in missing] == [owed.id]

    assert client.get("/api/jury/999/missing_marks/").status_code == 404


def test_overview_counts(client, db_session, roster):
    teams, _ = roster
    make_round(db_session, "Prelims", teams[0], teams[1], winner=teams[0])
    make_round(db_session, "Prelims", teams[2], teams[3])

    overview = client.get("/api/overview/").json()
    assert overview["total_teams"] == 8
    assert overview["total_rounds"] == 2
    assert overview["rounds_by_status"]["decided"] == 1
    assert overview["rounds_by_status"]["evaluating"] == 1
    assert overview["rounds_by_stage"]["Prelims"] == 2
