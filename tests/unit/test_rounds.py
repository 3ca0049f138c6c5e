"""Unit tests for round creation, rescheduling and deletion."""

from datetime import datetime, timedelta

import pytest

from conftest import FIXED_NOW, make_round, make_sheet
from mootbracket.bracket.rounds import RoundService, validate_schedule
from mootbracket.bracket.winner import WinnerSelector
from mootbracket.db.models import Round, ScoreSheet
from mootbracket.errors import AlreadyDecidedError, NotFoundError, ValidationError

WHEN = datetime(2025, 9, 26, 11, 30)


def test_validate_schedule_location_rules():
    assert validate_schedule(WHEN, 60, "offline", "Court B", None) == []
    assert validate_schedule(WHEN, 60, "online", None, "https://meet.example.org/qf-1") == []
    assert validate_schedule(WHEN, 60, "offline", "  ", None) == ["venue is required for offline rounds"]
    assert validate_schedule(WHEN, 60, "online", "Court B", None) == [
        "meeting_url is required for online rounds"
    ]
    assert validate_schedule(WHEN, 60, "online", None, "meet.example.org") == [
        "meeting_url must be an http(s) URL"
    ]
    assert validate_schedule(None, 0, "hybrid", None, None) == [
        "scheduled_at is required",
        "duration_minutes must be a positive number of minutes",
        "location_mode must be one of offline, online",
    ]


def test_scenario_d_same_team_twice_is_rejected(db_session, repo, roster, stages):
    teams, _ = roster
    service = RoundService(repo, stages)

    with pytest.raises(ValidationError, match="must be different teams"):
        service.create_round("Prelims", teams[0].id, teams[0].id, WHEN, venue="Court A")
    assert db_session.query(Round).count() == 0


def test_create_round_defaults_and_location_normalising(db_session, repo, roster, stages):
    teams, judges = roster
    service = RoundService(repo, stages)

    round_obj = service.create_round(
        "Prelims",
        teams[0].id,
        teams[1].id,
        WHEN,
        location_mode="online",
        venue="Court A",
        meeting_url=" https://meet.example.org/p-1 ",
        judge_id=judges[0].id,
    )
    assert round_obj.id is not None
    assert round_obj.duration_minutes == 60
    assert round_obj.venue is None
    assert round_obj.meeting_url == "https://meet.example.org/p-1"
    assert round_obj.location == "https://meet.example.org/p-1"
    assert round_obj.judge_id == judges[0].id


def test_create_round_rejects_double_booking(db_session, repo, roster, stages):
    teams, _ = roster
    service = RoundService(repo, stages)
    service.create_round("Prelims", teams[0].id, teams[1].id, WHEN, venue="Court A")

    with pytest.raises(ValidationError, match="not eligible"):
        service.create_round("Prelims", teams[1].id, teams[2].id, WHEN, venue="Court B")


def test_create_round_requires_prior_stage_win(db_session, repo, roster, stages):
    teams, _ = roster
    make_round(db_session, "Prelims", teams[0], teams[1], winner=teams[0])
    make_round(db_session, "Prelims", teams[2], teams[3], winner=teams[3])
    service = RoundService(repo, stages)

    with pytest.raises(ValidationError):
        service.create_round("Quarter-Finals", teams[0].id, teams[2].id, WHEN, venue="Court A")

    round_obj = service.create_round("Quarter-Finals", teams[0].id, teams[3].id, WHEN, venue="Court A")
    assert round_obj.team_ids == (teams[0].id, teams[3].id)


def test_create_round_with_open_slot(db_session, repo, roster, stages):
    teams, _ = roster
    make_round(db_session, "Prelims", teams[0], teams[1], winner=teams[0])
    service = RoundService(repo, stages)

    round_obj = service.create_round("Quarter-Finals", teams[0].id, None, WHEN, venue="Court A")
    assert round_obj.team2_id is None


def test_create_round_unknown_references(repo, roster, stages):
    teams, _ = roster
    service = RoundService(repo, stages)

    with pytest.raises(NotFoundError):
        service.create_round("Prelims", teams[0].id, 999, WHEN, venue="Court A")
    with pytest.raises(NotFoundError):
        service.create_round("Prelims", teams[0].id, teams[1].id, WHEN, venue="Court A", judge_id=999)
    with pytest.raises(ValidationError, match="Unknown stage"):
        service.create_round("Octo-Finals", teams[0].id, teams[1].id, WHEN, venue="Court A")


def test_update_reschedules_and_switches_location(db_session, repo, roster, stages):
    teams, _ = roster
    round_obj = make_round(db_session, "Prelims", teams[0], teams[1])
    service = RoundService(repo, stages)

    updated = service.update_round(
        round_obj.id,
        {
            "scheduled_at": WHEN + timedelta(hours=2),
            "duration_minutes": 90,
            "location_mode": "online",
            "meeting_url": "https://meet.example.org/p-2",
        },
    )
    assert updated.scheduled_at == WHEN + timedelta(hours=2)
    assert updated.duration_minutes == 90
    assert updated.venue is None
    assert updated.meeting_url == "https://meet.example.org/p-2"


def test_update_rejects_stage_pairing_and_winner_changes(db_session, repo, roster, stages):
    teams, _ = roster
    round_obj = make_round(db_session, "Prelims", teams[0], teams[1])
    service = RoundService(repo, stages)

    with pytest.raises(ValidationError, match="cannot be edited: stage"):
        service.update_round(round_obj.id, {"stage": "Final"})
    with pytest.raises(ValidationError, match="cannot be edited: winner_id"):
        service.update_round(round_obj.id, {"winner_id": teams[0].id})
    with pytest.raises(ValidationError, match="already paired"):
        service.update_round(round_obj.id, {"team2_id": teams[2].id})


def test_update_fills_empty_slot_with_eligible_team(db_session, repo, roster, stages):
    teams, _ = roster
    make_round(db_session, "Prelims", teams[0], teams[1], winner=teams[0])
    make_round(db_session, "Prelims", teams[2], teams[3], winner=teams[2])
    qf = make_round(db_session, "Quarter-Finals", teams[0], None)
    service = RoundService(repo, stages)

    with pytest.raises(ValidationError, match="not eligible"):
        service.update_round(qf.id, {"team2_id": teams[1].id})

    updated = service.update_round(qf.id, {"team2_id": teams[2].id})
    assert updated.team_ids == (teams[0].id, teams[2].id)


def test_update_invalid_merge_is_rejected(db_session, repo, roster, stages):
    teams, _ = roster
    round_obj = make_round(db_session, "Prelims", teams[0], teams[1])

    with pytest.raises(ValidationError, match="meeting_url is required"):
        RoundService(repo, stages).update_round(round_obj.id, {"location_mode": "online"})


def test_decided_round_is_frozen(db_session, repo, roster, stages):
    teams, _ = roster
    round_obj = make_round(db_session, "Prelims", teams[0], teams[1], winner=teams[0])

    with pytest.raises(AlreadyDecidedError):
        RoundService(repo, stages).update_round(round_obj.id, {"venue": "Court C"})


def test_delete_round_removes_score_sheets(db_session, repo, roster, stages):
    teams, judges = roster
    round_obj = make_round(db_session, "Prelims", teams[0], teams[1])
    make_sheet(db_session, round_obj, teams[0], judges[0])

    RoundService(repo, stages).delete_round(round_obj.id)
    assert db_session.query(Round).count() == 0
    assert db_session.query(ScoreSheet).count() == 0


def test_delete_blocked_once_winner_has_progressed(db_session, repo, roster, stages):
    teams, _ = roster
    prelim = make_round(db_session, "Prelims", teams[0], teams[1], winner=teams[0])
    make_round(db_session, "Prelims", teams[2], teams[3], winner=teams[2])
    qf = make_round(
        db_session, "Quarter-Finals", teams[0], teams[2], scheduled_at=FIXED_NOW + timedelta(days=1)
    )
    service = RoundService(repo, stages)

    with pytest.raises(ValidationError, match="already paired at Quarter-Finals"):
        service.delete_round(prelim.id)

    service.delete_round(qf.id)
    service.delete_round(prelim.id)
    assert repo.find_round(prelim.id) is None


def test_delete_decided_round_moves_winner_back(db_session, repo, roster, stages, clock):
    teams, judges = roster
    prelim = make_round(db_session, "Prelims", teams[0], teams[1])
    make_sheet(db_session, prelim, teams[0], judges[0])
    make_sheet(db_session, prelim, teams[1], judges[0])
    WinnerSelector(repo, stages, clock).select_winner(prelim.id, teams[0].id)
    assert teams[0].current_round_stage == "Quarter-Finals"

    RoundService(repo, stages).delete_round(prelim.id)

    db_session.expire_all()
    assert repo.get_team(teams[0].id).current_round_stage == "Prelims"
    assert repo.find_round(prelim.id) is None
