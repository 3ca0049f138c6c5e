"""
Pytest configuration and fixtures.

This file is automatically loaded by pytest and provides
shared fixtures for all tests.
"""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from mootbracket.config import DEFAULT_STAGE_ORDER
from mootbracket.db.models import CRITERION_NAMES, Base, Judge, Round, ScoreSheet, Team
from mootbracket.db.repository import BracketRepository
from mootbracket.stages import StageOrder

# Noon on the second day of the tournament
FIXED_NOW = datetime(2025, 9, 25, 12, 0)


def _enable_sqlite_foreign_keys(engine):
    @event.listens_for(engine, "connect")
    def on_connect(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


@pytest.fixture
def test_engine():
    """
    Create a fresh in-memory database engine for one test.

    StaticPool keeps the single in-memory connection alive and lets the
    FastAPI test client use it from its worker thread.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    _enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def file_engine(tmp_path):
    """File-backed SQLite engine: separate connections see each other's commits."""
    engine = create_engine(f"sqlite:///{tmp_path / 'bracket.db'}")
    _enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(test_engine):
    """Create a database session for a test."""
    Session = sessionmaker(bind=test_engine, autoflush=False)
    session = Session()
    yield session
    session.close()


@pytest.fixture
def repo(db_session):
    return BracketRepository(db_session)


@pytest.fixture
def stages():
    return StageOrder(DEFAULT_STAGE_ORDER)


@pytest.fixture
def clock():
    """A clock frozen at FIXED_NOW."""
    return lambda: FIXED_NOW


# =============================================================================
# Builders
# =============================================================================

def make_team(session, code, representative="Representative", institution="Law School"):
    team = Team(team_id=code, representative_name=representative, institution_name=institution)
    session.add(team)
    session.flush()
    return team


def make_judge(session, name="Justice Rao"):
    judge = Judge(name=name)
    session.add(judge)
    session.flush()
    return judge


def make_round(
    session,
    stage,
    team1,
    team2,
    scheduled_at=None,
    duration_minutes=60,
    judge=None,
    winner=None,
):
    """Insert a round directly, bypassing RoundService validation."""
    round_obj = Round(
        stage=stage,
        team1_id=team1.id if team1 is not None else None,
        team2_id=team2.id if team2 is not None else None,
        judge_id=judge.id if judge is not None else None,
        scheduled_at=scheduled_at or FIXED_NOW - timedelta(hours=2),
        duration_minutes=duration_minutes,
        location_mode="offline",
        venue="Court A",
        winner_id=winner.id if winner is not None else None,
        decided_at=FIXED_NOW if winner is not None else None,
    )
    session.add(round_obj)
    session.flush()
    return round_obj


def sheet_points(*values):
    """Criterion -> points mapping from seven values in sheet order."""
    return {name: Decimal(str(value)) for name, value in zip(CRITERION_NAMES, values)}


def make_sheet(session, round_obj, team, judge, values=(15, 15, 10, 10, 8, 8, 8), comments=None):
    sheet = ScoreSheet(
        round_id=round_obj.id,
        team_id=team.id,
        judge_id=judge.id,
        comments=comments,
        **sheet_points(*values),
    )
    session.add(sheet)
    session.flush()
    return sheet


@pytest.fixture
def roster(db_session):
    """Eight teams and two judges."""
    teams = [make_team(db_session, f"JQ2025-{n:03d}") for n in range(1, 9)]
    judges = [make_judge(db_session, "Justice Rao"), make_judge(db_session, "Justice Okafor")]
    return teams, judges
