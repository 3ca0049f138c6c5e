"""
Database module for mootbracket.

Provides SQLAlchemy ORM models, session management, and the repository the
bracket engine reads and writes through.

Usage:
    from mootbracket.db import get_session, BracketRepository

    with get_session() as session:
        repo = BracketRepository(session)
        rounds = repo.list_rounds(stage="Final")
"""

from mootbracket.db.models import (
    Base,
    Judge,
    Round,
    ScoreSheet,
    Team,
)
from mootbracket.db.repository import BracketRepository
from mootbracket.db.session import get_session, get_engine, SessionLocal

__all__ = [
    # Base
    "Base",
    # Models
    "Judge",
    "Round",
    "ScoreSheet",
    "Team",
    # Repository
    "BracketRepository",
    # Session
    "get_session",
    "get_engine",
    "SessionLocal",
]
