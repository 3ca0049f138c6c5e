"""
SQLAlchemy ORM models for mootbracket.

This module defines the tables behind the round lifecycle and bracket
progression engine.

Key design decisions:
- Rounds reference teams by foreign key (never raw team codes)
- Round status is NOT a column; it is derived on every read from the
  schedule, the winner and the presence of marks (see bracket.lifecycle)
- Score sheet totals are NOT stored; they are always the sum of the
  criterion columns
- Teams are never deleted once a round or score sheet references them

Tables:
- teams: Tournament roster
- judges: Judges who can be assigned to rounds and submit marks
- rounds: One scheduled contest between two teams at one stage
- score_sheets: One judge's criterion marks for one team in one round
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# =============================================================================
# Constants
# =============================================================================

@dataclass(frozen=True)
class Criterion:
    """One named line on the oral-round score sheet."""
    name: str
    label: str
    max_points: Decimal


# Fixed, ordered marking criteria. Column names on ScoreSheet match `name`.
SCORE_CRITERIA: tuple[Criterion, ...] = (
    Criterion("knowledge_of_law", "Knowledge of Law", Decimal("20")),
    Criterion("application_of_law_to_facts", "Application of Law to Facts", Decimal("20")),
    Criterion(
        "ingenuity_and_ability_to_answer_questions",
        "Ingenuity and Ability to Answer Questions",
        Decimal("15"),
    ),
    Criterion("persuasiveness", "Persuasiveness", Decimal("15")),
    Criterion("time_management_and_organization", "Time Management and Organization", Decimal("10")),
    Criterion("style_poise_courtesy_and_demeanor", "Style, Poise, Courtesy and Demeanor", Decimal("10")),
    Criterion("language_and_presentation", "Language and Presentation", Decimal("10")),
)

CRITERION_NAMES: tuple[str, ...] = tuple(c.name for c in SCORE_CRITERIA)

MAX_TOTAL_POINTS: Decimal = sum((c.max_points for c in SCORE_CRITERIA), Decimal("0"))

# Location discriminator for rounds
LOCATION_OFFLINE = "offline"
LOCATION_ONLINE = "online"
LOCATION_MODES: tuple[str, ...] = (LOCATION_OFFLINE, LOCATION_ONLINE)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


# =============================================================================
# Roster Models
# =============================================================================

class Team(Base):
    """
    Tournament team.

    `team_id` is the public code shown on the dashboard (e.g. "JQ2025-002")
    and is stable for the whole tournament. `current_round_stage` tracks the
    stage the team is active in; it is advanced when the team wins a round.
    Eligibility never reads it; eligibility is derived from round results.
    """
    __tablename__ = "teams"

    id: Mapped[int] = mapped_column(primary_key=True)
    team_id: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    representative_name: Mapped[str] = mapped_column(String(255), nullable=False)
    institution_name: Mapped[str] = mapped_column(String(255), nullable=False)
    current_round_stage: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<Team(id={self.id}, team_id='{self.team_id}')>"


class Judge(Base):
    """A judge (jury member) who can be assigned to rounds and submit marks."""
    __tablename__ = "judges"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<Judge(id={self.id}, name='{self.name}')>"


# =============================================================================
# Round Models
# =============================================================================

class Round(Base):
    """
    One scheduled contest between two teams at one bracket stage.

    Lifecycle (derived, never stored):
    - 'scheduled': before the contest window, no marks yet
    - 'ongoing': inside [scheduled_at, scheduled_at + duration), no marks yet
    - 'evaluating': window elapsed or marks arriving, no winner yet
    - 'decided': winner_id set; terminal

    winner_id only ever changes from NULL to a team id, through the
    conditional update in BracketRepository.compare_and_set_winner().
    """
    __tablename__ = "rounds"

    id: Mapped[int] = mapped_column(primary_key=True)

    # Stage name from the configured bracket order (e.g. 'Quarter-Finals')
    stage: Mapped[str] = mapped_column(String(50), nullable=False)

    # Pairing; nullable only while the pairing is not final
    team1_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("teams.id", ondelete="RESTRICT"), nullable=True
    )
    team2_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("teams.id", ondelete="RESTRICT"), nullable=True
    )
    judge_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("judges.id", ondelete="SET NULL"), nullable=True
    )

    # ==========================================================================
    # Scheduling fields
    # ==========================================================================

    scheduled_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=60)

    # Exactly one of venue / meeting_url, selected by location_mode
    location_mode: Mapped[str] = mapped_column(String(10), nullable=False, default=LOCATION_OFFLINE)
    venue: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    meeting_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # ==========================================================================
    # Result fields
    # ==========================================================================

    winner_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("teams.id", ondelete="RESTRICT"), nullable=True
    )
    decided_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    team1: Mapped[Optional["Team"]] = relationship(foreign_keys=[team1_id])
    team2: Mapped[Optional["Team"]] = relationship(foreign_keys=[team2_id])
    winner: Mapped[Optional["Team"]] = relationship(foreign_keys=[winner_id])
    judge: Mapped[Optional["Judge"]] = relationship()
    score_sheets: Mapped[list["ScoreSheet"]] = relationship(
        back_populates="round", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint(
            "team1_id IS NULL OR team2_id IS NULL OR team1_id <> team2_id",
            name="ck_rounds_distinct_teams",
        ),
        CheckConstraint(
            "winner_id IS NULL OR winner_id = team1_id OR winner_id = team2_id",
            name="ck_rounds_winner_in_round",
        ),
        CheckConstraint(
            "location_mode IN ('offline', 'online')",
            name="ck_rounds_location_mode",
        ),
        CheckConstraint("duration_minutes > 0", name="ck_rounds_duration_positive"),
        Index("idx_rounds_stage", "stage"),
        Index("idx_rounds_team1", "team1_id"),
        Index("idx_rounds_team2", "team2_id"),
        Index("idx_rounds_judge", "judge_id"),
        Index("idx_rounds_stage_winner", "stage", "winner_id"),
    )

    @property
    def team_ids(self) -> tuple[Optional[int], Optional[int]]:
        return (self.team1_id, self.team2_id)

    def has_team(self, team_id: Optional[int]) -> bool:
        """Check whether a team is one of this round's two teams."""
        return team_id is not None and team_id in self.team_ids

    @property
    def is_decided(self) -> bool:
        return self.winner_id is not None

    @property
    def location(self) -> Optional[str]:
        """Venue or meeting URL, whichever the location mode selects."""
        if self.location_mode == LOCATION_ONLINE:
            return self.meeting_url
        return self.venue

    def __repr__(self) -> str:
        return (
            f"<Round(id={self.id}, stage='{self.stage}', "
            f"teams=({self.team1_id}, {self.team2_id}), winner={self.winner_id})>"
        )


class ScoreSheet(Base):
    """
    One judge's evaluation of one team in one round.

    Each criterion column is bounded by SCORE_CRITERIA[i].max_points. The
    total is never persisted: `total` recomputes it from the criteria so a
    stored value can never drift from its parts.

    Sheets are created or replaced while the round is undecided and are
    frozen once a winner is recorded.
    """
    __tablename__ = "score_sheets"

    id: Mapped[int] = mapped_column(primary_key=True)
    round_id: Mapped[int] = mapped_column(
        ForeignKey("rounds.id", ondelete="CASCADE"), nullable=False
    )
    team_id: Mapped[int] = mapped_column(
        ForeignKey("teams.id", ondelete="RESTRICT"), nullable=False
    )
    judge_id: Mapped[int] = mapped_column(
        ForeignKey("judges.id", ondelete="RESTRICT"), nullable=False
    )

    # Criterion marks (order matches SCORE_CRITERIA)
    knowledge_of_law: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    application_of_law_to_facts: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    ingenuity_and_ability_to_answer_questions: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False
    )
    persuasiveness: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    time_management_and_organization: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    style_poise_courtesy_and_demeanor: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    language_and_presentation: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)

    comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    round: Mapped["Round"] = relationship(back_populates="score_sheets")
    team: Mapped["Team"] = relationship()
    judge: Mapped["Judge"] = relationship()

    __table_args__ = (
        UniqueConstraint("round_id", "team_id", "judge_id", name="uq_score_sheet_round_team_judge"),
        Index("idx_score_sheets_round_team", "round_id", "team_id"),
        *(
            CheckConstraint(
                f"{c.name} >= 0 AND {c.name} <= {c.max_points}",
                name=f"ck_sheet_{c.name}_range",
            )
            for c in SCORE_CRITERIA
        ),
    )

    def criterion_points(self) -> dict[str, Decimal]:
        """Criterion marks keyed by criterion name, in sheet order."""
        return {name: Decimal(getattr(self, name)) for name in CRITERION_NAMES}

    @property
    def total(self) -> Decimal:
        """Sum of all criterion marks."""
        return sum(self.criterion_points().values(), Decimal("0"))

    def __repr__(self) -> str:
        return (
            f"<ScoreSheet(round={self.round_id}, team={self.team_id}, "
            f"judge={self.judge_id}, total={self.total})>"
        )
