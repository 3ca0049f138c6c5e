"""
Repository over the round / score sheet store.

This is the only module in the engine that issues SQL. The lifecycle,
aggregation and eligibility components take a BracketRepository and stay
ignorant of sessions, joins and dialects.

The one write that needs mutual exclusion, recording a round's winner, is
a single conditional UPDATE keyed on ``winner_id IS NULL`` (see
compare_and_set_winner). Every other write is an independent row change.
"""

import logging
from datetime import datetime
from typing import Any, Iterable, Optional

from sqlalchemy import or_, update
from sqlalchemy.orm import Session, aliased

from mootbracket.db.models import Judge, Round, ScoreSheet, Team
from mootbracket.errors import NotFoundError

logger = logging.getLogger(__name__)


class BracketRepository:
    """
    Storage contract required by the bracket engine, backed by SQLAlchemy.

    Usage:
        with get_session() as session:
            repo = BracketRepository(session)
            rounds = repo.list_rounds(stage="Semi-Finals")
    """

    def __init__(self, session: Session):
        self.session = session

    # =========================================================================
    # Rounds
    # =========================================================================

    def find_round(self, round_id: int) -> Optional[Round]:
        return self.session.get(Round, round_id)

    def get_round(self, round_id: int) -> Round:
        """Load a round, raising NotFoundError when it does not exist."""
        round_obj = self.find_round(round_id)
        if round_obj is None:
            raise NotFoundError("Round", round_id)
        return round_obj

    def lock_round(self, round_id: int) -> Round:
        """
        Re-read a round from the database, locking its row.

        On PostgreSQL the SELECT ... FOR UPDATE waits for a concurrent
        winner commit to finish and then sees the stored row. SQLite drops
        the clause; the read still bypasses the identity map.
        """
        round_obj = (
            self.session.query(Round)
            .filter(Round.id == round_id)
            .with_for_update()
            .populate_existing()
            .one_or_none()
        )
        if round_obj is None:
            raise NotFoundError("Round", round_id)
        return round_obj

    def list_rounds(
        self,
        stage: Optional[str] = None,
        judge_id: Optional[int] = None,
        team_id: Optional[int] = None,
        search: Optional[str] = None,
    ) -> list[Round]:
        """
        List rounds ordered by schedule.

        Args:
            stage: Only rounds at this stage
            judge_id: Only rounds assigned to this judge
            team_id: Only rounds where this team (primary key) plays
            search: Case-insensitive substring of the stage name or
                    either team's public code
        """
        query = self.session.query(Round)

        if stage is not None:
            query = query.filter(Round.stage == stage)
        if judge_id is not None:
            query = query.filter(Round.judge_id == judge_id)
        if team_id is not None:
            query = query.filter(or_(Round.team1_id == team_id, Round.team2_id == team_id))
        if search:
            team1 = aliased(Team)
            team2 = aliased(Team)
            pattern = f"%{search.strip()}%"
            query = (
                query
                .outerjoin(team1, Round.team1_id == team1.id)
                .outerjoin(team2, Round.team2_id == team2.id)
                .filter(
                    or_(
                        Round.stage.ilike(pattern),
                        team1.team_id.ilike(pattern),
                        team2.team_id.ilike(pattern),
                    )
                )
            )

        return query.order_by(Round.scheduled_at.asc(), Round.id.asc()).all()

    def create_round(self, round_obj: Round) -> Round:
        """Persist an already-validated round and assign its id."""
        self.session.add(round_obj)
        self.session.flush()
        logger.info(
            "Created round %d: %s (%s vs %s)",
            round_obj.id, round_obj.stage, round_obj.team1_id, round_obj.team2_id,
        )
        return round_obj

    def update_round(self, round_id: int, patch: dict[str, Any]) -> Round:
        """Apply an already-validated column patch to a round."""
        round_obj = self.get_round(round_id)
        for field_name, value in patch.items():
            setattr(round_obj, field_name, value)
        self.session.flush()
        return round_obj

    def delete_round(self, round_id: int) -> None:
        """Delete a round and its score sheets."""
        round_obj = self.get_round(round_id)
        self.session.delete(round_obj)
        self.session.flush()
        logger.info("Deleted round %d (%s)", round_id, round_obj.stage)

    def compare_and_set_winner(
        self,
        round_id: int,
        winner_id: int,
        decided_at: datetime,
    ) -> bool:
        """
        Record a winner only if the round is still undecided.

        Issues a single conditional UPDATE. On PostgreSQL concurrent callers
        serialise on the row lock and the losers re-evaluate the WHERE clause
        against the committed row; on SQLite the database write lock gives
        the same outcome.

        Returns:
            True if this call recorded the winner, False if the round was
            already decided (or the team is not in the round)
        """
        # Anything pending must hit the database before the conditional write
        self.session.flush()

        result = self.session.execute(
            update(Round)
            .where(
                Round.id == round_id,
                Round.winner_id.is_(None),
                or_(Round.team1_id == winner_id, Round.team2_id == winner_id),
            )
            .values(winner_id=winner_id, decided_at=decided_at, updated_at=decided_at)
            .execution_options(synchronize_session=False)
        )
        won = result.rowcount == 1

        # Reload so callers see the row as stored, whoever wrote it
        round_obj = self.find_round(round_id)
        if round_obj is not None:
            self.session.refresh(round_obj)

        return won

    # =========================================================================
    # Teams and judges
    # =========================================================================

    def list_teams(self, ids: Optional[Iterable[int]] = None) -> list[Team]:
        """List roster teams, optionally restricted to primary keys."""
        query = self.session.query(Team)
        if ids is not None:
            query = query.filter(Team.id.in_(list(ids)))
        return query.order_by(Team.team_id.asc()).all()

    def get_team(self, team_pk: int) -> Team:
        team = self.session.get(Team, team_pk)
        if team is None:
            raise NotFoundError("Team", team_pk)
        return team

    def get_judge(self, judge_id: int) -> Judge:
        judge = self.session.get(Judge, judge_id)
        if judge is None:
            raise NotFoundError("Judge", judge_id)
        return judge

    def count_teams(self) -> int:
        return self.session.query(Team).count()

    # =========================================================================
    # Score sheets
    # =========================================================================

    def get_score_sheets(
        self,
        round_id: int,
        team_id: Optional[int] = None,
        judge_id: Optional[int] = None,
    ) -> list[ScoreSheet]:
        """Score sheets for a round, optionally for one team and/or judge."""
        query = self.session.query(ScoreSheet).filter(ScoreSheet.round_id == round_id)
        if team_id is not None:
            query = query.filter(ScoreSheet.team_id == team_id)
        if judge_id is not None:
            query = query.filter(ScoreSheet.judge_id == judge_id)
        return query.order_by(ScoreSheet.judge_id.asc(), ScoreSheet.id.asc()).all()

    def find_score_sheet(self, round_id: int, team_id: int, judge_id: int) -> Optional[ScoreSheet]:
        return (
            self.session.query(ScoreSheet)
            .filter(
                ScoreSheet.round_id == round_id,
                ScoreSheet.team_id == team_id,
                ScoreSheet.judge_id == judge_id,
            )
            .first()
        )

    def save_score_sheet(self, sheet: ScoreSheet) -> ScoreSheet:
        self.session.add(sheet)
        self.session.flush()
        return sheet
