"""
Winner selection, the bracket's commit step.

select_winner() records whichever team the caller chooses. It never picks
the higher-scoring team by itself; the aggregated marks are advisory and
ties or judgement calls are legitimate outcomes.

Checks run in a fixed order, each with its own error:

    1. round exists                       -> NotFoundError
    2. round not already decided          -> AlreadyDecidedError
    3. winner is one of the round's teams -> InvalidTeamError
    4. both teams have aggregated marks   -> MarksIncompleteError

The write itself is a compare-and-swap on ``winner_id IS NULL``. When two
callers race, exactly one UPDATE matches; the other sees AlreadyDecided.
A retry of a commit that already landed (same winner recorded) returns
the round unchanged instead of failing, so retrying is safe.

Once committed the winner shows up in EligibilityResolver results for the
next stage on the very next call in the same transaction, and for every
other session as soon as the caller commits.
"""

import logging

from mootbracket.bracket.lifecycle import Clock, RoundLifecycle, system_clock
from mootbracket.db.models import Round
from mootbracket.db.repository import BracketRepository
from mootbracket.errors import AlreadyDecidedError, InvalidTeamError
from mootbracket.scoring.aggregator import ScoreAggregator
from mootbracket.stages import StageOrder

logger = logging.getLogger(__name__)


class WinnerSelector:
    """
    Validates and atomically commits round winners.

    Usage:
        with get_session() as session:
            repo = BracketRepository(session)
            selector = WinnerSelector(repo, StageOrder.from_settings())
            round_obj = selector.select_winner(round_id=12, winner_team_id=4)
    """

    def __init__(
        self,
        repo: BracketRepository,
        stages: StageOrder,
        clock: Clock = system_clock,
    ):
        self.repo = repo
        self.stages = stages
        self.clock = clock
        self.aggregator = ScoreAggregator(repo)
        self.lifecycle = RoundLifecycle(self.aggregator, clock)

    def select_winner(self, round_id: int, winner_team_id: int) -> Round:
        """
        Record ``winner_team_id`` as the winner of a round.

        Returns:
            The decided round (freshly reloaded from the store)

        Raises:
            NotFoundError, AlreadyDecidedError, InvalidTeamError,
            MarksIncompleteError (see module docstring for the order)
        """
        round_obj = self.repo.get_round(round_id)

        if round_obj.is_decided:
            if round_obj.winner_id == winner_team_id:
                logger.info(
                    "Round %d already decided for team %d; treating as retry",
                    round_id, winner_team_id,
                )
                return round_obj
            raise AlreadyDecidedError(round_id, round_obj.winner_id)

        if not round_obj.has_team(winner_team_id):
            raise InvalidTeamError(round_id, winner_team_id)

        self.lifecycle.ensure_winner_selectable(round_obj)

        committed = self.repo.compare_and_set_winner(
            round_id=round_id,
            winner_id=winner_team_id,
            decided_at=self.clock(),
        )
        if not committed:
            # Another caller got there between our read and our write
            if round_obj.winner_id == winner_team_id:
                return round_obj
            logger.warning(
                "Lost winner commit race on round %d: wanted %d, recorded %s",
                round_id, winner_team_id, round_obj.winner_id,
            )
            raise AlreadyDecidedError(round_id, round_obj.winner_id)

        self._advance_winner(round_obj)

        logger.info(
            "Round %d (%s) decided: winner team %d",
            round_id, round_obj.stage, winner_team_id,
        )
        return round_obj

    def _advance_winner(self, round_obj: Round) -> None:
        """Move the winner's current stage on to the next one in the bracket."""
        winner = self.repo.get_team(round_obj.winner_id)
        next_stage = self.stages.next_stage(round_obj.stage)
        winner.current_round_stage = next_stage or round_obj.stage
        self.repo.session.flush()


def expected_team_stages(repo: BracketRepository, stages: StageOrder) -> dict[int, str]:
    """
    The current_round_stage each team should hold, derived from results.

    A team that has won sits at the stage after its furthest win, or stays
    at the last stage. A team with a stage recorded but no wins belongs at
    the first stage. Teams with neither are left out.
    """
    expected: dict[int, str] = {}
    for stage in stages:
        for round_obj in repo.list_rounds(stage=stage):
            if round_obj.winner_id is not None:
                expected[round_obj.winner_id] = stages.next_stage(stage) or stage

    for team in repo.list_teams():
        if team.id not in expected and team.current_round_stage is not None:
            expected[team.id] = stages.first
    return expected
