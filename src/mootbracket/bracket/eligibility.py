"""
Eligibility resolution: which teams may be paired into a stage.

A team is eligible for a target stage iff:

    (a) it won a decided round at the stage immediately before the target
        (for the first stage: it is on the roster), AND
    (b) it is not already team1 or team2 of any round at the target stage.

The answer is recomputed from the round store on every call. Round
creation, deletion and winner commits change it immediately, so nothing is
cached between calls.

Integrity checks: a team can win at most one round per stage, and a
recorded winner must be one of its round's teams. Either violation raises
InconsistentBracketError instead of silently picking a row.
"""

import logging
from collections import Counter
from typing import Optional

from mootbracket.db.models import Team
from mootbracket.db.repository import BracketRepository
from mootbracket.errors import InconsistentBracketError, ValidationError
from mootbracket.stages import StageOrder

logger = logging.getLogger(__name__)


class EligibilityResolver:
    """
    Computes the set of teams that can be paired into a stage.

    Usage:
        resolver = EligibilityResolver(repo, StageOrder.from_settings())
        teams = resolver.eligible_teams("Semi-Finals")
    """

    def __init__(self, repo: BracketRepository, stages: StageOrder):
        self.repo = repo
        self.stages = stages

    def eligible_teams(
        self,
        target_stage: str,
        exclude_round_id: Optional[int] = None,
    ) -> list[Team]:
        """
        Teams eligible to be paired into ``target_stage``, ordered by code.

        Args:
            target_stage: Stage the new pairing is for
            exclude_round_id: Ignore this round's own pairing when checking
                              (b); used when re-validating an existing round

        Raises:
            ValidationError: unknown stage name
            InconsistentBracketError: the prior stage has a duplicate or
                                      foreign winner
        """
        if target_stage not in self.stages:
            raise ValidationError(f"Unknown stage: {target_stage}")

        candidates = self._advancing_team_ids(target_stage)
        paired = self.paired_team_ids(target_stage, exclude_round_id=exclude_round_id)
        eligible_ids = candidates - paired
        logger.debug(
            "Eligibility for %s: %d advancing, %d already paired, %d eligible",
            target_stage, len(candidates), len(paired & candidates), len(eligible_ids),
        )

        if not eligible_ids:
            return []
        return self.repo.list_teams(ids=eligible_ids)

    def is_eligible(self, team_id: int, target_stage: str, exclude_round_id: Optional[int] = None) -> bool:
        return any(
            team.id == team_id
            for team in self.eligible_teams(target_stage, exclude_round_id=exclude_round_id)
        )

    def paired_team_ids(self, stage: str, exclude_round_id: Optional[int] = None) -> set[int]:
        """Teams already sitting in a round at ``stage``."""
        paired: set[int] = set()
        for round_obj in self.repo.list_rounds(stage=stage):
            if round_obj.id == exclude_round_id:
                continue
            paired.update(team_id for team_id in round_obj.team_ids if team_id is not None)
        return paired

    def stage_winner_ids(self, stage: str) -> set[int]:
        """
        Winners of decided rounds at ``stage``.

        Raises:
            InconsistentBracketError: a team won more than one round at the
                                      stage, or a winner is not in its round
        """
        winners: Counter = Counter()
        for round_obj in self.repo.list_rounds(stage=stage):
            if round_obj.winner_id is None:
                continue
            if not round_obj.has_team(round_obj.winner_id):
                raise InconsistentBracketError(
                    f"Round {round_obj.id} at {stage} records winner {round_obj.winner_id} "
                    f"who is not one of its teams {round_obj.team_ids}",
                    team_ids=[round_obj.winner_id],
                )
            winners[round_obj.winner_id] += 1

        duplicates = sorted(team_id for team_id, count in winners.items() if count > 1)
        if duplicates:
            raise InconsistentBracketError(
                f"Team(s) {duplicates} recorded as winner of more than one round at {stage}",
                team_ids=duplicates,
            )
        return set(winners)

    def _advancing_team_ids(self, target_stage: str) -> set[int]:
        if self.stages.is_first(target_stage):
            # First stage: the registered roster
            return {team.id for team in self.repo.list_teams()}
        return self.stage_winner_ids(self.stages.previous_stage(target_stage))
