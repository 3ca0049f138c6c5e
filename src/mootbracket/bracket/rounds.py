"""
Round administration: creating, rescheduling and deleting rounds.

All invariants are checked here, before anything reaches the store:

- team1 and team2 differ
- both teams are eligible for the round's stage (no double booking)
- scheduled_at and a positive duration are present
- the location matches its mode: offline rounds need a venue, online
  rounds need a meeting URL; the other field is cleared

Updates are limited to scheduling fields (plus filling an empty team slot);
stage, pairing and winner changes are not edits. Decided rounds are frozen.
"""

import logging
from datetime import datetime
from typing import Any, Mapping, Optional

from mootbracket.bracket.eligibility import EligibilityResolver
from mootbracket.config import settings
from mootbracket.db.models import LOCATION_MODES, LOCATION_OFFLINE, LOCATION_ONLINE, Round
from mootbracket.db.repository import BracketRepository
from mootbracket.errors import AlreadyDecidedError, ValidationError
from mootbracket.stages import StageOrder

logger = logging.getLogger(__name__)

# Fields an administrator may change on an existing round
SCHEDULE_FIELDS = frozenset(
    {"scheduled_at", "duration_minutes", "location_mode", "venue", "meeting_url", "judge_id"}
)
TEAM_FIELDS = frozenset({"team1_id", "team2_id"})


def _blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def validate_schedule(
    scheduled_at: Optional[datetime],
    duration_minutes: Optional[int],
    location_mode: Optional[str],
    venue: Optional[str],
    meeting_url: Optional[str],
) -> list[str]:
    """
    Check a round's schedule and location fields.

    Returns:
        List of problems (empty if the fields are valid)
    """
    problems = []

    if scheduled_at is None:
        problems.append("scheduled_at is required")
    if duration_minutes is None or duration_minutes <= 0:
        problems.append("duration_minutes must be a positive number of minutes")

    if location_mode not in LOCATION_MODES:
        problems.append(f"location_mode must be one of {', '.join(LOCATION_MODES)}")
    elif location_mode == LOCATION_OFFLINE and _blank(venue):
        problems.append("venue is required for offline rounds")
    elif location_mode == LOCATION_ONLINE:
        if _blank(meeting_url):
            problems.append("meeting_url is required for online rounds")
        elif not meeting_url.strip().lower().startswith(("http://", "https://")):
            problems.append("meeting_url must be an http(s) URL")

    return problems


def validate_pairing(team1_id: Optional[int], team2_id: Optional[int]) -> list[str]:
    if team1_id is not None and team1_id == team2_id:
        return ["team1 and team2 must be different teams"]
    return []


class RoundService:
    """
    Administrative operations on rounds.

    Usage:
        service = RoundService(repo, StageOrder.from_settings())
        round_obj = service.create_round(
            stage="Quarter-Finals",
            team1_id=1,
            team2_id=2,
            scheduled_at=datetime(2025, 9, 25, 11, 30),
            venue="Court B",
        )
    """

    def __init__(self, repo: BracketRepository, stages: StageOrder):
        self.repo = repo
        self.stages = stages
        self.eligibility = EligibilityResolver(repo, stages)

    def create_round(
        self,
        stage: str,
        team1_id: Optional[int],
        team2_id: Optional[int],
        scheduled_at: Optional[datetime],
        duration_minutes: Optional[int] = None,
        location_mode: str = LOCATION_OFFLINE,
        venue: Optional[str] = None,
        meeting_url: Optional[str] = None,
        judge_id: Optional[int] = None,
    ) -> Round:
        """
        Validate and persist a new round.

        Raises:
            ValidationError: malformed round or ineligible team
            NotFoundError: a referenced team or judge does not exist
            InconsistentBracketError: the prior stage's results are corrupt
        """
        if duration_minutes is None:
            duration_minutes = settings.default_round_duration_minutes

        problems = []
        if stage not in self.stages:
            problems.append(f"Unknown stage: {stage}")
        problems += validate_pairing(team1_id, team2_id)
        problems += validate_schedule(scheduled_at, duration_minutes, location_mode, venue, meeting_url)
        if problems:
            raise ValidationError("Invalid round: " + "; ".join(problems))

        self._check_references(team1_id, team2_id, judge_id)
        self._check_eligible(stage, [team1_id, team2_id])

        venue, meeting_url = self._normalise_location(location_mode, venue, meeting_url)
        round_obj = Round(
            stage=stage,
            team1_id=team1_id,
            team2_id=team2_id,
            judge_id=judge_id,
            scheduled_at=scheduled_at,
            duration_minutes=duration_minutes,
            location_mode=location_mode,
            venue=venue,
            meeting_url=meeting_url,
        )
        return self.repo.create_round(round_obj)

    def update_round(self, round_id: int, patch: Mapping[str, Any]) -> Round:
        """
        Change scheduling fields, or fill an empty team slot, of a round.

        Raises:
            NotFoundError: the round (or a referenced team/judge) is missing
            AlreadyDecidedError: the round has a winner
            ValidationError: forbidden field or invalid merged values
        """
        round_obj = self.repo.get_round(round_id)
        if round_obj.is_decided:
            raise AlreadyDecidedError(round_id, round_obj.winner_id)

        unknown = sorted(set(patch) - SCHEDULE_FIELDS - TEAM_FIELDS)
        if unknown:
            raise ValidationError(f"Fields cannot be edited: {', '.join(unknown)}")

        problems = []
        for field_name in TEAM_FIELDS & set(patch):
            current = getattr(round_obj, field_name)
            if current is not None and patch[field_name] != current:
                problems.append(f"{field_name} is already paired and cannot be changed")
        if problems:
            raise ValidationError("Invalid round update: " + "; ".join(problems))

        merged = {
            name: patch.get(name, getattr(round_obj, name))
            for name in SCHEDULE_FIELDS | TEAM_FIELDS
        }
        problems += validate_pairing(merged["team1_id"], merged["team2_id"])
        problems += validate_schedule(
            merged["scheduled_at"],
            merged["duration_minutes"],
            merged["location_mode"],
            merged["venue"],
            merged["meeting_url"],
        )
        if problems:
            raise ValidationError("Invalid round update: " + "; ".join(problems))

        # Only empty slots being filled need reference and eligibility checks
        filled = {
            name: patch[name] for name in TEAM_FIELDS & set(patch)
            if getattr(round_obj, name) is None and patch[name] is not None
        }
        self._check_references(filled.get("team1_id"), filled.get("team2_id"), merged["judge_id"])
        self._check_eligible(round_obj.stage, list(filled.values()), exclude_round_id=round_id)

        merged["venue"], merged["meeting_url"] = self._normalise_location(
            merged["location_mode"], merged["venue"], merged["meeting_url"]
        )
        changes = {
            name: value for name, value in merged.items()
            if value != getattr(round_obj, name)
        }
        if not changes:
            return round_obj

        updated = self.repo.update_round(round_id, changes)
        logger.info("Updated round %d: %s", round_id, ", ".join(sorted(changes)))
        return updated

    def delete_round(self, round_id: int) -> None:
        """
        Delete a round and its score sheets.

        A decided round cannot be deleted once its winner has been paired
        into a later stage, since that pairing depends on the result.
        Otherwise the winner's current stage goes back to the round's stage.

        Raises:
            NotFoundError: the round does not exist
            ValidationError: the winner has already progressed
        """
        round_obj = self.repo.get_round(round_id)
        if round_obj.is_decided:
            for later_stage in self.stages.later_stages(round_obj.stage):
                if round_obj.winner_id in self.eligibility.paired_team_ids(later_stage):
                    raise ValidationError(
                        f"Round {round_id} cannot be deleted: its winner is already "
                        f"paired at {later_stage}"
                    )
            winner = self.repo.get_team(round_obj.winner_id)
            winner.current_round_stage = round_obj.stage
            logger.info(
                "Team %s moved back to %s after deleting round %d",
                winner.team_id, round_obj.stage, round_id,
            )
        self.repo.delete_round(round_id)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _check_references(
        self,
        team1_id: Optional[int],
        team2_id: Optional[int],
        judge_id: Optional[int] = None,
    ) -> None:
        for team_id in (team1_id, team2_id):
            if team_id is not None:
                self.repo.get_team(team_id)
        if judge_id is not None:
            self.repo.get_judge(judge_id)

    def _check_eligible(
        self,
        stage: str,
        team_ids: list[Optional[int]],
        exclude_round_id: Optional[int] = None,
    ) -> None:
        wanted = [team_id for team_id in team_ids if team_id is not None]
        if not wanted:
            return
        eligible = {
            team.id
            for team in self.eligibility.eligible_teams(stage, exclude_round_id=exclude_round_id)
        }
        ineligible = [team_id for team_id in wanted if team_id not in eligible]
        if ineligible:
            raise ValidationError(f"Team(s) {ineligible} not eligible for {stage}")

    @staticmethod
    def _normalise_location(
        location_mode: str,
        venue: Optional[str],
        meeting_url: Optional[str],
    ) -> tuple[Optional[str], Optional[str]]:
        """Keep only the field the location mode selects."""
        if location_mode == LOCATION_ONLINE:
            return None, meeting_url.strip()
        return venue.strip(), None
