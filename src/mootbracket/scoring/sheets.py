"""
Score sheet submission.

A judge submits one sheet per team per round. Resubmitting replaces the
judge's earlier sheet for that team until the round is decided; after that
every submission is rejected.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional

from mootbracket.db.models import CRITERION_NAMES, SCORE_CRITERIA, ScoreSheet
from mootbracket.db.repository import BracketRepository
from mootbracket.errors import AlreadyDecidedError, InvalidTeamError, ValidationError

logger = logging.getLogger(__name__)


def validate_criterion_points(points: Mapping[str, Any]) -> dict[str, Decimal]:
    """
    Check a criterion -> points mapping against the marking criteria.

    Every criterion must be present, unknown names are rejected, and each
    value must be a number in [0, max_points] with at most two decimals.

    Returns:
        Criterion marks as Decimals, in sheet order

    Raises:
        ValidationError: describing every problem found
    """
    problems = []

    unknown = sorted(set(points) - set(CRITERION_NAMES))
    if unknown:
        problems.append(f"Unknown criteria: {', '.join(unknown)}")

    cleaned: dict[str, Decimal] = {}
    for criterion in SCORE_CRITERIA:
        raw = points.get(criterion.name)
        if raw is None or isinstance(raw, bool):
            problems.append(f"{criterion.name}: missing")
            continue
        try:
            value = Decimal(str(raw))
        except InvalidOperation:
            problems.append(f"{criterion.name}: not a number ({raw!r})")
            continue
        if not value.is_finite():
            problems.append(f"{criterion.name}: not a number ({raw!r})")
            continue
        if value < 0 or value > criterion.max_points:
            problems.append(
                f"{criterion.name}: {value} out of range (0-{criterion.max_points})"
            )
            continue
        if value != value.quantize(Decimal("0.01")):
            problems.append(f"{criterion.name}: at most two decimal places allowed")
            continue
        cleaned[criterion.name] = value

    if problems:
        raise ValidationError("Invalid score sheet: " + "; ".join(problems))
    return cleaned


class ScoreSheetService:
    """Validates and stores judges' score sheets."""

    def __init__(self, repo: BracketRepository):
        self.repo = repo

    def submit(
        self,
        round_id: int,
        team_id: int,
        judge_id: int,
        points: Mapping[str, Any],
        comments: Optional[str] = None,
    ) -> ScoreSheet:
        """
        Create or replace a judge's sheet for one team in one round.

        The round is read from the database (row-locked where supported)
        before the write and again after it, so a sheet never lands on a
        decided round.

        Raises:
            NotFoundError: round or judge does not exist
            AlreadyDecidedError: the round already has a winner
            InvalidTeamError: the team is not playing in the round
            ValidationError: criterion marks are missing or out of range
        """
        round_obj = self.repo.lock_round(round_id)
        if round_obj.is_decided:
            raise AlreadyDecidedError(round_id, round_obj.winner_id)
        if not round_obj.has_team(team_id):
            raise InvalidTeamError(round_id, team_id)
        self.repo.get_judge(judge_id)

        cleaned = validate_criterion_points(points)
        comments = comments.strip() if comments else None

        sheet = self.repo.find_score_sheet(round_id, team_id, judge_id)
        created = sheet is None
        if created:
            sheet = ScoreSheet(round_id=round_id, team_id=team_id, judge_id=judge_id)
        for name, value in cleaned.items():
            setattr(sheet, name, value)
        sheet.comments = comments or None

        self.repo.save_score_sheet(sheet)

        # Re-check with the sheet written; the caller's rollback discards it
        round_obj = self.repo.lock_round(round_id)
        if round_obj.is_decided:
            logger.warning(
                "Round %d was decided while a sheet for team %d was being stored",
                round_id, team_id,
            )
            raise AlreadyDecidedError(round_id, round_obj.winner_id)

        logger.info(
            "%s score sheet: round %d team %d judge %d total %s",
            "Stored" if created else "Replaced",
            round_id, team_id, judge_id, sheet.total,
        )
        return sheet
