"""
Score aggregation for oral rounds.

Turns the stored score sheets for a (round, team) into one set of marks.

Combination rule (fixed, never chosen at call time):
- One judge: that judge's sheet, unchanged.
- Several judges: the arithmetic mean of the judges' sheets, per criterion
  and for the total, each quantised to 2 decimal places (ROUND_HALF_UP).
  The total is the mean of the judges' totals, so with several judges it can
  differ from the sum of the rounded criterion means by a cent.

No sheets is NOT zero: aggregate() raises NotFoundError so callers can tell
"no marks submitted" apart from "marks submitted, all zero".

Everything here is read-only and recomputed on each call; submission order
of sheets does not affect the result.
"""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Sequence

from mootbracket.db.models import CRITERION_NAMES, Round, ScoreSheet
from mootbracket.db.repository import BracketRepository
from mootbracket.errors import NotFoundError

TWO_PLACES = Decimal("0.01")


@dataclass
class TeamMarks:
    """Aggregated marks for one team in one round."""
    round_id: int
    team_id: int
    team_code: str
    judge_count: int
    criteria: dict[str, Decimal]
    total: Decimal
    comments: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "round_id": self.round_id,
            "team_id": self.team_code,
            "team_pk": self.team_id,
            "judge_count": self.judge_count,
            **{name: float(points) for name, points in self.criteria.items()},
            "total": float(self.total),
            "overall_comments": "\n\n".join(self.comments) or None,
        }


@dataclass
class RoundMarks:
    """Both teams' aggregated marks for a round (either side may be missing)."""
    round_id: int
    team1: Optional[TeamMarks]
    team2: Optional[TeamMarks]

    @property
    def is_complete(self) -> bool:
        return self.team1 is not None and self.team2 is not None

    @property
    def leading_team_id(self) -> Optional[int]:
        """
        Team with the higher total, or None on a tie or incomplete marks.

        Advisory only: the winner is whoever the administrator selects.
        """
        if not self.is_complete:
            return None
        if self.team1.total > self.team2.total:
            return self.team1.team_id
        if self.team2.total > self.team1.total:
            return self.team2.team_id
        return None


def _mean(values: Sequence[Decimal]) -> Decimal:
    return (sum(values, Decimal("0")) / len(values)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def combine_sheets(sheets: Sequence[ScoreSheet]) -> tuple[dict[str, Decimal], Decimal]:
    """
    Apply the combination rule to one team's sheets.

    Returns:
        Tuple of (per-criterion marks, total)

    Raises:
        ValueError: if ``sheets`` is empty
    """
    if not sheets:
        raise ValueError("Cannot combine an empty list of score sheets")

    if len(sheets) == 1:
        return sheets[0].criterion_points(), sheets[0].total

    per_sheet = [sheet.criterion_points() for sheet in sheets]
    criteria = {name: _mean([points[name] for points in per_sheet]) for name in CRITERION_NAMES}
    total = _mean([sheet.total for sheet in sheets])
    return criteria, total


class ScoreAggregator:
    """
    Computes team marks for rounds from stored score sheets.

    Usage:
        aggregator = ScoreAggregator(repo)
        marks = aggregator.aggregate(round_id=4, team_id=12)
        print(marks.total)
    """

    def __init__(self, repo: BracketRepository):
        self.repo = repo

    def aggregate(self, round_id: int, team_id: int) -> TeamMarks:
        """
        Aggregate one team's marks in a round.

        Raises:
            NotFoundError: if the round does not exist or the team has no
                           score sheet in it
        """
        self.repo.get_round(round_id)
        marks = self.find_marks(round_id, team_id)
        if marks is None:
            raise NotFoundError("ScoreSheet", f"round={round_id} team={team_id}")
        return marks

    def find_marks(self, round_id: int, team_id: Optional[int]) -> Optional[TeamMarks]:
        """Like aggregate(), but returns None when no sheet exists."""
        if team_id is None:
            return None
        sheets = self.repo.get_score_sheets(round_id, team_id=team_id)
        if not sheets:
            return None

        criteria, total = combine_sheets(sheets)
        return TeamMarks(
            round_id=round_id,
            team_id=team_id,
            team_code=sheets[0].team.team_id,
            judge_count=len({sheet.judge_id for sheet in sheets}),
            criteria=criteria,
            total=total,
            comments=[sheet.comments for sheet in sheets if sheet.comments],
        )

    def round_marks(self, round_obj: Round) -> RoundMarks:
        return RoundMarks(
            round_id=round_obj.id,
            team1=self.find_marks(round_obj.id, round_obj.team1_id),
            team2=self.find_marks(round_obj.id, round_obj.team2_id),
        )

    def missing_team_ids(self, round_obj: Round) -> list[Optional[int]]:
        """Teams (None for an unpaired slot) with no score sheet yet."""
        missing = []
        for team_id in round_obj.team_ids:
            if team_id is None or not self.repo.get_score_sheets(round_obj.id, team_id=team_id):
                missing.append(team_id)
        return missing

    def has_complete_marks(self, round_obj: Round) -> bool:
        """Both teams paired and each has at least one score sheet."""
        return not self.missing_team_ids(round_obj)

    def marks_present(self, round_obj: Round) -> bool:
        """Any score sheet at all has arrived for the round."""
        return bool(self.repo.get_score_sheets(round_obj.id))
