"""
Oral-round scoring.

- sheets: validating and storing judges' per-criterion score sheets
- aggregator: combining a team's sheets into round marks
"""

from mootbracket.scoring.aggregator import RoundMarks, ScoreAggregator, TeamMarks, combine_sheets
from mootbracket.scoring.sheets import ScoreSheetService, validate_criterion_points

__all__ = [
    "RoundMarks",
    "ScoreAggregator",
    "ScoreSheetService",
    "TeamMarks",
    "combine_sheets",
    "validate_criterion_points",
]
