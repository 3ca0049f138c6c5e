"""
Error taxonomy for the bracket engine.

Every error carries a stable ``code`` so the API layer can map it to a
response without string matching. ``InconsistentBracketError`` is the only
one that signals a data-integrity bug rather than a rejected request.
"""

from typing import Optional


class BracketError(Exception):
    """Base exception for round lifecycle and bracket errors."""

    code = "BRACKET_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(BracketError):
    code = "NOT_FOUND"

    def __init__(self, entity: str, key: object):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} {key} not found")


class ValidationError(BracketError):
    """Malformed round or score sheet (duplicate team, missing location, ...)."""

    code = "VALIDATION_ERROR"


class InvalidTeamError(BracketError):
    code = "INVALID_TEAM"

    def __init__(self, round_id: int, team_id: int):
        self.round_id = round_id
        self.team_id = team_id
        super().__init__(f"Team {team_id} is not playing in round {round_id}")


class MarksIncompleteError(BracketError):
    code = "MARKS_INCOMPLETE"

    def __init__(self, round_id: int, missing_team_ids: list[Optional[int]]):
        self.round_id = round_id
        self.missing_team_ids = missing_team_ids
        super().__init__(
            f"Round {round_id} is missing marks for team(s) {missing_team_ids}"
        )


class AlreadyDecidedError(BracketError):
    code = "ALREADY_DECIDED"

    def __init__(self, round_id: int, winner_id: Optional[int]):
        self.round_id = round_id
        self.winner_id = winner_id
        super().__init__(f"Round {round_id} already decided (winner {winner_id})")


class InconsistentBracketError(BracketError):
    code = "INCONSISTENT_BRACKET"

    def __init__(self, message: str, team_ids: Optional[list[int]] = None):
        self.team_ids = team_ids or []
        super().__init__(message)
