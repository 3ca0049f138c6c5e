"""
Round lifecycle.

    scheduled -> ongoing -> evaluating -> decided

Nothing here is persisted. A round's status is a pure function of
(now, scheduled_at, duration, winner, marks_present), recomputed on every
read, so there is no stored status to drift out of date and no timer to
advance it:

- decided:    a winner is recorded (terminal)
- evaluating: marks have started arriving, or the contest window is over
- ongoing:    scheduled_at <= now < scheduled_at + duration
- scheduled:  otherwise (before the window, no marks)

"now" comes from an injected clock so the machine is deterministic under
test. The only way into 'decided' is WinnerSelector.select_winner().
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from mootbracket.db.models import Round
from mootbracket.errors import AlreadyDecidedError, MarksIncompleteError
from mootbracket.round_statuses import DECIDED, EVALUATING, ONGOING, SCHEDULED, status_label
from mootbracket.scoring.aggregator import ScoreAggregator

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def system_clock() -> datetime:
    """Wall-clock time, naive, in the tournament's local time like scheduled_at."""
    return datetime.now()


def contest_window(scheduled_at: datetime, duration_minutes: int) -> tuple[datetime, datetime]:
    """Half-open [start, end) interval during which the round is being argued."""
    return scheduled_at, scheduled_at + timedelta(minutes=duration_minutes)


def derive_status(
    now: datetime,
    scheduled_at: datetime,
    duration_minutes: int,
    winner_id: Optional[int],
    marks_present: bool,
) -> str:
    """
    Derive a round's lifecycle status.

    Examples:
        >>> start = datetime(2025, 9, 25, 11, 30)
        >>> derive_status(start - timedelta(hours=1), start, 60, None, False)
        'scheduled'
        >>> derive_status(start + timedelta(minutes=10), start, 60, None, False)
        'ongoing'
        >>> derive_status(start + timedelta(minutes=60), start, 60, None, False)
        'evaluating'
        >>> derive_status(start, start, 60, 7, True)
        'decided'
    """
    if winner_id is not None:
        return DECIDED
    if marks_present:
        return EVALUATING

    window_start, window_end = contest_window(scheduled_at, duration_minutes)
    if now >= window_end:
        return EVALUATING
    if now >= window_start:
        return ONGOING
    return SCHEDULED


@dataclass(frozen=True)
class RoundState:
    """Snapshot of a round's derived lifecycle state."""
    round_id: int
    status: str
    label: str
    window_start: datetime
    window_end: datetime
    marks_complete: bool

    @property
    def can_select_winner(self) -> bool:
        return self.status == EVALUATING and self.marks_complete


class RoundLifecycle:
    """
    Derives round statuses and enforces the guard for choosing a winner.

    Usage:
        lifecycle = RoundLifecycle(ScoreAggregator(repo), clock=system_clock)
        if lifecycle.status(round_obj) == "evaluating":
            ...
    """

    def __init__(self, aggregator: ScoreAggregator, clock: Clock = system_clock):
        self.aggregator = aggregator
        self.clock = clock

    def status(self, round_obj: Round) -> str:
        return derive_status(
            now=self.clock(),
            scheduled_at=round_obj.scheduled_at,
            duration_minutes=round_obj.duration_minutes,
            winner_id=round_obj.winner_id,
            marks_present=self.aggregator.marks_present(round_obj),
        )

    def describe(self, round_obj: Round) -> RoundState:
        status = self.status(round_obj)
        window_start, window_end = contest_window(round_obj.scheduled_at, round_obj.duration_minutes)
        winner_code = round_obj.winner.team_id if round_obj.winner is not None else None
        return RoundState(
            round_id=round_obj.id,
            status=status,
            label=status_label(status, winner_code),
            window_start=window_start,
            window_end=window_end,
            marks_complete=self.aggregator.has_complete_marks(round_obj),
        )

    def ensure_winner_selectable(self, round_obj: Round) -> None:
        """
        Guard for recording a winner.

        Raises:
            AlreadyDecidedError: the round is terminal
            MarksIncompleteError: a team has no aggregate yet
        """
        if round_obj.is_decided:
            raise AlreadyDecidedError(round_obj.id, round_obj.winner_id)
        missing = self.aggregator.missing_team_ids(round_obj)
        if missing:
            raise MarksIncompleteError(round_obj.id, missing)

    def rounds_missing_marks(self, judge_id: int) -> list[Round]:
        """
        Evaluating rounds assigned to a judge where that judge has not yet
        submitted a sheet for one or both teams.
        """
        repo = self.aggregator.repo
        missing = []
        for round_obj in repo.list_rounds(judge_id=judge_id):
            if self.status(round_obj) != EVALUATING:
                continue
            for team_id in round_obj.team_ids:
                if team_id is None:
                    continue
                if not repo.get_score_sheets(round_obj.id, team_id=team_id, judge_id=judge_id):
                    missing.append(round_obj)
                    break
        if missing:
            logger.debug("Judge %d has %d round(s) missing marks", judge_id, len(missing))
        return missing
