"""
Round lifecycle and bracket progression engine.

- lifecycle: derived round statuses and the winner-selection guard
- eligibility: which teams may be paired into a stage
- winner: atomic winner commit
- rounds: validated round create / update / delete
"""

from mootbracket.bracket.eligibility import EligibilityResolver
from mootbracket.bracket.lifecycle import (
    Clock,
    RoundLifecycle,
    RoundState,
    derive_status,
    system_clock,
)
from mootbracket.bracket.rounds import RoundService
from mootbracket.bracket.winner import WinnerSelector

__all__ = [
    "Clock",
    "EligibilityResolver",
    "RoundLifecycle",
    "RoundService",
    "RoundState",
    "WinnerSelector",
    "derive_status",
    "system_clock",
]
