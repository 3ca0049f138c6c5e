"""Shared round-status definitions and helpers.

This module is the single source of truth for status names and groups that
are reused across the lifecycle derivation, API handlers and scripts.
Statuses are never stored; see bracket.lifecycle.derive_status().
"""

from __future__ import annotations

from typing import Iterable, Optional

SCHEDULED = "scheduled"
ONGOING = "ongoing"
EVALUATING = "evaluating"
DECIDED = "decided"

# Lifecycle order. There is no transition out of DECIDED.
ALL_ROUND_STATUSES: tuple[str, ...] = (SCHEDULED, ONGOING, EVALUATING, DECIDED)

ROUND_STATUS_GROUPS: dict[str, tuple[str, ...]] = {
    # Contest has not finished yet.
    "pending": (SCHEDULED, ONGOING),
    # Judges should be submitting marks / an admin should pick a winner.
    "awaiting_decision": (EVALUATING,),
    # Winner recorded.
    "terminal": (DECIDED,),
    "all": ALL_ROUND_STATUSES,
}


def get_status_group(group_name: str) -> tuple[str, ...]:
    """Return a named status group, raising KeyError for unknown names."""
    return ROUND_STATUS_GROUPS[group_name]


def normalize_status_filter(
    raw_statuses: Iterable[str] | None,
    *,
    default_group: str = "all",
) -> list[str]:
    """Normalize requested statuses against known values.

    - If no statuses are provided, returns the statuses from ``default_group``.
    - Unknown statuses are ignored.
    - Order is preserved and duplicates are removed.
    """
    if raw_statuses is None:
        return list(get_status_group(default_group))

    seen: set[str] = set()
    normalized: list[str] = []

    for raw in raw_statuses:
        status = raw.strip().lower()
        if not status or status in seen or status not in ALL_ROUND_STATUSES:
            continue
        seen.add(status)
        normalized.append(status)

    if normalized:
        return normalized

    return list(get_status_group(default_group))


def status_label(status: str, winner_code: Optional[str] = None) -> str:
    """Dashboard label for a status ('upcoming', ..., 'Winner: JQ-001')."""
    if status == DECIDED:
        return f"Winner: {winner_code}" if winner_code else "Winner decided"
    if status == SCHEDULED:
        return "upcoming"
    return status
