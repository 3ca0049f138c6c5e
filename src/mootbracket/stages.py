"""
Bracket stage ordering.

Stages are one level of the single-elimination bracket and are totally
ordered. The order is configuration (``settings.stage_order``), so nothing
below knows about specific stage names:

    Prelims -> Quarter-Finals -> Semi-Finals -> Final

Winners of a round at stage N are paired into rounds at stage N+1.

These helpers are used by:
- Eligibility resolution (finding the prior stage for a target stage)
- Winner commits (advancing the winner's current stage)
- Round validation (rejecting unknown stage names)
"""

from typing import Iterable, Optional, Sequence

from mootbracket.config import settings


class StageOrder:
    """
    An ordered list of stage identifiers.

    Examples:
        >>> order = StageOrder(["Prelims", "Quarter-Finals", "Semi-Finals", "Final"])
        >>> order.next_stage("Semi-Finals")
        'Final'
        >>> order.previous_stage("Prelims") is None
        True
    """

    def __init__(self, stages: Iterable[str]):
        self._stages: tuple[str, ...] = tuple(stages)
        if not self._stages:
            raise ValueError("A bracket needs at least one stage")
        if len(set(self._stages)) != len(self._stages):
            raise ValueError(f"Duplicate stage in order: {self._stages}")
        self._index = {name: idx for idx, name in enumerate(self._stages)}

    @classmethod
    def from_settings(cls) -> "StageOrder":
        return cls(settings.stage_order)

    @property
    def stages(self) -> tuple[str, ...]:
        return self._stages

    @property
    def first(self) -> str:
        return self._stages[0]

    def __contains__(self, stage: object) -> bool:
        return stage in self._index

    def __iter__(self):
        return iter(self._stages)

    def __len__(self) -> int:
        return len(self._stages)

    def index(self, stage: str) -> int:
        """Position of a stage, raising KeyError for unknown names."""
        try:
            return self._index[stage]
        except KeyError as exc:
            raise KeyError(f"Unknown stage: {stage}") from exc

    def is_first(self, stage: str) -> bool:
        return self.index(stage) == 0

    def next_stage(self, stage: str) -> Optional[str]:
        """
        Get the next stage in bracket progression.

        Returns:
            Next stage name, or None if this is the last stage
            (or the stage is unknown)
        """
        idx = self._index.get(stage)
        if idx is None or idx >= len(self._stages) - 1:
            return None
        return self._stages[idx + 1]

    def previous_stage(self, stage: str) -> Optional[str]:
        """
        Get the stage immediately preceding ``stage``.

        Returns:
            Previous stage name, or None if this is the first stage
            (or the stage is unknown)
        """
        idx = self._index.get(stage)
        if idx is None or idx == 0:
            return None
        return self._stages[idx - 1]

    def later_stages(self, stage: str) -> tuple[str, ...]:
        """All stages strictly after ``stage``."""
        return self._stages[self.index(stage) + 1:]

    def sort_key(self, stage: str) -> int:
        """Ordering key; unknown stages sort after every known one."""
        return self._index.get(stage, len(self._stages))


def validate_stage_names(order: StageOrder, names: Sequence[str]) -> list[str]:
    """
    Check a list of stage names against the configured order.

    Returns:
        List of warning messages (empty if all names are known)
    """
    return [f"Unknown stage: {name}" for name in names if name not in order]
