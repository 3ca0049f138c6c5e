"""Request bodies for the dashboard JSON API.

Field names follow the dashboard's wire format (round_name, round_type,
meet_url, jury_id, ...); the route handlers translate them into the
engine's column names.
"""

import datetime as dt
from decimal import Decimal
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from mootbracket.db.models import CRITERION_NAMES


class RoundCreate(BaseModel):
    round_name: str = Field(..., description="Stage name, e.g. 'Quarter-Finals'")
    team1: Optional[int] = None
    team2: Optional[int] = None
    date: dt.date
    time: dt.time
    duration_in_minutes: Optional[int] = None
    round_type: Literal["offline", "online"] = "offline"
    venue: Optional[str] = None
    meet_url: Optional[str] = None
    jury_id: Optional[int] = None

    def scheduled_at(self) -> dt.datetime:
        return dt.datetime.combine(self.date, self.time)


class RoundUpdate(BaseModel):
    """Partial update. Only fields sent by the client are applied."""

    round_name: Optional[str] = None
    team1: Optional[int] = None
    team2: Optional[int] = None
    winner: Optional[int] = None
    date: Optional[dt.date] = None
    time: Optional[dt.time] = None
    duration_in_minutes: Optional[int] = None
    round_type: Optional[Literal["offline", "online"]] = None
    venue: Optional[str] = None
    meet_url: Optional[str] = None
    jury_id: Optional[int] = None

    def to_patch(self, current_scheduled_at: dt.datetime) -> dict[str, Any]:
        """Translate sent fields into a Round column patch."""
        sent = self.model_dump(exclude_unset=True)
        renames = {
            "round_name": "stage",
            "team1": "team1_id",
            "team2": "team2_id",
            "winner": "winner_id",
            "duration_in_minutes": "duration_minutes",
            "round_type": "location_mode",
            "venue": "venue",
            "meet_url": "meeting_url",
            "jury_id": "judge_id",
        }
        patch = {renames[key]: value for key, value in sent.items() if key in renames}

        if "date" in sent or "time" in sent:
            patch["scheduled_at"] = dt.datetime.combine(
                sent.get("date") or current_scheduled_at.date(),
                sent.get("time") or current_scheduled_at.time(),
            )
        return patch


class WinnerSelect(BaseModel):
    winner_id: int


class ScoreSheetSubmit(BaseModel):
    round_id: int
    team_id: int
    jury_id: int
    knowledge_of_law: Decimal
    application_of_law_to_facts: Decimal
    ingenuity_and_ability_to_answer_questions: Decimal
    persuasiveness: Decimal
    time_management_and_organization: Decimal
    style_poise_courtesy_and_demeanor: Decimal
    language_and_presentation: Decimal
    overall_comments: Optional[str] = None

    def criterion_points(self) -> dict[str, Decimal]:
        return {name: getattr(self, name) for name in CRITERION_NAMES}
