import logging
from collections import Counter
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from mootbracket.bracket.eligibility import EligibilityResolver
from mootbracket.bracket.lifecycle import Clock, RoundLifecycle, system_clock
from mootbracket.bracket.rounds import RoundService
from mootbracket.bracket.winner import WinnerSelector
from mootbracket.config import settings
from mootbracket.db.models import MAX_TOTAL_POINTS, Judge, Round, Team
from mootbracket.db.repository import BracketRepository
from mootbracket.db.session import get_db
from mootbracket.errors import BracketError, InconsistentBracketError, ValidationError
from mootbracket.round_statuses import (
    ALL_ROUND_STATUSES,
    ROUND_STATUS_GROUPS,
    normalize_status_filter,
)
from mootbracket.scoring.aggregator import ScoreAggregator
from mootbracket.scoring.sheets import ScoreSheetService
from mootbracket.stages import StageOrder
from mootbracket.web.schemas import RoundCreate, RoundUpdate, ScoreSheetSubmit, WinnerSelect

logger = logging.getLogger(__name__)

app = FastAPI(title="Moot Court Bracket")

ERROR_STATUS_CODES = {
    "NOT_FOUND": 404,
    "VALIDATION_ERROR": 422,
    "INVALID_TEAM": 400,
    "MARKS_INCOMPLETE": 409,
    "ALREADY_DECIDED": 409,
    "INCONSISTENT_BRACKET": 500,
}


@app.exception_handler(BracketError)
async def bracket_error_handler(request: Request, exc: BracketError):
    """Map engine errors to JSON responses with a stable error code."""
    status_code = ERROR_STATUS_CODES.get(exc.code, 500)
    if isinstance(exc, InconsistentBracketError):
        logger.error("Bracket inconsistency on %s: %s", request.url.path, exc.message)
    return JSONResponse(
        {"error": exc.code, "detail": exc.message},
        status_code=status_code,
    )


def get_clock() -> Clock:
    return system_clock


def get_stage_order() -> StageOrder:
    return StageOrder.from_settings()


# =============================================================================
# Serialization
# =============================================================================

def _serialize_team(team: Optional[Team]) -> Optional[dict]:
    if team is None:
        return None
    return {
        "id": team.id,
        "team_id": team.team_id,
        "team_representative_name": team.representative_name,
        "institution_name": team.institution_name,
        "current_round": team.current_round_stage,
    }


def _serialize_judge(judge: Optional[Judge]) -> Optional[dict]:
    if judge is None:
        return None
    return {"id": judge.id, "name": judge.name, "email": judge.email}


def _serialize_round(
    round_obj: Round,
    lifecycle: RoundLifecycle,
    include_marks: bool = True,
) -> dict:
    """
    Serialize a Round ORM object to the dashboard's JSON shape.

    Status is derived at serialization time from the injected clock.
    """
    state = lifecycle.describe(round_obj)
    payload = {
        "id": round_obj.id,
        "round_name": round_obj.stage,
        "team1": round_obj.team1_id,
        "team2": round_obj.team2_id,
        "team1_details": _serialize_team(round_obj.team1),
        "team2_details": _serialize_team(round_obj.team2),
        "winner": round_obj.winner_id,
        "winner_details": _serialize_team(round_obj.winner),
        "date": round_obj.scheduled_at.date().isoformat(),
        "time": round_obj.scheduled_at.strftime("%H:%M"),
        "scheduled_at": round_obj.scheduled_at.isoformat(),
        "duration_in_minutes": round_obj.duration_minutes,
        "round_type": round_obj.location_mode,
        "venue": round_obj.venue,
        "meet_url": round_obj.meeting_url,
        "location": round_obj.location,
        "jury": _serialize_judge(round_obj.judge),
        "status": state.label,
        "lifecycle_status": state.status,
        "can_select_winner": state.can_select_winner,
        "decided_at": round_obj.decided_at.isoformat() if round_obj.decided_at else None,
    }
    if include_marks:
        payload["marks"] = _serialize_marks(round_obj, lifecycle.aggregator)
    return payload


def _serialize_marks(round_obj: Round, aggregator: ScoreAggregator) -> dict:
    marks = aggregator.round_marks(round_obj)
    leading = marks.leading_team_id
    return {
        "team1": marks.team1.to_dict() if marks.team1 else None,
        "team2": marks.team2.to_dict() if marks.team2 else None,
        "complete": marks.is_complete,
        "leading_team": leading,
        "max_total": float(MAX_TOTAL_POINTS),
    }


def _lifecycle(db: Session, clock: Clock) -> RoundLifecycle:
    return RoundLifecycle(ScoreAggregator(BracketRepository(db)), clock)


# =============================================================================
# Admin: rounds
# =============================================================================

@app.get("/api/admin/rounds/")
async def api_list_rounds(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    stages: StageOrder = Depends(get_stage_order),
    stage: Optional[str] = Query(None, description="Exact stage name"),
    search: Optional[str] = Query(None, description="Stage or team code (partial match)"),
    status: Optional[str] = Query(None, description="Comma-separated statuses: scheduled,ongoing,evaluating,decided"),
    group: str = Query("all", description="Status group: pending, awaiting_decision, terminal, all"),
):
    """
    All rounds in bracket order, then by schedule.

    ``status`` wins over ``group``; the group is the fallback when no
    known status is given.
    """
    if group not in ROUND_STATUS_GROUPS:
        raise ValidationError(
            f"Unknown status group: {group} (expected one of {', '.join(ROUND_STATUS_GROUPS)})"
        )
    lifecycle = _lifecycle(db, clock)
    rounds = lifecycle.aggregator.repo.list_rounds(stage=stage, search=search)

    raw_statuses = status.split(",") if status else None
    wanted = set(normalize_status_filter(raw_statuses, default_group=group))

    rounds.sort(key=lambda r: stages.sort_key(r.stage))
    payload = []
    for round_obj in rounds:
        item = _serialize_round(round_obj, lifecycle)
        if item["lifecycle_status"] in wanted:
            payload.append(item)
    return JSONResponse(payload)


@app.post("/api/admin/rounds/")
async def api_create_round(
    body: RoundCreate,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    stages: StageOrder = Depends(get_stage_order),
):
    service = RoundService(BracketRepository(db), stages)
    round_obj = service.create_round(
        stage=body.round_name,
        team1_id=body.team1,
        team2_id=body.team2,
        scheduled_at=body.scheduled_at(),
        duration_minutes=body.duration_in_minutes,
        location_mode=body.round_type,
        venue=body.venue,
        meeting_url=body.meet_url,
        judge_id=body.jury_id,
    )
    db.commit()
    return JSONResponse(_serialize_round(round_obj, _lifecycle(db, clock)), status_code=201)


@app.get("/api/admin/rounds/eligible_teams/")
async def api_eligible_teams(
    round_name: str = Query(..., description="Target stage name"),
    exclude_round_id: Optional[int] = Query(None, description="Round being edited"),
    db: Session = Depends(get_db),
    stages: StageOrder = Depends(get_stage_order),
):
    """
    Teams that may be paired into ``round_name``.

    A corrupt prior stage is logged and reported as no eligible teams, so
    the dashboard can never offer a team that should not advance.
    """
    resolver = EligibilityResolver(BracketRepository(db), stages)
    try:
        teams = resolver.eligible_teams(round_name, exclude_round_id=exclude_round_id)
    except InconsistentBracketError as exc:
        logger.error("Eligibility for %s unavailable: %s", round_name, exc.message)
        return JSONResponse([])
    return JSONResponse([_serialize_team(team) for team in teams])


@app.get("/api/admin/rounds/{round_id}/")
async def api_get_round(
    round_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    lifecycle = _lifecycle(db, clock)
    round_obj = lifecycle.aggregator.repo.get_round(round_id)
    return JSONResponse(_serialize_round(round_obj, lifecycle))


@app.patch("/api/admin/rounds/{round_id}/")
async def api_update_round(
    round_id: int,
    body: RoundUpdate,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    stages: StageOrder = Depends(get_stage_order),
):
    repo = BracketRepository(db)
    current = repo.get_round(round_id)
    patch = body.to_patch(current.scheduled_at)
    if not patch:
        raise ValidationError("No fields to update")

    round_obj = RoundService(repo, stages).update_round(round_id, patch)
    db.commit()
    return JSONResponse(_serialize_round(round_obj, _lifecycle(db, clock)))


@app.delete("/api/admin/rounds/{round_id}/")
async def api_delete_round(
    round_id: int,
    db: Session = Depends(get_db),
    stages: StageOrder = Depends(get_stage_order),
):
    RoundService(BracketRepository(db), stages).delete_round(round_id)
    db.commit()
    return JSONResponse({"deleted": round_id})


@app.post("/api/admin/rounds/{round_id}/set_winner/")
async def api_set_winner(
    round_id: int,
    body: WinnerSelect,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    stages: StageOrder = Depends(get_stage_order),
):
    """Commit the administrator's chosen winner for a round."""
    selector = WinnerSelector(BracketRepository(db), stages, clock=clock)
    round_obj = selector.select_winner(round_id, body.winner_id)
    db.commit()
    return JSONResponse(_serialize_round(round_obj, selector.lifecycle))


@app.get("/api/admin/rounds/{round_id}/marks/")
async def api_round_marks(
    round_id: int,
    db: Session = Depends(get_db),
):
    aggregator = ScoreAggregator(BracketRepository(db))
    round_obj = aggregator.repo.get_round(round_id)
    return JSONResponse(_serialize_marks(round_obj, aggregator))


# =============================================================================
# Jury: score sheets
# =============================================================================

@app.post("/api/oral-marks/")
async def api_submit_marks(
    body: ScoreSheetSubmit,
    db: Session = Depends(get_db),
):
    """Submit, or resubmit, a judge's score sheet for one team."""
    sheet = ScoreSheetService(BracketRepository(db)).submit(
        round_id=body.round_id,
        team_id=body.team_id,
        judge_id=body.jury_id,
        points=body.criterion_points(),
        comments=body.overall_comments,
    )
    db.commit()
    return JSONResponse(_serialize_sheet(sheet), status_code=201)


@app.get("/api/oral-marks/")
async def api_list_marks(
    round_id: int = Query(..., description="Round ID"),
    team_id: Optional[int] = Query(None, description="Team ID"),
    jury_id: Optional[int] = Query(None, description="Judge ID"),
    db: Session = Depends(get_db),
):
    repo = BracketRepository(db)
    repo.get_round(round_id)
    sheets = repo.get_score_sheets(round_id, team_id=team_id, judge_id=jury_id)
    return JSONResponse([_serialize_sheet(sheet) for sheet in sheets])


def _serialize_sheet(sheet) -> dict:
    return {
        "id": sheet.id,
        "round_id": sheet.round_id,
        "team": sheet.team_id,
        "team_id": sheet.team.team_id if sheet.team else None,
        "jury_id": sheet.judge_id,
        **{name: float(points) for name, points in sheet.criterion_points().items()},
        "total": float(sheet.total),
        "overall_comments": sheet.comments,
    }


@app.get("/api/jury/{judge_id}/rounds/")
async def api_jury_rounds(
    judge_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    lifecycle = _lifecycle(db, clock)
    repo = lifecycle.aggregator.repo
    repo.get_judge(judge_id)
    rounds = repo.list_rounds(judge_id=judge_id)
    return JSONResponse([_serialize_round(r, lifecycle, include_marks=False) for r in rounds])


@app.get("/api/jury/{judge_id}/missing_marks/")
async def api_jury_missing_marks(
    judge_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Rounds past their window where this judge still owes a score sheet."""
    lifecycle = _lifecycle(db, clock)
    lifecycle.aggregator.repo.get_judge(judge_id)
    rounds = lifecycle.rounds_missing_marks(judge_id)
    return JSONResponse([_serialize_round(r, lifecycle, include_marks=False) for r in rounds])


# =============================================================================
# Overview
# =============================================================================

@app.get("/api/overview/")
async def api_overview(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    stages: StageOrder = Depends(get_stage_order),
):
    lifecycle = _lifecycle(db, clock)
    repo = lifecycle.aggregator.repo
    rounds = repo.list_rounds()

    by_status = Counter(lifecycle.status(r) for r in rounds)
    by_stage = Counter(r.stage for r in rounds)

    return JSONResponse({
        "total_teams": repo.count_teams(),
        "total_rounds": len(rounds),
        "rounds_by_status": {status: by_status.get(status, 0) for status in ALL_ROUND_STATUSES},
        "rounds_by_stage": {stage: by_stage.get(stage, 0) for stage in stages},
        "stage_order": list(stages),
    })


def run() -> None:
    """Console entry point: serve the API with uvicorn."""
    import uvicorn

    logging.basicConfig(level=settings.log_level, format=settings.log_format)
    uvicorn.run(
        "mootbracket.web.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )
