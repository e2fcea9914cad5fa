"""
Progress router.

POST /patients/{patient_id}/activities/{activity_id}/start
POST /patients/{patient_id}/activities/{activity_id}/complete
GET  /patients/{patient_id}/progress
GET  /patients/{patient_id}/modules/{module_id}/progress
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Path
from sqlalchemy.orm import Session

from app.db.base import get_db
from app.schemas.common import ErrorResponse
from app.routers.achievements import granted_to_response
from app.schemas.progress import (
    ActivityAckResponse,
    ActivityStatusResponse,
    CompletionResponse,
    LastActivityResponse,
    ModuleDetailResponse,
    ModuleProgressResponse,
    ModuleSummaryResponse,
    ProgressSummaryResponse,
)
from app.services.progress_aggregator import (
    ModuleSummary,
    complete_activity,
    get_module_detail,
    get_progress_summary,
    start_activity,
)

router = APIRouter(prefix="/patients/{patient_id}", tags=["progress"])


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def _ev(v) -> str:
    """Extract bare string value from a str-enum or plain str."""
    return v.value if hasattr(v, "value") else str(v)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _summary_to_response(m: ModuleSummary) -> ModuleSummaryResponse:
    return ModuleSummaryResponse(
        id=m.id,
        title=m.title,
        order=m.order,
        percentage=m.percentage,
        state=_ev(m.state),
        unlocked=m.unlocked,
        total_activities=m.total_activities,
        completed_activities=m.completed_activities,
    )


# ---------------------------------------------------------------------------
# POST /patients/{patient_id}/activities/{activity_id}/start
# ---------------------------------------------------------------------------

@router.post(
    "/activities/{activity_id}/start",
    response_model=ActivityAckResponse,
    summary="Mark an activity as started",
    responses={
        403: {"model": ErrorResponse, "description": "The activity's module is still locked."},
        404: {"model": ErrorResponse, "description": "Unknown patient or activity."},
    },
)
def start(
    patient_id: int = Path(ge=1),
    activity_id: int = Path(ge=1),
    db: Session = Depends(get_db),
):
    """
    Move the activity to `in_progress`. Activities already in progress or
    completed are left untouched (states only move forward).
    """
    ack = start_activity(db=db, patient_id=patient_id, activity_id=activity_id)
    return ActivityAckResponse(
        activity_id=ack.activity_id,
        module_id=ack.module_id,
        state=_ev(ack.state),
        started_at=_iso(ack.started_at),
    )


# ---------------------------------------------------------------------------
# POST /patients/{patient_id}/activities/{activity_id}/complete
# ---------------------------------------------------------------------------

@router.post(
    "/activities/{activity_id}/complete",
    response_model=CompletionResponse,
    summary="Complete an activity and collect new achievements",
    responses={
        403: {"model": ErrorResponse, "description": "The activity's module is still locked."},
        404: {"model": ErrorResponse, "description": "Unknown patient or activity."},
    },
)
def complete(
    patient_id: int = Path(ge=1),
    activity_id: int = Path(ge=1),
    db: Session = Depends(get_db),
):
    """
    Complete the activity, recompute its module and evaluate the achievement
    rules, all in a single transaction.

    `new_achievements` lists only what this call granted. Repeating the call
    is harmless: nothing changes and the list comes back empty.
    """
    result = complete_activity(db=db, patient_id=patient_id, activity_id=activity_id)
    mp = result.module_progress
    return CompletionResponse(
        activity_id=result.activity_id,
        module_progress=ModuleProgressResponse(
            module_id=mp.module_id,
            percentage=mp.percentage,
            state=_ev(mp.state),
            started_at=_iso(mp.started_at),
            completed_at=_iso(mp.completed_at),
        ),
        new_achievements=[granted_to_response(g) for g in result.new_achievements],
        unlocked_module_id=result.unlocked_module_id,
    )


# ---------------------------------------------------------------------------
# GET /patients/{patient_id}/progress
# ---------------------------------------------------------------------------

@router.get(
    "/progress",
    response_model=ProgressSummaryResponse,
    summary="Program progress summary",
    responses={404: {"model": ErrorResponse, "description": "Unknown patient."}},
)
def progress_summary(
    patient_id: int = Path(ge=1),
    db: Session = Depends(get_db),
):
    """Every module in program order with its percentage, state and lock flag."""
    summary = get_progress_summary(db=db, patient_id=patient_id)
    last = summary.last_activity
    return ProgressSummaryResponse(
        patient_id=summary.patient_id,
        modules=[_summary_to_response(m) for m in summary.modules],
        overall_percentage=summary.overall_percentage,
        activities_completed=summary.activities_completed,
        total_activities=summary.total_activities,
        last_activity=LastActivityResponse(
            activity_id=last.activity_id,
            title=last.title,
            module_title=last.module_title,
            completed_at=_iso(last.completed_at),
        ) if last else None,
    )


# ---------------------------------------------------------------------------
# GET /patients/{patient_id}/modules/{module_id}/progress
# ---------------------------------------------------------------------------

@router.get(
    "/modules/{module_id}/progress",
    response_model=ModuleDetailResponse,
    summary="Progress of one module, activity by activity",
    responses={404: {"model": ErrorResponse, "description": "Unknown patient or module."}},
)
def module_progress(
    patient_id: int = Path(ge=1),
    module_id: int = Path(ge=1),
    db: Session = Depends(get_db),
):
    detail = get_module_detail(db=db, patient_id=patient_id, module_id=module_id)
    return ModuleDetailResponse(
        module=_summary_to_response(detail.module),
        activities=[
            ActivityStatusResponse(
                id=a.id,
                title=a.title,
                order=a.order,
                duration_minutes=a.duration_minutes,
                state=_ev(a.state),
                started_at=_iso(a.started_at),
                completed_at=_iso(a.completed_at),
            )
            for a in detail.activities
        ],
    )
