"""
Burnout questionnaire router (OLBI).

GET  /burnout/questions                             catalog + answer scale
POST /patients/{patient_id}/burnout-tests           submit and score a test
GET  /patients/{patient_id}/burnout-tests           initial/final results + comparison
GET  /patients/{patient_id}/burnout-tests/status    which tests are done / available
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.orm import Session

from app.db.base import get_db
from app.schemas.common import ErrorResponse
from app.schemas.burnout import (
    BurnoutResultsResponse,
    BurnoutSubmissionResponse,
    BurnoutTestRequest,
    BurnoutTestStatusResponse,
    ComparisonOut,
    InterpretationOut,
    LikertOption,
    QuestionnaireResponse,
    QuestionOut,
    StatusEntryOut,
    StoredResultOut,
)
from app.services.burnout_scorer import (
    INSTRUCTIONS,
    LIKERT_OPTIONS,
    Interpretation,
    ResponseItem,
    StatusEntry,
    StoredResult,
    get_results,
    get_test_status,
    list_questions,
    submit_burnout_test,
)

router = APIRouter(tags=["burnout"])


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def _ev(v) -> str:
    return v.value if hasattr(v, "value") else str(v)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _interpretation_out(i: Interpretation) -> InterpretationOut:
    return InterpretationOut(
        level=_ev(i.level),
        message=i.message,
        recommendation=i.recommendation,
        details=i.details,
    )


def _stored_out(r: StoredResult) -> StoredResultOut:
    return StoredResultOut(
        result_id=r.result_id,
        test_type=_ev(r.test_type),
        taken_at=_iso(r.taken_at),
        exhaustion_avg=float(r.exhaustion_avg),
        disengagement_avg=float(r.disengagement_avg),
        overall_score=float(r.overall_score),
        level=_ev(r.level),
        interpretation=_interpretation_out(r.interpretation),
    )


def _status_out(s: StatusEntry) -> StatusEntryOut:
    return StatusEntryOut(
        completed=s.completed,
        taken_at=_iso(s.taken_at),
        level=_ev(s.level) if s.level else None,
        available=s.available,
    )


# ---------------------------------------------------------------------------
# GET /burnout/questions
# ---------------------------------------------------------------------------

@router.get(
    "/burnout/questions",
    response_model=QuestionnaireResponse,
    summary="OLBI questionnaire items and answer scale",
)
def questions(db: Session = Depends(get_db)):
    items = list_questions(db)
    return QuestionnaireResponse(
        total_questions=len(items),
        instructions=INSTRUCTIONS,
        options=[LikertOption(value=v, text=t) for v, t in LIKERT_OPTIONS],
        questions=[
            QuestionOut(id=q.id, text=q.text, dimension=_ev(q.dimension), order=q.order)
            for q in items
        ],
    )


# ---------------------------------------------------------------------------
# POST /patients/{patient_id}/burnout-tests
# ---------------------------------------------------------------------------

@router.post(
    "/patients/{patient_id}/burnout-tests",
    response_model=BurnoutSubmissionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit and score a burnout questionnaire",
    responses={
        404: {"model": ErrorResponse, "description": "Unknown patient."},
        409: {
            "model": ErrorResponse,
            "description": "Test already taken, or final submitted before initial.",
        },
        422: {
            "model": ErrorResponse,
            "description": "Wrong response count, unknown question or out-of-range value.",
        },
    },
)
def submit(
    payload: BurnoutTestRequest,
    patient_id: int = Path(ge=1),
    db: Session = Depends(get_db),
):
    """
    Score the 16 OLBI answers into exhaustion / disengagement averages and a
    `low` / `medium` / `high` level.

    Each test type can be submitted once. `final` requires a prior `initial`.
    Nothing is written when validation fails.
    """
    result = submit_burnout_test(
        db=db,
        patient_id=patient_id,
        test_type=payload.test_type,
        responses=[ResponseItem(question_id=r.question_id, value=r.value) for r in payload.responses],
    )
    return BurnoutSubmissionResponse(
        result_id=result.result_id,
        test_type=_ev(result.test_type),
        exhaustion_avg=float(result.score.exhaustion_avg),
        disengagement_avg=float(result.score.disengagement_avg),
        overall_score=float(result.score.overall_score),
        level=_ev(result.score.level),
        interpretation=_interpretation_out(result.interpretation),
        taken_at=_iso(result.taken_at),
    )


# ---------------------------------------------------------------------------
# GET /patients/{patient_id}/burnout-tests
# ---------------------------------------------------------------------------

@router.get(
    "/patients/{patient_id}/burnout-tests",
    response_model=BurnoutResultsResponse,
    summary="Initial and final results with their comparison",
    responses={
        404: {"model": ErrorResponse, "description": "Unknown patient, or no test taken yet."},
    },
)
def results(
    patient_id: int = Path(ge=1),
    db: Session = Depends(get_db),
):
    r = get_results(db=db, patient_id=patient_id)
    return BurnoutResultsResponse(
        patient_id=r.patient_id,
        initial=_stored_out(r.initial) if r.initial else None,
        final=_stored_out(r.final) if r.final else None,
        comparison=ComparisonOut(
            exhaustion_change=float(r.comparison.exhaustion_change),
            disengagement_change=float(r.comparison.disengagement_change),
            improved=r.comparison.improved,
        ) if r.comparison else None,
    )


# ---------------------------------------------------------------------------
# GET /patients/{patient_id}/burnout-tests/status
# ---------------------------------------------------------------------------

@router.get(
    "/patients/{patient_id}/burnout-tests/status",
    response_model=BurnoutTestStatusResponse,
    summary="Which questionnaires the patient has taken",
    responses={404: {"model": ErrorResponse, "description": "Unknown patient."}},
)
def test_status(
    patient_id: int = Path(ge=1),
    db: Session = Depends(get_db),
):
    s = get_test_status(db=db, patient_id=patient_id)
    return BurnoutTestStatusResponse(
        initial=_status_out(s.initial),
        final=_status_out(s.final),
    )
