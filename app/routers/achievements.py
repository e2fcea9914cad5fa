"""
Achievements router.

POST /patients/{patient_id}/achievements/check     grant anything newly earned
GET  /patients/{patient_id}/achievements           catalog with the patient's status
GET  /patients/{patient_id}/achievements/stats     adherence stats behind the rules
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Path
from sqlalchemy.orm import Session

from app.db.base import get_db
from app.schemas.common import ErrorResponse
from app.schemas.achievement import (
    AchievementOverviewResponse,
    AchievementStatsResponse,
    AchievementStatusResponse,
    CheckAchievementsResponse,
    GrantedAchievementResponse,
)
from app.services.achievement_engine import (
    GrantedAchievement,
    check_achievements,
    get_achievement_stats,
    list_achievements,
)

router = APIRouter(prefix="/patients/{patient_id}/achievements", tags=["achievements"])


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def _ev(v) -> str:
    """Extract bare string value from a str-enum or plain str."""
    return v.value if hasattr(v, "value") else str(v)


def granted_to_response(g: GrantedAchievement) -> GrantedAchievementResponse:
    return GrantedAchievementResponse(
        id=g.id,
        code=g.code,
        name=g.name,
        description=g.description,
        category=_ev(g.category),
        image=g.image,
        granted_at=g.granted_at.isoformat() if g.granted_at else "",
    )


# ---------------------------------------------------------------------------
# POST /patients/{patient_id}/achievements/check
# ---------------------------------------------------------------------------

@router.post(
    "/check",
    response_model=CheckAchievementsResponse,
    summary="Grant any achievement the patient has newly earned",
    responses={404: {"model": ErrorResponse, "description": "Unknown patient."}},
)
def check(
    patient_id: int = Path(ge=1),
    db: Session = Depends(get_db),
):
    """
    Re-evaluate the rule set from persisted progress. Safe to call any number
    of times: an achievement is only ever granted once, and a call with
    nothing new returns an empty list.
    """
    granted = check_achievements(db=db, patient_id=patient_id)
    if granted:
        message = f"¡Felicidades! Has desbloqueado {len(granted)} nuevo(s) logro(s)"
    else:
        message = "No hay nuevos logros por ahora. ¡Sigue así!"
    return CheckAchievementsResponse(
        new_achievements=[granted_to_response(g) for g in granted],
        count=len(granted),
        message=message,
    )


# ---------------------------------------------------------------------------
# GET /patients/{patient_id}/achievements
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=AchievementOverviewResponse,
    summary="Achievement catalog with the patient's status",
    responses={404: {"model": ErrorResponse, "description": "Unknown patient."}},
)
def overview(
    patient_id: int = Path(ge=1),
    db: Session = Depends(get_db),
):
    """Runs a check first, so `new_achievements` may be non-empty."""
    result = list_achievements(db=db, patient_id=patient_id)
    return AchievementOverviewResponse(
        total=result.total,
        obtained=result.obtained,
        percentage=result.percentage,
        new_achievements=[granted_to_response(g) for g in result.new_achievements],
        by_category={
            _ev(category): [
                AchievementStatusResponse(
                    id=s.id,
                    code=s.code,
                    name=s.name,
                    description=s.description,
                    image=s.image,
                    obtained=s.obtained,
                    granted_at=s.granted_at.isoformat() if s.granted_at else None,
                )
                for s in statuses
            ]
            for category, statuses in result.by_category.items()
        },
    )


# ---------------------------------------------------------------------------
# GET /patients/{patient_id}/achievements/stats
# ---------------------------------------------------------------------------

@router.get(
    "/stats",
    response_model=AchievementStatsResponse,
    summary="Adherence stats the achievement rules are evaluated on",
    responses={404: {"model": ErrorResponse, "description": "Unknown patient."}},
)
def stats(
    patient_id: int = Path(ge=1),
    db: Session = Depends(get_db),
):
    s = get_achievement_stats(db=db, patient_id=patient_id)
    return AchievementStatsResponse(
        activities_completed=s.activities_completed,
        activities_total=s.activities_total,
        activities_percentage=s.activities_percentage,
        modules_completed=s.modules_completed,
        modules_total=s.modules_total,
        current_streak=s.current_streak,
        achievements_obtained=s.achievements_obtained,
        achievements_total=s.achievements_total,
        achievements_percentage=s.achievements_percentage,
    )
