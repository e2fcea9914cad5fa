"""
Achievement Engine: threshold rules over a patient's adherence stats.

Rules (evaluated after every activity completion and on explicit checks)
-------------------------------------------------------------------------
  code              name                    category  metric                  threshold
  first_step        Primer Paso             bronze    activities_completed    1
  streak_3          Racha de 3 días         silver    streak                  3
  first_module      Primer Módulo           silver    modules_completed       1
  consistent        Constante               silver    activities_completed    10
  streak_7          Racha de 7 días         gold      streak                  7
  halfway           Mitad del Camino        gold      progress_percentage     50
  burnout_warrior   Guerrero del Burnout    diamond   progress_percentage     100
  streak_14         Racha Legendaria        diamond   streak                  14

Every rule is monotonic: once its metric reaches the threshold it stays
there (activities never un-complete; the streak rule is still a one-off
grant once reached).

Idempotency
-----------
The patient's granted ids are read once as a shortcut. Each grant is then
inserted inside its own SAVEPOINT; the (patient_id, achievement_id) unique
constraint rejects a grant a concurrent request committed first, and that
IntegrityError only rolls back the savepoint. It is not an error: the
achievement is simply left out of the "new" list.

No commit in evaluate(); check_achievements() and the progress aggregator
commit once for the whole unit of work.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import PatientNotFoundError
from app.core.rounding import percentage
from app.models.achievement import Achievement, AchievementCategory, PatientAchievement
from app.services import progress_store
from app.services.streak import calculate_streak

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Stats + rule types
# ---------------------------------------------------------------------------

@dataclass
class PatientStats:
    activities_completed: int
    modules_completed: int
    progress_percentage: int
    streak: int


@dataclass(frozen=True)
class AchievementRule:
    code: str
    name: str
    category: AchievementCategory
    metric: str        # PatientStats attribute
    threshold: int
    description: str = ""

    def holds(self, stats: PatientStats) -> bool:
        return getattr(stats, self.metric) >= self.threshold


ACHIEVEMENT_RULES: tuple[AchievementRule, ...] = (
    AchievementRule("first_step", "Primer Paso", AchievementCategory.bronze,
                    "activities_completed", 1,
                    "Completa tu primera actividad."),
    AchievementRule("streak_3", "Racha de 3 días", AchievementCategory.silver,
                    "streak", 3,
                    "Completa actividades 3 días seguidos."),
    AchievementRule("first_module", "Primer Módulo", AchievementCategory.silver,
                    "modules_completed", 1,
                    "Completa tu primer módulo."),
    AchievementRule("consistent", "Constante", AchievementCategory.silver,
                    "activities_completed", 10,
                    "Completa 10 actividades."),
    AchievementRule("streak_7", "Racha de 7 días", AchievementCategory.gold,
                    "streak", 7,
                    "Completa actividades 7 días seguidos."),
    AchievementRule("halfway", "Mitad del Camino", AchievementCategory.gold,
                    "progress_percentage", 50,
                    "Llega al 50% del programa."),
    AchievementRule("burnout_warrior", "Guerrero del Burnout", AchievementCategory.diamond,
                    "progress_percentage", 100,
                    "Completa todo el programa."),
    AchievementRule("streak_14", "Racha Legendaria", AchievementCategory.diamond,
                    "streak", 14,
                    "Completa actividades 14 días seguidos."),
)

CATEGORY_ORDER = (
    AchievementCategory.bronze,
    AchievementCategory.silver,
    AchievementCategory.gold,
    AchievementCategory.diamond,
)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class GrantedAchievement:
    id: int
    code: str
    name: str
    description: Optional[str]
    category: AchievementCategory
    image: Optional[str]
    granted_at: datetime


@dataclass
class AchievementStatus:
    id: int
    code: str
    name: str
    description: Optional[str]
    image: Optional[str]
    obtained: bool
    granted_at: Optional[datetime]


@dataclass
class AchievementOverview:
    total: int
    obtained: int
    percentage: int
    new_achievements: list[GrantedAchievement]
    by_category: dict[AchievementCategory, list[AchievementStatus]] = field(default_factory=dict)


@dataclass
class AchievementStats:
    activities_completed: int
    activities_total: int
    activities_percentage: int
    modules_completed: int
    modules_total: int
    current_streak: int
    achievements_obtained: int
    achievements_total: int
    achievements_percentage: int


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _require_patient(db: Session, patient_id: int) -> None:
    if progress_store.get_patient(db, patient_id) is None:
        raise PatientNotFoundError(patient_id)


def _granted_ids(db: Session, patient_id: int) -> set[int]:
    rows = (
        db.query(PatientAchievement.achievement_id)
        .filter(PatientAchievement.patient_id == patient_id)
        .all()
    )
    return {row.achievement_id for row in rows}


def _to_granted(achievement: Achievement, row: PatientAchievement) -> GrantedAchievement:
    return GrantedAchievement(
        id=achievement.id,
        code=achievement.code,
        name=achievement.name,
        description=achievement.description,
        category=AchievementCategory(achievement.category),
        image=achievement.image,
        granted_at=row.granted_at,
    )


def grant(
    db: Session,
    patient_id: int,
    achievement: Achievement,
) -> Optional[PatientAchievement]:
    """
    Insert one ledger row inside a savepoint.
    Returns the row, or None when the unique constraint says the patient
    already holds it (a concurrent request won the race).
    """
    row = PatientAchievement(
        patient_id=patient_id,
        achievement_id=achievement.id,
        granted_at=datetime.now(tz=timezone.utc),
    )
    try:
        with db.begin_nested():
            db.add(row)
    except IntegrityError:
        logger.info(
            "Discarded duplicate grant of %s to patient %s", achievement.code, patient_id
        )
        return None
    return row


# ---------------------------------------------------------------------------
# Public: stats + evaluation
# ---------------------------------------------------------------------------

def collect_stats(
    db: Session,
    patient_id: int,
    today: Optional[date] = None,
) -> PatientStats:
    completed = progress_store.count_completed_activities(db, patient_id)
    return PatientStats(
        activities_completed=completed,
        modules_completed=progress_store.count_completed_modules(db, patient_id),
        progress_percentage=percentage(completed, progress_store.count_activities(db)),
        streak=calculate_streak(db, patient_id, today),
    )


def evaluate(
    db: Session,
    patient_id: int,
    stats: PatientStats,
) -> list[GrantedAchievement]:
    """
    Grant every rule whose predicate holds and which the patient lacks.
    Returns only the achievements granted by this call. Does not commit.
    """
    catalog = {a.code: a for a in db.query(Achievement).all()}
    already = _granted_ids(db, patient_id)

    granted: list[GrantedAchievement] = []
    for rule in ACHIEVEMENT_RULES:
        if not rule.holds(stats):
            continue
        achievement = catalog.get(rule.code)
        if achievement is None:
            logger.warning("Achievement %s missing from catalog; rule skipped", rule.code)
            continue
        if achievement.id in already:
            continue
        row = grant(db, patient_id, achievement)
        if row is not None:
            already.add(achievement.id)
            granted.append(_to_granted(achievement, row))
            logger.info("Granted %s to patient %s", rule.code, patient_id)
    return granted


def check_achievements(
    db: Session,
    patient_id: int,
    today: Optional[date] = None,
) -> list[GrantedAchievement]:
    """Recompute stats from persisted state and grant anything new. Safe to repeat."""
    _require_patient(db, patient_id)
    stats = collect_stats(db, patient_id, today)
    granted = evaluate(db, patient_id, stats)
    if granted:
        db.commit()
    return granted


# ---------------------------------------------------------------------------
# Public: read models
# ---------------------------------------------------------------------------

def list_achievements(db: Session, patient_id: int) -> AchievementOverview:
    """Full catalog grouped by category with the patient's status. Runs a check first."""
    new = check_achievements(db, patient_id)

    grants = {
        row.achievement_id: row.granted_at
        for row in db.query(PatientAchievement)
        .filter(PatientAchievement.patient_id == patient_id)
        .all()
    }
    catalog = db.query(Achievement).order_by(Achievement.id.asc()).all()

    by_category: dict[AchievementCategory, list[AchievementStatus]] = {
        c: [] for c in CATEGORY_ORDER
    }
    for achievement in sorted(catalog, key=lambda a: CATEGORY_ORDER.index(a.category)):
        by_category[AchievementCategory(achievement.category)].append(AchievementStatus(
            id=achievement.id,
            code=achievement.code,
            name=achievement.name,
            description=achievement.description,
            image=achievement.image,
            obtained=achievement.id in grants,
            granted_at=grants.get(achievement.id),
        ))

    total = len(catalog)
    obtained = sum(1 for a in catalog if a.id in grants)
    return AchievementOverview(
        total=total,
        obtained=obtained,
        percentage=percentage(obtained, total),
        new_achievements=new,
        by_category=by_category,
    )


def get_achievement_stats(db: Session, patient_id: int) -> AchievementStats:
    _require_patient(db, patient_id)
    stats = collect_stats(db, patient_id)
    activities_total = progress_store.count_activities(db)
    achievements_total = db.query(Achievement).count()
    obtained = len(_granted_ids(db, patient_id))
    return AchievementStats(
        activities_completed=stats.activities_completed,
        activities_total=activities_total,
        activities_percentage=stats.progress_percentage,
        modules_completed=stats.modules_completed,
        modules_total=progress_store.count_modules(db),
        current_streak=stats.streak,
        achievements_obtained=obtained,
        achievements_total=achievements_total,
        achievements_percentage=percentage(obtained, achievements_total),
    )
