"""
Progress store: row-level reads and writes over the catalog and progress
tables. No business rules live here: state derivation, unlocking and
achievement logic belong to the aggregator and the engine.

Nothing in this module commits. Callers own the transaction.

Public API
----------
get_patient / get_module / get_activity          -> row | None
list_modules(db)                                  -> list[Module]   (by order)
previous_module(db, module)                       -> Module | None
get_activity_progress(db, patient_id, activity_id)
get_module_progress(db, patient_id, module_id)
module_progress_map(db, patient_id)               -> {module_id: ModuleProgress}
count_module_activities / count_completed_in_module / count_started_in_module
count_activities / count_completed_activities / count_completed_modules
activity_counts_by_module(db)                     -> {module_id: total}
completed_counts_by_module(db, patient_id)        -> {module_id: completed}
completion_timestamps(db, patient_id)             -> list[datetime]
last_completed_activity(db, patient_id)           -> (Activity, Module, datetime) | None
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.activity import Activity
from app.models.activity_progress import ActivityProgress, ActivityState
from app.models.module import Module
from app.models.module_progress import ModuleProgress, ModuleState
from app.models.patient import Patient


# ---------------------------------------------------------------------------
# Catalog lookups
# ---------------------------------------------------------------------------

def get_patient(db: Session, patient_id: int) -> Optional[Patient]:
    return db.get(Patient, patient_id)


def get_module(db: Session, module_id: int) -> Optional[Module]:
    return db.get(Module, module_id)


def get_activity(db: Session, activity_id: int) -> Optional[Activity]:
    return db.get(Activity, activity_id)


def list_modules(db: Session) -> list[Module]:
    return db.query(Module).order_by(Module.order.asc()).all()


def list_module_activities(db: Session, module_id: int) -> list[Activity]:
    return (
        db.query(Activity)
        .filter(Activity.module_id == module_id)
        .order_by(Activity.order.asc(), Activity.id.asc())
        .all()
    )


def previous_module(db: Session, module: Module) -> Optional[Module]:
    """Immediate predecessor in program order, or None for the first module."""
    return (
        db.query(Module)
        .filter(Module.order < module.order)
        .order_by(Module.order.desc())
        .first()
    )


def next_module(db: Session, module: Module) -> Optional[Module]:
    return (
        db.query(Module)
        .filter(Module.order > module.order)
        .order_by(Module.order.asc())
        .first()
    )


# ---------------------------------------------------------------------------
# Progress rows
# ---------------------------------------------------------------------------

def get_activity_progress(
    db: Session, patient_id: int, activity_id: int
) -> Optional[ActivityProgress]:
    return (
        db.query(ActivityProgress)
        .filter(
            ActivityProgress.patient_id == patient_id,
            ActivityProgress.activity_id == activity_id,
        )
        .first()
    )


def add_activity_progress(db: Session, row: ActivityProgress) -> ActivityProgress:
    db.add(row)
    db.flush()
    return row


def get_module_progress(
    db: Session, patient_id: int, module_id: int
) -> Optional[ModuleProgress]:
    return (
        db.query(ModuleProgress)
        .filter(
            ModuleProgress.patient_id == patient_id,
            ModuleProgress.module_id == module_id,
        )
        .first()
    )


def add_module_progress(db: Session, row: ModuleProgress) -> ModuleProgress:
    db.add(row)
    db.flush()
    return row


def module_progress_map(db: Session, patient_id: int) -> dict[int, ModuleProgress]:
    rows = db.query(ModuleProgress).filter(ModuleProgress.patient_id == patient_id).all()
    return {row.module_id: row for row in rows}


def activity_progress_map(
    db: Session, patient_id: int, module_id: int
) -> dict[int, ActivityProgress]:
    rows = (
        db.query(ActivityProgress)
        .join(Activity, Activity.id == ActivityProgress.activity_id)
        .filter(
            ActivityProgress.patient_id == patient_id,
            Activity.module_id == module_id,
        )
        .all()
    )
    return {row.activity_id: row for row in rows}


# ---------------------------------------------------------------------------
# Counters
# ---------------------------------------------------------------------------

def count_module_activities(db: Session, module_id: int) -> int:
    return (
        db.query(func.count(Activity.id))
        .filter(Activity.module_id == module_id)
        .scalar()
        or 0
    )


def _module_progress_count(db: Session, patient_id: int, module_id: int, states) -> int:
    return (
        db.query(func.count(ActivityProgress.id))
        .join(Activity, Activity.id == ActivityProgress.activity_id)
        .filter(
            ActivityProgress.patient_id == patient_id,
            Activity.module_id == module_id,
            ActivityProgress.state.in_(states),
        )
        .scalar()
        or 0
    )


def count_completed_in_module(db: Session, patient_id: int, module_id: int) -> int:
    return _module_progress_count(db, patient_id, module_id, [ActivityState.completed])


def count_started_in_module(db: Session, patient_id: int, module_id: int) -> int:
    """Activities with a row past `pending` (started or completed)."""
    return _module_progress_count(
        db, patient_id, module_id,
        [ActivityState.in_progress, ActivityState.completed],
    )


def activity_counts_by_module(db: Session) -> dict[int, int]:
    """Activity totals for every module in one grouped query."""
    rows = (
        db.query(Activity.module_id, func.count(Activity.id))
        .group_by(Activity.module_id)
        .all()
    )
    return {module_id: count for module_id, count in rows}


def completed_counts_by_module(db: Session, patient_id: int) -> dict[int, int]:
    """Completed activities per module for one patient. Modules with none are absent."""
    rows = (
        db.query(Activity.module_id, func.count(ActivityProgress.id))
        .join(ActivityProgress, ActivityProgress.activity_id == Activity.id)
        .filter(
            ActivityProgress.patient_id == patient_id,
            ActivityProgress.state == ActivityState.completed,
        )
        .group_by(Activity.module_id)
        .all()
    )
    return {module_id: count for module_id, count in rows}


def count_activities(db: Session) -> int:
    return db.query(func.count(Activity.id)).scalar() or 0


def count_modules(db: Session) -> int:
    return db.query(func.count(Module.id)).scalar() or 0


def count_completed_activities(db: Session, patient_id: int) -> int:
    return (
        db.query(func.count(ActivityProgress.id))
        .filter(
            ActivityProgress.patient_id == patient_id,
            ActivityProgress.state == ActivityState.completed,
        )
        .scalar()
        or 0
    )


def count_completed_modules(db: Session, patient_id: int) -> int:
    return (
        db.query(func.count(ModuleProgress.id))
        .filter(
            ModuleProgress.patient_id == patient_id,
            ModuleProgress.state == ModuleState.completed,
        )
        .scalar()
        or 0
    )


# ---------------------------------------------------------------------------
# Completion history
# ---------------------------------------------------------------------------

def completion_timestamps(db: Session, patient_id: int) -> list[datetime]:
    """Raw completed_at values; day truncation happens in the streak calculator."""
    rows = (
        db.query(ActivityProgress.completed_at)
        .filter(
            ActivityProgress.patient_id == patient_id,
            ActivityProgress.state == ActivityState.completed,
            ActivityProgress.completed_at.isnot(None),
        )
        .all()
    )
    return [row.completed_at for row in rows]


def last_completed_activity(db: Session, patient_id: int):
    return (
        db.query(Activity, Module, ActivityProgress.completed_at)
        .join(ActivityProgress, ActivityProgress.activity_id == Activity.id)
        .join(Module, Module.id == Activity.module_id)
        .filter(
            ActivityProgress.patient_id == patient_id,
            ActivityProgress.state == ActivityState.completed,
        )
        .order_by(ActivityProgress.completed_at.desc(), ActivityProgress.id.desc())
        .first()
    )
