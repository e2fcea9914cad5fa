"""
Progress aggregator: module rollup, unlock chain and the activity
start/complete units of work.

Module rollup
-------------
  percentage = round_half_up(completed / total * 100)     (0 if total == 0)
  100                 → completed   (completed_at stamped the first time only)
  0 < percentage < 100 → in_progress
  0, something started → in_progress
  0, nothing started   → not_started

Stored percentage never goes down and a completed module stays completed.

Unlock chain
------------
The first module (lowest order) is always unlocked. Any other module is
unlocked iff its immediate predecessor has a stored ModuleProgress row in
state `completed`. One lookup against persisted state, never a transitive
recompute. Locked modules are reported as `blocked`.

Transactions
------------
start_activity / complete_activity flush as they go and commit once at the
end. complete_activity covers activity row → module recompute → achievement
grants; any SQLAlchemyError rolls the whole unit back and is re-raised.
Retrying is safe because everything is recomputed from persisted rows.

No locks are taken. Two requests that both read "no row" race on the
(patient, activity) and (patient, module) unique constraints; the loser
gets an IntegrityError, rolls back and reruns its unit once, which then
moves the winner's committed row forward (a no-op for a duplicate
completion, with no achievements granted twice).

Public API
----------
recompute_module(db, patient_id, module_id)             -> ModuleProgress   (no commit)
is_module_unlocked(db, patient_id, module)              -> bool
start_activity(db, patient_id, activity_id, now)        -> ActivityAck
complete_activity(db, patient_id, activity_id, now)     -> CompletionResult
get_progress_summary(db, patient_id)                    -> ProgressSummary
get_module_detail(db, patient_id, module_id)            -> ModuleDetail
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import (
    ActivityNotFoundError,
    ModuleLockedError,
    PatientNotFoundError,
    TreatmentModuleNotFoundError,
)
from app.core.rounding import percentage
from app.models.activity import Activity
from app.models.activity_progress import ACTIVITY_STATE_RANK, ActivityProgress, ActivityState
from app.models.module import Module
from app.models.module_progress import ModuleProgress, ModuleState
from app.services import achievement_engine, progress_store
from app.services.achievement_engine import GrantedAchievement

logger = logging.getLogger(__name__)

# A unit of work that lost an insert race is run once more
_UNIT_ATTEMPTS = 2


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class ActivityAck:
    activity_id: int
    module_id: int
    state: ActivityState
    started_at: Optional[datetime]


@dataclass
class CompletionResult:
    activity_id: int
    module_progress: ModuleProgress
    new_achievements: list[GrantedAchievement]
    # Successor module that this completion unlocked, if any
    unlocked_module_id: Optional[int] = None


@dataclass
class ModuleSummary:
    id: int
    title: str
    order: int
    percentage: int
    state: ModuleState
    unlocked: bool
    total_activities: int
    completed_activities: int


@dataclass
class LastActivity:
    activity_id: int
    title: str
    module_title: str
    completed_at: Optional[datetime]


@dataclass
class ProgressSummary:
    patient_id: int
    modules: list[ModuleSummary]
    overall_percentage: int
    activities_completed: int
    total_activities: int
    last_activity: Optional[LastActivity]


@dataclass
class ActivityStatus:
    id: int
    title: str
    order: int
    duration_minutes: Optional[int]
    state: ActivityState
    started_at: Optional[datetime]
    completed_at: Optional[datetime]


@dataclass
class ModuleDetail:
    module: ModuleSummary
    activities: list[ActivityStatus]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _require_patient(db: Session, patient_id: int) -> None:
    if progress_store.get_patient(db, patient_id) is None:
        raise PatientNotFoundError(patient_id)


def _require_module(db: Session, module_id: int) -> Module:
    module = progress_store.get_module(db, module_id)
    if module is None:
        raise TreatmentModuleNotFoundError(module_id)
    return module


def _require_activity(db: Session, activity_id: int) -> Activity:
    activity = progress_store.get_activity(db, activity_id)
    if activity is None:
        raise ActivityNotFoundError(activity_id)
    return activity


def _derive_state(pct: int, started: int) -> ModuleState:
    if pct >= 100:
        return ModuleState.completed
    if pct > 0 or started > 0:
        return ModuleState.in_progress
    return ModuleState.not_started


def _advance(state: ActivityState, target: ActivityState) -> bool:
    """True if target is strictly ahead of state."""
    return ACTIVITY_STATE_RANK[target] > ACTIVITY_STATE_RANK[state]


def _reported_state(row: Optional[ModuleProgress], unlocked: bool) -> ModuleState:
    if row is not None and row.state == ModuleState.completed:
        return ModuleState.completed
    if not unlocked:
        return ModuleState.blocked
    return row.state if row is not None else ModuleState.not_started


# ---------------------------------------------------------------------------
# Core: rollup + unlock
# ---------------------------------------------------------------------------

def is_module_unlocked(db: Session, patient_id: int, module: Module) -> bool:
    predecessor = progress_store.previous_module(db, module)
    if predecessor is None:
        return True
    row = progress_store.get_module_progress(db, patient_id, predecessor.id)
    return row is not None and row.state == ModuleState.completed


def recompute_module(
    db: Session,
    patient_id: int,
    module_id: int,
    now: Optional[datetime] = None,
) -> ModuleProgress:
    """
    Recompute one module's percentage and state from the activity rows
    and upsert its ModuleProgress row. Flushes, does not commit.
    """
    _require_patient(db, patient_id)
    _require_module(db, module_id)
    now = now or _now()

    total = progress_store.count_module_activities(db, module_id)
    completed = progress_store.count_completed_in_module(db, patient_id, module_id)
    started = progress_store.count_started_in_module(db, patient_id, module_id)
    pct = percentage(completed, total)
    state = _derive_state(pct, started)

    row = progress_store.get_module_progress(db, patient_id, module_id)
    if row is None:
        row = ModuleProgress(
            patient_id=patient_id,
            module_id=module_id,
            percentage=pct,
            state=state,
        )
        progress_store.add_module_progress(db, row)
    else:
        row.percentage = max(row.percentage, pct)
        if row.state != ModuleState.completed:
            row.state = state

    if row.started_at is None and row.state != ModuleState.not_started:
        row.started_at = now
    if row.state == ModuleState.completed and row.completed_at is None:
        row.completed_at = now
    db.flush()
    return row


# ---------------------------------------------------------------------------
# Public: activity units of work
# ---------------------------------------------------------------------------

def _guard_unlocked(db: Session, patient_id: int, activity: Activity) -> Module:
    module = _require_module(db, activity.module_id)
    if not is_module_unlocked(db, patient_id, module):
        predecessor = progress_store.previous_module(db, module)
        raise ModuleLockedError(
            module_id=module.id,
            required_module_id=predecessor.id if predecessor else None,
        )
    return module


def _move_activity(
    db: Session,
    patient_id: int,
    activity_id: int,
    target: ActivityState,
    now: datetime,
) -> ActivityProgress:
    """Insert the activity row at `target`, or move an existing row forward to it."""
    row = progress_store.get_activity_progress(db, patient_id, activity_id)
    if row is None:
        return progress_store.add_activity_progress(db, ActivityProgress(
            patient_id=patient_id,
            activity_id=activity_id,
            state=target,
            started_at=now,
            completed_at=now if target == ActivityState.completed else None,
        ))
    if _advance(row.state, target):
        row.state = target
        row.started_at = row.started_at or now
        if target == ActivityState.completed:
            row.completed_at = now
        db.flush()
    return row


def _commit_unit(db: Session, unit, *args):
    """
    Run one unit of work and commit it.

    An IntegrityError means a concurrent request inserted the same
    progress row between our read and our insert. The whole unit is
    rolled back and run once more, and the second pass finds the
    committed row and moves it forward instead.
    """
    for attempt in range(_UNIT_ATTEMPTS):
        try:
            result = unit(db, *args)
            db.commit()
            return result
        except IntegrityError:
            db.rollback()
            if attempt + 1 == _UNIT_ATTEMPTS:
                raise
            logger.info("Progress row written concurrently, retrying %s", unit.__name__)
        except SQLAlchemyError:
            db.rollback()
            raise


def _start_unit(
    db: Session, patient_id: int, activity: Activity, now: datetime
) -> ActivityProgress:
    row = _move_activity(db, patient_id, activity.id, ActivityState.in_progress, now)
    recompute_module(db, patient_id, activity.module_id, now)
    return row


def start_activity(
    db: Session,
    patient_id: int,
    activity_id: int,
    now: Optional[datetime] = None,
) -> ActivityAck:
    """Mark an activity in_progress. Rows already in_progress or completed are left alone."""
    _require_patient(db, patient_id)
    activity = _require_activity(db, activity_id)
    _guard_unlocked(db, patient_id, activity)
    now = now or _now()

    row = _commit_unit(db, _start_unit, patient_id, activity, now)

    logger.info("Patient %s started activity %s", patient_id, activity_id)
    return ActivityAck(
        activity_id=activity_id,
        module_id=activity.module_id,
        state=row.state,
        started_at=row.started_at,
    )


def _complete_unit(
    db: Session, patient_id: int, activity: Activity, module: Module, now: datetime
) -> CompletionResult:
    _move_activity(db, patient_id, activity.id, ActivityState.completed, now)

    previous = progress_store.get_module_progress(db, patient_id, module.id)
    was_completed = previous is not None and previous.state == ModuleState.completed

    module_progress = recompute_module(db, patient_id, module.id, now)

    unlocked_module_id = None
    if not was_completed and module_progress.state == ModuleState.completed:
        successor = progress_store.next_module(db, module)
        unlocked_module_id = successor.id if successor else None

    stats = achievement_engine.collect_stats(db, patient_id, now.date())
    return CompletionResult(
        activity_id=activity.id,
        module_progress=module_progress,
        new_achievements=achievement_engine.evaluate(db, patient_id, stats),
        unlocked_module_id=unlocked_module_id,
    )


def complete_activity(
    db: Session,
    patient_id: int,
    activity_id: int,
    now: Optional[datetime] = None,
) -> CompletionResult:
    """
    Complete an activity, recompute its module and grant achievements,
    all in one transaction. Completing an already completed activity
    changes nothing and grants nothing new.
    """
    _require_patient(db, patient_id)
    activity = _require_activity(db, activity_id)
    module = _guard_unlocked(db, patient_id, activity)
    now = now or _now()

    result = _commit_unit(db, _complete_unit, patient_id, activity, module, now)

    db.refresh(result.module_progress)
    logger.info(
        "Patient %s completed activity %s (module %s at %s%%, %d new achievements)",
        patient_id, activity_id, module.id, result.module_progress.percentage,
        len(result.new_achievements),
    )
    return result


# ---------------------------------------------------------------------------
# Public: read models
# ---------------------------------------------------------------------------

def _module_summaries(db: Session, patient_id: int) -> list[ModuleSummary]:
    rows = progress_store.module_progress_map(db, patient_id)
    totals = progress_store.activity_counts_by_module(db)
    completed = progress_store.completed_counts_by_module(db, patient_id)
    summaries: list[ModuleSummary] = []
    predecessor_completed = True  # first module is always unlocked
    for module in progress_store.list_modules(db):
        row = rows.get(module.id)
        unlocked = predecessor_completed
        summaries.append(ModuleSummary(
            id=module.id,
            title=module.title,
            order=module.order,
            percentage=row.percentage if row else 0,
            state=_reported_state(row, unlocked),
            unlocked=unlocked,
            total_activities=totals.get(module.id, 0),
            completed_activities=completed.get(module.id, 0),
        ))
        predecessor_completed = row is not None and row.state == ModuleState.completed
    return summaries


def get_progress_summary(db: Session, patient_id: int) -> ProgressSummary:
    _require_patient(db, patient_id)

    completed = progress_store.count_completed_activities(db, patient_id)
    total = progress_store.count_activities(db)

    last = progress_store.last_completed_activity(db, patient_id)
    last_activity = None
    if last is not None:
        activity, module, completed_at = last
        last_activity = LastActivity(
            activity_id=activity.id,
            title=activity.title,
            module_title=module.title,
            completed_at=completed_at,
        )

    return ProgressSummary(
        patient_id=patient_id,
        modules=_module_summaries(db, patient_id),
        overall_percentage=percentage(completed, total),
        activities_completed=completed,
        total_activities=total,
        last_activity=last_activity,
    )


def get_module_detail(db: Session, patient_id: int, module_id: int) -> ModuleDetail:
    _require_patient(db, patient_id)
    module = _require_module(db, module_id)

    row = progress_store.get_module_progress(db, patient_id, module_id)
    unlocked = is_module_unlocked(db, patient_id, module)
    progress = progress_store.activity_progress_map(db, patient_id, module_id)
    activities = progress_store.list_module_activities(db, module_id)

    statuses = []
    for activity in activities:
        p = progress.get(activity.id)
        statuses.append(ActivityStatus(
            id=activity.id,
            title=activity.title,
            order=activity.order,
            duration_minutes=activity.duration_minutes,
            state=p.state if p else ActivityState.pending,
            started_at=p.started_at if p else None,
            completed_at=p.completed_at if p else None,
        ))

    return ModuleDetail(
        module=ModuleSummary(
            id=module.id,
            title=module.title,
            order=module.order,
            percentage=row.percentage if row else 0,
            state=_reported_state(row, unlocked),
            unlocked=unlocked,
            total_activities=len(activities),
            completed_activities=sum(
                1 for s in statuses if s.state == ActivityState.completed
            ),
        ),
        activities=statuses,
    )
