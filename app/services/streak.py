"""
Streak calculator: consecutive calendar days with at least one completed
activity, anchored at today or yesterday.

Algorithm
---------
  1. Normalize every completion timestamp to a UTC calendar day and
     de-duplicate (several completions on one day count once).
  2. Walk the days newest first with anchor = today.
     gap = anchor - day
       first day:   0 or 1 → streak += 1   (a streak may end yesterday)
       later days:  0      → streak += 1
       otherwise           → stop
     After each counted day, anchor = day - 1.
  3. No completions → 0.

Public API
----------
to_calendar_day(value)                  -> date
streak_from_dates(days, today)          -> int   (pure)
calculate_streak(db, patient_id, today) -> int
"""
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Optional, Union

from sqlalchemy.orm import Session

from app.services import progress_store


def _today() -> date:
    return datetime.now(tz=timezone.utc).date()


def to_calendar_day(value: Union[date, datetime]) -> date:
    """
    Truncate a timestamp to its UTC calendar day.
    Naive datetimes are taken to be UTC already (SQLite drops the offset).
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value


def streak_from_dates(
    days: Iterable[Union[date, datetime]],
    today: Optional[date] = None,
) -> int:
    anchor = today or _today()
    distinct = sorted({to_calendar_day(d) for d in days}, reverse=True)

    streak = 0
    allowed_gap = 1
    for day in distinct:
        gap = (anchor - day).days
        if gap < 0:
            # completion stamped after the anchor day; not part of the walk
            continue
        if gap > allowed_gap:
            break
        streak += 1
        anchor = day - timedelta(days=1)
        allowed_gap = 0
    return streak


def calculate_streak(
    db: Session,
    patient_id: int,
    today: Optional[date] = None,
) -> int:
    return streak_from_dates(progress_store.completion_timestamps(db, patient_id), today)
