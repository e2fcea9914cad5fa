"""
ActivityProgress: one row per (patient, activity), created on the first
start or complete call and never deleted.

state only moves forward: pending → in_progress → completed.
pending → completed directly is allowed (completing without a start).
"""
from datetime import datetime
from sqlalchemy import Integer, DateTime, Enum, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
import enum

from app.db.base import Base


class ActivityState(str, enum.Enum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"


# Forward-only ordering used by the transition guard
ACTIVITY_STATE_RANK = {
    ActivityState.pending: 0,
    ActivityState.in_progress: 1,
    ActivityState.completed: 2,
}


class ActivityProgress(Base):
    __tablename__ = "activity_progress"
    __table_args__ = (
        UniqueConstraint("patient_id", "activity_id", name="uq_activity_progress_patient_activity"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    patient_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("patients.id"), nullable=False, index=True
    )
    activity_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("activities.id"), nullable=False, index=True
    )
    state: Mapped[ActivityState] = mapped_column(
        Enum(ActivityState, name="activity_state_enum"),
        nullable=False,
        default=ActivityState.pending,
    )
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
