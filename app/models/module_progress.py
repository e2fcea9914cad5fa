"""
ModuleProgress: derived rollup of a patient's activities in one module.

Stored rows only hold not_started / in_progress / completed. `blocked`
is reported for modules whose predecessor is not completed; it is never
inferred from a missing row.

percentage never decreases and completed_at is set once, the first time
percentage reaches 100.
"""
from datetime import datetime
from sqlalchemy import Integer, DateTime, Enum, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column
import enum

from app.db.base import Base


class ModuleState(str, enum.Enum):
    blocked = "blocked"
    not_started = "not_started"
    in_progress = "in_progress"
    completed = "completed"


class ModuleProgress(Base):
    __tablename__ = "module_progress"
    __table_args__ = (
        UniqueConstraint("patient_id", "module_id", name="uq_module_progress_patient_module"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    patient_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("patients.id"), nullable=False, index=True
    )
    module_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("modules.id"), nullable=False, index=True
    )
    percentage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    state: Mapped[ModuleState] = mapped_column(
        Enum(ModuleState, name="module_state_enum"),
        nullable=False,
        default=ModuleState.not_started,
    )
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
