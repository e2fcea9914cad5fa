"""
Patient: the subject enrolled in the treatment program.

Owned by the user-management layer; this service only reads it and flips
the two OLBI test flags when a questionnaire is submitted.
"""
from datetime import datetime
from sqlalchemy import Integer, String, Boolean, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class Patient(Base):
    __tablename__ = "patients"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    full_name: Mapped[str] = mapped_column(String(256), nullable=False)
    enrollment_number: Mapped[str | None] = mapped_column(String(64), nullable=True, unique=True)
    initial_test_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    final_test_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
