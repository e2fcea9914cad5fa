"""
Achievement catalog and the per-patient grant ledger.

PatientAchievement is append-only. One row per (patient_id, achievement_id):
the unique constraint is what makes concurrent grants idempotent, the
in-memory "already granted" check in the engine is only a shortcut.
"""
from datetime import datetime
from sqlalchemy import Integer, String, Text, DateTime, Enum, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column
import enum

from app.db.base import Base


class AchievementCategory(str, enum.Enum):
    bronze = "bronze"
    silver = "silver"
    gold = "gold"
    diamond = "diamond"


class Achievement(Base):
    __tablename__ = "achievements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    # Predicate reference: matches AchievementRule.code in the engine
    code: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[AchievementCategory] = mapped_column(
        Enum(AchievementCategory, name="achievement_category_enum"),
        nullable=False,
    )
    image: Mapped[str | None] = mapped_column(String(256), nullable=True)


class PatientAchievement(Base):
    __tablename__ = "patient_achievements"
    __table_args__ = (
        UniqueConstraint("patient_id", "achievement_id", name="uq_patient_achievement"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    patient_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("patients.id"), nullable=False, index=True
    )
    achievement_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("achievements.id"), nullable=False, index=True
    )
    granted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
