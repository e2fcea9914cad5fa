"""
OLBI (Oldenburg Burnout Inventory) catalog, results and response audit trail.

- BurnoutQuestion      catalog; dimension + reversal flag drive scoring
- BurnoutTestResult    one row per (patient_id, test_type)
- QuestionResponse     raw 1-4 answers, immutable, written with the result
"""
from datetime import datetime
from decimal import Decimal
from sqlalchemy import (
    Integer, String, Text, Boolean, Numeric, DateTime, Enum, ForeignKey,
    UniqueConstraint, func,
)
from sqlalchemy.orm import Mapped, mapped_column
import enum

from app.db.base import Base


class BurnoutDimension(str, enum.Enum):
    exhaustion = "exhaustion"
    disengagement = "disengagement"


class TestType(str, enum.Enum):
    __test__ = False  # not a pytest class

    initial = "initial"
    final = "final"


class BurnoutLevel(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"


class BurnoutQuestion(Base):
    __tablename__ = "burnout_questions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    dimension: Mapped[BurnoutDimension] = mapped_column(
        Enum(BurnoutDimension, name="burnout_dimension_enum"),
        nullable=False,
    )
    is_reversed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    order: Mapped[int] = mapped_column("position", Integer, nullable=False)


class BurnoutTestResult(Base):
    __tablename__ = "burnout_test_results"
    __table_args__ = (
        UniqueConstraint("patient_id", "test_type", name="uq_burnout_result_patient_type"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    patient_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("patients.id"), nullable=False, index=True
    )
    test_type: Mapped[TestType] = mapped_column(
        Enum(TestType, name="burnout_test_type_enum"),
        nullable=False,
    )
    exhaustion_avg: Mapped[Decimal] = mapped_column(Numeric(4, 2), nullable=False)
    disengagement_avg: Mapped[Decimal] = mapped_column(Numeric(4, 2), nullable=False)
    overall_score: Mapped[Decimal] = mapped_column(Numeric(4, 2), nullable=False)
    level: Mapped[BurnoutLevel] = mapped_column(
        Enum(BurnoutLevel, name="burnout_level_enum"),
        nullable=False,
    )
    taken_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class QuestionResponse(Base):
    __tablename__ = "burnout_responses"
    __table_args__ = (
        UniqueConstraint("test_result_id", "question_id", name="uq_burnout_response_question"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    test_result_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("burnout_test_results.id"), nullable=False, index=True
    )
    question_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("burnout_questions.id"), nullable=False
    )
    raw_value: Mapped[int] = mapped_column(Integer, nullable=False)
