"""
Burnout scorer: OLBI (Oldenburg Burnout Inventory) questionnaire.

Scoring
-------
  value'            = 5 - value   for reversed (positively worded) items
  dimension_avg     = sum(value') / count     per dimension, split not fixed
  overall_score     = round_half_up((exhaustion_avg + disengagement_avg) / 2, 2)

Classification (on the unrounded overall average, thresholds from settings)
  overall < BURNOUT_MEDIUM_THRESHOLD (2.0)   → low
  overall < BURNOUT_HIGH_THRESHOLD   (2.75)  → medium
  otherwise                                  → high

Submission rules (all checked before any write)
-----------------------------------------------
  - exactly OLBI_ITEM_COUNT responses, each question once, each known
  - values within [LIKERT_MIN, LIKERT_MAX]
  - at most one result per (patient, test_type)
  - `final` requires an existing `initial`
The result row, every raw response and the patient's test flag are
written in a single transaction. A duplicate that slips past the check
under concurrency is caught by the (patient, test_type) unique constraint
and reported as TestAlreadyTakenError.

Public API
----------
score_responses(responses, questions)            -> BurnoutScore        (pure)
classify(overall)                                -> BurnoutLevel        (pure)
interpret(level, exhaustion, disengagement)      -> Interpretation      (pure)
submit_burnout_test(db, patient_id, type, resps) -> BurnoutSubmission
list_questions(db)                               -> list[BurnoutQuestion]
get_results(db, patient_id)                      -> BurnoutResults
get_test_status(db, patient_id)                  -> BurnoutTestStatus
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import (
    DuplicateQuestionError,
    IncompleteQuestionnaireError,
    InvalidResponseCountError,
    LikertValueOutOfRangeError,
    NoResultsError,
    PatientNotFoundError,
    RequiresPriorTestError,
    TestAlreadyTakenError,
    UnknownQuestionError,
)
from app.core.rounding import round_half_up
from app.models.burnout import (
    BurnoutDimension,
    BurnoutLevel,
    BurnoutQuestion,
    BurnoutTestResult,
    QuestionResponse,
    TestType,
)
from app.models.patient import Patient

logger = logging.getLogger(__name__)

# Answer scale shown next to every question
LIKERT_OPTIONS = (
    (1, "Totalmente en desacuerdo"),
    (2, "En desacuerdo"),
    (3, "De acuerdo"),
    (4, "Totalmente de acuerdo"),
)

INSTRUCTIONS = (
    "Responde cada pregunta según cómo te has sentido en las últimas semanas "
    "respecto a tu trabajo/estudios."
)

_INTERPRETATIONS = {
    BurnoutLevel.low: (
        "Tus niveles de burnout son bajos. Continúa manteniendo un equilibrio "
        "saludable entre tus actividades y tu bienestar personal.",
        "Sigue practicando técnicas de autocuidado y mantén límites saludables.",
    ),
    BurnoutLevel.medium: (
        "Presentas niveles moderados de burnout. Es importante que tomes medidas "
        "preventivas para evitar que aumente.",
        "Te recomendamos realizar las actividades del programa y considerar hablar "
        "con un profesional si los síntomas persisten.",
    ),
    BurnoutLevel.high: (
        "Tus niveles de burnout son elevados. Es fundamental que busques apoyo y "
        "tomes acciones para mejorar tu bienestar.",
        "Te recomendamos completar el programa de actividades y agendar una cita "
        "con el psicólogo asignado.",
    ),
}

_EXHAUSTION_DETAIL = "Muestras signos significativos de agotamiento emocional y físico."
_DISENGAGEMENT_DETAIL = (
    "Presentas señales de desvinculación o distanciamiento de tus actividades."
)
_NO_DETAIL = "Tus indicadores están dentro de rangos manejables."

# Prerequisite test per test type
_REQUIRES = {TestType.final: TestType.initial}


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ResponseItem:
    question_id: int
    value: int


@dataclass
class BurnoutScore:
    exhaustion_avg: Decimal
    disengagement_avg: Decimal
    overall_score: Decimal
    level: BurnoutLevel


@dataclass
class Interpretation:
    level: BurnoutLevel
    message: str
    recommendation: str
    details: list[str] = field(default_factory=list)


@dataclass
class BurnoutSubmission:
    result_id: int
    test_type: TestType
    score: BurnoutScore
    interpretation: Interpretation
    taken_at: Optional[datetime] = None


@dataclass
class StoredResult:
    result_id: int
    test_type: TestType
    taken_at: Optional[datetime]
    exhaustion_avg: Decimal
    disengagement_avg: Decimal
    overall_score: Decimal
    level: BurnoutLevel
    interpretation: Interpretation


@dataclass
class Comparison:
    exhaustion_change: Decimal
    disengagement_change: Decimal
    improved: bool


@dataclass
class BurnoutResults:
    patient_id: int
    initial: Optional[StoredResult]
    final: Optional[StoredResult]
    comparison: Optional[Comparison]


@dataclass
class StatusEntry:
    completed: bool
    taken_at: Optional[datetime]
    level: Optional[BurnoutLevel]
    available: bool = True


@dataclass
class BurnoutTestStatus:
    initial: StatusEntry
    final: StatusEntry


# ---------------------------------------------------------------------------
# Pure scoring
# ---------------------------------------------------------------------------

def classify(
    overall: Decimal,
    medium_threshold: Optional[Decimal] = None,
    high_threshold: Optional[Decimal] = None,
) -> BurnoutLevel:
    if medium_threshold is None:
        medium_threshold = settings.BURNOUT_MEDIUM_THRESHOLD
    if high_threshold is None:
        high_threshold = settings.BURNOUT_HIGH_THRESHOLD
    overall = Decimal(str(overall))
    if overall < medium_threshold:
        return BurnoutLevel.low
    if overall < high_threshold:
        return BurnoutLevel.medium
    return BurnoutLevel.high


def score_responses(
    responses: Sequence[ResponseItem],
    questions: dict[int, BurnoutQuestion],
) -> BurnoutScore:
    """
    Score already-validated responses. `questions` maps question id to its
    catalog row (dimension + reversal flag).
    """
    sums = {d: Decimal(0) for d in BurnoutDimension}
    counts = {d: 0 for d in BurnoutDimension}

    for item in responses:
        question = questions[item.question_id]
        value = 5 - item.value if question.is_reversed else item.value
        dimension = BurnoutDimension(question.dimension)
        sums[dimension] += value
        counts[dimension] += 1

    missing = [d.value for d in BurnoutDimension if counts[d] == 0]
    if missing:
        raise IncompleteQuestionnaireError(missing)

    exhaustion = sums[BurnoutDimension.exhaustion] / counts[BurnoutDimension.exhaustion]
    disengagement = (
        sums[BurnoutDimension.disengagement] / counts[BurnoutDimension.disengagement]
    )
    overall = (exhaustion + disengagement) / 2

    return BurnoutScore(
        exhaustion_avg=round_half_up(exhaustion, 2),
        disengagement_avg=round_half_up(disengagement, 2),
        overall_score=round_half_up(overall, 2),
        level=classify(overall),
    )


def interpret(
    level: BurnoutLevel,
    exhaustion_avg: Decimal,
    disengagement_avg: Decimal,
) -> Interpretation:
    message, recommendation = _INTERPRETATIONS[BurnoutLevel(level)]
    details = []
    if Decimal(str(exhaustion_avg)) >= settings.OLBI_DIMENSION_ALERT:
        details.append(_EXHAUSTION_DETAIL)
    if Decimal(str(disengagement_avg)) >= settings.OLBI_DIMENSION_ALERT:
        details.append(_DISENGAGEMENT_DETAIL)
    return Interpretation(
        level=BurnoutLevel(level),
        message=message,
        recommendation=recommendation,
        details=details or [_NO_DETAIL],
    )


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def _validate_responses(
    responses: Sequence[ResponseItem],
    questions: dict[int, BurnoutQuestion],
) -> None:
    if len(responses) != settings.OLBI_ITEM_COUNT:
        raise InvalidResponseCountError(settings.OLBI_ITEM_COUNT, len(responses))

    seen: set[int] = set()
    for item in responses:
        if item.question_id not in questions:
            raise UnknownQuestionError(item.question_id)
        if item.question_id in seen:
            raise DuplicateQuestionError(item.question_id)
        seen.add(item.question_id)
        if not settings.LIKERT_MIN <= item.value <= settings.LIKERT_MAX:
            raise LikertValueOutOfRangeError(
                item.question_id, item.value, settings.LIKERT_MIN, settings.LIKERT_MAX
            )


def _find_result(db: Session, patient_id: int, test_type: TestType) -> Optional[BurnoutTestResult]:
    return (
        db.query(BurnoutTestResult)
        .filter(
            BurnoutTestResult.patient_id == patient_id,
            BurnoutTestResult.test_type == test_type,
        )
        .first()
    )


def _require_patient(db: Session, patient_id: int) -> Patient:
    patient = db.get(Patient, patient_id)
    if patient is None:
        raise PatientNotFoundError(patient_id)
    return patient


def _question_map(db: Session) -> dict[int, BurnoutQuestion]:
    return {q.id: q for q in db.query(BurnoutQuestion).all()}


# ---------------------------------------------------------------------------
# Public: submission
# ---------------------------------------------------------------------------

def submit_burnout_test(
    db: Session,
    patient_id: int,
    test_type: TestType,
    responses: Sequence[ResponseItem],
) -> BurnoutSubmission:
    test_type = TestType(test_type)
    patient = _require_patient(db, patient_id)

    questions = _question_map(db)
    _validate_responses(responses, questions)

    if _find_result(db, patient_id, test_type) is not None:
        raise TestAlreadyTakenError(test_type.value)
    required = _REQUIRES.get(test_type)
    if required is not None and _find_result(db, patient_id, required) is None:
        raise RequiresPriorTestError(test_type.value, required.value)

    score = score_responses(responses, questions)

    try:
        result = BurnoutTestResult(
            patient_id=patient_id,
            test_type=test_type,
            exhaustion_avg=score.exhaustion_avg,
            disengagement_avg=score.disengagement_avg,
            overall_score=score.overall_score,
            level=score.level,
        )
        db.add(result)
        try:
            db.flush()  # get result.id
        except IntegrityError as exc:
            # a concurrent submission of the same test committed first
            db.rollback()
            raise TestAlreadyTakenError(test_type.value) from exc

        for item in responses:
            db.add(QuestionResponse(
                test_result_id=result.id,
                question_id=item.question_id,
                raw_value=item.value,
            ))

        if test_type == TestType.initial:
            patient.initial_test_completed = True
        else:
            patient.final_test_completed = True

        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(result)
    logger.info(
        "Patient %s submitted %s burnout test: overall=%s level=%s",
        patient_id, test_type.value, score.overall_score, score.level.value,
    )
    return BurnoutSubmission(
        result_id=result.id,
        test_type=test_type,
        score=score,
        interpretation=interpret(score.level, score.exhaustion_avg, score.disengagement_avg),
        taken_at=result.taken_at,
    )


# ---------------------------------------------------------------------------
# Public: read models
# ---------------------------------------------------------------------------

def list_questions(db: Session) -> list[BurnoutQuestion]:
    return db.query(BurnoutQuestion).order_by(BurnoutQuestion.order.asc()).all()


def _stored(result: BurnoutTestResult) -> StoredResult:
    return StoredResult(
        result_id=result.id,
        test_type=TestType(result.test_type),
        taken_at=result.taken_at,
        exhaustion_avg=Decimal(result.exhaustion_avg),
        disengagement_avg=Decimal(result.disengagement_avg),
        overall_score=Decimal(result.overall_score),
        level=BurnoutLevel(result.level),
        interpretation=interpret(result.level, result.exhaustion_avg, result.disengagement_avg),
    )


def compare(initial: StoredResult, final: StoredResult) -> Comparison:
    """Negative changes mean fewer symptoms at the end of the program."""
    exhaustion_change = final.exhaustion_avg - initial.exhaustion_avg
    disengagement_change = final.disengagement_avg - initial.disengagement_avg
    return Comparison(
        exhaustion_change=round_half_up(exhaustion_change, 2),
        disengagement_change=round_half_up(disengagement_change, 2),
        improved=exhaustion_change < 0 and disengagement_change < 0,
    )


def get_results(db: Session, patient_id: int) -> BurnoutResults:
    _require_patient(db, patient_id)
    rows = {
        TestType(r.test_type): r
        for r in db.query(BurnoutTestResult)
        .filter(BurnoutTestResult.patient_id == patient_id)
        .all()
    }
    if not rows:
        raise NoResultsError(patient_id)

    initial = _stored(rows[TestType.initial]) if TestType.initial in rows else None
    final = _stored(rows[TestType.final]) if TestType.final in rows else None
    return BurnoutResults(
        patient_id=patient_id,
        initial=initial,
        final=final,
        comparison=compare(initial, final) if initial and final else None,
    )


def get_test_status(db: Session, patient_id: int) -> BurnoutTestStatus:
    patient = _require_patient(db, patient_id)
    initial = _find_result(db, patient_id, TestType.initial)
    final = _find_result(db, patient_id, TestType.final)
    return BurnoutTestStatus(
        initial=StatusEntry(
            completed=bool(patient.initial_test_completed),
            taken_at=initial.taken_at if initial else None,
            level=BurnoutLevel(initial.level) if initial else None,
        ),
        final=StatusEntry(
            completed=bool(patient.final_test_completed),
            taken_at=final.taken_at if final else None,
            level=BurnoutLevel(final.level) if final else None,
            available=bool(patient.initial_test_completed),
        ),
    )
