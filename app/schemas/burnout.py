"""
OLBI burnout questionnaire schemas.

GET  /burnout/questions                   → QuestionnaireResponse
POST /patients/{id}/burnout-tests         → BurnoutTestRequest → BurnoutSubmissionResponse
GET  /patients/{id}/burnout-tests         → BurnoutResultsResponse
GET  /patients/{id}/burnout-tests/status  → BurnoutTestStatusResponse
"""
from __future__ import annotations

from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.burnout import TestType


class LikertOption(BaseModel):
    value: int
    text: str


class QuestionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    text: str
    dimension: str
    order: int


class QuestionnaireResponse(BaseModel):
    total_questions: int
    instructions: str
    options: list[LikertOption]
    questions: list[QuestionOut]


class ResponseIn(BaseModel):
    question_id: int = Field(description="Catalog id of the answered question.")
    value: int = Field(description="Likert answer, 1 (strongly disagree) to 4 (strongly agree).")


class BurnoutTestRequest(BaseModel):
    """A full questionnaire submission. Range and count are re-checked by the scorer."""
    model_config = ConfigDict(use_enum_values=True)

    test_type: TestType = Field(description='"initial" or "final".', examples=["initial"])
    responses: Annotated[list[ResponseIn], Field(
        min_length=1,
        description="One answer per questionnaire item (16 for the OLBI).",
    )]


class InterpretationOut(BaseModel):
    level: str
    message: str
    recommendation: str
    details: list[str]


class BurnoutSubmissionResponse(BaseModel):
    result_id: int
    test_type: str
    exhaustion_avg: float = Field(description="Exhaustion average on the 1–4 scale.")
    disengagement_avg: float = Field(description="Disengagement average on the 1–4 scale.")
    overall_score: float = Field(description="Mean of both dimensions, 2 decimals.")
    level: str = Field(description='"low" | "medium" | "high"')
    interpretation: InterpretationOut
    taken_at: Optional[str] = None


class StoredResultOut(BaseModel):
    result_id: int
    test_type: str
    taken_at: Optional[str] = None
    exhaustion_avg: float
    disengagement_avg: float
    overall_score: float
    level: str
    interpretation: InterpretationOut


class ComparisonOut(BaseModel):
    exhaustion_change: float = Field(description="final - initial; negative is better.")
    disengagement_change: float = Field(description="final - initial; negative is better.")
    improved: bool = Field(description="Both dimensions went down.")


class BurnoutResultsResponse(BaseModel):
    patient_id: int
    initial: Optional[StoredResultOut] = None
    final: Optional[StoredResultOut] = None
    comparison: Optional[ComparisonOut] = None


class StatusEntryOut(BaseModel):
    completed: bool
    taken_at: Optional[str] = None
    level: Optional[str] = None
    available: bool = True


class BurnoutTestStatusResponse(BaseModel):
    initial: StatusEntryOut
    final: StatusEntryOut
