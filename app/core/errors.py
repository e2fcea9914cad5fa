"""
Custom exception hierarchy for the treatment program service.

Rule: every HTTP error has a machine-readable `code` string so clients
can branch on it without parsing English messages.
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class ProgramException(Exception):
    """Base class for all application-level errors."""
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


# --- not found --------------------------------------------------------------

class PatientNotFoundError(ProgramException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "PATIENT_NOT_FOUND"

    def __init__(self, patient_id: int):
        super().__init__(
            message=f"Patient {patient_id} not found.",
            details={"patient_id": patient_id},
        )


class ActivityNotFoundError(ProgramException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "ACTIVITY_NOT_FOUND"

    def __init__(self, activity_id: int):
        super().__init__(
            message=f"Activity {activity_id} not found.",
            details={"activity_id": activity_id},
        )


class TreatmentModuleNotFoundError(ProgramException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "MODULE_NOT_FOUND"

    def __init__(self, module_id: int):
        super().__init__(
            message=f"Module {module_id} not found.",
            details={"module_id": module_id},
        )


class NoResultsError(ProgramException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "NO_TEST_RESULTS"

    def __init__(self, patient_id: int):
        super().__init__(
            message=f"Patient {patient_id} has not taken any burnout test.",
            details={"patient_id": patient_id},
        )


# --- access -----------------------------------------------------------------

class ModuleLockedError(ProgramException):
    http_status = status.HTTP_403_FORBIDDEN
    code = "MODULE_LOCKED"

    def __init__(self, module_id: int, required_module_id: int | None):
        super().__init__(
            message="Complete the previous module first.",
            details={"module_id": module_id, "required_module_id": required_module_id},
        )


# --- questionnaire validation ------------------------------------------------

class InvalidResponseCountError(ProgramException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "INVALID_RESPONSE_COUNT"

    def __init__(self, expected: int, received: int):
        super().__init__(
            message=f"Expected {expected} responses. Received {received}.",
            details={"expected": expected, "received": received},
        )


class LikertValueOutOfRangeError(ProgramException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "LIKERT_OUT_OF_RANGE"

    def __init__(self, question_id: int, value: int, low: int, high: int):
        super().__init__(
            message=f"Response to question {question_id} must be between {low} and {high}.",
            details={"question_id": question_id, "value": value, "min": low, "max": high},
        )


class UnknownQuestionError(ProgramException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "UNKNOWN_QUESTION"

    def __init__(self, question_id: int):
        super().__init__(
            message=f"Question {question_id} is not part of the questionnaire.",
            details={"question_id": question_id},
        )


class DuplicateQuestionError(ProgramException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "DUPLICATE_QUESTION"

    def __init__(self, question_id: int):
        super().__init__(
            message=f"Question {question_id} was answered more than once.",
            details={"question_id": question_id},
        )


class IncompleteQuestionnaireError(ProgramException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "INCOMPLETE_QUESTIONNAIRE"

    def __init__(self, missing_dimensions: list[str]):
        super().__init__(
            message="Every questionnaire dimension needs at least one response.",
            details={"missing_dimensions": missing_dimensions},
        )


# --- questionnaire conflicts -------------------------------------------------

class TestAlreadyTakenError(ProgramException):
    http_status = status.HTTP_409_CONFLICT
    code = "TEST_ALREADY_TAKEN"
    __test__ = False  # not a pytest class

    def __init__(self, test_type: str):
        super().__init__(
            message=f"The {test_type} test was already submitted and cannot be repeated.",
            details={"test_type": test_type},
        )


class RequiresPriorTestError(ProgramException):
    http_status = status.HTTP_409_CONFLICT
    code = "REQUIRES_PRIOR_TEST"

    def __init__(self, test_type: str, required: str):
        super().__init__(
            message=f"The {required} test must be completed before the {test_type} test.",
            details={"test_type": test_type, "required": required},
        )


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def program_exception_handler(request: Request, exc: ProgramException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return structured 422 with machine-readable field errors."""
    field_errors = []
    for error in exc.errors():
        field_errors.append({
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        })
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed.",
            "details": {"errors": field_errors},
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
