"""
Translation of service exceptions into HTTP errors
"""
from fastapi import HTTPException

from habitcoach.core.exceptions import (
    ConcurrencyConflictError,
    ExternalServiceError,
    HabitCoachException,
    NotFoundError,
    PersistenceError,
    UnsupportedOperationError,
    ValidationError,
)

STATUS_CODES = [
    (ValidationError, 400),
    (NotFoundError, 404),
    (ConcurrencyConflictError, 409),
    (UnsupportedOperationError, 422),
    (PersistenceError, 500),
    (ExternalServiceError, 500),
]


def to_http_exception(error: HabitCoachException) -> HTTPException:
    """Map a service exception onto the matching HTTP status"""
    for exc_type, status_code in STATUS_CODES:
        if isinstance(error, exc_type):
            return HTTPException(status_code=status_code, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))
