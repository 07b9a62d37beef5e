# backend/booking_backend/routers/deps.py
"""
Shared router dependencies: repository and engine-error mapping.
"""

from fastapi import Depends, HTTPException, status

from ..database import get_session_factory
from ..services.slots.errors import (
    DataUnavailable,
    InvalidInput,
    NotFound,
    SchedulingError,
    SlotUnavailable,
    ValidationError,
)
from ..services.slots.repository import SqlScheduleRepository


def get_repository(session_factory=Depends(get_session_factory)) -> SqlScheduleRepository:
    return SqlScheduleRepository(session_factory)


def http_error(e: SchedulingError) -> HTTPException:
    """Translate an engine error into the matching HTTP error."""
    if isinstance(e, ValidationError):
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"field": e.field, "message": e.message},
        )
    if isinstance(e, InvalidInput):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if isinstance(e, NotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, SlotUnavailable):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    if isinstance(e, DataUnavailable):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
