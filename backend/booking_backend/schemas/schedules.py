# backend/booking_backend/schemas/schedules.py
"""
Pydantic schemas for working hours and scheduled availability changes.

Time ranges are ["HH:MM", "HH:MM"] pairs; days are keyed "mon".."sun".
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class DayScheduleSchema(BaseModel):
    is_open: bool = True
    ranges: list[list[str]] = []


class WeeklyScheduleRead(BaseModel):
    member_id: int
    days: dict[str, DayScheduleSchema]


class AvailabilityChangeCreate(BaseModel):
    day_of_week: int = Field(ge=0, le=6, description="0 = Monday")
    is_open: bool = True
    ranges: list[list[str]] = []
    effective_from: Optional[datetime] = None  # None = now


class AvailabilityChangeRead(BaseModel):
    id: Optional[int] = None
    member_id: int
    day_of_week: int
    is_open: bool
    ranges: list[list[str]]
    effective_from: datetime


class AvailabilityConflictRead(BaseModel):
    booking_id: Optional[int] = None
    booking_datetime: datetime
    conflict_type: str  # day_closed | reduced_hours

    model_config = {"from_attributes": True}


class AvailabilityChangeResult(BaseModel):
    change: AvailabilityChangeRead
    applied: bool  # True when the change took effect immediately
    conflicts: list[AvailabilityConflictRead] = []


class AppliedChangesResponse(BaseModel):
    applied: int
