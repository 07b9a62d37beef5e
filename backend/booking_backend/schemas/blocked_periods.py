# backend/booking_backend/schemas/blocked_periods.py

from datetime import date
from typing import Optional
from pydantic import BaseModel


class BlockedPeriodCreate(BaseModel):
    member_id: int
    location_id: int

    start_date: date
    end_date: date

    all_day: bool = True
    start_time: Optional[str] = None  # "HH:MM"
    end_time: Optional[str] = None    # "HH:MM", or "24:00" for midnight

    reason: Optional[str] = None
    is_recurring: bool = False
    recurring_days: Optional[list[int]] = None  # 0 = Monday

    model_config = {"from_attributes": True}


class BlockedPeriodBulkCreate(BaseModel):
    member_ids: list[int]

    start_date: date
    end_date: date

    all_day: bool = True
    start_time: Optional[str] = None
    end_time: Optional[str] = None

    reason: Optional[str] = None
    is_recurring: bool = False
    recurring_days: Optional[list[int]] = None

    model_config = {"from_attributes": True}


class BlockedPeriodRead(BaseModel):
    id: int

    member_id: int
    location_id: int

    start_date: date
    end_date: date

    all_day: bool
    start_time: Optional[str] = None
    end_time: Optional[str] = None

    reason: Optional[str] = None
    is_recurring: bool = False
    recurring_days: list[int] = []

    model_config = {"from_attributes": True}


class FieldError(BaseModel):
    field: str
    message: str


class BlockedPeriodBulkItem(BaseModel):
    member_id: int
    ok: bool
    period: Optional[BlockedPeriodRead] = None
    error: Optional[FieldError] = None
