# backend/booking_backend/schemas/bookings.py

from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class BookingCreate(BaseModel):
    member_id: int
    service_id: int

    date_start: datetime

    client_name: str
    client_phone: Optional[str] = None
    client_email: Optional[str] = None
    notes: Optional[str] = None

    model_config = {"from_attributes": True}


class BookingStatusUpdate(BaseModel):
    status: str
    cancel_reason: Optional[str] = None


class BookingRead(BaseModel):
    id: int

    provider_id: int
    location_id: int
    service_id: int
    member_id: int

    date_start: datetime
    date_end: datetime

    duration_minutes: int
    buffer_minutes: int

    status: str
    client_name: str
    client_phone: Optional[str] = None
    client_email: Optional[str] = None
    notes: Optional[str] = None
    cancel_reason: Optional[str] = None

    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
