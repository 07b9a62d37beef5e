# backend/booking_backend/schemas/slots.py
"""
Pydantic schemas for slots API.
"""

from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel, Field


class SlotRead(BaseModel):
    """A single bookable slot."""
    date: date
    start: str  # "HH:MM"
    end: str    # "HH:MM"
    datetime: datetime
    member_id: int

    model_config = {"from_attributes": True}


class MemberSlotsResponse(BaseModel):
    """Slots of one member for a service."""
    member_id: int
    service_id: int
    start_date: date
    end_date: date
    duration_minutes: int = Field(description="Service duration + buffer")
    slots: list[SlotRead]

    model_config = {"from_attributes": True}


class ProviderSlotsResponse(BaseModel):
    """Slots of all active members of a provider, merged."""
    provider_id: int
    service_id: int
    start_date: date
    end_date: date
    duration_minutes: int = Field(description="Service duration + buffer")
    slots: list[SlotRead]

    # Members whose data could not be loaded; their slots are missing
    failed_member_ids: list[int] = []
    all_failed: bool = False

    model_config = {"from_attributes": True}


class NextSlotResponse(BaseModel):
    """Earliest bookable slot of a provider's team within the advance window."""
    provider_id: int
    service_id: int
    duration_minutes: int = Field(description="Service duration + buffer")
    slot: Optional[SlotRead] = None  # None: nothing bookable in the window

    model_config = {"from_attributes": True}
