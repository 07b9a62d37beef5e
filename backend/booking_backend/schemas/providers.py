# backend/booking_backend/schemas/providers.py

from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class ProviderNextSlotRead(BaseModel):
    provider_id: int
    next_available_slot: Optional[datetime] = None  # provider-local
    checked_at: Optional[datetime] = None  # None: never computed

    model_config = {"from_attributes": True}
