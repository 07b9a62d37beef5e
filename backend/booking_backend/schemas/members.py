# backend/booking_backend/schemas/members.py

from typing import Optional
from pydantic import BaseModel


class MemberRead(BaseModel):
    id: int
    provider_id: Optional[int] = None
    location_id: int
    name: Optional[str] = None
    is_active: bool

    model_config = {"from_attributes": True}
