# backend/booking_backend/routers/providers.py
"""
Provider endpoints.

GET  /providers/{id}/next_slot          - stored next available slot
POST /providers/{id}/next_slot/refresh  - recompute and store it now
"""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException

from ..schemas.providers import ProviderNextSlotRead
from ..services.next_slot_refresher import refresh_next_available_slot
from ..services.slots import SchedulingError
from ..services.slots.repository import SqlScheduleRepository
from .deps import get_repository, http_error

router = APIRouter(prefix="/providers", tags=["providers"])


def _next_slot_read(provider) -> ProviderNextSlotRead:
    return ProviderNextSlotRead(
        provider_id=provider.id,
        next_available_slot=(
            datetime.fromisoformat(provider.next_available_slot) if provider.next_available_slot else None
        ),
        checked_at=(
            datetime.fromisoformat(provider.next_slot_checked_at) if provider.next_slot_checked_at else None
        ),
    )


@router.get("/{id}/next_slot", response_model=ProviderNextSlotRead)
def get_next_slot(id: int, repo: SqlScheduleRepository = Depends(get_repository)):
    provider = repo.get_provider(id)
    if not provider:
        raise HTTPException(status_code=404, detail="Not found")
    return _next_slot_read(provider)


@router.post("/{id}/next_slot/refresh", response_model=ProviderNextSlotRead)
def refresh_next_slot(id: int, repo: SqlScheduleRepository = Depends(get_repository)):
    """Recompute for the provider's shortest active service; 503 if no member could be loaded."""
    try:
        refresh_next_available_slot(id, repo)
    except SchedulingError as e:
        raise http_error(e)
    return _next_slot_read(repo.get_provider(id))
