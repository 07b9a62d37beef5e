# backend/booking_backend/routers/members.py

from fastapi import APIRouter, Depends, HTTPException

from ..schemas.members import MemberRead
from ..services.slots.repository import SqlScheduleRepository
from .deps import get_repository

router = APIRouter(prefix="/members", tags=["members"])


@router.get("/", response_model=list[MemberRead])
def list_members(provider_id: int, repo: SqlScheduleRepository = Depends(get_repository)):
    """Active members at active locations, in display order."""
    return repo.list_active_members(provider_id)


@router.get("/{id}", response_model=MemberRead)
def get_member(id: int, repo: SqlScheduleRepository = Depends(get_repository)):
    member = repo.get_member(id)
    if not member:
        raise HTTPException(status_code=404, detail="Not found")
    return member
