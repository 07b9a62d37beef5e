# backend/booking_backend/routers/bookings.py
# PATCH /{id} = 405 (use /{id}/status), DELETE = 405 (cancel instead)

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.generated import Bookings as DBBookings
from ..schemas.bookings import (
    BookingCreate,
    BookingRead,
    BookingStatusUpdate,
)
from ..services.clock import provider_now
from ..services.events import emit_event
from ..services.next_slot_refresher import refresh_after_change
from ..services.slots import SchedulingError, get_slot_policy
from ..services.slots.repository import SqlScheduleRepository
from .deps import get_repository, http_error

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.get("/{id}", response_model=BookingRead)
def get_booking(id: int, db: Session = Depends(get_db)):
    obj = db.get(DBBookings, id)
    if not obj:
        raise HTTPException(status_code=404, detail="Not found")
    return obj


@router.post("/", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
def create_booking(
    data: BookingCreate,
    background_tasks: BackgroundTasks,
    repo: SqlScheduleRepository = Depends(get_repository),
):
    """
    Book a slot. The slot is re-checked against current hours, blocked
    periods and bookings; a taken slot → 409.
    """
    member = repo.get_member(data.member_id)
    if not member or not member.is_active:
        raise HTTPException(status_code=404, detail="Member not found or inactive")

    provider = repo.get_provider(member.provider_id)
    policy = repo.policy_for_provider(provider, get_slot_policy())

    try:
        booking = repo.persist_booking(
            data.member_id,
            data.service_id,
            data.date_start.replace(tzinfo=None),
            data.client_name,
            policy=policy,
            now=provider_now(provider),
            client_phone=data.client_phone,
            client_email=data.client_email,
            notes=data.notes,
        )
    except SchedulingError as e:
        raise http_error(e)

    emit_event("booking_created", {
        "booking_id": booking.id,
        "provider_id": booking.provider_id,
        "member_id": booking.member_id,
        "service_id": booking.service_id,
        "date_start": booking.date_start,
        "status": booking.status,
    })
    background_tasks.add_task(refresh_after_change, booking.provider_id, repo)
    return booking


@router.patch("/{id}/status", response_model=BookingRead)
def update_booking_status(
    id: int,
    data: BookingStatusUpdate,
    background_tasks: BackgroundTasks,
    repo: SqlScheduleRepository = Depends(get_repository),
):
    try:
        booking = repo.update_booking_status(id, data.status, data.cancel_reason)
    except SchedulingError as e:
        raise http_error(e)

    emit_event("booking_status_changed", {
        "booking_id": booking.id,
        "member_id": booking.member_id,
        "status": booking.status,
    })
    background_tasks.add_task(refresh_after_change, booking.provider_id, repo)
    return booking


@router.patch("/{id}")
def patch_not_allowed():
    raise HTTPException(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        detail="Method not allowed",
    )


@router.delete("/{id}")
def delete_not_allowed():
    raise HTTPException(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        detail="Method not allowed",
    )
