# backend/booking_backend/routers/schedules.py
"""
Working hours endpoints.

GET|PUT /members/{id}/schedule                      - live weekly schedule
POST|GET /members/{id}/schedule/changes             - scheduled day changes
DELETE /members/{id}/schedule/changes/{change_id}
POST /schedule/changes/apply                        - fold due changes in now
"""

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status

from ..schemas.schedules import (
    AppliedChangesResponse,
    AvailabilityChangeCreate,
    AvailabilityChangeRead,
    AvailabilityChangeResult,
    AvailabilityConflictRead,
    DayScheduleSchema,
    WeeklyScheduleRead,
)
from ..services.clock import provider_now
from ..services.next_slot_refresher import refresh_after_change
from ..services.slots import AvailabilityChange, ScheduleEditor, SchedulingError
from ..services.slots.repository import SqlScheduleRepository
from .deps import get_repository, http_error

router = APIRouter(tags=["schedules"])


def _change_read(change: AvailabilityChange) -> AvailabilityChangeRead:
    return AvailabilityChangeRead(
        id=change.id,
        member_id=change.member_id,
        day_of_week=change.day_of_week,
        is_open=change.day.is_open,
        ranges=change.day.time_ranges(),
        effective_from=change.effective_from,
    )


def _member_or_404(repo: SqlScheduleRepository, member_id: int):
    member = repo.get_member(member_id)
    if not member:
        raise HTTPException(status_code=404, detail="Member not found")
    return member


def _member_now(repo: SqlScheduleRepository, member):
    return provider_now(repo.get_provider(member.provider_id))


@router.get("/members/{member_id}/schedule", response_model=WeeklyScheduleRead)
def get_schedule(member_id: int, repo: SqlScheduleRepository = Depends(get_repository)):
    try:
        schedule = repo.get_weekly_schedule(member_id)
    except SchedulingError as e:
        raise http_error(e)
    return WeeklyScheduleRead(member_id=member_id, days=schedule.to_dict())


@router.put("/members/{member_id}/schedule", response_model=WeeklyScheduleRead)
def put_schedule(
    member_id: int,
    data: dict[str, DayScheduleSchema],
    background_tasks: BackgroundTasks,
    repo: SqlScheduleRepository = Depends(get_repository),
):
    """
    Replace the whole weekly schedule. Days left out are closed.

    Keys are day names (mon..sun) or weekday numbers (0..6); anything else → 400.
    """
    member = _member_or_404(repo, member_id)
    editor = ScheduleEditor(repo)
    try:
        schedule = editor.set_weekly_schedule(
            member_id, {day: value.model_dump() for day, value in data.items()}
        )
    except SchedulingError as e:
        raise http_error(e)

    background_tasks.add_task(refresh_after_change, member.provider_id, repo)
    return WeeklyScheduleRead(member_id=member_id, days=schedule.to_dict())


@router.post(
    "/members/{member_id}/schedule/changes",
    response_model=AvailabilityChangeResult,
    status_code=status.HTTP_201_CREATED,
)
def create_schedule_change(
    member_id: int,
    data: AvailabilityChangeCreate,
    background_tasks: BackgroundTasks,
    repo: SqlScheduleRepository = Depends(get_repository),
):
    """
    Change one weekday from effective_from on (immediately when omitted).

    Upcoming bookings the change would strand are reported in `conflicts`.
    """
    member = _member_or_404(repo, member_id)
    now = _member_now(repo, member)
    effective_from = data.effective_from.replace(tzinfo=None) if data.effective_from else now

    try:
        change, conflicts = ScheduleEditor(repo).schedule_day_change(
            member_id,
            data.day_of_week,
            data.ranges,
            data.is_open,
            effective_from,
            now=now,
        )
    except SchedulingError as e:
        raise http_error(e)

    applied = change.id is None
    if applied:
        background_tasks.add_task(refresh_after_change, member.provider_id, repo)

    return AvailabilityChangeResult(
        change=_change_read(change),
        applied=applied,
        conflicts=[AvailabilityConflictRead.model_validate(c) for c in conflicts],
    )


@router.get("/members/{member_id}/schedule/changes", response_model=list[AvailabilityChangeRead])
def list_schedule_changes(member_id: int, repo: SqlScheduleRepository = Depends(get_repository)):
    now = _member_now(repo, _member_or_404(repo, member_id))
    changes = ScheduleEditor(repo).list_scheduled_changes(member_id, now=now)
    return [_change_read(c) for c in changes]


@router.delete(
    "/members/{member_id}/schedule/changes/{change_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_schedule_change(
    member_id: int,
    change_id: int,
    repo: SqlScheduleRepository = Depends(get_repository),
):
    owned = {c.id for c in repo.list_availability_changes(member_id)}
    if change_id not in owned:
        raise HTTPException(status_code=404, detail="Not found")
    ScheduleEditor(repo).delete_scheduled_change(change_id)


@router.post("/schedule/changes/apply", response_model=AppliedChangesResponse)
def apply_schedule_changes(repo: SqlScheduleRepository = Depends(get_repository)):
    """
    Apply every due change now instead of waiting for the checker loop.

    Each change is due against its own provider's local time.
    """
    return AppliedChangesResponse(applied=ScheduleEditor(repo).apply_due_changes(repo.member_local_now))
