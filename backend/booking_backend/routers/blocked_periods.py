# backend/booking_backend/routers/blocked_periods.py
# PATCH = 405 (blocked periods are immutable), DELETE = ALLOWED (hard)

from datetime import date

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status

from ..schemas.blocked_periods import (
    BlockedPeriodBulkCreate,
    BlockedPeriodBulkItem,
    BlockedPeriodCreate,
    BlockedPeriodRead,
    FieldError,
)
from ..services.events import emit_event
from ..services.next_slot_refresher import refresh_after_change
from ..services.slots import BlockPeriodWriter, SchedulingError
from ..services.slots.repository import SqlScheduleRepository
from .deps import get_repository, http_error

router = APIRouter(prefix="/blocked_periods", tags=["blocked_periods"])


def _period_event(period) -> dict:
    return {
        "blocked_period_id": period.id,
        "member_id": period.member_id,
        "location_id": period.location_id,
        "start_date": period.start_date.isoformat(),
        "end_date": period.end_date.isoformat(),
        "all_day": period.all_day,
    }


def _refresh_next_slots(background_tasks: BackgroundTasks, repo: SqlScheduleRepository, member_ids) -> None:
    provider_ids = set()
    for member_id in member_ids:
        member = repo.get_member(member_id)
        if member is not None:
            provider_ids.add(member.provider_id)
    for provider_id in sorted(provider_ids):
        background_tasks.add_task(refresh_after_change, provider_id, repo)


@router.get("/", response_model=list[BlockedPeriodRead])
def list_blocked_periods(
    member_id: int | None = None,
    provider_id: int | None = None,
    upcoming: bool = False,
    repo: SqlScheduleRepository = Depends(get_repository),
):
    """Blocked periods of a member or a provider; upcoming = not yet ended."""
    today = date.today()
    if member_id is not None:
        periods = repo.list_member_blocked_periods(member_id)
        if upcoming:
            periods = [p for p in periods if p.end_date >= today]
        return periods
    if provider_id is not None:
        return repo.list_provider_blocked_periods(provider_id, today if upcoming else None)
    raise HTTPException(status_code=400, detail="member_id or provider_id required")


@router.get("/{id}", response_model=BlockedPeriodRead)
def get_blocked_period(id: int, repo: SqlScheduleRepository = Depends(get_repository)):
    period = repo.get_blocked_period(id)
    if not period:
        raise HTTPException(status_code=404, detail="Not found")
    return period


@router.post("/", response_model=BlockedPeriodRead, status_code=status.HTTP_201_CREATED)
def create_blocked_period(
    data: BlockedPeriodCreate,
    background_tasks: BackgroundTasks,
    repo: SqlScheduleRepository = Depends(get_repository),
):
    writer = BlockPeriodWriter(repo, repo)
    try:
        period = writer.create(**data.model_dump())
    except SchedulingError as e:
        raise http_error(e)

    emit_event("blocked_period_created", _period_event(period))
    _refresh_next_slots(background_tasks, repo, [period.member_id])
    return period


@router.post("/bulk", response_model=list[BlockedPeriodBulkItem])
def create_blocked_periods_bulk(
    data: BlockedPeriodBulkCreate,
    background_tasks: BackgroundTasks,
    repo: SqlScheduleRepository = Depends(get_repository),
):
    """Block the same period for several members; reported per member."""
    writer = BlockPeriodWriter(repo, repo)
    payload = data.model_dump()
    member_ids = payload.pop("member_ids")
    results = writer.create_for_members(member_ids, **payload)

    items = []
    for result in results:
        if result.ok:
            emit_event("blocked_period_created", _period_event(result.period))
            items.append(BlockedPeriodBulkItem(
                member_id=result.member_id,
                ok=True,
                period=BlockedPeriodRead.model_validate(result.period),
            ))
        else:
            items.append(BlockedPeriodBulkItem(
                member_id=result.member_id,
                ok=False,
                error=FieldError(field=result.error.field, message=result.error.message),
            ))
    _refresh_next_slots(background_tasks, repo, [r.member_id for r in results if r.ok])
    return items


@router.patch("/{id}")
def patch_not_allowed():
    raise HTTPException(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        detail="Method not allowed",
    )


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_blocked_period(
    id: int,
    background_tasks: BackgroundTasks,
    repo: SqlScheduleRepository = Depends(get_repository),
):
    period = repo.get_blocked_period(id)
    try:
        BlockPeriodWriter(repo, repo).remove(id)
    except SchedulingError as e:
        raise http_error(e)

    emit_event("blocked_period_deleted", _period_event(period))
    _refresh_next_slots(background_tasks, repo, [period.member_id])
