# backend/booking_backend/routers/slots.py
"""
Slots API endpoints.

GET /slots/member   - Bookable slots of one member for a service
GET /slots/provider - Bookable slots of all active members, merged
GET /slots/next     - Earliest bookable slot of a provider for a service
"""

import asyncio
from datetime import date

from fastapi import APIRouter, Depends, HTTPException

from ..config import settings
from ..schemas.slots import MemberSlotsResponse, NextSlotResponse, ProviderSlotsResponse, SlotRead
from ..services.clock import provider_now
from ..services.slots import (
    DateRange,
    SchedulingError,
    generate_across_members,
    get_slot_policy,
    load_member_slots,
    next_available_slot,
)
from ..services.slots.repository import SqlScheduleRepository
from .deps import get_repository, http_error

router = APIRouter(prefix="/slots", tags=["slots"])


def _load_service(repo: SqlScheduleRepository, service_id: int, provider_id: int):
    service = repo.get_service(service_id)
    if not service or service.provider_id != provider_id:
        raise HTTPException(status_code=404, detail="Service not found or inactive")
    return service


@router.get("/member", response_model=MemberSlotsResponse)
def get_member_slots(
    member_id: int,
    service_id: int,
    start_date: date,
    end_date: date | None = None,
    repo: SqlScheduleRepository = Depends(get_repository),
):
    """Bookable slots of one member; end_date defaults to start_date."""
    member = repo.get_member(member_id)
    if not member or not member.is_active:
        raise HTTPException(status_code=404, detail="Member not found or inactive")

    service = _load_service(repo, service_id, member.provider_id)
    provider = repo.get_provider(member.provider_id)
    policy = repo.policy_for_provider(provider, get_slot_policy())
    duration = service.duration_min + repo.buffer_minutes(service, provider)
    end_date = end_date or start_date

    try:
        slots = load_member_slots(
            member_id,
            duration,
            DateRange(start_date, end_date),
            policy,
            source=repo,
            now=provider_now(provider),
        )
    except SchedulingError as e:
        raise http_error(e)

    return MemberSlotsResponse(
        member_id=member_id,
        service_id=service_id,
        start_date=start_date,
        end_date=end_date,
        duration_minutes=duration,
        slots=[SlotRead.model_validate(s) for s in slots],
    )


@router.get("/provider", response_model=ProviderSlotsResponse)
async def get_provider_slots(
    provider_id: int,
    service_id: int,
    start_date: date,
    end_date: date | None = None,
    repo: SqlScheduleRepository = Depends(get_repository),
):
    """
    Bookable slots across the provider's active members.

    Members whose data could not be loaded are listed in failed_member_ids;
    all_failed distinguishes "nothing bookable" from "nothing could be loaded".
    """
    provider = await asyncio.to_thread(repo.get_provider, provider_id)
    if not provider or not provider.is_active:
        raise HTTPException(status_code=404, detail="Provider not found or inactive")

    service = await asyncio.to_thread(_load_service, repo, service_id, provider_id)
    policy = repo.policy_for_provider(provider, get_slot_policy())
    duration = service.duration_min + repo.buffer_minutes(service, provider)
    end_date = end_date or start_date

    try:
        date_range = DateRange(start_date, end_date)
        members = await asyncio.to_thread(repo.list_active_members, provider_id)
        result = await generate_across_members(
            members,
            duration,
            date_range,
            policy,
            source=repo,
            now=provider_now(provider),
            max_concurrency=settings.member_fetch_concurrency,
            fetch_timeout=settings.member_fetch_timeout_seconds,
        )
    except SchedulingError as e:
        raise http_error(e)

    return ProviderSlotsResponse(
        provider_id=provider_id,
        service_id=service_id,
        start_date=start_date,
        end_date=end_date,
        duration_minutes=duration,
        slots=[SlotRead.model_validate(s) for s in result.slots],
        failed_member_ids=result.failed_member_ids,
        all_failed=result.all_failed,
    )


@router.get("/next", response_model=NextSlotResponse)
async def get_next_slot(
    provider_id: int,
    service_id: int,
    repo: SqlScheduleRepository = Depends(get_repository),
):
    """Earliest slot across the provider's members, up to max_advance_days ahead."""
    provider = await asyncio.to_thread(repo.get_provider, provider_id)
    if not provider or not provider.is_active:
        raise HTTPException(status_code=404, detail="Provider not found or inactive")

    service = await asyncio.to_thread(_load_service, repo, service_id, provider_id)
    policy = repo.policy_for_provider(provider, get_slot_policy())
    duration = service.duration_min + repo.buffer_minutes(service, provider)

    try:
        members = await asyncio.to_thread(repo.list_active_members, provider_id)
        slot = await next_available_slot(
            members,
            duration,
            policy,
            source=repo,
            now=provider_now(provider),
            max_concurrency=settings.member_fetch_concurrency,
            fetch_timeout=settings.member_fetch_timeout_seconds,
        )
    except SchedulingError as e:
        raise http_error(e)

    return NextSlotResponse(
        provider_id=provider_id,
        service_id=service_id,
        duration_minutes=duration,
        slot=SlotRead.model_validate(slot) if slot else None,
    )
